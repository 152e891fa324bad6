"""
Listener Tasks
Celery tasks that run the queued listeners with their retry policy.
"""

import logging
from typing import Any, Dict, Type

from celery import Task

from ..db.session import session_scope
from ..listeners import (
    HandleComplianceAction,
    QueuedListener,
    SyncAgentToRoleSystem,
    SyncStockToBinSystem,
)
from .celery_app import app

logger = logging.getLogger(__name__)


class ListenerTask(Task):
    """
    Task base for listeners.

    `listener_class` is set per task through the decorator options. Once the
    last retry has failed, the listener's `failed` hook runs.
    """

    listener_class: Type[QueuedListener] = QueuedListener

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        payload = args[0] if args else kwargs.get("payload", {})
        attempts = self.request.retries + 1
        try:
            with session_scope() as db:
                self.listener_class(db).failed(payload or {}, exc, attempts)
        except Exception as e:
            logger.error(f"Failure hook for {self.name} raised: {e}", exc_info=True)


def run_listener(task: Task, listener_class: Type[QueuedListener], payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run one delivery of an event through a listener.

    Failed attempts are retried after the listener's backoff; the last failure
    propagates so the task ends in FAILURE.
    """
    event = listener_class.parse(payload)
    attempt = task.request.retries + 1

    with session_scope() as db:
        listener = listener_class(db)
        try:
            return listener.process(event, attempt=attempt)
        except Exception as e:
            logger.error(
                f"{listener_class.name} failed",
                extra={
                    "event_id": event.event_id,
                    "context": listener.failure_context(payload),
                    "error": str(e),
                    "attempt": attempt,
                },
            )
            raise task.retry(exc=e, countdown=listener_class.backoff_for(task.request.retries))


@app.task(
    bind=True,
    base=ListenerTask,
    name="listeners.sync_agent_to_role_system",
    listener_class=SyncAgentToRoleSystem,
    max_retries=SyncAgentToRoleSystem.tries - 1,
)
def sync_agent_to_role_system(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Apply an AgentUpdatedEvent to the Role system."""
    return run_listener(self, SyncAgentToRoleSystem, payload)


@app.task(
    bind=True,
    base=ListenerTask,
    name="listeners.sync_stock_to_bin_system",
    listener_class=SyncStockToBinSystem,
    max_retries=SyncStockToBinSystem.tries - 1,
)
def sync_stock_to_bin_system(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a StockAllocatedEvent to the agent's bins."""
    return run_listener(self, SyncStockToBinSystem, payload)


@app.task(
    bind=True,
    base=ListenerTask,
    name="listeners.handle_compliance_action",
    listener_class=HandleComplianceAction,
    max_retries=HandleComplianceAction.tries - 1,
)
def handle_compliance_action(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Enforce a ComplianceActionEvent."""
    return run_listener(self, HandleComplianceAction, payload)
