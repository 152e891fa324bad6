"""
Event Dispatcher
Fans a domain event out to the queued listeners registered for its type.
"""

import logging
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Type

from .schemas import DomainEvent

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Registry of event type -> listener tasks.

    Each task must expose `listener_class` (a QueuedListener subclass) and
    `apply_async`. Dispatching enqueues one job per task on the listener's
    queue and returns the job ids.
    """

    def __init__(self):
        self._registry: Dict[Type[DomainEvent], List] = defaultdict(list)

    def subscribe(self, event_class: Type[DomainEvent], task) -> None:
        if task not in self._registry[event_class]:
            self._registry[event_class].append(task)

    def listeners_for(self, event_class: Type[DomainEvent]) -> List:
        return list(self._registry.get(event_class, []))

    def dispatch(self, event: DomainEvent) -> List[str]:
        tasks = self.listeners_for(type(event))
        if not tasks:
            logger.warning(f"No listeners registered for {event.event_type}")
            return []

        payload = event.to_payload()
        task_ids = []
        for task in tasks:
            result = task.apply_async(args=[payload], queue=task.listener_class.queue)
            task_ids.append(result.id)

        logger.info(
            f"Dispatched {event.event_type} to {len(task_ids)} listener(s)",
            extra={"event_id": event.event_id, "task_ids": task_ids},
        )
        return task_ids


_dispatcher: Optional[EventDispatcher] = None
_dispatcher_lock = threading.Lock()


def build_default_dispatcher() -> EventDispatcher:
    """Dispatcher wired to the three Celery listener tasks."""
    from ..tasks.listeners import (
        handle_compliance_action,
        sync_agent_to_role_system,
        sync_stock_to_bin_system,
    )
    from .schemas import AgentUpdatedEvent, ComplianceActionEvent, StockAllocatedEvent

    dispatcher = EventDispatcher()
    dispatcher.subscribe(AgentUpdatedEvent, sync_agent_to_role_system)
    dispatcher.subscribe(StockAllocatedEvent, sync_stock_to_bin_system)
    dispatcher.subscribe(ComplianceActionEvent, handle_compliance_action)
    return dispatcher


def get_dispatcher() -> EventDispatcher:
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                _dispatcher = build_default_dispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: Optional[EventDispatcher]) -> None:
    """Replace the process-wide dispatcher (None resets it)."""
    global _dispatcher
    _dispatcher = dispatcher
