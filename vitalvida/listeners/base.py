"""
Queued Listener Base
Common shape of the listeners that consume domain events on the task queue.
"""

import logging
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, List, Optional, Type

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..caching.zone_stats import ZoneStatsStore
from ..db.models import RoleDeliveryAgent, SyncEventLog
from ..events.schemas import DomainEvent
from ..services.integration import IntegrationService

logger = logging.getLogger(__name__)


class QueuedListener:
    """
    Base class for event listeners.

    Subclasses declare the queue, the number of tries and the backoff schedule
    (seconds before retry n, the last entry repeats) and implement `handle`.

    `process` applies one event in a single transaction and records it in
    `sync_event_logs`, so a redelivered event is skipped. Redis side effects
    registered with `after_commit` only run once the transaction is committed.
    """

    name: ClassVar[str] = "listener"
    event_class: ClassVar[Type[DomainEvent]] = DomainEvent
    queue: ClassVar[str] = "default"
    tries: ClassVar[int] = 3
    backoff: ClassVar[List[int]] = [10, 30, 60]

    def __init__(
        self,
        db: Session,
        integration: Optional[IntegrationService] = None,
        zone_stats: Optional[ZoneStatsStore] = None,
    ):
        self.db = db
        self.integration = integration or IntegrationService(db)
        self._zone_stats = zone_stats
        self._after_commit: List[Callable[[], Any]] = []

    @property
    def zone_stats(self) -> ZoneStatsStore:
        if self._zone_stats is None:
            self._zone_stats = ZoneStatsStore()
        return self._zone_stats

    @classmethod
    def backoff_for(cls, attempt: int) -> int:
        """Delay in seconds before retrying after failed attempt number `attempt` (0-based)."""
        if not cls.backoff:
            return 0
        return cls.backoff[min(attempt, len(cls.backoff) - 1)]

    @classmethod
    def parse(cls, payload: Dict[str, Any]) -> DomainEvent:
        return cls.event_class.model_validate(payload)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self, event: DomainEvent, attempt: int = 1) -> Dict[str, Any]:
        """
        Apply one event.

        Raises whatever `handle` raises, after rolling the transaction back.
        """
        if self._already_processed(event):
            logger.info(
                f"{self.name}: event {event.event_id} already processed, skipping",
                extra={"event_id": event.event_id, "listener": self.name},
            )
            return {"status": "skipped", "event_id": event.event_id}

        self._after_commit = []
        try:
            result = self.handle(event)
            self._mark_processed(event, attempt)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._after_commit = []
            raise

        for callback in self._after_commit:
            try:
                callback()
            except Exception as e:
                logger.error(f"{self.name}: post-commit step failed for {event.event_id}: {e}")
        self._after_commit = []

        return {"status": "processed", "event_id": event.event_id, "result": result}

    def handle(self, event: DomainEvent) -> Dict[str, Any]:
        raise NotImplementedError

    def after_commit(self, callback: Callable[[], Any]) -> None:
        self._after_commit.append(callback)

    def failed(self, payload: Dict[str, Any], exc: BaseException, attempts: int) -> None:
        """Called once every try has failed."""
        logger.critical(
            f"{self.name} failed permanently",
            extra={
                "event_id": payload.get("event_id", "unknown"),
                "context": self.failure_context(payload),
                "error": str(exc),
                "attempts": attempts,
            },
        )

        event_id = payload.get("event_id")
        if not event_id:
            return

        try:
            entry = self._log_entry(event_id)
            if entry is None:
                entry = SyncEventLog(
                    event_id=event_id,
                    event_type=self.event_class.event_type,
                    listener=self.name,
                )
                self.db.add(entry)
            elif entry.status == "processed":
                return
            entry.status = "failed"
            entry.attempts = attempts
            entry.error = str(exc)[:2000]
            entry.updated_at = datetime.utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"{self.name}: could not record failure for {event_id}: {e}")

    def failure_context(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        agent = payload.get("agent") or {}
        return {"agent_id": agent.get("id", "unknown")}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def find_role_agent(self, external_id: int) -> Optional[RoleDeliveryAgent]:
        return self.integration.find_role_agent(external_id)

    def _log_entry(self, event_id: str) -> Optional[SyncEventLog]:
        return self.db.execute(
            select(SyncEventLog).where(
                SyncEventLog.event_id == event_id, SyncEventLog.listener == self.name
            )
        ).scalar_one_or_none()

    def _already_processed(self, event: DomainEvent) -> bool:
        entry = self._log_entry(event.event_id)
        return entry is not None and entry.status == "processed"

    def _mark_processed(self, event: DomainEvent, attempt: int) -> None:
        entry = self._log_entry(event.event_id)
        if entry is None:
            entry = SyncEventLog(
                event_id=event.event_id,
                event_type=event.event_type,
                listener=self.name,
            )
            self.db.add(entry)
        entry.status = "processed"
        entry.attempts = attempt
        entry.error = None
        entry.updated_at = datetime.utcnow()
        self.db.flush()
