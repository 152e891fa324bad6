"""
Sync Monitor
Health of the event sync between the VitalVida and Role systems.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..caching.redis_cache import RedisCache, get_cache
from ..config.settings import get_settings
from ..db.models import SyncEventLog, SystemAlert
from .integration import IntegrationService

logger = logging.getLogger(__name__)

HEALTH_CACHE_KEY = "sync_health:latest"

HEALTHY_SUCCESS_RATE = 95.0
HEALTHY_COVERAGE = 90.0
CRITICAL_SUCCESS_RATE = 80.0
CRITICAL_COVERAGE = 50.0


def overall_status(success_rate: float, coverage: float) -> str:
    if success_rate < CRITICAL_SUCCESS_RATE or coverage < CRITICAL_COVERAGE:
        return "critical"
    if success_rate >= HEALTHY_SUCCESS_RATE and coverage >= HEALTHY_COVERAGE:
        return "healthy"
    return "warning"


class SyncMonitor:
    def __init__(self, db: Session, cache: Optional[RedisCache] = None):
        self.db = db
        self._cache = cache
        self.settings = get_settings()

    @property
    def cache(self) -> RedisCache:
        if self._cache is None:
            self._cache = get_cache()
        return self._cache

    def health_report(self, window_hours: Optional[int] = None) -> Dict[str, Any]:
        """
        Build, cache and return the sync health report.

        A critical report also raises a `sync_health` SystemAlert (committed).
        """
        window_hours = window_hours or self.settings.sync_health_window_hours
        since = datetime.utcnow() - timedelta(hours=window_hours)

        counts = dict(
            self.db.execute(
                select(SyncEventLog.status, func.count(SyncEventLog.id))
                .where(SyncEventLog.updated_at >= since)
                .group_by(SyncEventLog.status)
            ).all()
        )
        processed = int(counts.get("processed", 0))
        failed = int(counts.get("failed", 0))
        total = processed + failed
        success_rate = round(processed / total * 100, 2) if total else 100.0

        failures_by_listener = {
            listener: int(count)
            for listener, count in self.db.execute(
                select(SyncEventLog.listener, func.count(SyncEventLog.id))
                .where(SyncEventLog.status == "failed", SyncEventLog.updated_at >= since)
                .group_by(SyncEventLog.listener)
            ).all()
        }

        integration = IntegrationService(self.db).get_integration_stats()
        coverage = float(integration["sync_health"])
        status = overall_status(success_rate, coverage)

        report = {
            "status": status,
            "window_hours": window_hours,
            "events_processed": processed,
            "events_failed": failed,
            "success_rate": success_rate,
            "failures_by_listener": failures_by_listener,
            "agent_coverage": coverage,
            "integration": integration,
            "generated_at": datetime.utcnow().isoformat(),
        }

        self.cache.set(HEALTH_CACHE_KEY, report, ttl=self.settings.sync_health_ttl)

        if status == "critical":
            self._raise_alert(report)

        logger.info(
            f"Sync health: {status}",
            extra={"success_rate": success_rate, "agent_coverage": coverage, "failed": failed},
        )
        return report

    def latest(self) -> Optional[Dict[str, Any]]:
        """Last cached report, if still fresh."""
        return self.cache.get(HEALTH_CACHE_KEY)

    def _raise_alert(self, report: Dict[str, Any]) -> None:
        self.db.add(SystemAlert(
            alert_type="sync_health",
            severity="critical",
            title="Sync Health Critical",
            message=(
                f"Sync success rate {report['success_rate']}% with agent coverage "
                f"{report['agent_coverage']}%"
            ),
            data={
                "success_rate": report["success_rate"],
                "agent_coverage": report["agent_coverage"],
                "failures_by_listener": report["failures_by_listener"],
            },
            requires_action=True,
        ))
        self.db.commit()
        logger.critical("Sync health is critical", extra={"report": report})
