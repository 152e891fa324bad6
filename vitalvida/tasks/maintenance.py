"""
Maintenance Tasks
Periodic jobs for escalations, deductions, bin counters and sync health
"""

import logging
from typing import Any, Dict

from .celery_app import app

logger = logging.getLogger(__name__)


@app.task(bind=True, name="tasks.process_expired_escalations")
def process_expired_escalations(self) -> Dict[str, Any]:
    """
    Expire escalations nobody decided on before their deadline.

    Each expired escalation creates an `expired_escalation` salary deduction.
    """
    from ..db.session import session_scope
    from ..services.escalation import EscalationService

    try:
        with session_scope() as db:
            expired = EscalationService(db).process_expired()

        logger.info(f"Expired escalations processed: {expired}")
        return {"status": "success", "expired": expired}

    except Exception as e:
        logger.error(f"Error processing expired escalations: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}


@app.task(bind=True, name="tasks.process_due_deductions")
def process_due_deductions(self) -> Dict[str, Any]:
    """Apply the salary deductions that have fallen due."""
    from ..db.session import session_scope
    from ..services.deductions import SalaryDeductionService

    try:
        with session_scope() as db:
            results = SalaryDeductionService(db).process_due()

        return {
            "status": "success",
            "processed": results["total_processed"],
            "failed": len(results["failed"]),
            "total_amount": results["total_amount"],
        }

    except Exception as e:
        logger.error(f"Error processing salary deductions: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}


@app.task(bind=True, name="tasks.reset_daily_bin_totals")
def reset_daily_bin_totals(self) -> Dict[str, Any]:
    from sqlalchemy import update

    from ..db.models import Bin
    from ..db.session import session_scope

    try:
        with session_scope() as db:
            result = db.execute(
                update(Bin).where(Bin.total_allocated_today != 0).values(total_allocated_today=0)
            )
            db.commit()
            reset = result.rowcount

        logger.info(f"Daily allocation totals reset on {reset} bins")
        return {"status": "success", "bins_reset": reset}

    except Exception as e:
        logger.error(f"Error resetting daily bin totals: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}


@app.task(bind=True, name="tasks.monitor_sync_health")
def monitor_sync_health(self, window_hours: int = None) -> Dict[str, Any]:
    """Build the sync health report (cached in Redis, alerts when critical)."""
    from ..db.session import session_scope
    from ..services.sync_monitor import SyncMonitor

    try:
        with session_scope() as db:
            report = SyncMonitor(db).health_report(window_hours)

        return {
            "status": "success",
            "health": report["status"],
            "success_rate": report["success_rate"],
            "agent_coverage": report["agent_coverage"],
        }

    except Exception as e:
        logger.error(f"Error monitoring sync health: {e}", exc_info=True)
        return {"status": "error", "error": str(e)}


@app.task(bind=True, name="tasks.full_sync", max_retries=2, default_retry_delay=300)
def full_sync(self) -> Dict[str, Any]:
    """
    Reconcile the Role system with VitalVida.

    Runs the inventory sync and then the compliance sync, committing after
    each. Retried on failure.
    """
    from ..db.session import session_scope
    from ..services.integration import IntegrationService

    try:
        logger.info("Starting full VitalVida -> Role sync")

        with session_scope() as db:
            integration = IntegrationService(db)

            inventory = integration.sync_inventory_data()
            db.commit()

            compliance = integration.sync_compliance_data()
            db.commit()

        actions: Dict[str, int] = {}
        for item in inventory:
            actions[item["action"]] = actions.get(item["action"], 0) + 1

        logger.info(f"Full sync complete: products {actions}, {len(compliance)} agents updated")
        return {
            "status": "success",
            "products": actions,
            "agents_updated": len(compliance),
            "failures": [item for item in inventory if item["action"] == "failed"][:10],
        }

    except Exception as e:
        logger.error(f"Full sync failed: {e}", exc_info=True)
        if self.request.retries >= self.max_retries:
            return {"status": "error", "error": str(e)}
        raise self.retry(exc=e)
