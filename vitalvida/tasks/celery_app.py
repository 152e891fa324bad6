"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from ..config.settings import get_settings

settings = get_settings()

# Create Celery app
app = Celery(
    "vitalvida",
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=[
        "vitalvida.tasks.listeners",
        "vitalvida.tasks.maintenance",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,  # Redeliver if a worker dies mid-sync
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    task_default_queue="default",
    task_routes={
        "listeners.sync_agent_to_role_system": {"queue": "high-priority-sync"},
        "listeners.sync_stock_to_bin_system": {"queue": "high-priority-sync"},
        "listeners.handle_compliance_action": {"queue": "compliance-sync"},
        "tasks.*": {"queue": "maintenance"},
    },
)

# Configure periodic tasks with Celery Beat
app.conf.beat_schedule = {
    # Expire escalations nobody decided on (hourly)
    "process-expired-escalations-hourly": {
        "task": "tasks.process_expired_escalations",
        "schedule": crontab(minute=0),
    },
    # Apply salary deductions that have fallen due (daily at 1 AM)
    "process-due-deductions-daily": {
        "task": "tasks.process_due_deductions",
        "schedule": crontab(hour=1, minute=0),
    },
    # Start each day with empty bin allocation counters (midnight)
    "reset-daily-bin-totals": {
        "task": "tasks.reset_daily_bin_totals",
        "schedule": crontab(hour=0, minute=0),
    },
    # Sync health report (every 15 minutes)
    "monitor-sync-health": {
        "task": "tasks.monitor_sync_health",
        "schedule": crontab(minute="*/15"),
    },
    # Full inventory and compliance reconciliation (daily at 2 AM)
    "full-sync-daily": {
        "task": "tasks.full_sync",
        "schedule": crontab(hour=2, minute=0),
    },
}

if __name__ == "__main__":
    app.start()
