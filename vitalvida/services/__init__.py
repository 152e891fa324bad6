"""
Services
Business logic shared by the listeners, Celery tasks, API and scripts.
"""

from .deductions import SalaryDeductionService
from .escalation import EscalationService
from .exceptions import DeductionStateError, EscalationStateError, SyncError
from .integration import IntegrationService
from .sync_monitor import SyncMonitor
from .threshold import ThresholdValidationService

__all__ = [
    "IntegrationService",
    "ThresholdValidationService",
    "EscalationService",
    "SalaryDeductionService",
    "SyncMonitor",
    "SyncError",
    "EscalationStateError",
    "DeductionStateError",
]
