"""
Listeners
Queued consumers of the VitalVida domain events.
"""

from .agent_sync import SyncAgentToRoleSystem
from .base import QueuedListener
from .compliance import HandleComplianceAction
from .stock_sync import SyncStockToBinSystem

__all__ = [
    "QueuedListener",
    "SyncAgentToRoleSystem",
    "SyncStockToBinSystem",
    "HandleComplianceAction",
]
