"""
Domain events and their dispatcher.
"""

from .dispatcher import EventDispatcher, get_dispatcher, set_dispatcher
from .schemas import (
    AgentSnapshot,
    AgentUpdatedEvent,
    AllocationSnapshot,
    ComplianceActionEvent,
    DomainEvent,
    ProductSnapshot,
    StockAllocatedEvent,
)

__all__ = [
    "EventDispatcher",
    "get_dispatcher",
    "set_dispatcher",
    "DomainEvent",
    "AgentSnapshot",
    "ProductSnapshot",
    "AllocationSnapshot",
    "AgentUpdatedEvent",
    "StockAllocatedEvent",
    "ComplianceActionEvent",
]
