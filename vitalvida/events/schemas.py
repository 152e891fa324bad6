"""
Domain Events
Events raised by the VitalVida domain and consumed by the queued listeners.

Payloads carry JSON-safe snapshots of the entities at the time the event was
raised, so a listener never depends on re-reading the source row.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

UpdateType = Literal[
    "created",
    "profile_update",
    "performance_update",
    "status_change",
    "location_change",
    "compliance_update",
]
ActionType = Literal["suspend", "reduce_allocation", "warning", "mandatory_training"]
Severity = Literal["low", "medium", "high", "critical"]


class AgentSnapshot(BaseModel):
    """Delivery agent as seen when the event was raised."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: Optional[str] = None
    location: Optional[str] = None
    rating: float = 0.0
    status: str = "Active"
    compliance_score: Optional[int] = None
    suspension_reason: Optional[str] = None


class ProductSnapshot(BaseModel):
    id: int
    code: str
    name: str
    category: Optional[str] = None
    unit_price: float = 0.0
    supplier_name: Optional[str] = None

    @classmethod
    def from_model(cls, product) -> "ProductSnapshot":
        return cls(
            id=product.id,
            code=product.code,
            name=product.name,
            category=product.category,
            unit_price=float(product.unit_price or 0),
            supplier_name=product.supplier.company_name if product.supplier else None,
        )


class AllocationSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    quantity: int
    allocated_at: datetime


class DomainEvent(BaseModel):
    """Base class for all domain events."""

    event_type: ClassVar[str] = "domain_event"

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = Field(default_factory=datetime.utcnow)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the task queue."""
        return self.model_dump(mode="json")


class AgentUpdatedEvent(DomainEvent):
    event_type: ClassVar[str] = "agent_updated"

    agent: AgentSnapshot
    update_type: UpdateType
    previous_data: Dict[str, Any] = Field(default_factory=dict)


class StockAllocatedEvent(DomainEvent):
    event_type: ClassVar[str] = "stock_allocated"

    allocation: AllocationSnapshot
    agent: AgentSnapshot
    product: ProductSnapshot


class ComplianceActionEvent(DomainEvent):
    event_type: ClassVar[str] = "compliance_action"

    agent: AgentSnapshot
    action_type: ActionType
    severity: Severity = "medium"
    reason: str = ""
    violation_code: Optional[str] = Field(
        None, description="Violation that triggered the action, used for the VitalVida score"
    )
