"""
Pydantic schemas for delivery agents and stock allocations.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    location: Optional[str] = Field(None, description="Free-text location, e.g. 'Ikeja, Lagos'")
    rating: float = Field(default=0.0, ge=0, le=5)
    status: str = Field(default="Active")


class AgentUpdate(BaseModel):
    """Partial update; only the fields sent are changed."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    location: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    status: Optional[str] = None
    compliance_score: Optional[int] = Field(None, ge=0, le=100)
    suspension_reason: Optional[str] = None

    @field_validator("name", "rating", "status")
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        """These columns are NOT NULL; omit the field to leave it unchanged."""
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class AgentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: Optional[str] = None
    location: Optional[str] = None
    rating: float
    status: str
    compliance_score: Optional[int] = None
    violation_count: int = 0
    suspension_reason: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class AgentMutationResponse(BaseModel):
    agent: AgentResponse
    events: List[str] = Field(default_factory=list, description="Update types dispatched")
    task_ids: List[str] = Field(default_factory=list, description="Queued listener task IDs")


class AllocationCreate(BaseModel):
    agent_id: int
    product_id: int
    quantity: int = Field(..., gt=0, description="Units to allocate (must be positive)")


class AllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    agent_id: int
    product_id: int
    quantity: int
    status: str
    allocated_at: datetime


class AllocationCreatedResponse(BaseModel):
    allocation: AllocationResponse
    remaining_stock: int
    task_ids: List[str] = Field(default_factory=list)
