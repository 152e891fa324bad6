"""
Pydantic schemas for threshold validation, escalations and salary deductions.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CostValidationRequest(BaseModel):
    type: str = Field(..., description="logistics, expense or bonus")
    amount: float = Field(..., ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    storekeeper_fee: Optional[float] = Field(None, ge=0)
    transport_fare: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    justification: Optional[str] = None


class CostValidationResponse(BaseModel):
    """Validation result; extra keys depend on the cost type."""

    model_config = ConfigDict(extra="allow")

    valid: bool
    approval_required: List[str] = Field(default_factory=list)
    requires_escalation: bool = False
    payment_blocked: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    violation_id: Optional[int] = None
    escalation_id: Optional[int] = None


class EscalationResponse(BaseModel):
    id: int
    threshold_violation_id: int
    escalation_type: str
    amount_requested: float
    threshold_limit: float
    overage_amount: float
    approval_required: List[str]
    decisions: Dict[str, Any]
    escalation_reason: Optional[str] = None
    status: str
    priority: str
    expires_at: datetime
    final_decision_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class EscalationDecisionRequest(BaseModel):
    role: Literal["fc", "gm", "ceo"]
    decision: Literal["approved", "rejected"]
    reason: Optional[str] = Field(None, max_length=1000)


class DeductionCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class DeductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    violation_id: Optional[int] = None
    amount: float
    reason: str
    description: Optional[str] = None
    deduction_date: datetime
    processed_date: Optional[datetime] = None
    status: str
