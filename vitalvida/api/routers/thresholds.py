"""
Threshold and Escalation Endpoints
POST /api/v1/thresholds/validate - Validate a cost before payment
GET /api/v1/escalations - Pending escalations (optionally for one approver role)
GET /api/v1/escalations/{escalation_id} - Get an escalation
POST /api/v1/escalations/{escalation_id}/decision - Approve or reject as an approver
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...services.escalation import EscalationService
from ...services.exceptions import EscalationStateError
from ...services.threshold import ThresholdValidationService
from ..dependencies import get_current_user_id, get_db
from ..errors import ConflictError, ResourceNotFoundError
from ..schemas.finance import (
    CostValidationRequest,
    CostValidationResponse,
    EscalationDecisionRequest,
    EscalationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["thresholds"])


@router.post("/thresholds/validate", response_model=CostValidationResponse)
def validate_cost(
    request: CostValidationRequest,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """
    Validate a cost against the business thresholds.

    Blocked costs are recorded and, where required, escalated; the ids of
    those records are returned with the result.
    """
    cost = request.model_dump(exclude_none=True)
    cost["user_id"] = user_id
    return ThresholdValidationService(db).validate_cost(cost)


@router.get("/escalations", response_model=List[EscalationResponse])
def list_escalations(
    role: Optional[str] = Query(None, description="Only escalations waiting on this approver"),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    service = EscalationService(db)
    return [service.to_dict(e) for e in service.list_pending(role)]


@router.get("/escalations/{escalation_id}", response_model=EscalationResponse)
def get_escalation(escalation_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = EscalationService(db)
    escalation = service.get(escalation_id)
    if escalation is None:
        raise ResourceNotFoundError("Escalation", escalation_id)
    return service.to_dict(escalation)


@router.post("/escalations/{escalation_id}/decision", response_model=EscalationResponse)
def decide_escalation(
    escalation_id: int,
    request: EscalationDecisionRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Record an approver's decision; conflicts (already decided, expired) return 409."""
    service = EscalationService(db)
    if service.get(escalation_id) is None:
        raise ResourceNotFoundError("Escalation", escalation_id)

    try:
        escalation = service.decide(escalation_id, request.role, request.decision, request.reason)
    except EscalationStateError as e:
        raise ConflictError(str(e), details={"escalation_id": escalation_id, "role": request.role})
    return service.to_dict(escalation)
