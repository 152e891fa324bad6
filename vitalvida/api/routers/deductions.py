"""
Salary Deduction Endpoints
GET /api/v1/deductions/stats - Deduction statistics
POST /api/v1/deductions/{deduction_id}/cancel - Cancel a pending deduction
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...db.models import SalaryDeduction
from ...services.deductions import SalaryDeductionService
from ...services.exceptions import DeductionStateError
from ..dependencies import get_db
from ..errors import ConflictError, ResourceNotFoundError
from ..schemas.finance import DeductionCancelRequest, DeductionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/deductions", tags=["deductions"])


@router.get("/stats")
def deduction_stats(
    user_id: Optional[int] = Query(None), db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return SalaryDeductionService(db).statistics(user_id=user_id)


@router.post("/{deduction_id}/cancel", response_model=DeductionResponse)
def cancel_deduction(
    deduction_id: int,
    request: DeductionCancelRequest,
    db: Session = Depends(get_db),
) -> SalaryDeduction:
    if db.get(SalaryDeduction, deduction_id) is None:
        raise ResourceNotFoundError("Salary deduction", deduction_id)

    try:
        return SalaryDeductionService(db).cancel(deduction_id, request.reason)
    except DeductionStateError as e:
        raise ConflictError(str(e), details={"deduction_id": deduction_id})
