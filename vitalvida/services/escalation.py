"""
Escalation Service
Dual approval of escalated threshold violations.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import EscalationRequest
from .deductions import SalaryDeductionService
from .exceptions import EscalationStateError

logger = logging.getLogger(__name__)

DECISIONS = ("approved", "rejected")


class EscalationService:
    def __init__(self, db: Session, deductions: Optional[SalaryDeductionService] = None):
        self.db = db
        self.deductions = deductions or SalaryDeductionService(db)

    def get(self, escalation_id: int) -> Optional[EscalationRequest]:
        return self.db.get(EscalationRequest, escalation_id)

    def list_pending(self, role: Optional[str] = None) -> List[EscalationRequest]:
        """Pending escalations, most urgent deadline first, optionally only those waiting on `role`."""
        escalations = self.db.execute(
            select(EscalationRequest)
            .where(EscalationRequest.status == "pending_approval")
            .order_by(EscalationRequest.expires_at)
        ).scalars().all()

        if role is None:
            return list(escalations)
        return [
            e for e in escalations
            if role in (e.approval_required or []) and role not in (e.decisions or {})
        ]

    def decide(
        self,
        escalation_id: int,
        role: str,
        decision: str,
        reason: Optional[str] = None,
    ) -> EscalationRequest:
        """
        Record one approver's decision.

        A single rejection rejects the escalation and creates a salary
        deduction. It is approved once every required approver has approved.

        Raises:
            EscalationStateError: Unknown escalation, decision or approver, or
                an escalation that is no longer waiting for this decision.
        """
        if decision not in DECISIONS:
            raise EscalationStateError(f"Decision must be one of {DECISIONS}, got {decision!r}")

        escalation = self.get(escalation_id)
        if escalation is None:
            raise EscalationStateError(f"Escalation not found: {escalation_id}")
        if escalation.status != "pending_approval":
            raise EscalationStateError(f"Escalation {escalation_id} is already {escalation.status}")

        now = datetime.utcnow()
        if escalation.expires_at <= now:
            raise EscalationStateError(f"Escalation {escalation_id} expired at {escalation.expires_at}")

        required = escalation.approval_required or []
        decisions = dict(escalation.decisions or {})
        if role not in required:
            raise EscalationStateError(f"Role {role!r} is not an approver for escalation {escalation_id}")
        if role in decisions:
            raise EscalationStateError(f"Role {role!r} already decided escalation {escalation_id}")

        decisions[role] = {"decision": decision, "decided_at": now.isoformat(), "reason": reason}
        escalation.decisions = decisions

        if decision == "rejected":
            escalation.status = "rejected"
            escalation.final_decision_at = now
            escalation.rejection_reason = reason
            self.deductions.create_for_rejected_escalation(escalation)
        elif all(decisions.get(r, {}).get("decision") == "approved" for r in required):
            escalation.status = "approved"
            escalation.final_decision_at = now
            if escalation.violation is not None:
                escalation.violation.status = "approved"

        self.db.commit()

        logger.info(
            f"Escalation {escalation_id}: {role} {decision}",
            extra={"escalation_id": escalation_id, "status": escalation.status},
        )
        return escalation

    def process_expired(self, now: Optional[datetime] = None) -> int:
        """Expire overdue pending escalations; each expiry creates a salary deduction."""
        now = now or datetime.utcnow()
        expired = self.db.execute(
            select(EscalationRequest).where(
                EscalationRequest.status == "pending_approval",
                EscalationRequest.expires_at < now,
            )
        ).scalars().all()

        for escalation in expired:
            escalation.status = "expired"
            escalation.final_decision_at = now
            self.deductions.create_for_expired_escalation(escalation)

        self.db.commit()

        if expired:
            logger.warning(f"Expired {len(expired)} escalation(s) without a decision")
        return len(expired)

    @staticmethod
    def to_dict(escalation: EscalationRequest) -> Dict[str, Any]:
        return {
            "id": escalation.id,
            "threshold_violation_id": escalation.threshold_violation_id,
            "escalation_type": escalation.escalation_type,
            "amount_requested": float(escalation.amount_requested),
            "threshold_limit": float(escalation.threshold_limit),
            "overage_amount": float(escalation.overage_amount or 0),
            "approval_required": list(escalation.approval_required or []),
            "decisions": dict(escalation.decisions or {}),
            "escalation_reason": escalation.escalation_reason,
            "status": escalation.status,
            "priority": escalation.priority,
            "expires_at": escalation.expires_at,
            "final_decision_at": escalation.final_decision_at,
            "rejection_reason": escalation.rejection_reason,
        }
