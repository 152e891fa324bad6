"""
Salary Deduction Service
Creates, applies and cancels salary deductions for threshold abuse.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db.models import EscalationRequest, SalaryDeduction, ThresholdViolation
from .exceptions import DeductionStateError

logger = logging.getLogger(__name__)

# reason -> percentage of the overage, minimum, maximum, days before it is applied
DEDUCTION_RULES: Dict[str, Dict[str, float]] = {
    "unauthorized_payment": {"percentage": 100, "minimum": 1000, "maximum": 50000, "delay_days": 30},
    "rejected_escalation": {"percentage": 50, "minimum": 500, "maximum": 25000, "delay_days": 15},
    "expired_escalation": {"percentage": 75, "minimum": 750, "maximum": 37500, "delay_days": 7},
}

UPCOMING_WINDOW_DAYS = 30


def calculate_deduction_amount(overage: float, reason: str) -> float:
    rule = DEDUCTION_RULES[reason]
    amount = float(overage or 0) * rule["percentage"] / 100
    return round(min(max(amount, rule["minimum"]), rule["maximum"]), 2)


class SalaryDeductionService:
    """
    Salary deductions.

    The `create_for_*` methods only flush, so a deduction lands in the same
    transaction as the decision that caused it. `process_due` and `cancel`
    commit.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_for_unauthorized_payment(self, violation: ThresholdViolation) -> SalaryDeduction:
        overage = float(violation.overage_amount or 0)
        return self._create(
            reason="unauthorized_payment",
            user_id=violation.created_by,
            violation_id=violation.id,
            overage=overage,
            description=f"Unauthorized payment exceeding threshold by {overage:,.2f}",
            metadata={
                "original_amount": float(violation.amount),
                "threshold_limit": float(violation.threshold_limit),
                "cost_type": violation.cost_type,
                "cost_category": violation.cost_category,
            },
        )

    def create_for_rejected_escalation(self, escalation: EscalationRequest) -> SalaryDeduction:
        overage = float(escalation.overage_amount or 0)
        rejected_by = [
            role for role, decision in (escalation.decisions or {}).items()
            if decision.get("decision") == "rejected"
        ]
        return self._create(
            reason="rejected_escalation",
            user_id=escalation.created_by,
            violation_id=escalation.threshold_violation_id,
            overage=overage,
            description=(
                f"Escalation rejected - attempted expense exceeding threshold by {overage:,.2f}"
            ),
            metadata={
                "escalation_id": escalation.id,
                "original_amount": float(escalation.amount_requested),
                "threshold_limit": float(escalation.threshold_limit),
                "escalation_type": escalation.escalation_type,
                "rejection_reason": escalation.rejection_reason,
                "approvers_rejected": rejected_by,
            },
        )

    def create_for_expired_escalation(self, escalation: EscalationRequest) -> SalaryDeduction:
        overage = float(escalation.overage_amount or 0)
        return self._create(
            reason="expired_escalation",
            user_id=escalation.created_by,
            violation_id=escalation.threshold_violation_id,
            overage=overage,
            description=(
                f"Escalation expired without approval - attempted expense exceeding "
                f"threshold by {overage:,.2f}"
            ),
            metadata={
                "escalation_id": escalation.id,
                "original_amount": float(escalation.amount_requested),
                "threshold_limit": float(escalation.threshold_limit),
                "escalation_type": escalation.escalation_type,
                "expired_at": escalation.expires_at.isoformat() if escalation.expires_at else None,
                "business_justification": escalation.business_justification,
            },
        )

    def _create(
        self,
        reason: str,
        user_id: Optional[int],
        violation_id: Optional[int],
        overage: float,
        description: str,
        metadata: Dict[str, Any],
    ) -> SalaryDeduction:
        rule = DEDUCTION_RULES[reason]
        now = datetime.utcnow()
        amount = calculate_deduction_amount(overage, reason)

        deduction = SalaryDeduction(
            user_id=user_id,
            violation_id=violation_id,
            amount=amount,
            reason=reason,
            description=description,
            deduction_date=now + timedelta(days=rule["delay_days"]),
            status="pending",
            deduction_metadata={
                "violation_type": reason,
                "overage_amount": overage,
                "rule_applied": dict(rule),
                "created_at": now.isoformat(),
                **metadata,
            },
        )
        self.db.add(deduction)
        self.db.flush()

        logger.info(
            f"Salary deduction created for {reason}",
            extra={
                "deduction_id": deduction.id,
                "user_id": user_id,
                "amount": amount,
                "overage_amount": overage,
                "deduction_date": deduction.deduction_date.isoformat(),
            },
        )
        return deduction

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def process_due(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Apply every pending deduction whose date has passed."""
        now = now or datetime.utcnow()
        due = self.db.execute(
            select(SalaryDeduction)
            .where(SalaryDeduction.status == "pending", SalaryDeduction.deduction_date <= now)
            .order_by(SalaryDeduction.deduction_date)
        ).scalars().all()

        results: Dict[str, Any] = {
            "total_processed": 0,
            "total_amount": 0.0,
            "successful": [],
            "failed": [],
        }

        for deduction in due:
            try:
                deduction.status = "processed"
                deduction.processed_date = now
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Failed to process salary deduction {deduction.id}: {e}",
                    extra={"deduction_id": deduction.id, "user_id": deduction.user_id},
                )
                results["failed"].append({"deduction_id": deduction.id, "error": str(e)})
                continue

            results["successful"].append({
                "deduction_id": deduction.id,
                "user_id": deduction.user_id,
                "amount": float(deduction.amount),
                "reason": deduction.reason,
            })
            results["total_processed"] += 1
            results["total_amount"] += float(deduction.amount)

        results["total_amount"] = round(results["total_amount"], 2)
        logger.info(
            f"Salary deductions processed: {results['total_processed']} applied, "
            f"{len(results['failed'])} failed",
            extra={"total_amount": results["total_amount"]},
        )
        return results

    def cancel(self, deduction_id: int, reason: str) -> SalaryDeduction:
        deduction = self.db.get(SalaryDeduction, deduction_id)
        if deduction is None:
            raise DeductionStateError(f"Salary deduction not found: {deduction_id}")
        if deduction.status != "pending":
            raise DeductionStateError(
                f"Only pending deductions can be cancelled (deduction {deduction_id} is {deduction.status})"
            )

        deduction.status = "cancelled"
        deduction.deduction_metadata = {
            **(deduction.deduction_metadata or {}),
            "cancellation_reason": reason,
            "cancelled_at": datetime.utcnow().isoformat(),
        }
        self.db.commit()

        logger.info(f"Salary deduction {deduction_id} cancelled", extra={"reason": reason})
        return deduction

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def statistics(self, user_id: Optional[int] = None) -> Dict[str, Any]:
        def scoped(stmt):
            if user_id is not None:
                stmt = stmt.where(SalaryDeduction.user_id == user_id)
            return stmt

        by_status = {
            status: {"count": int(count), "amount": round(float(amount or 0), 2)}
            for status, count, amount in self.db.execute(
                scoped(select(
                    SalaryDeduction.status, func.count(SalaryDeduction.id), func.sum(SalaryDeduction.amount)
                )).group_by(SalaryDeduction.status)
            ).all()
        }
        for status in ("pending", "processed", "cancelled"):
            by_status.setdefault(status, {"count": 0, "amount": 0.0})

        by_reason = []
        for reason, count, amount in self.db.execute(
            scoped(select(
                SalaryDeduction.reason, func.count(SalaryDeduction.id), func.sum(SalaryDeduction.amount)
            )).group_by(SalaryDeduction.reason)
        ).all():
            total = float(amount or 0)
            by_reason.append({
                "reason": reason,
                "count": int(count),
                "total_amount": round(total, 2),
                "average_amount": round(total / count, 2) if count else 0.0,
            })

        now = datetime.utcnow()
        upcoming_count, upcoming_amount = self.db.execute(
            scoped(select(func.count(SalaryDeduction.id), func.sum(SalaryDeduction.amount))).where(
                SalaryDeduction.status == "pending",
                SalaryDeduction.deduction_date > now,
                SalaryDeduction.deduction_date <= now + timedelta(days=UPCOMING_WINDOW_DAYS),
            )
        ).one()

        total_count = sum(s["count"] for s in by_status.values())
        total_amount = round(sum(s["amount"] for s in by_status.values()), 2)

        def rate(count: int) -> float:
            return round(count / total_count * 100, 2) if total_count else 0.0

        return {
            "total_deductions": total_count,
            "total_amount": total_amount,
            "by_status": by_status,
            "by_reason": by_reason,
            "upcoming": {
                "count": int(upcoming_count or 0),
                "amount": round(float(upcoming_amount or 0), 2),
            },
            "processing_rate": rate(by_status["processed"]["count"]),
            "cancellation_rate": rate(by_status["cancelled"]["count"]),
        }
