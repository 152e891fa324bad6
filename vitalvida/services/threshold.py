"""
Threshold Validation Service
Checks every cost against the business thresholds before payment.

Blocked costs are recorded as ThresholdViolation rows and, where the result
calls for it, escalated to the approvers with a 48 hour deadline.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config.settings import get_settings
from ..db.models import EscalationRequest, SystemNotification, ThresholdViolation

logger = logging.getLogger(__name__)


class Thresholds:
    """Business thresholds (Naira)."""

    # Logistics
    COST_PER_UNIT = 100
    STOREKEEPER_FEE = 1000
    TRANSPORT_FARE = 1500
    STANDARD_PACKAGE_QUANTITY = 120
    STANDARD_PACKAGE_TOTAL = 12000

    # Approval tiers for expenses and bonuses
    FC_LIMIT = 5000
    GM_LIMIT = 10000

    # Special expense categories
    EQUIPMENT_REPAIR_LIMIT = 7500
    VEHICLE_MAINTENANCE_LIMIT = 15000


FAIL_SAFE_RESULT = {
    "valid": False,
    "error": "Validation system error - payment blocked for safety",
    "requires_escalation": True,
    "escalation_reason": "System validation failure",
    "payment_blocked": True,
}


def escalation_priority(overage: float, limit: float) -> str:
    """Priority from how far the overage goes past the limit, in percent."""
    percentage = (overage / limit * 100) if limit > 0 else 0
    if percentage > 100:
        return "critical"
    if percentage > 50:
        return "high"
    if percentage > 25:
        return "medium"
    return "normal"


class ThresholdValidationService:
    """Validates costs; called before any payment is processed."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def validate_cost(self, cost: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a cost.

        Args:
            cost: Dict with `type` (logistics, expense, bonus), `amount` and,
                depending on the type, `quantity`, `storekeeper_fee`,
                `transport_fare`, `category`, plus the optional `user_id`,
                `reference_id`, `reference_type` and `justification`.

        Returns:
            Validation result. Invalid results include the ids of the
            violation and escalation records created for them.
        """
        try:
            cost_type = cost.get("type")
            logger.info(
                f"Threshold validation started: {cost_type}",
                extra={"amount": cost.get("amount"), "category": cost.get("category")},
            )

            if cost_type == "logistics":
                result = self._validate_logistics(cost)
            elif cost_type == "expense":
                result = self._validate_expense(cost)
            elif cost_type == "bonus":
                result = self._validate_bonus(cost)
            else:
                result = {"valid": False, "error": f"Unknown cost type: {cost_type}"}

            if not result["valid"]:
                self._record_violation(cost, result)
                self.db.commit()

            logger.info(
                f"Threshold validation completed: valid={result['valid']}",
                extra={"requires_escalation": result.get("requires_escalation", False)},
            )
            return result

        except Exception as e:
            logger.error(f"Threshold validation failed: {e}", exc_info=True)
            self.db.rollback()
            return dict(FAIL_SAFE_RESULT)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _validate_logistics(self, cost: Dict[str, Any]) -> Dict[str, Any]:
        amount = float(cost["amount"])
        quantity = int(cost.get("quantity") or 1)
        storekeeper_fee = float(cost.get("storekeeper_fee") or 0)
        transport_fare = float(cost.get("transport_fare") or 0)

        checks = [
            ("cost_per_unit", amount / quantity if quantity > 0 else amount, Thresholds.COST_PER_UNIT),
            ("storekeeper_fee", storekeeper_fee, Thresholds.STOREKEEPER_FEE),
            ("transport_fare", transport_fare, Thresholds.TRANSPORT_FARE),
        ]
        if quantity == Thresholds.STANDARD_PACKAGE_QUANTITY:
            checks.append(("total_cost_120_items", amount, Thresholds.STANDARD_PACKAGE_TOTAL))

        violations = [
            {"type": name, "limit": limit, "actual": round(actual, 2), "overage": round(actual - limit, 2)}
            for name, actual, limit in checks
            if actual > limit
        ]

        if not violations:
            return {
                "valid": True,
                "message": "All logistics thresholds met",
                "payment_authorized": True,
            }

        return {
            "valid": False,
            "violations": violations,
            "requires_escalation": True,
            "escalation_type": "logistics_threshold_violation",
            "total_overage": round(sum(v["overage"] for v in violations), 2),
            "threshold_limit": sum(v["limit"] for v in violations),
            "approval_required": ["fc", "gm"],
            "payment_blocked": True,
        }

    def _validate_expense(self, cost: Dict[str, Any]) -> Dict[str, Any]:
        amount = float(cost["amount"])
        category = cost.get("category") or "general"

        if category == "generator_fuel":
            return {
                "valid": True,
                "approval_required": ["fc", "gm"],
                "approval_tier": "dual_required",
                "message": "Generator fuel requires FC+GM dual approval",
                "requires_escalation": True,
                "escalation_reason": "Special category requires dual approval",
            }

        if category == "equipment_repair" and amount > Thresholds.EQUIPMENT_REPAIR_LIMIT:
            return self._special_dual(
                "Equipment repair", amount, Thresholds.EQUIPMENT_REPAIR_LIMIT, ["gm", "ceo"]
            )

        if category == "vehicle_maintenance" and amount > Thresholds.VEHICLE_MAINTENANCE_LIMIT:
            return self._special_dual(
                "Vehicle maintenance", amount, Thresholds.VEHICLE_MAINTENANCE_LIMIT, ["fc", "gm"]
            )

        if category in ("equipment_repair", "vehicle_maintenance"):
            return {
                "valid": True,
                "approval_required": ["fc"],
                "approval_tier": "special_normal",
                "message": "Special category within normal limits",
            }

        if amount <= Thresholds.FC_LIMIT:
            return {
                "valid": True,
                "approval_required": ["fc"],
                "approval_tier": "fc_only",
                "message": "FC approval required",
            }

        if amount <= Thresholds.GM_LIMIT:
            return {
                "valid": True,
                "approval_required": ["gm"],
                "approval_tier": "gm_only",
                "message": "GM approval required",
            }

        return {
            "valid": True,
            "approval_required": ["ceo"],
            "approval_tier": "ceo_required",
            "message": f"CEO approval required for amount above {Thresholds.GM_LIMIT}",
            "requires_escalation": True,
        }

    @staticmethod
    def _special_dual(label: str, amount: float, limit: float, approvers: List[str]) -> Dict[str, Any]:
        return {
            "valid": True,
            "approval_required": approvers,
            "approval_tier": "special_dual",
            "message": f"{label} above {limit} requires {'+'.join(a.upper() for a in approvers)} approval",
            "requires_escalation": True,
            "threshold_exceeded": round(amount - limit, 2),
        }

    def _validate_bonus(self, cost: Dict[str, Any]) -> Dict[str, Any]:
        amount = float(cost["amount"])

        if amount <= Thresholds.FC_LIMIT:
            return {
                "valid": True,
                "approval_required": ["fc"],
                "approval_tier": "fc_bonus",
                "message": "FC approval required for bonus",
            }

        if amount <= Thresholds.GM_LIMIT:
            return {
                "valid": True,
                "approval_required": ["gm"],
                "approval_tier": "gm_bonus",
                "message": "GM approval required for bonus",
            }

        return {
            "valid": False,
            "requires_escalation": True,
            "approval_required": ["fc", "gm"],
            "escalation_type": "high_value_bonus",
            "escalation_reason": "Bonus amount exceeds single approval limit",
            "total_overage": round(amount - Thresholds.GM_LIMIT, 2),
            "threshold_limit": Thresholds.GM_LIMIT,
            "payment_blocked": True,
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _record_violation(self, cost: Dict[str, Any], result: Dict[str, Any]) -> None:
        violation = ThresholdViolation(
            cost_type=str(cost.get("type")),
            cost_category=cost.get("category"),
            amount=float(cost.get("amount") or 0),
            threshold_limit=result.get("threshold_limit", 0),
            overage_amount=result.get("total_overage", 0),
            violation_details=result.get("violations", []),
            status="blocked",
            created_by=cost.get("user_id"),
            reference_id=cost.get("reference_id"),
            reference_type=cost.get("reference_type"),
        )
        self.db.add(violation)
        self.db.flush()
        result["violation_id"] = violation.id

        escalation: Optional[EscalationRequest] = None
        if result.get("requires_escalation"):
            escalation = self._create_escalation(violation, result, cost.get("justification"))
            result["escalation_id"] = escalation.id

        logger.warning(
            "Threshold violation detected and blocked",
            extra={
                "violation_id": violation.id,
                "cost_type": violation.cost_type,
                "amount": float(violation.amount),
                "overage": float(violation.overage_amount),
                "escalation_id": escalation.id if escalation else None,
            },
        )

    def _create_escalation(
        self, violation: ThresholdViolation, result: Dict[str, Any], justification: Optional[str]
    ) -> EscalationRequest:
        approvers = result.get("approval_required") or ["fc", "gm"]
        overage = float(violation.overage_amount or 0)
        limit = float(violation.threshold_limit or 0)

        escalation = EscalationRequest(
            threshold_violation_id=violation.id,
            escalation_type=result.get("escalation_type", "threshold_violation"),
            amount_requested=violation.amount,
            threshold_limit=violation.threshold_limit,
            overage_amount=violation.overage_amount,
            approval_required=list(approvers),
            decisions={},
            escalation_reason=result.get("escalation_reason", "Amount exceeds business threshold"),
            business_justification=justification,
            status="pending_approval",
            priority=escalation_priority(overage, limit),
            expires_at=datetime.utcnow() + timedelta(hours=self.settings.escalation_expiry_hours),
            created_by=violation.created_by,
        )
        self.db.add(escalation)
        self.db.flush()

        for role in approvers:
            self.db.add(SystemNotification(
                type="threshold_escalation",
                title="Threshold Escalation Requires Approval",
                message=(
                    f"{escalation.escalation_type} of {float(violation.amount):.2f} exceeds "
                    f"the limit by {overage:.2f}"
                ),
                data={"escalation_id": escalation.id, "violation_id": violation.id},
                recipient_role=role,
                priority=escalation.priority,
                requires_acknowledgment=True,
            ))

        return escalation
