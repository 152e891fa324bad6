"""
Tests for ThresholdValidationService.
"""

import pytest
from sqlalchemy import func, select

from vitalvida.db.models import EscalationRequest, SystemNotification, ThresholdViolation
from vitalvida.services.threshold import (
    FAIL_SAFE_RESULT,
    ThresholdValidationService,
    escalation_priority,
)


def count(db, model):
    return db.scalar(select(func.count()).select_from(model))


def test_logistics_within_limits(db):
    result = ThresholdValidationService(db).validate_cost({
        "type": "logistics",
        "amount": 10000,
        "quantity": 120,
        "storekeeper_fee": 1000,
        "transport_fare": 1500,
    })

    assert result["valid"] is True
    assert result["payment_authorized"] is True
    assert count(db, ThresholdViolation) == 0


def test_logistics_violation_is_blocked_and_escalated(db):
    result = ThresholdValidationService(db).validate_cost({
        "type": "logistics",
        "amount": 15000,
        "quantity": 120,
        "storekeeper_fee": 1200,
        "user_id": 7,
        "reference_id": "PO-881",
    })

    assert result["valid"] is False
    assert result["payment_blocked"] is True
    assert [v["type"] for v in result["violations"]] == [
        "cost_per_unit", "storekeeper_fee", "total_cost_120_items",
    ]
    assert result["total_overage"] == 3225
    assert result["threshold_limit"] == 13100

    violation = db.get(ThresholdViolation, result["violation_id"])
    assert violation.status == "blocked"
    assert violation.created_by == 7
    assert violation.reference_id == "PO-881"
    assert len(violation.violation_details) == 3

    escalation = db.get(EscalationRequest, result["escalation_id"])
    assert escalation.status == "pending_approval"
    assert escalation.approval_required == ["fc", "gm"]
    assert escalation.decisions == {}
    assert escalation.priority == "normal"
    assert escalation.escalation_type == "logistics_threshold_violation"
    assert (escalation.expires_at - escalation.created_at).total_seconds() > 47 * 3600

    roles = sorted(n.recipient_role for n in db.scalars(select(SystemNotification)))
    assert roles == ["fc", "gm"]


@pytest.mark.parametrize(
    "category, amount, tier, approvers, escalates",
    [
        ("office_supplies", 4000, "fc_only", ["fc"], False),
        ("office_supplies", 5000, "fc_only", ["fc"], False),
        ("office_supplies", 8000, "gm_only", ["gm"], False),
        ("office_supplies", 20000, "ceo_required", ["ceo"], True),
        ("generator_fuel", 500, "dual_required", ["fc", "gm"], True),
        ("equipment_repair", 7000, "special_normal", ["fc"], False),
        ("equipment_repair", 9000, "special_dual", ["gm", "ceo"], True),
        ("vehicle_maintenance", 16000, "special_dual", ["fc", "gm"], True),
    ],
)
def test_expense_approval_tiers(db, category, amount, tier, approvers, escalates):
    """Expenses are never blocked; they only pick their approvers."""
    result = ThresholdValidationService(db).validate_cost(
        {"type": "expense", "category": category, "amount": amount}
    )

    assert result["valid"] is True
    assert result["approval_tier"] == tier
    assert result["approval_required"] == approvers
    assert result.get("requires_escalation", False) is escalates
    assert count(db, ThresholdViolation) == 0


def test_equipment_repair_reports_excess(db):
    result = ThresholdValidationService(db).validate_cost(
        {"type": "expense", "category": "equipment_repair", "amount": 9000}
    )
    assert result["threshold_exceeded"] == 1500


@pytest.mark.parametrize("amount, tier", [(3000, "fc_bonus"), (10000, "gm_bonus")])
def test_bonus_within_limits(db, amount, tier):
    result = ThresholdValidationService(db).validate_cost({"type": "bonus", "amount": amount})
    assert result["valid"] is True
    assert result["approval_tier"] == tier


def test_high_value_bonus_is_escalated(db):
    result = ThresholdValidationService(db).validate_cost({"type": "bonus", "amount": 15000})

    assert result["valid"] is False
    assert result["total_overage"] == 5000

    escalation = db.get(EscalationRequest, result["escalation_id"])
    assert escalation.escalation_type == "high_value_bonus"
    assert float(escalation.threshold_limit) == 10000
    assert escalation.priority == "medium"


def test_unknown_cost_type_is_recorded_without_escalation(db):
    result = ThresholdValidationService(db).validate_cost({"type": "donation", "amount": 100})

    assert result["valid"] is False
    assert result["error"] == "Unknown cost type: donation"
    assert "violation_id" in result
    assert "escalation_id" not in result
    assert count(db, EscalationRequest) == 0


def test_validation_error_fails_safe(db):
    """A malformed cost is blocked rather than allowed through."""
    result = ThresholdValidationService(db).validate_cost({"type": "expense"})

    assert result == FAIL_SAFE_RESULT
    assert result is not FAIL_SAFE_RESULT
    assert count(db, ThresholdViolation) == 0


@pytest.mark.parametrize(
    "overage, limit, priority",
    [
        (100, 1000, "normal"),
        (300, 1000, "medium"),
        (600, 1000, "high"),
        (1500, 1000, "critical"),
        (50, 0, "normal"),
    ],
)
def test_escalation_priority(overage, limit, priority):
    assert escalation_priority(overage, limit) == priority
