"""
Tests for EscalationService.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from vitalvida.db.models import SalaryDeduction, ThresholdViolation
from vitalvida.services.escalation import EscalationService
from vitalvida.services.exceptions import EscalationStateError
from vitalvida.services.threshold import ThresholdValidationService


@pytest.fixture
def escalation(db):
    """A pending FC+GM escalation for a 15,000 bonus (5,000 over the limit)."""
    result = ThresholdValidationService(db).validate_cost(
        {"type": "bonus", "amount": 15000, "user_id": 42, "justification": "Quarter-end push"}
    )
    return EscalationService(db).get(result["escalation_id"])


def test_dual_approval(db, escalation):
    service = EscalationService(db)

    service.decide(escalation.id, "fc", "approved", "Budget available")
    assert escalation.status == "pending_approval"

    service.decide(escalation.id, "gm", "approved")
    assert escalation.status == "approved"
    assert escalation.final_decision_at is not None
    assert set(escalation.decisions) == {"fc", "gm"}
    assert db.get(ThresholdViolation, escalation.threshold_violation_id).status == "approved"
    assert db.scalar(select(SalaryDeduction)) is None


def test_single_rejection_rejects_and_deducts(db, escalation):
    service = EscalationService(db)
    service.decide(escalation.id, "fc", "approved")

    service.decide(escalation.id, "gm", "rejected", "Not in budget")

    assert escalation.status == "rejected"
    assert escalation.rejection_reason == "Not in budget"

    deduction = db.scalar(select(SalaryDeduction))
    assert deduction.reason == "rejected_escalation"
    assert deduction.user_id == 42
    assert float(deduction.amount) == 2500
    assert deduction.deduction_metadata["approvers_rejected"] == ["gm"]
    assert deduction.deduction_metadata["escalation_id"] == escalation.id


def test_pending_list_filters_by_role(db, escalation):
    service = EscalationService(db)
    assert [e.id for e in service.list_pending()] == [escalation.id]

    service.decide(escalation.id, "fc", "approved")

    assert service.list_pending("fc") == []
    assert [e.id for e in service.list_pending("gm")] == [escalation.id]
    assert service.list_pending("ceo") == []


@pytest.mark.parametrize(
    "role, decision, message",
    [
        ("fc", "maybe", "Decision must be one of"),
        ("ceo", "approved", "is not an approver"),
    ],
)
def test_invalid_decisions(db, escalation, role, decision, message):
    with pytest.raises(EscalationStateError, match=message):
        EscalationService(db).decide(escalation.id, role, decision)


def test_role_cannot_decide_twice(db, escalation):
    service = EscalationService(db)
    service.decide(escalation.id, "fc", "approved")

    with pytest.raises(EscalationStateError, match="already decided"):
        service.decide(escalation.id, "fc", "rejected")


def test_decided_escalation_is_closed(db, escalation):
    service = EscalationService(db)
    service.decide(escalation.id, "fc", "rejected")

    with pytest.raises(EscalationStateError, match="already rejected"):
        service.decide(escalation.id, "gm", "approved")


def test_unknown_escalation(db):
    with pytest.raises(EscalationStateError, match="not found"):
        EscalationService(db).decide(999, "fc", "approved")


def test_expired_escalation_cannot_be_decided(db, escalation):
    escalation.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    with pytest.raises(EscalationStateError, match="expired"):
        EscalationService(db).decide(escalation.id, "fc", "approved")


def test_process_expired(db, escalation):
    service = EscalationService(db)
    assert service.process_expired() == 0

    expired = service.process_expired(now=escalation.expires_at + timedelta(seconds=1))

    assert expired == 1
    assert escalation.status == "expired"
    deduction = db.scalar(select(SalaryDeduction))
    assert deduction.reason == "expired_escalation"
    assert float(deduction.amount) == 3750
    assert deduction.deduction_metadata["business_justification"] == "Quarter-end push"

    # Already expired escalations are not processed again
    assert service.process_expired(now=escalation.expires_at + timedelta(hours=1)) == 0


def test_to_dict(escalation):
    data = EscalationService.to_dict(escalation)
    assert data["amount_requested"] == 15000.0
    assert data["overage_amount"] == 5000.0
    assert data["approval_required"] == ["fc", "gm"]
    assert data["status"] == "pending_approval"
