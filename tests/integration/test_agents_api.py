"""
Integration tests for the agent, allocation and compliance endpoints.
"""

from datetime import datetime

import pytest

from vitalvida.db.models import AuditFlag, DeliveryAgent, Product
from vitalvida.events.schemas import AgentUpdatedEvent, ComplianceActionEvent, StockAllocatedEvent

pytestmark = pytest.mark.integration


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------


def test_create_agent_publishes_created_event(client, dispatcher):
    response = client.post(
        "/api/v1/agents",
        json={"name": "Kemi Adebayo", "phone": "08031234567", "location": "Lekki, Lagos", "rating": 4.2},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["agent"]["name"] == "Kemi Adebayo"
    assert data["agent"]["status"] == "Active"
    assert data["events"] == ["created"]
    assert data["task_ids"] == ["task-1"]

    event = dispatcher.events[0]
    assert isinstance(event, AgentUpdatedEvent)
    assert event.update_type == "created"
    assert event.agent.id == data["agent"]["id"]


def test_create_agent_validates_rating(client, dispatcher):
    response = client.post("/api/v1/agents", json={"name": "Kemi", "rating": 7})

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["message"] == "Request validation failed"
    assert error["details"][0]["loc"] == ["body", "rating"]
    assert dispatcher.events == []


def test_update_agent_publishes_one_event_per_concern(client, dispatcher, make_agent):
    agent = make_agent(rating=3.0, status="Active")

    response = client.patch(
        f"/api/v1/agents/{agent.id}", json={"rating": 4.5, "status": "Suspended", "phone": "0800"}
    )

    assert response.status_code == 200
    assert response.json()["events"] == ["performance_update", "status_change"]
    assert [e.update_type for e in dispatcher.events] == ["performance_update", "status_change"]
    assert dispatcher.events[0].previous_data["rating"] == 3.0
    assert dispatcher.events[0].agent.status == "Suspended"


def test_profile_only_update(client, dispatcher, make_agent):
    agent = make_agent()

    response = client.patch(f"/api/v1/agents/{agent.id}", json={"name": "Adaeze N. Okafor"})

    assert response.json()["events"] == ["profile_update"]


def test_unchanged_update_publishes_nothing(client, dispatcher, make_agent):
    agent = make_agent()

    response = client.patch(
        f"/api/v1/agents/{agent.id}", json={"name": agent.name, "location": agent.location}
    )

    assert response.status_code == 200
    assert response.json()["events"] == []
    assert dispatcher.events == []


@pytest.mark.parametrize("field", ["name", "rating", "status"])
def test_update_rejects_null_for_required_fields(client, dispatcher, db, make_agent, field):
    agent = make_agent()

    response = client.patch(f"/api/v1/agents/{agent.id}", json={field: None})

    assert response.status_code == 422
    assert response.json()["error"]["details"][0]["loc"] == ["body", field]
    assert dispatcher.events == []
    db.expire_all()
    assert db.get(DeliveryAgent, agent.id).status == "Active"


def test_update_clears_optional_field(client, make_agent):
    agent = make_agent()

    response = client.patch(f"/api/v1/agents/{agent.id}", json={"phone": None})

    assert response.status_code == 200
    assert response.json()["agent"]["phone"] is None
    assert response.json()["events"] == ["profile_update"]


def test_get_missing_agent(client):
    response = client.get("/api/v1/agents/404")

    assert response.status_code == 404
    error = response.json()["error"]
    assert error["type"] == "ResourceNotFoundError"
    assert error["details"] == {"resource": "Delivery agent", "id": 404}


def test_list_agents_filters(client, make_agent):
    make_agent(name="Ada", location="Ikeja, Lagos")
    make_agent(name="Musa", location="Sabon Gari, Kano", status="Suspended")

    names = [a["name"] for a in client.get("/api/v1/agents", params={"location": "kano"}).json()]
    assert names == ["Musa"]

    names = [a["name"] for a in client.get("/api/v1/agents", params={"status": "Active"}).json()]
    assert names == ["Ada"]


def test_agent_saved_when_dispatch_fails(client, failing_dispatcher, db):
    response = client.post("/api/v1/agents", json={"name": "Kemi Adebayo"})

    assert response.status_code == 503
    assert response.json()["error"]["type"] == "DispatchError"
    assert db.query(DeliveryAgent).count() == 1


# ---------------------------------------------------------------------------
# Allocations
# ---------------------------------------------------------------------------


def test_allocate_stock(client, dispatcher, make_agent, make_product):
    agent = make_agent()
    product = make_product(stock_level=500)

    response = client.post(
        "/api/v1/allocations", json={"agent_id": agent.id, "product_id": product.id, "quantity": 30}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["remaining_stock"] == 470
    assert data["allocation"]["quantity"] == 30
    assert data["allocation"]["status"] == "allocated"

    event = dispatcher.events[0]
    assert isinstance(event, StockAllocatedEvent)
    assert event.product.code == "VV-FHG-001"
    assert event.product.supplier_name == "Emzor Pharma"
    assert event.allocation.id == data["allocation"]["id"]

    fetched = client.get(f"/api/v1/allocations/{data['allocation']['id']}")
    assert fetched.json()["product_id"] == product.id


def test_allocation_updates_product_status(client, db, make_agent, make_product):
    agent = make_agent()
    product = make_product(stock_level=100, min_stock=20)

    client.post(
        "/api/v1/allocations", json={"agent_id": agent.id, "product_id": product.id, "quantity": 85}
    )

    db.expire_all()
    refreshed = db.get(Product, product.id)
    assert refreshed.stock_level == 15
    assert refreshed.status == "Low Stock"


def test_allocation_rejects_insufficient_stock(client, dispatcher, make_agent, make_product):
    agent = make_agent()
    product = make_product(stock_level=10)

    response = client.post(
        "/api/v1/allocations", json={"agent_id": agent.id, "product_id": product.id, "quantity": 11}
    )

    assert response.status_code == 400
    assert response.json()["error"]["details"]["available"] == 10
    assert dispatcher.events == []


@pytest.mark.parametrize("quantity", [0, -5])
def test_allocation_requires_positive_quantity(client, make_agent, make_product, quantity):
    agent = make_agent()
    product = make_product()

    response = client.post(
        "/api/v1/allocations",
        json={"agent_id": agent.id, "product_id": product.id, "quantity": quantity},
    )
    assert response.status_code == 422


def test_allocation_for_unknown_product(client, make_agent):
    agent = make_agent()
    response = client.post(
        "/api/v1/allocations", json={"agent_id": agent.id, "product_id": 999, "quantity": 1}
    )
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


def test_queue_compliance_action(client, dispatcher, make_agent):
    agent = make_agent()

    response = client.post(
        "/api/v1/compliance/actions",
        json={
            "agent_id": agent.id,
            "action_type": "reduce_allocation",
            "severity": "high",
            "reason": "Stock count mismatch",
            "violation_code": "over_allocation_detected",
        },
    )

    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "queued"

    event = dispatcher.events[0]
    assert isinstance(event, ComplianceActionEvent)
    assert event.event_id == data["event_id"]
    assert event.violation_code == "over_allocation_detected"


def test_unknown_compliance_action_is_rejected(client, dispatcher, make_agent):
    agent = make_agent()

    response = client.post(
        "/api/v1/compliance/actions", json={"agent_id": agent.id, "action_type": "terminate"}
    )

    assert response.status_code == 422
    assert dispatcher.events == []


def test_zone_stats(client, zone_stats):
    zone_stats.record_allocation("Abuja", 12, 1000)

    data = client.get("/api/v1/compliance/zones/Abuja").json()

    assert data["zone"] == "Abuja"
    assert data["inventory"]["total_allocations_today"] == 12
    assert data["compliance"] is None


def test_scorecard(client, db, make_agent):
    flagged = make_agent(name="Ada")
    make_agent(name="Bola")
    db.add_all([
        AuditFlag(agent_id=flagged.id, flag_type="stock_discrepancy", priority="CRITICAL"),
        AuditFlag(agent_id=flagged.id, flag_type="late_remittance", priority="MEDIUM"),
        AuditFlag(agent_id=flagged.id, flag_type="late_remittance", resolved_at=datetime.utcnow()),
    ])
    db.commit()

    data = client.get("/api/v1/compliance/scorecard").json()

    scores = {a["name"]: a["compliance_score"] for a in data["agents"]}
    assert scores == {"Ada": 86, "Bola": 100}
    assert data["average_score"] == 93.0
    assert data["total_open_flags"] == 2
