"""
Delivery Agent Endpoints
GET /api/v1/agents - List agents
POST /api/v1/agents - Create an agent
GET /api/v1/agents/{agent_id} - Get an agent
PATCH /api/v1/agents/{agent_id} - Update an agent

Every change is published as AgentUpdatedEvent for the Role system sync.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ...db.models import DeliveryAgent
from ...events.dispatcher import EventDispatcher
from ...events.schemas import AgentSnapshot, AgentUpdatedEvent
from ..dependencies import get_db, get_event_dispatcher
from ..errors import DispatchError, ResourceNotFoundError
from ..schemas.agents import AgentCreate, AgentMutationResponse, AgentResponse, AgentUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/agents", tags=["agents"])

# Changed field -> update type, in the order events are emitted
UPDATE_TYPES = [
    ("rating", "performance_update"),
    ("status", "status_change"),
    ("location", "location_change"),
    ("compliance_score", "compliance_update"),
]


def classify_changes(changed_fields: List[str]) -> List[str]:
    """Update types for a set of changed fields; anything else is a profile update."""
    update_types = [update_type for field, update_type in UPDATE_TYPES if field in changed_fields]
    if not update_types and changed_fields:
        update_types.append("profile_update")
    return update_types


def publish_agent_events(
    dispatcher: EventDispatcher,
    agent: DeliveryAgent,
    update_types: List[str],
    previous: Dict[str, Any],
) -> List[str]:
    snapshot = AgentSnapshot.model_validate(agent)
    task_ids = []
    try:
        for update_type in update_types:
            event = AgentUpdatedEvent(agent=snapshot, update_type=update_type, previous_data=previous)
            task_ids.extend(dispatcher.dispatch(event))
    except Exception as e:
        logger.error(f"Failed to publish agent events for agent {agent.id}: {e}", exc_info=True)
        raise DispatchError(
            "Agent saved but the sync events could not be queued",
            details={"agent_id": agent.id, "update_types": update_types},
        )
    return task_ids


def get_agent_or_404(db: Session, agent_id: int) -> DeliveryAgent:
    agent = db.get(DeliveryAgent, agent_id)
    if agent is None:
        raise ResourceNotFoundError("Delivery agent", agent_id)
    return agent


@router.get("", response_model=List[AgentResponse])
def list_agents(
    status_filter: Optional[str] = Query(None, alias="status"),
    location: Optional[str] = Query(None, description="Substring match on location"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[DeliveryAgent]:
    stmt = select(DeliveryAgent).order_by(DeliveryAgent.id)
    if status_filter:
        stmt = stmt.where(DeliveryAgent.status == status_filter)
    if location:
        stmt = stmt.where(DeliveryAgent.location.ilike(f"%{location}%"))
    return db.execute(stmt.offset(offset).limit(limit)).scalars().all()


@router.post("", response_model=AgentMutationResponse, status_code=status.HTTP_201_CREATED)
def create_agent(
    request: AgentCreate,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> AgentMutationResponse:
    agent = DeliveryAgent(**request.model_dump())
    db.add(agent)
    db.commit()
    db.refresh(agent)

    logger.info(f"Delivery agent created: {agent.id}")
    task_ids = publish_agent_events(dispatcher, agent, ["created"], {})

    return AgentMutationResponse(
        agent=AgentResponse.model_validate(agent), events=["created"], task_ids=task_ids
    )


@router.get("/{agent_id}", response_model=AgentResponse)
def get_agent(agent_id: int, db: Session = Depends(get_db)) -> DeliveryAgent:
    return get_agent_or_404(db, agent_id)


@router.patch("/{agent_id}", response_model=AgentMutationResponse)
def update_agent(
    agent_id: int,
    request: AgentUpdate,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> AgentMutationResponse:
    """
    Update an agent.

    One event is published per changed concern (rating, status, location,
    compliance score); changes to other fields only publish a profile update.
    Sending unchanged values publishes nothing.
    """
    agent = get_agent_or_404(db, agent_id)
    previous = AgentSnapshot.model_validate(agent).model_dump(mode="json")

    changed = []
    for field, value in request.model_dump(exclude_unset=True).items():
        if getattr(agent, field) != value:
            setattr(agent, field, value)
            changed.append(field)

    if not changed:
        return AgentMutationResponse(agent=AgentResponse.model_validate(agent))

    db.commit()
    db.refresh(agent)

    update_types = classify_changes(changed)
    logger.info(f"Delivery agent {agent_id} updated: {changed}")
    task_ids = publish_agent_events(dispatcher, agent, update_types, previous)

    return AgentMutationResponse(
        agent=AgentResponse.model_validate(agent), events=update_types, task_ids=task_ids
    )
