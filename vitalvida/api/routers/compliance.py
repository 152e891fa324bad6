"""
Compliance Endpoints
POST /api/v1/compliance/actions - Queue a compliance action against an agent
GET /api/v1/compliance/zones/{zone} - Cached zone inventory and compliance stats
GET /api/v1/compliance/scorecard - Auditor scorecard from open audit flags
"""

import logging
from typing import Dict, List, Tuple

from fastapi import APIRouter, Depends, status
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from ...caching import ZoneStatsStore
from ...db.models import AuditFlag, DeliveryAgent
from ...events.dispatcher import EventDispatcher
from ...events.schemas import AgentSnapshot, ComplianceActionEvent
from ..dependencies import get_db, get_event_dispatcher, get_zone_stats
from ..errors import DispatchError, ResourceNotFoundError
from ..schemas.compliance import (
    AgentScore,
    ComplianceActionRequest,
    ComplianceActionResponse,
    ScorecardResponse,
    ZoneStatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/compliance", tags=["compliance"])

CRITICAL_FLAG_PENALTY = 10
FLAG_PENALTY = 2


def scorecard_score(total_flags: int, critical_flags: int) -> int:
    return max(0, 100 - CRITICAL_FLAG_PENALTY * critical_flags - FLAG_PENALTY * total_flags)


@router.post(
    "/actions", response_model=ComplianceActionResponse, status_code=status.HTTP_202_ACCEPTED
)
def create_compliance_action(
    request: ComplianceActionRequest,
    db: Session = Depends(get_db),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> ComplianceActionResponse:
    """
    Queue a compliance action.

    Enforcement (bins, Role agent, notifications) happens asynchronously in
    the compliance listener.
    """
    agent = db.get(DeliveryAgent, request.agent_id)
    if agent is None:
        raise ResourceNotFoundError("Delivery agent", request.agent_id)

    event = ComplianceActionEvent(
        agent=AgentSnapshot.model_validate(agent),
        action_type=request.action_type,
        severity=request.severity,
        reason=request.reason,
        violation_code=request.violation_code,
    )

    try:
        task_ids = dispatcher.dispatch(event)
    except Exception as e:
        logger.error(f"Failed to queue compliance action for agent {agent.id}: {e}", exc_info=True)
        raise DispatchError("Compliance action could not be queued", details={"agent_id": agent.id})

    logger.info(
        f"Compliance action {request.action_type} queued for agent {agent.id}",
        extra={"event_id": event.event_id, "severity": request.severity},
    )
    return ComplianceActionResponse(event_id=event.event_id, task_ids=task_ids)


@router.get("/zones/{zone}", response_model=ZoneStatsResponse)
def zone_summary(zone: str, zone_stats: ZoneStatsStore = Depends(get_zone_stats)) -> Dict:
    return zone_stats.get_zone_summary(zone)


@router.get("/scorecard", response_model=ScorecardResponse)
def get_scorecard(db: Session = Depends(get_db)) -> ScorecardResponse:
    """Score active agents: 100, minus 10 per open critical flag and 2 per open flag."""
    flag_counts: Dict[int, Tuple[int, int]] = {
        agent_id: (int(total), int(critical or 0))
        for agent_id, total, critical in db.execute(
            select(
                AuditFlag.agent_id,
                func.count(AuditFlag.id),
                func.sum(case((AuditFlag.priority == "CRITICAL", 1), else_=0)),
            )
            .where(AuditFlag.resolved_at.is_(None))
            .group_by(AuditFlag.agent_id)
        ).all()
    }

    agents = db.execute(
        select(DeliveryAgent).where(DeliveryAgent.is_active.is_(True)).order_by(DeliveryAgent.id)
    ).scalars().all()

    scores: List[AgentScore] = []
    for agent in agents:
        total, critical = flag_counts.get(agent.id, (0, 0))
        scores.append(AgentScore(
            agent_id=agent.id,
            name=agent.name,
            total_flags=total,
            critical_flags=critical,
            compliance_score=scorecard_score(total, critical),
        ))

    average = round(sum(s.compliance_score for s in scores) / len(scores), 2) if scores else 100.0
    return ScorecardResponse(
        agents=scores,
        average_score=average,
        total_open_flags=sum(total for total, _ in flag_counts.values()),
    )
