"""
Pydantic schemas for compliance actions, zone statistics and the auditor scorecard.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ...events.schemas import ActionType, Severity


class ComplianceActionRequest(BaseModel):
    agent_id: int
    action_type: ActionType
    severity: Severity = "medium"
    reason: str = Field(default="", max_length=1000)
    violation_code: Optional[str] = Field(
        None, description="Violation behind the action (e.g. 'stock_discrepancy')"
    )


class ComplianceActionResponse(BaseModel):
    status: str = Field(default="queued")
    event_id: str
    task_ids: List[str] = Field(default_factory=list)


class ZoneStatsResponse(BaseModel):
    zone: str
    inventory: Optional[Dict[str, Any]] = None
    compliance: Optional[Dict[str, Any]] = None


class AgentScore(BaseModel):
    agent_id: int
    name: str
    total_flags: int
    critical_flags: int
    compliance_score: int


class ScorecardResponse(BaseModel):
    agents: List[AgentScore]
    average_score: float
    total_open_flags: int
