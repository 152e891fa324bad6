"""
Agent Sync Listener
Mirrors VitalVida agent changes onto the Role system.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import update

from ..db.models import (
    AgentActivityLog,
    Bin,
    ComplianceViolation,
    RoleDeliveryAgent,
    SystemAlert,
)
from ..events.schemas import AgentSnapshot, AgentUpdatedEvent
from ..services.mapping import clamp_score, map_location_to_zone, map_status_to_role
from .base import QueuedListener

logger = logging.getLogger(__name__)

# Points a compliance score may fall in one update before an alert is raised
COMPLIANCE_DROP_ALERT = 20


class SyncAgentToRoleSystem(QueuedListener):
    """Consumes AgentUpdatedEvent."""

    name = "sync_agent_to_role_system"
    event_class = AgentUpdatedEvent
    queue = "high-priority-sync"
    tries = 3
    backoff = [10, 30, 60]

    def handle(self, event: AgentUpdatedEvent) -> Dict[str, Any]:
        agent = event.agent
        logger.info(
            "Processing agent update sync",
            extra={"agent_id": agent.id, "update_type": event.update_type},
        )

        sync_result = self.integration.sync_single_agent(agent)

        handler = {
            "performance_update": self._handle_performance_update,
            "status_change": self._handle_status_change,
            "location_change": self._handle_location_change,
            "compliance_update": self._handle_compliance_update,
        }.get(event.update_type)

        if handler is not None:
            role_agent = self.find_role_agent(agent.id)
            if role_agent is not None:
                handler(role_agent, agent, event.previous_data)

        logger.info(
            "Agent sync completed successfully",
            extra={"agent_id": agent.id, "sync_result": sync_result},
        )
        return sync_result

    def _handle_performance_update(
        self, role_agent: RoleDeliveryAgent, agent: AgentSnapshot, previous: Dict[str, Any]
    ) -> None:
        now = datetime.utcnow()
        role_agent.performance_score = agent.rating
        role_agent.performance_updated_at = now

        self.db.add(AgentActivityLog(
            da_id=role_agent.id,
            action_type="performance_sync",
            action_details={
                "previous_rating": previous.get("rating"),
                "new_rating": agent.rating,
                "synced_from": "vitalvida",
            },
            performed_by="system",
            performed_at=now,
        ))

    def _handle_status_change(
        self, role_agent: RoleDeliveryAgent, agent: AgentSnapshot, previous: Dict[str, Any]
    ) -> None:
        role_agent.status = map_status_to_role(agent.status)
        role_agent.status_updated_at = datetime.utcnow()

        if agent.status == "Suspended":
            self._suspend_agent_bins(role_agent, agent)

    def _handle_location_change(
        self, role_agent: RoleDeliveryAgent, agent: AgentSnapshot, previous: Dict[str, Any]
    ) -> None:
        now = datetime.utcnow()
        new_zone = map_location_to_zone(agent.location)
        old_zone = map_location_to_zone(previous["location"]) if previous.get("location") else None

        role_agent.zone = new_zone
        role_agent.location_updated_at = now

        if old_zone != new_zone:
            self.db.execute(
                update(Bin)
                .where(Bin.da_id == role_agent.id)
                .values(zone=new_zone, zone_updated_at=now)
            )

    def _handle_compliance_update(
        self, role_agent: RoleDeliveryAgent, agent: AgentSnapshot, previous: Dict[str, Any]
    ) -> None:
        if agent.compliance_score is None:
            return

        role_agent.compliance_score = clamp_score(agent.compliance_score)
        role_agent.compliance_updated_at = datetime.utcnow()

        previous_score = previous.get("compliance_score")
        if previous_score is None:
            previous_score = 100
        if agent.compliance_score < previous_score - COMPLIANCE_DROP_ALERT:
            self._trigger_compliance_alert(role_agent, agent)

    def _suspend_agent_bins(self, role_agent: RoleDeliveryAgent, agent: AgentSnapshot) -> None:
        now = datetime.utcnow()
        self.db.execute(
            update(Bin)
            .where(Bin.da_id == role_agent.id, Bin.bin_status == "active")
            .values(
                bin_status="suspended",
                suspended_at=now,
                suspension_reason=agent.suspension_reason or "Agent suspended",
            )
        )

        self.db.add(ComplianceViolation(
            da_id=role_agent.id,
            violation_type="suspension",
            description="Agent suspended in VitalVida system",
            severity="critical",
            issued_at=now,
            auto_generated=True,
        ))

    def _trigger_compliance_alert(self, role_agent: RoleDeliveryAgent, agent: AgentSnapshot) -> None:
        self.db.add(SystemAlert(
            alert_type="compliance_drop",
            severity="high",
            title="Significant Compliance Score Drop",
            message=f"Agent {agent.name} compliance score dropped to {agent.compliance_score}%",
            data={
                "agent_id": agent.id,
                "role_agent_id": role_agent.id,
                "new_score": agent.compliance_score,
            },
            zone=role_agent.zone,
            requires_action=True,
        ))
