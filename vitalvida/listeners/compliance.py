"""
Compliance Action Listener
Enforces compliance actions on the Role agent and its bins, then notifies.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict

from sqlalchemy import select, update

from ..config.settings import get_settings
from ..db.models import (
    Bin,
    ComplianceViolation,
    EnforcementAction,
    RoleDeliveryAgent,
    SystemNotification,
    TrainingAssignment,
    ZoneNotification,
)
from ..events.schemas import ComplianceActionEvent
from ..services.mapping import clamp_score, determine_training_type, map_location_to_zone
from .base import QueuedListener

logger = logging.getLogger(__name__)

# Compliance points removed from the Role agent per action
SCORE_PENALTIES = {
    "suspend": 25,
    "reduce_allocation": 15,
    "warning": 5,
    "mandatory_training": 10,
}
ALLOCATION_REDUCTION_FACTOR = 0.75
ZONE_MANAGER_ACTIONS = ("suspend", "reduce_allocation")


class HandleComplianceAction(QueuedListener):
    """Consumes ComplianceActionEvent."""

    name = "handle_compliance_action"
    event_class = ComplianceActionEvent
    queue = "compliance-sync"
    tries = 3
    backoff = [15, 45, 90]

    def handle(self, event: ComplianceActionEvent) -> Dict[str, Any]:
        agent = event.agent
        logger.info(
            "Processing compliance action",
            extra={"agent_id": agent.id, "action_type": event.action_type, "severity": event.severity},
        )

        compliance_result = self.integration.update_agent_compliance(
            agent.id, event.violation_code or event.action_type
        )

        enforced = self._process_enforcement_workflow(event)
        self._send_notifications(event)

        zone = map_location_to_zone(agent.location)
        self.after_commit(
            lambda: self.zone_stats.record_compliance_action(zone, agent.id, event.severity)
        )

        logger.info(
            "Compliance action processed successfully",
            extra={"agent_id": agent.id, "compliance_result": compliance_result},
        )
        return {"compliance": compliance_result, "enforced": enforced}

    def failure_context(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        agent = payload.get("agent") or {}
        return {"agent_id": agent.get("id", "unknown"), "action_type": payload.get("action_type", "unknown")}

    # ------------------------------------------------------------------
    # Enforcement
    # ------------------------------------------------------------------

    def _process_enforcement_workflow(self, event: ComplianceActionEvent) -> bool:
        role_agent = self.find_role_agent(event.agent.id)
        if role_agent is None:
            logger.warning(f"No Role agent for agent {event.agent.id}, enforcement skipped")
            return False

        handler = {
            "suspend": self._process_suspension,
            "reduce_allocation": self._process_allocation_reduction,
            "warning": self._process_warning,
            "mandatory_training": self._process_mandatory_training,
        }[event.action_type]
        handler(role_agent, event)

        role_agent.compliance_score = clamp_score(
            (role_agent.compliance_score or 0) - SCORE_PENALTIES[event.action_type]
        )
        role_agent.compliance_updated_at = datetime.utcnow()
        return True

    def _process_suspension(self, role_agent: RoleDeliveryAgent, event: ComplianceActionEvent) -> None:
        now = datetime.utcnow()
        self.db.execute(
            update(Bin)
            .where(Bin.da_id == role_agent.id)
            .values(bin_status="suspended", suspended_at=now, suspension_reason=event.reason)
        )

        self.db.add(EnforcementAction(
            da_id=role_agent.id,
            agent_id=event.agent.id,
            action_type="suspension",
            severity=event.severity,
            reason=event.reason,
            status="executed",
            executed_at=now,
            executed_by="system",
        ))

        role_agent.status = "suspended"
        role_agent.suspended_at = now

    def _process_allocation_reduction(
        self, role_agent: RoleDeliveryAgent, event: ComplianceActionEvent
    ) -> None:
        now = datetime.utcnow()
        bins = self.db.execute(select(Bin).where(Bin.da_id == role_agent.id)).scalars().all()
        for bin_ in bins:
            bin_.max_capacity = int(bin_.max_capacity * ALLOCATION_REDUCTION_FACTOR)
            bin_.allocation_restricted = True
            bin_.restriction_reason = event.reason
            bin_.restricted_at = now

        role_agent.allocation_restricted = True

    def _process_warning(self, role_agent: RoleDeliveryAgent, event: ComplianceActionEvent) -> None:
        now = datetime.utcnow()
        self.db.add(ComplianceViolation(
            da_id=role_agent.id,
            violation_type="warning",
            description=event.reason,
            severity=event.severity,
            issued_at=now,
            auto_generated=True,
        ))

        role_agent.violation_count = (role_agent.violation_count or 0) + 1
        role_agent.last_warning_at = now

    def _process_mandatory_training(
        self, role_agent: RoleDeliveryAgent, event: ComplianceActionEvent
    ) -> None:
        now = datetime.utcnow()
        training_type = determine_training_type(event.reason)

        role_agent.training_required = True
        role_agent.training_type = training_type
        role_agent.training_assigned_at = now

        self.db.add(TrainingAssignment(
            da_id=role_agent.id,
            training_type=training_type,
            reason=event.reason,
            assigned_at=now,
            due_date=now + timedelta(days=get_settings().training_due_days),
            status="assigned",
        ))

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _send_notifications(self, event: ComplianceActionEvent) -> None:
        agent = event.agent
        zone = map_location_to_zone(agent.location)

        if event.severity == "critical":
            self.db.add(SystemNotification(
                type="critical_compliance_action",
                title="Critical Compliance Action Taken",
                message=f"Agent {agent.name} received {event.action_type} action due to: {event.reason}",
                data={
                    "agent_id": agent.id,
                    "action_type": event.action_type,
                    "severity": event.severity,
                    "zone": zone,
                },
                priority="high",
                requires_acknowledgment=True,
            ))

        if event.action_type in ZONE_MANAGER_ACTIONS:
            self.db.add(ZoneNotification(
                zone=zone,
                type="enforcement_action",
                title=f"Enforcement Action in {zone} Zone",
                message=f"Agent {agent.name} has been subject to {event.action_type}",
                data={
                    "agent_id": agent.id,
                    "action_type": event.action_type,
                    "reason": event.reason,
                },
            ))
