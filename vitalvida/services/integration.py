"""
Integration Service
Moves agent, bin and compliance data between the VitalVida and Role systems.

Methods flush but never commit: the caller (a listener or a batch task) owns
the transaction.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db.models import (
    Bin,
    DeliveryAgent,
    EnforcementAction,
    Product,
    RoleDeliveryAgent,
)
from ..events.schemas import AgentSnapshot
from .exceptions import SyncError
from .mapping import (
    clamp_score,
    map_location_to_zone,
    map_product_status_to_bin_status,
    map_status_to_role,
)

logger = logging.getLogger(__name__)

# VitalVida compliance score assigned for each kind of violation
COMPLIANCE_SCORE_MAP = {
    "over_allocation_detected": 70,
    "unauthorized_access": 50,
    "missing_documentation": 80,
    "late_delivery": 85,
    "customer_complaint": 60,
}
DEFAULT_COMPLIANCE_SCORE = 90


class IntegrationService:
    """Cross-system upserts keyed on the VitalVida agent id."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_role_agent(self, external_id: int) -> Optional[RoleDeliveryAgent]:
        return self.db.execute(
            select(RoleDeliveryAgent).where(RoleDeliveryAgent.external_id == external_id)
        ).scalar_one_or_none()

    def find_bin(self, da_id: int, product_sku: str) -> Optional[Bin]:
        return self.db.execute(
            select(Bin).where(Bin.da_id == da_id, Bin.product_sku == product_sku)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Single-record sync
    # ------------------------------------------------------------------

    def sync_single_agent(self, agent: AgentSnapshot) -> Dict[str, Any]:
        """
        Upsert the Role agent for a VitalVida agent.

        Args:
            agent: Agent snapshot from the event

        Returns:
            Dictionary with the Role agent id and whether it was created
        """
        try:
            role_agent = self.find_role_agent(agent.id)
            created = role_agent is None
            if created:
                role_agent = RoleDeliveryAgent(external_id=agent.id)
                self.db.add(role_agent)

            role_agent.agent_name = agent.name
            role_agent.contact_number = agent.phone
            role_agent.zone = map_location_to_zone(agent.location)
            role_agent.performance_score = agent.rating
            role_agent.status = map_status_to_role(agent.status)
            role_agent.created_via_sync = True
            role_agent.sync_timestamp = datetime.utcnow()
            self.db.flush()

            return {
                "success": True,
                "agent_id": agent.id,
                "role_agent_id": role_agent.id,
                "action": "created" if created else "updated",
            }

        except Exception as e:
            logger.error(f"Single agent sync failed for agent {agent.id}: {e}")
            raise

    def sync_bin_stock(
        self,
        agent: AgentSnapshot,
        product_code: str,
        quantity: int,
        allocated_at: Optional[datetime] = None,
        product_name: Optional[str] = None,
        unit_price: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Add an allocation to the agent's bin for a product, creating what is missing.

        Returns:
            Dictionary with the bin id and the applied allocation
        """
        if quantity <= 0:
            raise SyncError(f"Allocation quantity must be positive, got {quantity}")

        try:
            role_agent = self.find_role_agent(agent.id)
            if role_agent is None:
                logger.info(f"Role agent missing for agent {agent.id}, syncing agent first")
                self.sync_single_agent(agent)
                role_agent = self.find_role_agent(agent.id)

            now = datetime.utcnow()
            bin_ = self.find_bin(role_agent.id, product_code)
            if bin_ is None:
                bin_ = Bin(
                    da_id=role_agent.id,
                    product_sku=product_code,
                    current_stock=0,
                    allocation_count=0,
                    total_allocated_today=0,
                )
                self.db.add(bin_)

            bin_.current_stock = (bin_.current_stock or 0) + quantity
            bin_.allocated_at = allocated_at or now
            bin_.bin_status = "active"
            bin_.zone = role_agent.zone
            bin_.last_updated = now
            if product_name:
                bin_.product_name = product_name
            if unit_price is not None:
                bin_.unit_price = unit_price
            self.db.flush()

            return {
                "success": True,
                "bin_id": bin_.id,
                "allocation": {
                    "agent_id": agent.id,
                    "product_code": product_code,
                    "quantity": quantity,
                },
            }

        except SyncError:
            raise
        except Exception as e:
            logger.error(f"Bin stock sync failed: {e}")
            raise

    def update_agent_compliance(self, agent_id: int, action: str) -> Dict[str, Any]:
        """
        Set the VitalVida compliance score for a compliance action.

        Args:
            agent_id: VitalVida agent id
            action: Violation code or action type

        Returns:
            Dictionary with the new score, or success=False if the agent is unknown
        """
        vital_agent = self.db.get(DeliveryAgent, agent_id)
        if vital_agent is None:
            return {"success": False, "error": "Agent not found"}

        score = self.calculate_compliance_score(action)
        vital_agent.compliance_score = score
        vital_agent.last_compliance_action = action
        vital_agent.compliance_updated_at = datetime.utcnow()
        self.db.flush()

        return {
            "success": True,
            "agent_id": vital_agent.id,
            "compliance_score": score,
            "action": action,
        }

    def trigger_enforcement(self, agent_id: int, action: str) -> Dict[str, Any]:
        """Record a pending critical enforcement for manual follow-up."""
        logger.warning(f"Enforcement triggered for agent {agent_id}: {action}")

        role_agent = self.find_role_agent(agent_id)
        record = EnforcementAction(
            da_id=role_agent.id if role_agent else None,
            agent_id=agent_id,
            action_type=action,
            severity="critical",
            status="pending",
            executed_by="system",
        )
        self.db.add(record)
        self.db.flush()

        return {
            "success": True,
            "enforcement_triggered": True,
            "enforcement_id": record.id,
            "agent_id": agent_id,
            "action": action,
        }

    # ------------------------------------------------------------------
    # Batch sync
    # ------------------------------------------------------------------

    def sync_inventory_data(self) -> List[Dict[str, Any]]:
        """
        Upsert a bin for every VitalVida product held by a synced agent.

        A failing product is reported in the results and does not stop the batch.
        """
        results = []
        products = self.db.execute(
            select(Product).where(Product.agent_id.is_not(None)).order_by(Product.id)
        ).scalars().all()

        for product in products:
            try:
                with self.db.begin_nested():
                    role_agent = self.find_role_agent(product.agent_id)
                    if role_agent is None:
                        results.append({"product_id": product.id, "action": "skipped",
                                        "error": "Agent not synced"})
                        continue

                    bin_ = self.find_bin(role_agent.id, product.code)
                    created = bin_ is None
                    if created:
                        bin_ = Bin(da_id=role_agent.id, product_sku=product.code)
                        self.db.add(bin_)

                    bin_.product_name = product.name
                    bin_.product_category = product.category
                    bin_.current_stock = product.stock_level
                    bin_.min_threshold = product.min_stock if product.min_stock is not None else 10
                    bin_.max_capacity = product.max_stock if product.max_stock is not None else 1000
                    bin_.unit_price = product.unit_price
                    bin_.supplier_name = product.supplier.company_name if product.supplier else "Unknown"
                    bin_.bin_status = map_product_status_to_bin_status(product.status)
                    bin_.zone = role_agent.zone
                    bin_.last_updated = datetime.utcnow()
                    self.db.flush()

                results.append({
                    "product_id": product.id,
                    "bin_id": bin_.id,
                    "action": "created" if created else "updated",
                })

            except Exception as e:
                logger.error(f"Failed to sync product {product.id}: {e}")
                results.append({"product_id": product.id, "action": "failed", "error": str(e)})

        return results

    def sync_compliance_data(self) -> List[Dict[str, Any]]:
        """Copy Role compliance scores and violation counts back to VitalVida agents."""
        updates = []
        role_agents = self.db.execute(
            select(RoleDeliveryAgent).where(RoleDeliveryAgent.external_id.is_not(None))
        ).scalars().all()

        now = datetime.utcnow()
        for role_agent in role_agents:
            vital_agent = self.db.get(DeliveryAgent, role_agent.external_id)
            if vital_agent is None:
                continue

            vital_agent.compliance_score = clamp_score(
                role_agent.compliance_score if role_agent.compliance_score is not None else 100
            )
            vital_agent.violation_count = role_agent.violation_count or 0
            vital_agent.last_compliance_check = now
            updates.append({
                "agent_id": vital_agent.id,
                "compliance_score": vital_agent.compliance_score,
            })

        self.db.flush()
        return updates

    def get_integration_stats(self) -> Dict[str, Any]:
        """Counts on both sides and sync coverage."""
        vitalvida_agents = self.db.scalar(select(func.count(DeliveryAgent.id))) or 0
        role_synced = self.db.scalar(
            select(func.count(RoleDeliveryAgent.id)).where(RoleDeliveryAgent.created_via_sync.is_(True))
        ) or 0
        last_sync = self.db.scalar(
            select(func.max(RoleDeliveryAgent.sync_timestamp)).where(
                RoleDeliveryAgent.created_via_sync.is_(True)
            )
        )

        return {
            "vitalvida_agents": vitalvida_agents,
            "role_agents": role_synced,
            "vitalvida_products": self.db.scalar(select(func.count(Product.id))) or 0,
            "role_bins": self.db.scalar(select(func.count(Bin.id))) or 0,
            "last_sync": last_sync.isoformat() if last_sync else None,
            "sync_health": self.calculate_sync_coverage(vitalvida_agents, role_synced),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_compliance_score(action: str) -> int:
        return COMPLIANCE_SCORE_MAP.get(action, DEFAULT_COMPLIANCE_SCORE)

    @staticmethod
    def calculate_sync_coverage(vitalvida_count: int, role_count: int) -> float:
        if vitalvida_count == 0:
            return 100.0
        return round(min(100.0, role_count / vitalvida_count * 100), 2)
