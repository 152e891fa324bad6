"""
Stock Sync Listener
Pushes VitalVida stock allocations into the agent's Role bins.
"""

import logging
from typing import Any, Dict

from ..db.models import AuditFlag, Bin, SystemAlert
from ..events.schemas import AgentSnapshot, StockAllocatedEvent
from ..services.mapping import map_location_to_zone
from .base import QueuedListener

logger = logging.getLogger(__name__)

CAPACITY_CRITICAL = 90.0
CAPACITY_WARNING = 80.0


def utilization_rate(bin_: Bin) -> float:
    if not bin_.max_capacity or bin_.max_capacity <= 0:
        return 0.0
    return round(bin_.current_stock / bin_.max_capacity * 100, 2)


class SyncStockToBinSystem(QueuedListener):
    """Consumes StockAllocatedEvent."""

    name = "sync_stock_to_bin_system"
    event_class = StockAllocatedEvent
    queue = "high-priority-sync"
    tries = 3
    backoff = [10, 30, 60]

    def handle(self, event: StockAllocatedEvent) -> Dict[str, Any]:
        allocation, agent, product = event.allocation, event.agent, event.product
        logger.info(
            "Processing stock allocation sync",
            extra={
                "allocation_id": allocation.id,
                "agent_id": agent.id,
                "product_id": product.id,
                "quantity": allocation.quantity,
            },
        )

        sync_result = self.integration.sync_bin_stock(
            agent,
            product_code=product.code,
            quantity=allocation.quantity,
            allocated_at=allocation.allocated_at,
            product_name=product.name,
            unit_price=product.unit_price,
        )

        bin_ = self.db.get(Bin, sync_result["bin_id"])
        self._update_bin_metadata(bin_, event)
        self._check_capacity_warnings(bin_, event)

        zone = map_location_to_zone(agent.location)
        self.after_commit(
            lambda: self.zone_stats.record_allocation(zone, allocation.quantity, product.unit_price)
        )

        logger.info(
            "Stock allocation sync completed",
            extra={"allocation_id": allocation.id, "sync_result": sync_result},
        )
        return sync_result

    def failure_context(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        allocation = payload.get("allocation") or {}
        return {"allocation_id": allocation.get("id", "unknown")}

    def _update_bin_metadata(self, bin_: Bin, event: StockAllocatedEvent) -> None:
        bin_.last_allocation_at = event.allocation.allocated_at
        bin_.allocation_count = (bin_.allocation_count or 0) + 1
        bin_.total_allocated_today = (bin_.total_allocated_today or 0) + event.allocation.quantity
        bin_.supplier_name = event.product.supplier_name or "Unknown"
        bin_.product_category = event.product.category or "General"
        bin_.utilization_rate = utilization_rate(bin_)

    def _check_capacity_warnings(self, bin_: Bin, event: StockAllocatedEvent) -> None:
        if not bin_.max_capacity or bin_.max_capacity <= 0:
            return

        rate = utilization_rate(bin_)
        if rate >= CAPACITY_CRITICAL:
            self._create_capacity_alert(bin_, event.agent, "critical", rate)
        elif rate >= CAPACITY_WARNING:
            self._create_capacity_alert(bin_, event.agent, "warning", rate)

        if rate > 100:
            self.db.add(AuditFlag(
                agent_id=event.agent.id,
                product_id=event.product.id,
                flag_type="over_allocation",
                priority="CRITICAL",
                description=(
                    f"Bin {bin_.product_sku} holds {bin_.current_stock} units "
                    f"against a capacity of {bin_.max_capacity}"
                ),
            ))

    def _create_capacity_alert(
        self, bin_: Bin, agent: AgentSnapshot, severity: str, rate: float
    ) -> None:
        self.db.add(SystemAlert(
            alert_type="capacity_warning",
            severity=severity,
            title="Bin Capacity Alert",
            message=f"Agent {agent.name} bin for {bin_.product_name} is {rate}% full",
            data={
                "bin_id": bin_.id,
                "agent_id": agent.id,
                "product_sku": bin_.product_sku,
                "utilization_rate": rate,
                "current_stock": bin_.current_stock,
                "max_capacity": bin_.max_capacity,
            },
            requires_action=severity == "critical",
            zone=map_location_to_zone(agent.location),
        ))
