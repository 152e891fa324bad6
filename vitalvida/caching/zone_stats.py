"""
Zone Statistics Cache
Rolling per-zone inventory and compliance counters kept in Redis hashes.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..config.settings import get_settings
from .redis_cache import RedisCache, get_cache

logger = logging.getLogger(__name__)

INVENTORY_KEY = "zone_inventory_stats:{zone}"
COMPLIANCE_KEY = "zone_compliance_metrics:{zone}"
AFFECTED_AGENTS_KEY = "zone_compliance_metrics:{zone}:agents"


def _inventory(raw: Optional[Dict[str, str]]) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    return {
        "total_allocations_today": int(raw.get("total_allocations_today", 0)),
        "total_value_allocated": round(float(raw.get("total_value_allocated", 0)), 2),
        "last_updated": raw.get("last_updated"),
    }


def _compliance(raw: Optional[Dict[str, str]], agents) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    return {
        "total_actions_today": int(raw.get("total_actions_today", 0)),
        "critical_actions": int(raw.get("critical_actions", 0)),
        "agents_affected": sorted(int(a) for a in agents or ()),
        "last_updated": raw.get("last_updated"),
    }


class ZoneStatsStore:
    """Atomic counters for zone dashboards (HINCRBY in a pipeline)."""

    def __init__(self, cache: Optional[RedisCache] = None, ttl: Optional[int] = None):
        self.cache = cache or get_cache()
        self.ttl = ttl or get_settings().zone_stats_ttl

    def record_allocation(self, zone: str, quantity: int, unit_price: float) -> Optional[Dict[str, Any]]:
        """Add an allocation to the zone inventory counters."""
        raw = self.cache.increment_hash(
            INVENTORY_KEY.format(zone=zone),
            {
                "total_allocations_today": int(quantity),
                "total_value_allocated": float(quantity) * float(unit_price or 0),
            },
            fields={"last_updated": datetime.utcnow().isoformat()},
            ttl=self.ttl,
        )
        return _inventory(raw)

    def record_compliance_action(self, zone: str, agent_id: int, severity: str) -> Optional[Dict[str, Any]]:
        """Count a compliance action against the zone."""
        raw = self.cache.increment_hash(
            COMPLIANCE_KEY.format(zone=zone),
            {
                "total_actions_today": 1,
                "critical_actions": 1 if severity == "critical" else 0,
            },
            fields={"last_updated": datetime.utcnow().isoformat()},
            ttl=self.ttl,
        )
        agents = self.cache.add_to_set(AFFECTED_AGENTS_KEY.format(zone=zone), agent_id, ttl=self.ttl)
        return _compliance(raw, agents)

    def get_zone_summary(self, zone: str) -> Dict[str, Any]:
        return {
            "zone": zone,
            "inventory": _inventory(self.cache.get_hash(INVENTORY_KEY.format(zone=zone))),
            "compliance": _compliance(
                self.cache.get_hash(COMPLIANCE_KEY.format(zone=zone)),
                self.cache.get_set(AFFECTED_AGENTS_KEY.format(zone=zone)),
            ),
        }
