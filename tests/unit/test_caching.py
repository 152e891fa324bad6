"""
Tests for the Redis cache wrapper and zone statistics.
"""

import json

import redis

from vitalvida.caching import RedisCache, ZoneStatsStore


class BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("connection refused")

    def setex(self, key, ttl, value):
        raise redis.ConnectionError("connection refused")

    def set(self, key, value):
        raise redis.ConnectionError("connection refused")

    def ping(self):
        raise redis.ConnectionError("connection refused")

    def pipeline(self):
        raise redis.ConnectionError("connection refused")

    def hgetall(self, key):
        raise redis.ConnectionError("connection refused")

    def smembers(self, key):
        raise redis.ConnectionError("connection refused")


def test_set_and_get_json_with_ttl(cache, fake_redis):
    """Values round trip as JSON and a TTL uses SETEX."""
    assert cache.set("k", {"a": 1}, ttl=60)
    assert cache.get("k") == {"a": 1}
    assert fake_redis.ttls["k"] == 60
    assert json.loads(fake_redis.store["k"]) == {"a": 1}


def test_get_missing_key_returns_none(cache):
    assert cache.get("missing") is None


def test_undecodable_value_is_a_miss(cache, fake_redis):
    fake_redis.store["bad"] = "{not json"
    assert cache.get("bad") is None


def test_redis_errors_are_swallowed():
    """An unreachable Redis never raises into a sync."""
    cache = RedisCache(client=BrokenRedis())
    assert cache.get("k") is None
    assert cache.set("k", 1, ttl=5) is False
    assert cache.ping() is False


def test_record_allocation_accumulates(zone_stats, fake_redis):
    zone_stats.record_allocation("Lagos", 10, 2500)
    stats = zone_stats.record_allocation("Lagos", 5, 100.5)

    assert stats["total_allocations_today"] == 15
    assert stats["total_value_allocated"] == 25502.5
    assert fake_redis.ttls["zone_inventory_stats:Lagos"] == 3600


def test_record_compliance_action_tracks_unique_agents(zone_stats):
    zone_stats.record_compliance_action("Abuja", 7, "critical")
    zone_stats.record_compliance_action("Abuja", 7, "medium")
    metrics = zone_stats.record_compliance_action("Abuja", 9, "low")

    assert metrics["total_actions_today"] == 3
    assert metrics["critical_actions"] == 1
    assert metrics["agents_affected"] == [7, 9]


def test_zone_summary(cache):
    store = ZoneStatsStore(cache=cache)
    store.record_allocation("Kano", 3, 10)

    summary = store.get_zone_summary("Kano")
    assert summary["zone"] == "Kano"
    assert summary["inventory"]["total_allocations_today"] == 3
    assert summary["compliance"] is None


def test_zone_counters_are_incremented_in_place(zone_stats, fake_redis, monkeypatch):
    """Counters live in a hash updated with HINCRBY; nothing is read back first."""

    def no_reads(key):
        raise AssertionError(f"unexpected GET {key}")

    monkeypatch.setattr(fake_redis, "get", no_reads)
    first, second = ZoneStatsStore(cache=zone_stats.cache), ZoneStatsStore(cache=zone_stats.cache)

    first.record_allocation("Kano", 4, 250)
    second.record_allocation("Kano", 6, 250)

    raw = fake_redis.store["zone_inventory_stats:Kano"]
    assert int(raw["total_allocations_today"]) == 10
    assert float(raw["total_value_allocated"]) == 2500.0
    assert "last_updated" in raw


def test_compliance_agents_set_shares_ttl(zone_stats, fake_redis):
    zone_stats.record_compliance_action("Lagos", 3, "critical")

    assert fake_redis.store["zone_compliance_metrics:Lagos:agents"] == {"3"}
    assert fake_redis.ttls["zone_compliance_metrics:Lagos"] == 3600
    assert fake_redis.ttls["zone_compliance_metrics:Lagos:agents"] == 3600


def test_counter_errors_are_swallowed():
    cache = RedisCache(client=BrokenRedis())
    store = ZoneStatsStore(cache=cache, ttl=60)

    assert store.record_allocation("Lagos", 1, 10) is None
    assert store.get_zone_summary("Lagos") == {"zone": "Lagos", "inventory": None, "compliance": None}
