"""
Pytest configuration and shared fixtures
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from vitalvida.caching import RedisCache, ZoneStatsStore, set_cache
from vitalvida.config.settings import reset_settings
from vitalvida.db.models import (
    Base,
    Bin,
    DeliveryAgent,
    Product,
    RoleDeliveryAgent,
    Supplier,
)
from vitalvida.db.session import set_session_factory
from vitalvida.events.dispatcher import set_dispatcher
from vitalvida.events.schemas import AgentSnapshot


class FakeRedis:
    """In-memory stand-in for the redis-py client (string values only)."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value):
        self.store[key] = value
        self.ttls.pop(key, None)
        return True

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def expire(self, key, ttl):
        self.ttls[key] = ttl
        return key in self.store

    def hincrby(self, key, field, amount=1):
        hash_ = self.store.setdefault(key, {})
        hash_[field] = str(int(hash_.get(field, 0)) + amount)
        return int(hash_[field])

    def hincrbyfloat(self, key, field, amount=1.0):
        hash_ = self.store.setdefault(key, {})
        hash_[field] = repr(float(hash_.get(field, 0)) + amount)
        return float(hash_[field])

    def hset(self, key, mapping=None):
        self.store.setdefault(key, {}).update({k: str(v) for k, v in (mapping or {}).items()})
        return len(mapping or {})

    def hgetall(self, key):
        return dict(self.store.get(key, {}))

    def sadd(self, key, *members):
        set_ = self.store.setdefault(key, set())
        added = {str(m) for m in members} - set_
        set_.update(added)
        return len(added)

    def smembers(self, key):
        return set(self.store.get(key, set()))

    def pipeline(self):
        return FakePipeline(self)

    def ping(self):
        return True


class FakePipeline:
    """Queues commands and runs them on execute(), like a MULTI/EXEC block."""

    def __init__(self, client):
        self.client = client
        self.commands = []

    def __getattr__(self, name):
        method = getattr(self.client, name)

        def queue(*args, **kwargs):
            self.commands.append((method, args, kwargs))
            return self

        return queue

    def execute(self):
        results = [method(*args, **kwargs) for method, args, kwargs in self.commands]
        self.commands = []
        return results


@pytest.fixture(autouse=True)
def _reset_globals():
    """Fresh settings and no leftover cache/dispatcher between tests."""
    reset_settings()
    yield
    reset_settings()
    set_cache(None)
    set_dispatcher(None)
    set_session_factory(None)


@pytest.fixture
def engine():
    """In-memory SQLite database shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    set_session_factory(factory)
    return factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    cache = RedisCache(client=fake_redis)
    set_cache(cache)
    return cache


@pytest.fixture
def zone_stats(cache):
    return ZoneStatsStore(cache=cache, ttl=3600)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_agent(db):
    def _make(**overrides):
        values = {
            "name": "Adaeze Okafor",
            "phone": "08030000001",
            "location": "Ikeja, Lagos",
            "rating": 4.5,
            "status": "Active",
            "compliance_score": 100,
        }
        values.update(overrides)
        agent = DeliveryAgent(**values)
        db.add(agent)
        db.commit()
        db.refresh(agent)
        return agent

    return _make


@pytest.fixture
def make_product(db):
    def _make(supplier_name="Emzor Pharma", **overrides):
        supplier = Supplier(company_name=supplier_name) if supplier_name else None
        values = {
            "code": "VV-FHG-001",
            "name": "Fulani Hair Gro",
            "category": "Hair Care",
            "unit_price": 2500,
            "stock_level": 500,
            "min_stock": 20,
            "max_stock": 200,
            "status": "In Stock",
        }
        values.update(overrides)
        product = Product(supplier=supplier, **values)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_role_agent(db):
    def _make(external_id, **overrides):
        values = {
            "agent_name": "Adaeze Okafor",
            "zone": "Lagos",
            "status": "active",
            "compliance_score": 100,
            "created_via_sync": True,
        }
        values.update(overrides)
        role_agent = RoleDeliveryAgent(external_id=external_id, **values)
        db.add(role_agent)
        db.commit()
        db.refresh(role_agent)
        return role_agent

    return _make


@pytest.fixture
def make_bin(db):
    def _make(role_agent, product_sku="VV-FHG-001", **overrides):
        values = {
            "product_name": "Fulani Hair Gro",
            "zone": role_agent.zone,
            "current_stock": 0,
            "max_capacity": 100,
            "bin_status": "active",
            "last_updated": datetime.utcnow(),
        }
        values.update(overrides)
        bin_ = Bin(da_id=role_agent.id, product_sku=product_sku, **values)
        db.add(bin_)
        db.commit()
        db.refresh(bin_)
        return bin_

    return _make


@pytest.fixture
def snapshot():
    """Build an AgentSnapshot from a DeliveryAgent row."""

    def _snapshot(agent, **overrides):
        data = AgentSnapshot.model_validate(agent).model_dump()
        data.update(overrides)
        return AgentSnapshot(**data)

    return _snapshot
