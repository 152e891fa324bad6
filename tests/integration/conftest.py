"""
Integration test fixtures
"""

import pytest
from fastapi.testclient import TestClient

from vitalvida.api.main import create_app
from vitalvida.events.dispatcher import EventDispatcher, set_dispatcher


class RecordingDispatcher(EventDispatcher):
    """Keeps dispatched events instead of queueing Celery tasks."""

    def __init__(self):
        super().__init__()
        self.events = []

    def dispatch(self, event):
        self.events.append(event)
        return [f"task-{len(self.events)}"]


class FailingDispatcher(EventDispatcher):
    def dispatch(self, event):
        raise ConnectionError("broker unreachable")


@pytest.fixture
def dispatcher():
    dispatcher = RecordingDispatcher()
    set_dispatcher(dispatcher)
    return dispatcher


@pytest.fixture
def failing_dispatcher():
    dispatcher = FailingDispatcher()
    set_dispatcher(dispatcher)
    return dispatcher


@pytest.fixture
def client(session_factory, cache, dispatcher):
    """API client backed by the in-memory database and fake Redis."""
    app = create_app()
    with TestClient(app) as client:
        yield client
