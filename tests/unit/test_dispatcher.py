"""
Tests for the event dispatcher.
"""

from types import SimpleNamespace

from vitalvida.events import (
    AgentUpdatedEvent,
    ComplianceActionEvent,
    EventDispatcher,
    StockAllocatedEvent,
    get_dispatcher,
    set_dispatcher,
)
from vitalvida.events.dispatcher import build_default_dispatcher
from vitalvida.events.schemas import AgentSnapshot
from vitalvida.listeners import SyncAgentToRoleSystem


class RecordingTask:
    """Stands in for a Celery listener task."""

    listener_class = SyncAgentToRoleSystem

    def __init__(self):
        self.calls = []

    def apply_async(self, args=None, queue=None):
        self.calls.append({"args": args, "queue": queue})
        return SimpleNamespace(id=f"task-{len(self.calls)}")


def agent_event():
    return AgentUpdatedEvent(
        agent=AgentSnapshot(id=3, name="Tunde Bakare", location="Surulere"),
        update_type="status_change",
        previous_data={"status": "Active"},
    )


def test_dispatch_enqueues_payload_on_listener_queue():
    task = RecordingTask()
    dispatcher = EventDispatcher()
    dispatcher.subscribe(AgentUpdatedEvent, task)
    event = agent_event()

    task_ids = dispatcher.dispatch(event)

    assert task_ids == ["task-1"]
    call = task.calls[0]
    assert call["queue"] == "high-priority-sync"
    payload = call["args"][0]
    assert payload["event_id"] == event.event_id
    assert payload["agent"]["name"] == "Tunde Bakare"
    assert isinstance(payload["occurred_at"], str)


def test_dispatch_without_listeners_returns_no_ids():
    assert EventDispatcher().dispatch(agent_event()) == []


def test_subscribe_ignores_duplicates():
    task = RecordingTask()
    dispatcher = EventDispatcher()
    dispatcher.subscribe(AgentUpdatedEvent, task)
    dispatcher.subscribe(AgentUpdatedEvent, task)

    assert dispatcher.listeners_for(AgentUpdatedEvent) == [task]
    assert dispatcher.listeners_for(StockAllocatedEvent) == []


def test_payload_parses_back_into_event():
    event = agent_event()
    parsed = SyncAgentToRoleSystem.parse(event.to_payload())

    assert parsed == event


def test_default_dispatcher_wiring():
    from vitalvida.tasks.listeners import (
        handle_compliance_action,
        sync_agent_to_role_system,
        sync_stock_to_bin_system,
    )

    dispatcher = build_default_dispatcher()

    assert dispatcher.listeners_for(AgentUpdatedEvent) == [sync_agent_to_role_system]
    assert dispatcher.listeners_for(StockAllocatedEvent) == [sync_stock_to_bin_system]
    assert dispatcher.listeners_for(ComplianceActionEvent) == [handle_compliance_action]


def test_global_dispatcher_can_be_replaced():
    custom = EventDispatcher()
    set_dispatcher(custom)
    assert get_dispatcher() is custom

    set_dispatcher(None)
    default = get_dispatcher()
    assert default is not custom
    assert default is get_dispatcher()
