# tests/core/test_event_bus.py
from unittest.mock import MagicMock

from a11y_auditor.managers.event_manager import COMPLETE, START, AuditEventBus


def test_subscribe_filters_by_event_and_unsubscribes():
    bus = AuditEventBus()
    listener = MagicMock()
    unsubscribe = bus.subscribe(listener, [START])

    bus.emit(START, {"url": "x"})
    bus.emit(COMPLETE, None)
    unsubscribe()
    bus.emit(START, {"url": "y"})

    listener.assert_called_once_with(START, {"url": "x"})
    assert len(bus) == 0


def test_failing_listener_does_not_block_others():
    bus = AuditEventBus()
    broken = MagicMock(side_effect=RuntimeError("listener bug"))
    healthy = MagicMock()
    bus.subscribe(broken)
    bus.subscribe(healthy)

    bus.emit(COMPLETE, "payload")

    healthy.assert_called_once_with(COMPLETE, "payload")
