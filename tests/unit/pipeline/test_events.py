# tests/unit/pipeline/test_events.py - v1
"""Tests for pipeline/events.py - EventBus delivery rules."""

from __future__ import annotations

import logging

import pytest

from assessflow.pipeline.events import EVENT_NAMES, EventBus, LifecycleEvent


def _event(name: str = "start", phase: str | None = None) -> LifecycleEvent:
    return LifecycleEvent(name=name, run_id="r1", phase=phase)


class TestEventBus:
    def test_event_names(self):
        assert "overview_ready" in EVENT_NAMES
        assert len(EVENT_NAMES) == 9

    def test_delivery_in_subscription_order(self):
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe(lambda e: calls.append("first"))
        bus.subscribe(lambda e: calls.append("second"))
        bus.emit(_event())
        assert calls == ["first", "second"]

    def test_filter_by_name(self):
        bus = EventBus()
        seen: list[str] = []
        bus.subscribe(lambda e: seen.append(e.name), names=["complete"])
        bus.emit(_event("start"))
        bus.emit(_event("complete"))
        assert seen == ["complete"]

    def test_unknown_filter_rejected(self):
        with pytest.raises(ValueError, match="Unknown event names"):
            EventBus().subscribe(lambda e: None, names=["finished"])

    def test_unsubscribe(self):
        bus = EventBus()
        seen: list[str] = []
        unsubscribe = bus.subscribe(lambda e: seen.append(e.name))
        unsubscribe()
        unsubscribe()
        bus.emit(_event())
        assert seen == []
        assert bus.listener_count == 0

    def test_failing_listener_isolated(self, caplog):
        bus = EventBus()
        seen: list[str] = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(broken)
        bus.subscribe(lambda e: seen.append(e.name))
        with caplog.at_level(logging.ERROR):
            bus.emit(_event("phase_start", phase="team"))
        assert seen == ["phase_start"]
        assert "Listener failed on event phase_start" in caplog.text

    def test_unsubscribe_during_delivery(self):
        bus = EventBus()
        seen: list[str] = []
        handles = []

        def once(event):
            seen.append("once")
            handles[0]()

        handles.append(bus.subscribe(once))
        bus.subscribe(lambda e: seen.append("always"))
        bus.emit(_event())
        bus.emit(_event())
        assert seen == ["once", "always", "always"]
