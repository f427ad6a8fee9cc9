# src/pipeline/events.py - v1
"""Lifecycle events and a synchronous observer bus.

Every phase or run state transition produces exactly one event. Listeners
are called synchronously, in subscription order, at the moment of the
transition, so event order always matches transition order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, get_args

logger = logging.getLogger(__name__)

EventName = Literal[
    "start",
    "phase_start",
    "phase_complete",
    "phase_error",
    "overview_ready",
    "partial_complete",
    "complete",
    "error",
    "cancelled",
]

EVENT_NAMES: frozenset[str] = frozenset(get_args(EventName))


@dataclass(frozen=True)
class LifecycleEvent:
    """One lifecycle notification."""

    name: EventName
    run_id: str
    phase: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[LifecycleEvent], None]


class Subscription:
    """Handle returned by EventBus.subscribe; call to unsubscribe."""

    def __init__(self, bus: EventBus, listener_id: int) -> None:
        self._bus = bus
        self._listener_id = listener_id

    def __call__(self) -> None:
        self._bus._unsubscribe(self._listener_id)


class EventBus:
    """Typed observer registry with synchronous, ordered delivery."""

    def __init__(self) -> None:
        self._listeners: dict[int, tuple[Listener, frozenset[str] | None]] = {}
        self._next_id = 0

    def subscribe(
        self,
        listener: Listener,
        names: Iterable[EventName] | None = None,
    ) -> Subscription:
        """Register a listener, optionally filtered to some event names.

        Raises:
            ValueError: If a filter name is not a known event.
        """
        wanted = frozenset(names) if names is not None else None
        if wanted is not None and not wanted <= EVENT_NAMES:
            raise ValueError(f"Unknown event names: {sorted(wanted - EVENT_NAMES)}")
        listener_id = self._next_id
        self._next_id += 1
        self._listeners[listener_id] = (listener, wanted)
        return Subscription(self, listener_id)

    def emit(self, event: LifecycleEvent) -> None:
        """Deliver an event to every matching listener.

        A failing listener is logged and skipped; it never interrupts the
        run or the remaining listeners.
        """
        logger.debug("Event %s (phase=%s)", event.name, event.phase)
        for listener, wanted in list(self._listeners.values()):
            if wanted is not None and event.name not in wanted:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on event %s", event.name)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _unsubscribe(self, listener_id: int) -> None:
        self._listeners.pop(listener_id, None)
