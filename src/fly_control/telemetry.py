"""In-process telemetry bus.

Events are named by a tuple of segments, e.g.
``("fly", "orchestrator", "wait", "start")``, and carry numeric
measurements plus free-form metadata. Handlers are attached per event name.

emit() is fire-and-forget: with no handlers it does nothing, and a handler
that raises is logged and detached. Telemetry never changes control flow.

Usage::

    from fly_control.telemetry import default_bus

    def on_wait(event):
        print(event.dotted_name, event.measurements, event.metadata)

    default_bus.attach(
        "my-handler",
        [("fly", "orchestrator", "wait", "stop")],
        on_wait,
    )
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

EventName = tuple[str, ...]

WAIT_START: EventName = ("fly", "orchestrator", "wait", "start")
WAIT_STOP: EventName = ("fly", "orchestrator", "wait", "stop")
WAIT_TIMEOUT: EventName = ("fly", "orchestrator", "wait", "timeout")
WAIT_FALLBACK: EventName = ("fly", "orchestrator", "wait", "fallback")

WAIT_EVENTS: tuple[EventName, ...] = (WAIT_START, WAIT_STOP, WAIT_TIMEOUT, WAIT_FALLBACK)


def request_events(prefix: EventName = ("fly",)) -> tuple[EventName, ...]:
    """Event names emitted by FlyClient for a given telemetry prefix."""
    return (
        (*prefix, "request", "start"),
        (*prefix, "request", "stop"),
        (*prefix, "request", "exception"),
    )


@dataclass(frozen=True)
class TelemetryEvent:
    name: EventName
    measurements: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def dotted_name(self) -> str:
        return ".".join(self.name)


TelemetryHandler = Callable[[TelemetryEvent], None]


class TelemetryBus:
    """Registry of telemetry handlers keyed by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, tuple[frozenset[EventName], TelemetryHandler]] = {}

    def attach(
        self,
        handler_id: str,
        event_names: Iterable[EventName],
        handler: TelemetryHandler,
    ) -> None:
        if handler_id in self._handlers:
            raise ValueError(f"telemetry handler already attached: {handler_id}")
        self._handlers[handler_id] = (frozenset(tuple(n) for n in event_names), handler)

    def detach(self, handler_id: str) -> bool:
        """Remove a handler. Returns False if it was not attached."""
        return self._handlers.pop(handler_id, None) is not None

    def handler_ids(self) -> list[str]:
        return list(self._handlers)

    def emit(
        self,
        name: EventName,
        measurements: Mapping[str, float] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        if not self._handlers:
            return

        event = TelemetryEvent(
            name=tuple(name),
            measurements=dict(measurements or {}),
            metadata=dict(metadata or {}),
        )
        for handler_id, (names, handler) in list(self._handlers.items()):
            if event.name not in names:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Telemetry handler %s failed on %s; detaching",
                    handler_id,
                    event.dotted_name,
                )
                self._handlers.pop(handler_id, None)


default_bus = TelemetryBus()
