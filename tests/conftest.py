"""Pytest configuration for fly_control tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from fly_control.telemetry import WAIT_EVENTS, TelemetryBus, request_events


class EventRecorder:
    """Collects telemetry events emitted on a bus."""

    def __init__(self, bus: TelemetryBus) -> None:
        self.events = []
        bus.attach('test-recorder', [*WAIT_EVENTS, *request_events()], self.events.append)

    def names(self):
        return [e.dotted_name for e in self.events]

    def named(self, dotted_name):
        return [e for e in self.events if e.dotted_name == dotted_name]


@pytest.fixture
def bus():
    """A private telemetry bus so tests never share handlers."""
    return TelemetryBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)
