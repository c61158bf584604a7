"""Async client and provisioning workflows for the Fly.io Machines API.

Quick start::

    from fly_control import FlyClient, FlySettings, create_machine_and_wait

    async with FlyClient.from_settings(FlySettings.from_env()) as fly:
        result = await create_machine_and_wait(
            fly,
            app_name="my-app",
            config={"image": "flyio/hellofly:latest"},
            timeout=90,
        )
        machine = result.unwrap()
"""

__version__ = "0.1.0"

from .client import FlyClient
from .errors import FlyError, FlyNotFoundError, FlyPollTimeoutError, FlyTransportError
from .orchestrator import (
    BackoffPolicy,
    Continue,
    Done,
    Failed,
    FlyOperations,
    create_app_and_wait,
    create_machine_and_wait,
    poll_until,
)
from .protocols import ResourceOperations
from .result import Err, Ok, Result
from .settings import FlySettings
from .telemetry import TelemetryBus, TelemetryEvent, default_bus

__all__ = [
    "BackoffPolicy",
    "Continue",
    "Done",
    "Err",
    "Failed",
    "FlyClient",
    "FlyError",
    "FlyNotFoundError",
    "FlyOperations",
    "FlyPollTimeoutError",
    "FlySettings",
    "FlyTransportError",
    "Ok",
    "ResourceOperations",
    "Result",
    "TelemetryBus",
    "TelemetryEvent",
    "__version__",
    "create_app_and_wait",
    "create_machine_and_wait",
    "default_bus",
    "poll_until",
]
