"""Create-and-wait workflows built on ``poll_until``.

Both workflows issue exactly one create call and then wait for the new
resource to reach a target state. A failed create is returned as ``Err``
verbatim and no polling happens. Missing required arguments raise
``ValueError`` before any request is sent.

Machines get a two-tier wait: when the created machine carries an
``instance_id`` the server-side wait endpoint is tried first. If it fails
for any reason the workflow falls back to client-side polling; the failure
is not returned to the caller but is visible as a ``wait.fallback``
telemetry event.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Mapping
from typing import Any

from ..client import FlyClient
from ..errors import FlyError
from ..protocols import ResourceOperations
from ..result import Err, Ok, Result
from ..telemetry import WAIT_FALLBACK, WAIT_START, WAIT_STOP, TelemetryBus, default_bus
from ..validation import require_config, require_str
from .backoff import BackoffPolicy
from .operations import FlyOperations
from .poll import Continue, Done, Failed, PollOutcome, poll_until

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_MACHINE_STATE = "started"
APP_ACTIVE_STATUS = "active"

CREATE_APP_OPERATION = "create_app_and_wait"
CREATE_MACHINE_OPERATION = "create_machine_and_wait"

# Smallest budget handed to the fallback poll loop (seconds).
_MIN_POLL_BUDGET = 0.001


def _require_timeout(timeout: float) -> None:
    if timeout is None or timeout <= 0:
        raise ValueError("timeout must be > 0")


def _resolve(
    ops: ResourceOperations | FlyClient,
    telemetry: TelemetryBus | None,
) -> tuple[ResourceOperations, TelemetryBus]:
    if isinstance(ops, FlyClient):
        ops = FlyOperations(ops)
    if telemetry is None:
        telemetry = getattr(ops, "telemetry", None)
    if not isinstance(telemetry, TelemetryBus):
        telemetry = default_bus
    return ops, telemetry


async def create_app_and_wait(
    ops: ResourceOperations | FlyClient,
    *,
    app_name: str,
    org_slug: str,
    timeout: float = DEFAULT_TIMEOUT,
    initial_delay: float | None = None,
    backoff: BackoffPolicy | None = None,
    telemetry: TelemetryBus | None = None,
    rng: random.Random | None = None,
) -> Result[dict[str, Any]]:
    """Create an app and wait until it reports status "active".

    Returns ``Ok(app)`` with the body of the get call that observed the
    active status, or ``Err`` carrying the creation error, the first error
    raised while polling, or a timeout.
    """
    require_str(app_name, "app_name")
    require_str(org_slug, "org_slug")
    _require_timeout(timeout)
    ops, bus = _resolve(ops, telemetry)

    try:
        await ops.create_app(app_name, org_slug)
    except FlyError as e:
        logger.info(
            "App creation failed: name=%s error=%s",
            app_name,
            e.message,
            extra={"app_name": app_name, "status": e.status},
        )
        return Err(e)

    async def check() -> PollOutcome:
        try:
            app = await ops.get_app(app_name)
        except FlyError as e:
            return Failed(e)
        if isinstance(app, Mapping) and app.get("status") == APP_ACTIVE_STATUS:
            return Done(app)
        return Continue("waiting for app to become active")

    return await poll_until(
        check,
        timeout=timeout,
        operation=CREATE_APP_OPERATION,
        error_message="Timeout waiting for app to become active",
        initial_delay=initial_delay,
        backoff=backoff,
        telemetry=bus,
        rng=rng,
    )


async def create_machine_and_wait(
    ops: ResourceOperations | FlyClient,
    *,
    app_name: str,
    config: Mapping[str, Any],
    region: str | None = None,
    state: str = DEFAULT_MACHINE_STATE,
    timeout: float = DEFAULT_TIMEOUT,
    initial_delay: float | None = None,
    backoff: BackoffPolicy | None = None,
    telemetry: TelemetryBus | None = None,
    rng: random.Random | None = None,
) -> Result[Any]:
    """Create a machine and wait until it reaches ``state``.

    Returns ``Ok`` with either the server-side wait response or the machine
    body that first showed the desired state.
    """
    require_str(app_name, "app_name")
    require_config(config)
    require_str(state, "state")
    _require_timeout(timeout)
    ops, bus = _resolve(ops, telemetry)

    try:
        machine = await ops.create_machine(app_name, config, region=region)
    except FlyError as e:
        logger.info(
            "Machine creation failed: app=%s error=%s",
            app_name,
            e.message,
            extra={"app_name": app_name, "status": e.status},
        )
        return Err(e)

    machine_id = machine.get("id") if isinstance(machine, Mapping) else None
    if not machine_id:
        return Err(FlyError(reason="Machine create response did not include an id", body=machine))
    instance_id = machine.get("instance_id")

    fallback = False
    poll_budget = timeout
    if instance_id:
        wait_started = time.monotonic()
        waited = await _server_wait(
            ops, bus, app_name, machine_id, instance_id, state, timeout
        )
        if waited.is_ok:
            return waited
        fallback = True
        # The fallback shares the caller's budget; it still gets one check.
        poll_budget = max(timeout - (time.monotonic() - wait_started), _MIN_POLL_BUDGET)

    return await _poll_machine_state(
        ops,
        bus,
        app_name,
        machine_id,
        state,
        poll_budget,
        fallback=fallback,
        initial_delay=initial_delay,
        backoff=backoff,
        rng=rng,
    )


async def _server_wait(
    ops: ResourceOperations,
    bus: TelemetryBus,
    app_name: str,
    machine_id: str,
    instance_id: str,
    state: str,
    timeout: float,
) -> Result[Any]:
    meta = {"operation": CREATE_MACHINE_OPERATION, "strategy": "server"}
    started = time.monotonic()
    bus.emit(WAIT_START, {}, meta)
    try:
        result = await ops.wait_machine(
            app_name,
            machine_id,
            instance_id=instance_id,
            state=state,
            timeout=timeout,
            # The long-poll may not outlive the caller's budget.
            request_timeout=timeout,
        )
    except FlyError as e:
        bus.emit(
            WAIT_FALLBACK,
            {"duration": time.monotonic() - started},
            {
                "operation": CREATE_MACHINE_OPERATION,
                "status": e.status,
                "reason": e.message,
            },
        )
        logger.info(
            "Server-side wait failed for machine %s (%s); falling back to polling",
            machine_id,
            e.message,
            extra={"app_name": app_name, "machine_id": machine_id},
        )
        return Err(e)

    bus.emit(
        WAIT_STOP,
        {"duration": time.monotonic() - started},
        {**meta, "attempts": 1},
    )
    return Ok(result)


async def _poll_machine_state(
    ops: ResourceOperations,
    bus: TelemetryBus,
    app_name: str,
    machine_id: str,
    state: str,
    timeout: float,
    *,
    fallback: bool,
    initial_delay: float | None,
    backoff: BackoffPolicy | None,
    rng: random.Random | None,
) -> Result[Any]:
    async def check() -> PollOutcome:
        try:
            machine = await ops.get_machine(app_name, machine_id)
        except FlyError as e:
            return Failed(e)
        if isinstance(machine, Mapping) and machine.get("state") == state:
            return Done(machine)
        return Continue(f"waiting for machine to reach state: {state}")

    return await poll_until(
        check,
        timeout=timeout,
        operation=CREATE_MACHINE_OPERATION,
        error_message=f"Timeout waiting for machine to reach state: {state}",
        initial_delay=initial_delay,
        backoff=backoff,
        telemetry=bus,
        metadata={"strategy": "poll", "fallback": fallback},
        rng=rng,
    )
