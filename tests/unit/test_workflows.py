"""Unit tests for create_app_and_wait and create_machine_and_wait.

Workflows are driven through a mocked ResourceOperations; the last section
runs them end to end through FlyClient with a mocked httpx transport.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from fly_control.client import FlyClient
from fly_control.errors import FlyError, FlyNotFoundError, FlyPollTimeoutError
from fly_control.orchestrator.workflows import create_app_and_wait, create_machine_and_wait
from fly_control.protocols import ResourceOperations
from fly_control.result import Err, Ok

FAST = 0.001

MACHINE_CONFIG = {
    "image": "flyio/hellofly:latest",
    "guest": {"cpus": 1, "memory_mb": 256},
}


def _app(status: str) -> dict:
    return {
        "id": "app-123",
        "name": "test-app",
        "status": status,
        "organization": {"slug": "test-org"},
    }


def _machine(state: str, *, instance_id: str | None = "01H3JK") -> dict:
    machine = {"id": "148ed123456789", "state": state, "config": MACHINE_CONFIG}
    if instance_id is not None:
        machine["instance_id"] = instance_id
    return machine


@pytest.fixture
def ops():
    return AsyncMock(spec=ResourceOperations)


# ── create_app_and_wait ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_app_immediately_active(ops, bus):
    ops.create_app.return_value = _app("active")
    ops.get_app.return_value = _app("active")

    result = await create_app_and_wait(
        ops, app_name="test-app", org_slug="test-org", initial_delay=FAST, telemetry=bus
    )

    assert isinstance(result, Ok)
    assert result.value["status"] == "active"
    ops.create_app.assert_awaited_once_with("test-app", "test-org")
    ops.get_app.assert_awaited_once_with("test-app")


@pytest.mark.asyncio
async def test_app_becomes_active_after_polling(ops, bus, recorder):
    ops.create_app.return_value = _app("pending")
    ops.get_app.side_effect = [_app("pending"), _app("pending"), _app("active")]

    result = await create_app_and_wait(
        ops,
        app_name="test-app",
        org_slug="test-org",
        timeout=5,
        initial_delay=FAST,
        telemetry=bus,
    )

    assert result.unwrap()["status"] == "active"
    assert ops.get_app.await_count == 3
    stop = recorder.named("fly.orchestrator.wait.stop")[0]
    assert stop.metadata["operation"] == "create_app_and_wait"
    assert stop.metadata["attempts"] == 3


@pytest.mark.asyncio
async def test_app_never_active_times_out(ops, bus, recorder):
    ops.create_app.return_value = _app("pending")
    ops.get_app.return_value = _app("pending")

    result = await create_app_and_wait(
        ops,
        app_name="test-app",
        org_slug="test-org",
        timeout=0.05,
        initial_delay=FAST,
        telemetry=bus,
    )

    assert isinstance(result, Err)
    assert isinstance(result.error, FlyPollTimeoutError)
    assert result.error.reason == "Timeout waiting for app to become active"
    timeout_event = recorder.named("fly.orchestrator.wait.timeout")[0]
    assert timeout_event.metadata["reason"] == "Timeout waiting for app to become active"
    assert timeout_event.metadata["attempts"] == ops.get_app.await_count


@pytest.mark.asyncio
async def test_app_creation_error_returned_without_polling(ops, bus, recorder):
    ops.create_app.side_effect = FlyError(
        status=422, code="invalid_name", reason="App name is invalid"
    )

    result = await create_app_and_wait(
        ops, app_name="invalid name", org_slug="test-org", initial_delay=FAST, telemetry=bus
    )

    assert isinstance(result, Err)
    assert result.error.status == 422
    assert result.error.code == "invalid_name"
    ops.get_app.assert_not_awaited()
    assert recorder.events == []


@pytest.mark.asyncio
async def test_app_get_error_stops_polling(ops, bus):
    ops.create_app.return_value = _app("pending")
    gone = FlyNotFoundError(status=404, reason="App not found")
    ops.get_app.side_effect = [_app("pending"), gone, _app("active")]

    result = await create_app_and_wait(
        ops, app_name="test-app", org_slug="test-org", initial_delay=FAST, telemetry=bus
    )

    assert result == Err(gone)
    assert ops.get_app.await_count == 2


@pytest.mark.asyncio
async def test_app_required_arguments_validated_before_any_call(ops):
    with pytest.raises(ValueError, match="app_name is required"):
        await create_app_and_wait(ops, app_name="", org_slug="test-org")

    with pytest.raises(ValueError, match="org_slug is required"):
        await create_app_and_wait(ops, app_name="test-app", org_slug=None)

    with pytest.raises(ValueError, match="timeout"):
        await create_app_and_wait(ops, app_name="test-app", org_slug="test-org", timeout=0)

    ops.create_app.assert_not_awaited()


# ── create_machine_and_wait ──────────────────────────────────────


@pytest.mark.asyncio
async def test_machine_server_wait_success_skips_polling(ops, bus, recorder):
    ops.create_machine.return_value = _machine("created")
    ops.wait_machine.return_value = {"ok": True}

    result = await create_machine_and_wait(
        ops, app_name="my-app", config=MACHINE_CONFIG, telemetry=bus
    )

    assert result == Ok({"ok": True})
    ops.wait_machine.assert_awaited_once_with(
        "my-app",
        "148ed123456789",
        instance_id="01H3JK",
        state="started",
        timeout=60.0,
        request_timeout=60.0,
    )
    ops.get_machine.assert_not_awaited()
    assert recorder.names() == [
        "fly.orchestrator.wait.start",
        "fly.orchestrator.wait.stop",
    ]
    assert recorder.events[1].metadata["strategy"] == "server"


@pytest.mark.asyncio
async def test_machine_server_wait_failure_falls_back_to_polling(ops, bus, recorder):
    ops.create_machine.return_value = _machine("created")
    ops.wait_machine.side_effect = FlyError(status=500, reason="internal error")
    ops.get_machine.side_effect = [_machine("starting"), _machine("started")]

    result = await create_machine_and_wait(
        ops,
        app_name="my-app",
        config=MACHINE_CONFIG,
        timeout=5,
        initial_delay=FAST,
        telemetry=bus,
    )

    assert isinstance(result, Ok)
    assert result.value["state"] == "started"
    assert ops.get_machine.await_count == 2
    ops.get_machine.assert_awaited_with("my-app", "148ed123456789")

    fallback = recorder.named("fly.orchestrator.wait.fallback")[0]
    assert fallback.metadata["status"] == 500
    assert fallback.metadata["operation"] == "create_machine_and_wait"
    stop = recorder.named("fly.orchestrator.wait.stop")[0]
    assert stop.metadata == {
        "operation": "create_machine_and_wait",
        "strategy": "poll",
        "fallback": True,
        "attempts": 2,
    }


@pytest.mark.asyncio
async def test_machine_without_instance_id_polls_directly(ops, bus, recorder):
    ops.create_machine.return_value = _machine("created", instance_id=None)
    ops.get_machine.return_value = _machine("started", instance_id=None)

    result = await create_machine_and_wait(
        ops, app_name="my-app", config=MACHINE_CONFIG, initial_delay=FAST, telemetry=bus
    )

    assert result.unwrap()["state"] == "started"
    ops.wait_machine.assert_not_awaited()
    assert recorder.named("fly.orchestrator.wait.stop")[0].metadata["fallback"] is False


@pytest.mark.asyncio
async def test_machine_empty_instance_id_polls_directly(ops, bus):
    ops.create_machine.return_value = _machine("created", instance_id="")
    ops.get_machine.return_value = _machine("started")

    result = await create_machine_and_wait(
        ops, app_name="my-app", config=MACHINE_CONFIG, initial_delay=FAST, telemetry=bus
    )

    assert isinstance(result, Ok)
    ops.wait_machine.assert_not_awaited()


@pytest.mark.asyncio
async def test_machine_custom_state_and_region(ops, bus):
    ops.create_machine.return_value = _machine("created", instance_id=None)
    ops.get_machine.side_effect = [_machine("started"), _machine("stopped")]

    result = await create_machine_and_wait(
        ops,
        app_name="my-app",
        config=MACHINE_CONFIG,
        region="sjc",
        state="stopped",
        initial_delay=FAST,
        telemetry=bus,
    )

    assert result.unwrap()["state"] == "stopped"
    ops.create_machine.assert_awaited_once_with("my-app", MACHINE_CONFIG, region="sjc")


@pytest.mark.asyncio
async def test_machine_timeout_names_desired_state(ops, bus):
    ops.create_machine.return_value = _machine("created", instance_id=None)
    ops.get_machine.return_value = _machine("started")

    result = await create_machine_and_wait(
        ops,
        app_name="my-app",
        config=MACHINE_CONFIG,
        state="stopped",
        timeout=0.05,
        initial_delay=FAST,
        telemetry=bus,
    )

    assert isinstance(result.error, FlyPollTimeoutError)
    assert result.error.reason == "Timeout waiting for machine to reach state: stopped"


@pytest.mark.asyncio
async def test_machine_creation_error_returned_without_waiting(ops, bus):
    ops.create_machine.side_effect = FlyError(
        status=422, code="invalid_config", reason="image is required"
    )

    result = await create_machine_and_wait(
        ops, app_name="my-app", config=MACHINE_CONFIG, telemetry=bus
    )

    assert result.error.status == 422
    assert result.error.code == "invalid_config"
    ops.wait_machine.assert_not_awaited()
    ops.get_machine.assert_not_awaited()


@pytest.mark.asyncio
async def test_machine_get_error_during_fallback_is_returned(ops, bus):
    ops.create_machine.return_value = _machine("created")
    ops.wait_machine.side_effect = FlyError(status=408, reason="deadline exceeded")
    destroyed = FlyNotFoundError(status=404, reason="machine not found")
    ops.get_machine.side_effect = destroyed

    result = await create_machine_and_wait(
        ops, app_name="my-app", config=MACHINE_CONFIG, initial_delay=FAST, telemetry=bus
    )

    # The poll error surfaces, not the server-side wait error.
    assert result.error is destroyed


@pytest.mark.asyncio
async def test_machine_create_response_without_id_is_an_error(ops, bus):
    ops.create_machine.return_value = {"state": "created"}

    result = await create_machine_and_wait(
        ops, app_name="my-app", config=MACHINE_CONFIG, telemetry=bus
    )

    assert isinstance(result, Err)
    assert "did not include an id" in result.error.reason
    ops.get_machine.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"app_name": "", "config": MACHINE_CONFIG}, "app_name is required"),
        ({"app_name": "my-app", "config": None}, "config is required"),
        ({"app_name": "my-app", "config": {}}, "config must be a non-empty mapping"),
        ({"app_name": "my-app", "config": ["image"]}, "config must be a non-empty mapping"),
        ({"app_name": "my-app", "config": MACHINE_CONFIG, "state": ""}, "state is required"),
    ],
)
async def test_machine_arguments_validated_before_any_call(ops, kwargs, message):
    with pytest.raises(ValueError, match=message):
        await create_machine_and_wait(ops, **kwargs)

    ops.create_machine.assert_not_awaited()


# ── Through FlyClient ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_app_and_wait_through_client(bus, recorder):
    mock_http = AsyncMock()
    mock_http.request = AsyncMock(
        side_effect=[
            httpx.Response(201, json=_app("pending")),
            httpx.Response(200, json=_app("pending")),
            httpx.Response(200, json=_app("active")),
        ]
    )
    client = FlyClient(api_token="test_token", http_client=mock_http, telemetry=bus)

    result = await create_app_and_wait(
        client, app_name="test-app", org_slug="test-org", timeout=5, initial_delay=FAST
    )

    assert result.unwrap()["status"] == "active"
    methods = [c.args[0] for c in mock_http.request.call_args_list]
    assert methods == ["POST", "GET", "GET"]
    # Telemetry defaults to the client's bus.
    assert "fly.orchestrator.wait.stop" in recorder.names()


@pytest.mark.asyncio
async def test_create_machine_and_wait_through_client_falls_back(bus):
    mock_http = AsyncMock()
    mock_http.request = AsyncMock(
        side_effect=[
            httpx.Response(200, json=_machine("created")),
            httpx.Response(500, json={"error": "internal", "message": "wait unavailable"}),
            httpx.Response(200, json=_machine("started")),
        ]
    )
    client = FlyClient(
        api_token="test_token", http_client=mock_http, telemetry=bus, retry="never"
    )

    result = await create_machine_and_wait(
        client, app_name="my-app", config=MACHINE_CONFIG, timeout=5, initial_delay=FAST
    )

    assert result.unwrap()["state"] == "started"
    urls = [c.args[1] for c in mock_http.request.call_args_list]
    assert urls[0].endswith("/apps/my-app/machines")
    assert urls[1].endswith("/apps/my-app/machines/148ed123456789/wait")
    assert urls[2].endswith("/apps/my-app/machines/148ed123456789")
    wait_params = mock_http.request.call_args_list[1].kwargs["params"]
    assert wait_params == {"instance_id": "01H3JK", "state": "started", "timeout": 5}
    # The long-poll request is bounded by the workflow budget, not budget + margin.
    assert mock_http.request.call_args_list[1].kwargs["timeout"] == 5.0


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout", [0.5, 3, 60.0])
async def test_server_wait_transport_timeout_within_workflow_budget(bus, timeout):
    mock_http = AsyncMock()
    mock_http.request = AsyncMock(
        side_effect=[
            httpx.Response(200, json=_machine("created", instance_id="i1")),
            httpx.Response(200, json={"ok": True}),
        ]
    )
    client = FlyClient(api_token="test_token", http_client=mock_http, telemetry=bus)

    result = await create_machine_and_wait(
        client, app_name="my-app", config=MACHINE_CONFIG, timeout=timeout
    )

    assert result == Ok({"ok": True})
    wait_call = mock_http.request.call_args_list[1]
    assert wait_call.args[1].endswith("/wait")
    assert wait_call.kwargs["timeout"] <= timeout
    assert 1 <= wait_call.kwargs["params"]["timeout"] <= 60
