"""Machines API: full machine lifecycle management.

``wait()`` wraps the server-side long-poll endpoint
(``GET /apps/{app}/machines/{id}/wait``), which blocks until the machine
reaches a state or the endpoint's own timeout (at most 60 seconds) elapses.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..validation import require_config, require_str

if TYPE_CHECKING:
    from ..client import FlyClient

logger = logging.getLogger(__name__)

# Bounds the wait endpoint accepts for its timeout parameter, in seconds.
WAIT_TIMEOUT_MIN = 1
WAIT_TIMEOUT_MAX = 60

# Extra transport time granted on top of the long-poll timeout.
_WAIT_REQUEST_MARGIN = 5.0


def clamp_wait_timeout(timeout: float) -> int:
    return max(WAIT_TIMEOUT_MIN, min(int(timeout), WAIT_TIMEOUT_MAX))


class MachinesAPI:
    def __init__(self, client: FlyClient) -> None:
        self._client = client

    def _path(self, app_name: str, machine_id: str | None = None, action: str | None = None) -> str:
        path = f"/apps/{app_name}/machines"
        if machine_id is not None:
            path = f"{path}/{machine_id}"
        if action is not None:
            path = f"{path}/{action}"
        return path

    async def list(self, app_name: str) -> Any:
        require_str(app_name, "app_name")
        return await self._client.request("GET", self._path(app_name))

    async def get(self, app_name: str, machine_id: str) -> dict[str, Any]:
        require_str(app_name, "app_name")
        require_str(machine_id, "machine_id")
        return await self._client.request("GET", self._path(app_name, machine_id))

    async def create(
        self,
        app_name: str,
        config: Mapping[str, Any],
        *,
        region: str | None = None,
    ) -> dict[str, Any]:
        """Create a machine from a config payload.

        The response carries the machine ``id`` and, usually, an
        ``instance_id`` identifying this particular version of the machine.
        """
        require_str(app_name, "app_name")
        require_config(config)

        payload: dict[str, Any] = {"config": dict(config)}
        if region:
            payload["region"] = region

        result = await self._client.request("POST", self._path(app_name), json=payload)
        logger.info(
            "Machine created: app=%s id=%s region=%s",
            app_name,
            result.get("id") if isinstance(result, dict) else None,
            region,
            extra={"app_name": app_name},
        )
        return result

    async def update(
        self,
        app_name: str,
        machine_id: str,
        config: Mapping[str, Any],
    ) -> dict[str, Any]:
        require_str(app_name, "app_name")
        require_str(machine_id, "machine_id")
        require_config(config)
        return await self._client.request(
            "POST",
            self._path(app_name, machine_id),
            json={"config": dict(config)},
        )

    async def destroy(self, app_name: str, machine_id: str) -> Any:
        require_str(app_name, "app_name")
        require_str(machine_id, "machine_id")
        return await self._client.request("DELETE", self._path(app_name, machine_id))

    async def start(self, app_name: str, machine_id: str) -> Any:
        return await self._action(app_name, machine_id, "start")

    async def stop(self, app_name: str, machine_id: str) -> Any:
        return await self._action(app_name, machine_id, "stop")

    async def restart(self, app_name: str, machine_id: str) -> Any:
        return await self._action(app_name, machine_id, "restart")

    async def signal(self, app_name: str, machine_id: str, signal: str) -> Any:
        """Send a signal such as "SIGTERM" or "SIGKILL" to the machine."""
        require_str(signal, "signal")
        return await self._action(app_name, machine_id, "signal", json={"signal": signal})

    async def wait(
        self,
        app_name: str,
        machine_id: str,
        *,
        instance_id: str | None = None,
        state: str | None = None,
        timeout: float | None = None,
        request_timeout: float | None = None,
    ) -> Any:
        """Block server-side until the machine reaches ``state``.

        ``timeout`` is clamped to the endpoint's 1..60 second range. Unless
        ``request_timeout`` is given, the HTTP request is given enough time
        to outlive the long-poll.
        """
        require_str(app_name, "app_name")
        require_str(machine_id, "machine_id")

        params: dict[str, Any] = {}
        if instance_id:
            params["instance_id"] = instance_id
        if state:
            params["state"] = state
        if timeout is not None:
            wait_timeout = clamp_wait_timeout(timeout)
            params["timeout"] = wait_timeout
            if request_timeout is None:
                request_timeout = wait_timeout + _WAIT_REQUEST_MARGIN

        return await self._client.request(
            "GET",
            self._path(app_name, machine_id, "wait"),
            params=params,
            timeout=request_timeout,
        )

    async def _action(
        self,
        app_name: str,
        machine_id: str,
        action: str,
        *,
        json: Any | None = None,
    ) -> Any:
        require_str(app_name, "app_name")
        require_str(machine_id, "machine_id")
        return await self._client.request(
            "POST", self._path(app_name, machine_id, action), json=json
        )
