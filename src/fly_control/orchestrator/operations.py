"""ResourceOperations backed by a FlyClient."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..client import FlyClient
from ..telemetry import TelemetryBus


class FlyOperations:
    """Adapts FlyClient's resource APIs to the ResourceOperations protocol."""

    def __init__(self, client: FlyClient) -> None:
        self._client = client

    @property
    def telemetry(self) -> TelemetryBus:
        return self._client.telemetry

    async def create_app(self, app_name: str, org_slug: str) -> dict[str, Any]:
        return await self._client.apps.create(app_name, org_slug)

    async def get_app(self, app_name: str) -> dict[str, Any]:
        return await self._client.apps.get(app_name)

    async def create_machine(
        self,
        app_name: str,
        config: Mapping[str, Any],
        *,
        region: str | None = None,
    ) -> dict[str, Any]:
        return await self._client.machines.create(app_name, config, region=region)

    async def get_machine(self, app_name: str, machine_id: str) -> dict[str, Any]:
        return await self._client.machines.get(app_name, machine_id)

    async def wait_machine(
        self,
        app_name: str,
        machine_id: str,
        *,
        instance_id: str | None = None,
        state: str | None = None,
        timeout: float | None = None,
        request_timeout: float | None = None,
    ) -> Any:
        return await self._client.machines.wait(
            app_name,
            machine_id,
            instance_id=instance_id,
            state=state,
            timeout=timeout,
            request_timeout=request_timeout,
        )
