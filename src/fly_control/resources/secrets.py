"""Secrets API. Secret values are never logged."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..validation import require_str

if TYPE_CHECKING:
    from ..client import FlyClient


class SecretsAPI:
    def __init__(self, client: FlyClient) -> None:
        self._client = client

    async def list(self, app_name: str) -> Any:
        require_str(app_name, "app_name")
        return await self._client.request("GET", f"/apps/{app_name}/secrets")

    async def create(self, app_name: str, label: str, type: str, value: str) -> Any:
        require_str(app_name, "app_name")
        require_str(label, "label")
        require_str(type, "type")
        require_str(value, "value")
        return await self._client.request(
            "POST",
            f"/apps/{app_name}/secrets",
            json={"label": label, "type": type, "value": value},
        )

    async def generate(self, app_name: str, label: str, type: str) -> Any:
        """Have the platform generate a random value for the secret."""
        require_str(app_name, "app_name")
        require_str(label, "label")
        require_str(type, "type")
        return await self._client.request(
            "POST",
            f"/apps/{app_name}/secrets/generate",
            json={"label": label, "type": type},
        )

    async def destroy(self, app_name: str, label: str) -> Any:
        require_str(app_name, "app_name")
        require_str(label, "label")
        return await self._client.request("DELETE", f"/apps/{app_name}/secrets/{label}")
