"""Apps API: list, create, inspect and destroy Fly apps."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..validation import require_str

if TYPE_CHECKING:
    from ..client import FlyClient

logger = logging.getLogger(__name__)


class AppsAPI:
    def __init__(self, client: FlyClient) -> None:
        self._client = client

    async def list(self, org_slug: str | None = None) -> Any:
        """List apps, optionally filtered by organization slug."""
        params: dict[str, str] = {}
        if org_slug:
            params["org_slug"] = org_slug
        return await self._client.request("GET", "/apps", params=params)

    async def create(self, app_name: str, org_slug: str) -> dict[str, Any]:
        """Create an app. The returned status is usually not yet "active"."""
        require_str(app_name, "app_name")
        require_str(org_slug, "org_slug")

        result = await self._client.request(
            "POST",
            "/apps",
            json={"app_name": app_name, "org_slug": org_slug},
        )
        logger.info(
            "App created: name=%s org=%s",
            app_name,
            org_slug,
            extra={"app_name": app_name, "org_slug": org_slug},
        )
        return result

    async def get(self, app_name: str) -> dict[str, Any]:
        require_str(app_name, "app_name")
        return await self._client.request("GET", f"/apps/{app_name}")

    async def destroy(self, app_name: str) -> Any:
        require_str(app_name, "app_name")
        result = await self._client.request("DELETE", f"/apps/{app_name}")
        logger.info("App destroyed: name=%s", app_name, extra={"app_name": app_name})
        return result
