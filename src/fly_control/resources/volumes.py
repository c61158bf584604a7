"""Volumes API: persistent storage, resizing and snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..validation import require_positive_int, require_str

if TYPE_CHECKING:
    from ..client import FlyClient


class VolumesAPI:
    def __init__(self, client: FlyClient) -> None:
        self._client = client

    def _path(self, app_name: str, volume_id: str | None = None, action: str | None = None) -> str:
        require_str(app_name, "app_name")
        path = f"/apps/{app_name}/volumes"
        if volume_id is not None:
            require_str(volume_id, "volume_id")
            path = f"{path}/{volume_id}"
        if action is not None:
            path = f"{path}/{action}"
        return path

    async def list(self, app_name: str) -> Any:
        return await self._client.request("GET", self._path(app_name))

    async def create(
        self,
        app_name: str,
        name: str,
        region: str,
        size_gb: int,
        **extra: Any,
    ) -> Any:
        """Create a volume.

        Keys in ``extra`` (e.g. ``encrypted``, ``snapshot_retention``) are
        passed through into the request body unchanged.
        """
        path = self._path(app_name)
        require_str(name, "name")
        require_str(region, "region")
        require_positive_int(size_gb, "size_gb")

        payload = {"name": name, "region": region, "size_gb": size_gb, **extra}
        return await self._client.request("POST", path, json=payload)

    async def get(self, app_name: str, volume_id: str) -> Any:
        return await self._client.request("GET", self._path(app_name, volume_id))

    async def update(self, app_name: str, volume_id: str, **fields: Any) -> Any:
        return await self._client.request("POST", self._path(app_name, volume_id), json=fields)

    async def delete(self, app_name: str, volume_id: str) -> Any:
        return await self._client.request("DELETE", self._path(app_name, volume_id))

    async def extend(self, app_name: str, volume_id: str, size_gb: int) -> Any:
        path = self._path(app_name, volume_id, "extend")
        require_positive_int(size_gb, "size_gb")
        return await self._client.request("POST", path, json={"size_gb": size_gb})

    async def list_snapshots(self, app_name: str, volume_id: str) -> Any:
        return await self._client.request("GET", self._path(app_name, volume_id, "snapshots"))

    async def create_snapshot(self, app_name: str, volume_id: str) -> Any:
        return await self._client.request(
            "POST", self._path(app_name, volume_id, "snapshots"), json={}
        )
