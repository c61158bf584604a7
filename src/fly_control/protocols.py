"""Protocol interfaces between the orchestration workflows and the API layer.

The workflows only depend on ResourceOperations, so tests (or another
transport) can supply any object with these coroutine methods.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResourceOperations(Protocol):
    """Single API calls the workflows are built from.

    Each method returns the decoded response body or raises ``FlyError``.
    """

    async def create_app(self, app_name: str, org_slug: str) -> dict[str, Any]:
        """Create an app; the body has a string ``status``."""
        ...

    async def get_app(self, app_name: str) -> dict[str, Any]:
        ...

    async def create_machine(
        self,
        app_name: str,
        config: Mapping[str, Any],
        *,
        region: str | None = None,
    ) -> dict[str, Any]:
        """Create a machine; the body has ``id`` and usually ``instance_id``."""
        ...

    async def get_machine(self, app_name: str, machine_id: str) -> dict[str, Any]:
        """Fetch a machine; the body has a string ``state``."""
        ...

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
        """Server-side blocking wait for ``state``.

        ``request_timeout`` bounds the HTTP call itself, in seconds.
        """
        ...
