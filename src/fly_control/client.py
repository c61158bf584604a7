"""Async HTTP client for the Fly.io Machines API.

Provides a single ``request()`` primitive plus bound resource APIs
(apps, machines, secrets, volumes). Auth uses a static bearer token.
Includes exponential backoff with jitter for transient errors and
Retry-After header respect for 429 responses. Every request emits
``<prefix>.request.start`` / ``stop`` / ``exception`` telemetry.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any

import httpx

from . import __version__
from .errors import FlyError, FlyTransportError
from .resources.apps import AppsAPI
from .resources.machines import MachinesAPI
from .resources.secrets import SecretsAPI
from .resources.volumes import VolumesAPI
from .settings import DEFAULT_BASE_URL, DEFAULT_TELEMETRY_PREFIX, RETRY_STRATEGIES, FlySettings
from .telemetry import TelemetryBus, default_bus

logger = logging.getLogger(__name__)

# Status codes eligible for automatic retry.
_RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Methods retried under the "safe_transient" strategy.
_SAFE_METHODS = frozenset({"GET", "HEAD"})

# Default retry configuration.
_DEFAULT_MAX_RETRIES = 3
_DEFAULT_BASE_DELAY = 1.0  # seconds
_DEFAULT_MAX_DELAY = 30.0  # seconds

USER_AGENT = f"fly-control/{__version__}"


# ── Client ───────────────────────────────────────────────────────


class FlyClient:
    """Async HTTP client for the Fly.io Machines API.

    All calls authenticate via a static bearer token. Safe to share across
    concurrent tasks; it holds no per-call state.
    """

    def __init__(
        self,
        *,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
        retry: str = "safe_transient",
        max_retries: int = _DEFAULT_MAX_RETRIES,
        base_delay: float = _DEFAULT_BASE_DELAY,
        max_delay: float = _DEFAULT_MAX_DELAY,
        telemetry: TelemetryBus | None = None,
        telemetry_prefix: tuple[str, ...] = DEFAULT_TELEMETRY_PREFIX,
    ) -> None:
        if not api_token:
            raise ValueError("api_token is required")
        if retry not in RETRY_STRATEGIES:
            raise ValueError(f"retry must be one of {', '.join(RETRY_STRATEGIES)}")

        self._api_token = api_token
        self._base_url = base_url.rstrip("/")
        # An injected client belongs to the caller; only a private one is closed here.
        self._owns_client = http_client is None
        self._client = http_client if http_client is not None else httpx.AsyncClient()
        self._timeout = float(timeout_seconds)
        self._retry = retry
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._telemetry = telemetry if telemetry is not None else default_bus
        self._telemetry_prefix = tuple(telemetry_prefix)

        self._apps = AppsAPI(self)
        self._machines = MachinesAPI(self)
        self._secrets = SecretsAPI(self)
        self._volumes = VolumesAPI(self)

    @classmethod
    def from_settings(
        cls,
        settings: FlySettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        telemetry: TelemetryBus | None = None,
    ) -> FlyClient:
        errors = settings.validate()
        if errors:
            raise ValueError("; ".join(errors))
        return cls(
            api_token=settings.api_token,
            base_url=settings.base_url,
            http_client=http_client,
            timeout_seconds=settings.request_timeout,
            retry=settings.retry,
            max_retries=settings.max_retries,
            telemetry=telemetry,
            telemetry_prefix=settings.telemetry_prefix,
        )

    # ── Accessors ────────────────────────────────────────────────

    @property
    def telemetry(self) -> TelemetryBus:
        return self._telemetry

    @property
    def apps(self) -> AppsAPI:
        return self._apps

    @property
    def machines(self) -> MachinesAPI:
        return self._machines

    @property
    def secrets(self) -> SecretsAPI:
        return self._secrets

    @property
    def volumes(self) -> VolumesAPI:
        return self._volumes

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> FlyClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ── Transport ────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_token}",
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }

    def _should_retry(self, method: str) -> bool:
        if self._retry == "never":
            return False
        if self._retry == "safe_transient":
            return method in _SAFE_METHODS
        return True

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send one API call and return the decoded body.

        Raises FlyError (FlyNotFoundError for 404) on non-2xx responses and
        FlyTransportError when no response was received.
        """
        method = method.upper()
        url = f"{self._base_url}{path}"
        metadata: dict[str, Any] = {"method": method, "url": url}

        started = time.monotonic()
        self._telemetry.emit(
            (*self._telemetry_prefix, "request", "start"),
            {"system_time": time.time()},
            metadata,
        )

        try:
            resp = await self._request_with_retry(
                method, url, params=params, json=json, timeout=timeout
            )
            if resp.status_code >= 400:
                raise FlyError.from_response(resp, method=method, url=url)
        except FlyError as e:
            self._telemetry.emit(
                (*self._telemetry_prefix, "request", "exception"),
                {"duration": time.monotonic() - started},
                {**metadata, "status": e.status, "error": e.message},
            )
            raise

        self._telemetry.emit(
            (*self._telemetry_prefix, "request", "stop"),
            {"duration": time.monotonic() - started},
            {**metadata, "status": resp.status_code},
        )
        return _decode_success(resp)

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential backoff retry for transient errors."""
        headers = self._headers()
        max_retries = self._max_retries if self._should_retry(method) else 0
        request_timeout = self._timeout if timeout is None else float(timeout)

        for attempt in range(max_retries + 1):
            try:
                resp = await self._client.request(
                    method,
                    url,
                    headers=headers,
                    json=json,
                    params=params,
                    timeout=request_timeout,
                )
            except httpx.HTTPError as e:
                if attempt < max_retries:
                    delay = self._backoff_delay(attempt)
                    logger.warning(
                        "Fly request %s %s failed: %s (attempt %d/%d), retrying in %.1fs",
                        method,
                        url,
                        type(e).__name__,
                        attempt + 1,
                        max_retries + 1,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise FlyError.from_exception(e, method=method, url=url) from e

            if resp.status_code not in _RETRYABLE_STATUS_CODES or attempt >= max_retries:
                return resp

            delay = self._retry_after_delay(resp, attempt)
            logger.warning(
                "Fly %s %s returned %d (attempt %d/%d), retrying in %.1fs",
                method,
                url,
                resp.status_code,
                attempt + 1,
                max_retries + 1,
                delay,
                extra={"request_id": resp.headers.get("fly-request-id")},
            )
            await asyncio.sleep(delay)

        # Unreachable: the last attempt always returns or raises.
        raise FlyTransportError(reason="exhausted retries with no response", method=method, url=url)

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with full jitter."""
        delay = min(self._base_delay * (2 ** attempt), self._max_delay)
        return random.uniform(0, delay)

    def _retry_after_delay(self, resp: httpx.Response, attempt: int) -> float:
        """Use Retry-After header if present, otherwise exponential backoff."""
        retry_after = resp.headers.get("retry-after")
        if retry_after:
            try:
                return min(max(float(retry_after), 0.1), self._max_delay)
            except ValueError:
                pass
        return self._backoff_delay(attempt)


def _decode_success(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text
