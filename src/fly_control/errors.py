"""Fly Machines API error hierarchy.

Every failure a caller can observe is a ``FlyError``: remote errors built
from a non-2xx response, transport failures, and the timeout synthesized by
the poll loop. At least one of ``status``, ``code`` and ``reason`` is always
populated.
"""

from __future__ import annotations

from typing import Any

import httpx

REQUEST_ID_HEADER = "fly-request-id"


class FlyError(Exception):
    """Base error for Fly Machines API operations."""

    def __init__(
        self,
        *,
        status: int | None = None,
        code: str | None = None,
        reason: str | None = None,
        request_id: str | None = None,
        body: Any = None,
        method: str | None = None,
        url: str | None = None,
    ) -> None:
        if status is None and not code and not reason:
            reason = "Unknown error"
        self.status = status
        self.code = code
        self.reason = reason
        self.request_id = request_id
        self.body = body
        self.method = method
        self.url = url
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.status is not None and self.reason:
            return f"[{self.status}] {self.reason}"
        if self.status is not None and self.code:
            return f"[{self.status}] {self.code}"
        if self.reason:
            return self.reason
        if self.status is not None:
            return f"HTTP {self.status}"
        return self.code or "Unknown error"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status={self.status!r}, code={self.code!r}, "
            f"reason={self.reason!r}, request_id={self.request_id!r})"
        )

    @classmethod
    def from_response(
        cls,
        resp: httpx.Response,
        *,
        method: str | None = None,
        url: str | None = None,
    ) -> FlyError:
        """Build the error for a non-2xx response.

        404 responses produce ``FlyNotFoundError``.
        """
        body = _decode_body(resp)
        code, reason = _extract_error_details(body)
        error_cls = FlyNotFoundError if resp.status_code == 404 else cls
        return error_cls(
            status=resp.status_code,
            code=code,
            reason=reason,
            request_id=resp.headers.get(REQUEST_ID_HEADER),
            body=body,
            method=method.upper() if method else None,
            url=url,
        )

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        *,
        method: str | None = None,
        url: str | None = None,
    ) -> FlyTransportError:
        """Wrap a transport-level exception (no HTTP response was received)."""
        return FlyTransportError(
            reason=str(exc) or type(exc).__name__,
            method=method.upper() if method else None,
            url=url,
        )


class FlyNotFoundError(FlyError):
    """Resource not found (404)."""


class FlyTransportError(FlyError):
    """The request never produced a response (connect error, read timeout, ...)."""


class FlyPollTimeoutError(FlyError):
    """A polling loop ran out of time before its condition held."""

    def __init__(self, reason: str = "Timeout waiting for condition", *, attempts: int = 0) -> None:
        super().__init__(reason=reason)
        self.attempts = attempts


def _decode_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _extract_error_details(body: Any) -> tuple[str | None, str | None]:
    if isinstance(body, dict):
        code = body.get("error") or body.get("code")
        reason = body.get("message") or body.get("error") or body.get("reason")
        return _as_str(code), _as_str(reason)
    if isinstance(body, str) and body:
        return None, body[:500]
    return None, None


def _as_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)
