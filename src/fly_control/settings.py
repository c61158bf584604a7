"""Client configuration settings.

FlySettings is the single configuration object accepted by
``FlyClient.from_settings()``. It is a plain dataclass (not env-coupled) so
tests can inject config without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://api.machines.dev/v1"
DEFAULT_TELEMETRY_PREFIX = ("fly",)

RETRY_STRATEGIES = ("safe_transient", "transient", "never")


@dataclass(frozen=True, slots=True)
class FlySettings:
    """Configuration for FlyClient.

    Only ``api_token`` has no usable default.
    """

    # ── Auth ───────────────────────────────────────────────────────
    api_token: str = ""
    """Fly.io API token, sent as a bearer token. Never log this."""

    # ── Transport ──────────────────────────────────────────────────
    base_url: str = DEFAULT_BASE_URL
    """Machines API base URL, including the /v1 prefix."""

    request_timeout: float = 30.0
    """Per-request timeout in seconds."""

    # ── Retry ──────────────────────────────────────────────────────
    retry: str = "safe_transient"
    """One of: safe_transient (GET/HEAD only), transient (any method), never."""

    max_retries: int = 3
    """Retries after the first attempt for transient failures."""

    # ── Telemetry ──────────────────────────────────────────────────
    telemetry_prefix: tuple[str, ...] = DEFAULT_TELEMETRY_PREFIX
    """Prefix for request telemetry event names."""

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.api_token:
            errors.append("api_token is required")
        if not self.base_url.startswith(("http://", "https://")):
            errors.append(f"base_url must be an http(s) URL: {self.base_url!r}")
        if self.retry not in RETRY_STRATEGIES:
            errors.append(
                f"retry must be one of {', '.join(RETRY_STRATEGIES)}: {self.retry!r}"
            )
        if self.max_retries < 0:
            errors.append("max_retries must be >= 0")
        if self.request_timeout <= 0:
            errors.append("request_timeout must be > 0")
        if not self.telemetry_prefix:
            errors.append("telemetry_prefix must not be empty")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> FlySettings:
        """Build settings from environment variables.

        Convenience factory for production use. Tests should construct
        FlySettings directly.
        """
        if env is None:
            env = dict(os.environ)

        prefix_raw = env.get("FLY_TELEMETRY_PREFIX", "")
        prefix = (
            tuple(p for p in prefix_raw.split(".") if p)
            if prefix_raw
            else DEFAULT_TELEMETRY_PREFIX
        )

        return cls(
            api_token=env.get("FLY_API_TOKEN", ""),
            base_url=env.get("FLY_API_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            request_timeout=float(env.get("FLY_REQUEST_TIMEOUT", "30")),
            retry=env.get("FLY_RETRY", "safe_transient"),
            max_retries=int(env.get("FLY_MAX_RETRIES", "3")),
            telemetry_prefix=prefix,
        )
