"""Structured logging configuration for fly-control.

Configures structlog for JSON-formatted logging and routes the library's
stdlib ``logging`` records through the same renderer, so application and
library lines come out in one format.

Usage::

    from fly_control.observability.logging import attach_log_handler, configure_logging

    configure_logging()   # Call once at startup
    attach_log_handler()  # Log every telemetry event
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from ..telemetry import WAIT_EVENTS, TelemetryBus, TelemetryEvent, default_bus, request_events

LOG_HANDLER_ID = "fly_control.observability.logging"

_configured = False


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
            Defaults to LOG_LEVEL env var or INFO.
        json_output: If True, emit JSON lines. If False, emit
            human-readable console output. Defaults to LOG_FORMAT
            env var == "json" (the default).
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy libraries.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _reset_for_tests() -> None:
    global _configured
    _configured = False
    structlog.reset_defaults()


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given name."""
    return structlog.get_logger(name)


# Keys structlog's bound loggers take positionally or reserve for themselves.
_RESERVED_KEYS = frozenset({"event"})


def _event_fields(event: TelemetryEvent) -> dict[str, Any]:
    """Measurements plus metadata; clashing metadata keys get a ``metadata_`` prefix."""
    fields: dict[str, Any] = {}
    for key, value in event.measurements.items():
        fields[f"measurement_{key}" if key in _RESERVED_KEYS else key] = value
    for key, value in event.metadata.items():
        if key in _RESERVED_KEYS or key in fields:
            key = f"metadata_{key}"
        fields[key] = value
    return fields


def _log_event(logger: Any, level: str, event: TelemetryEvent) -> None:
    log = getattr(logger, level)
    log(event.dotted_name, **_event_fields(event))


def attach_log_handler(
    bus: TelemetryBus | None = None,
    *,
    level: str = "info",
    prefix: tuple[str, ...] = ("fly",),
    logger: Any = None,
) -> str:
    """Log every wait and request telemetry event through structlog.

    Returns the handler id, for ``bus.detach()``.
    """
    bus = bus if bus is not None else default_bus
    log = logger if logger is not None else get_logger("fly_control.telemetry")
    bus.attach(
        LOG_HANDLER_ID,
        [*WAIT_EVENTS, *request_events(prefix)],
        lambda event: _log_event(log, level, event),
    )
    return LOG_HANDLER_ID
