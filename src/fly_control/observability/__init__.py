"""Observability for fly-control: structured logging and Prometheus metrics.

Both are fed from the telemetry bus.

Quick start::

    from fly_control.observability import (
        attach_log_handler,
        attach_metrics_handler,
        configure_logging,
    )

    configure_logging()
    attach_log_handler()
    attach_metrics_handler()
"""

from .logging import attach_log_handler, configure_logging, get_logger
from .metrics import attach_metrics_handler, metrics_text

__all__ = [
    "attach_log_handler",
    "attach_metrics_handler",
    "configure_logging",
    "get_logger",
    "metrics_text",
]
