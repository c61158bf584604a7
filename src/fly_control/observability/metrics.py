"""Prometheus metrics for fly-control.

Metrics are fed from telemetry events; nothing in the client or the
orchestrator touches them directly. Call ``attach_metrics_handler()`` once
to start recording.

Usage::

    from fly_control.observability.metrics import attach_metrics_handler, metrics_text

    attach_metrics_handler()
    body, content_type = metrics_text()
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

from ..telemetry import (
    WAIT_FALLBACK,
    WAIT_STOP,
    WAIT_TIMEOUT,
    TelemetryBus,
    TelemetryEvent,
    default_bus,
)

METRICS_HANDLER_ID = "fly_control.observability.metrics"

# ---------------------------------------------------------------------------
# Machines API request metrics
# ---------------------------------------------------------------------------

API_REQUESTS_TOTAL = Counter(
    "fly_api_requests_total",
    "Machines API requests by method and response status.",
    labelnames=["method", "status"],
    registry=REGISTRY,
)

API_REQUEST_DURATION_SECONDS = Histogram(
    "fly_api_request_duration_seconds",
    "Machines API request latency in seconds, retries included.",
    labelnames=["method"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Orchestrator wait metrics
# ---------------------------------------------------------------------------

WAITS_TOTAL = Counter(
    "fly_orchestrator_waits_total",
    "Orchestrator waits by operation and outcome (success, timeout, fallback).",
    labelnames=["operation", "outcome"],
    registry=REGISTRY,
)

WAIT_DURATION_SECONDS = Histogram(
    "fly_orchestrator_wait_duration_seconds",
    "Time spent waiting for a resource to reach its target state.",
    labelnames=["operation"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
    registry=REGISTRY,
)

WAIT_ATTEMPTS = Histogram(
    "fly_orchestrator_wait_attempts",
    "Check attempts made per completed or timed-out wait.",
    labelnames=["operation"],
    buckets=(1, 2, 3, 5, 8, 13, 21, 34),
    registry=REGISTRY,
)


def _record_request(event: TelemetryEvent) -> None:
    method = str(event.metadata.get("method", ""))
    status = event.metadata.get("status")
    API_REQUESTS_TOTAL.labels(
        method=method,
        status=str(status) if status is not None else "error",
    ).inc()
    if "duration" in event.measurements:
        API_REQUEST_DURATION_SECONDS.labels(method=method).observe(
            event.measurements["duration"]
        )


def _record_wait(event: TelemetryEvent) -> None:
    operation = str(event.metadata.get("operation", "unknown"))
    if event.name == WAIT_STOP:
        outcome = "success"
    elif event.name == WAIT_TIMEOUT:
        outcome = "timeout"
    else:
        outcome = "fallback"
    WAITS_TOTAL.labels(operation=operation, outcome=outcome).inc()

    # A fallback is not the end of a wait; its time is counted by the poll that follows.
    if event.name == WAIT_FALLBACK:
        return
    if "duration" in event.measurements:
        WAIT_DURATION_SECONDS.labels(operation=operation).observe(event.measurements["duration"])
    if "attempts" in event.metadata:
        WAIT_ATTEMPTS.labels(operation=operation).observe(event.metadata["attempts"])


def attach_metrics_handler(
    bus: TelemetryBus | None = None,
    *,
    prefix: tuple[str, ...] = ("fly",),
) -> str:
    """Record request and wait telemetry into the Prometheus metrics above."""
    bus = bus if bus is not None else default_bus
    request_done = {(*prefix, "request", "stop"), (*prefix, "request", "exception")}
    wait_done = {WAIT_STOP, WAIT_TIMEOUT, WAIT_FALLBACK}

    def handle(event: TelemetryEvent) -> None:
        if event.name in request_done:
            _record_request(event)
        elif event.name in wait_done:
            _record_wait(event)

    bus.attach(METRICS_HANDLER_ID, [*request_done, *wait_done], handle)
    return METRICS_HANDLER_ID


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
