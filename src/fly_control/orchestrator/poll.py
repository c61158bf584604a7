"""Generic poll loop with exponential backoff and jitter.

``poll_until`` calls a check predicate until it reports ``Done`` or
``Failed``, or until the timeout elapses. Elapsed time is measured on the
monotonic clock from loop entry.

Outcomes::

    Done(result)      -> Ok(result), returned without a trailing sleep
    Failed(error)     -> Err(error), passed through unchanged
    Continue(note)    -> sleep min(delay, remaining), back off, check again
    deadline reached  -> Err(FlyPollTimeoutError)

The first check always runs, however small the timeout. The deadline is
evaluated before every later check, and a check that is already in flight
when the deadline passes is not interrupted.

Both suspension points (the predicate's own await and the inter-attempt
sleep) are plain awaits, so ``Task.cancel()`` or an enclosing
``asyncio.timeout()`` aborts the loop with ``CancelledError``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from ..errors import FlyError, FlyPollTimeoutError
from ..result import Err, Ok, Result
from ..telemetry import WAIT_START, WAIT_STOP, WAIT_TIMEOUT, TelemetryBus, default_bus
from .backoff import DEFAULT_BACKOFF, BackoffPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_OPERATION = "poll_until"
DEFAULT_TIMEOUT_MESSAGE = "Timeout waiting for condition"


# ── Outcomes ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Done(Generic[T]):
    """Condition satisfied; ``result`` is handed back to the caller."""

    result: T


@dataclass(frozen=True)
class Continue:
    """Condition not satisfied yet. ``diagnostic`` is for logs only."""

    diagnostic: str | None = None


@dataclass(frozen=True)
class Failed:
    """Terminal, non-retryable failure; polling stops immediately."""

    error: FlyError

    def __post_init__(self) -> None:
        if not isinstance(self.error, FlyError):
            raise TypeError(f"Failed() requires a FlyError, got {type(self.error).__name__}")


PollOutcome = Union[Done[Any], Continue, Failed]

CheckFn = Callable[[], Union[PollOutcome, Awaitable[PollOutcome]]]


# ── Session ──────────────────────────────────────────────────────


@dataclass
class PollSession:
    """Mutable state of one polling loop. Never shared between loops."""

    started_at: float
    deadline: float
    base_delay: float
    delay: float
    attempts: int = 0

    @classmethod
    def begin(cls, timeout: float, policy: BackoffPolicy) -> PollSession:
        now = time.monotonic()
        return cls(
            started_at=now,
            deadline=now + timeout,
            base_delay=policy.initial_delay,
            delay=policy.initial_delay,
        )

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def remaining(self) -> float:
        return self.deadline - time.monotonic()

    def expired(self) -> bool:
        return time.monotonic() >= self.deadline

    def advance(self, policy: BackoffPolicy, rng: random.Random | None = None) -> None:
        self.base_delay = policy.next_base(self.base_delay)
        self.delay = policy.jittered(self.base_delay, rng)


# ── Loop ─────────────────────────────────────────────────────────


async def poll_until(
    check: CheckFn,
    *,
    timeout: float,
    operation: str = DEFAULT_OPERATION,
    error_message: str | None = None,
    initial_delay: float | None = None,
    backoff: BackoffPolicy | None = None,
    telemetry: TelemetryBus | None = None,
    metadata: Mapping[str, Any] | None = None,
    rng: random.Random | None = None,
) -> Result[Any]:
    """Poll ``check`` until it reports Done or Failed, or ``timeout`` seconds pass.

    Args:
        check: Zero-argument callable returning a PollOutcome, or an
            awaitable resolving to one.
        timeout: Time budget in seconds. Must be > 0.
        operation: Name reported in telemetry and logs.
        error_message: Reason for the timeout error. Defaults to
            "Timeout waiting for condition".
        initial_delay: Overrides the policy's first delay (seconds).
        backoff: Delay policy. Defaults to 0.5s x1.5 capped at 5s, +20% jitter.
        telemetry: Bus receiving wait.start/stop/timeout. Defaults to the
            module-level bus.
        metadata: Extra keys merged into every emitted event's metadata.
        rng: Random source for jitter (tests pass a seeded one).

    Returns:
        ``Ok(result)`` or ``Err(FlyError)``.
    """
    if timeout is None or timeout <= 0:
        raise ValueError("timeout must be > 0")

    policy = backoff or DEFAULT_BACKOFF
    if initial_delay is not None:
        policy = policy.with_initial_delay(initial_delay)
    bus = telemetry if telemetry is not None else default_bus
    reason = error_message or DEFAULT_TIMEOUT_MESSAGE
    extra = dict(metadata or {})

    session = PollSession.begin(timeout, policy)
    bus.emit(WAIT_START, {}, {**extra, "operation": operation})

    try:
        while True:
            if session.attempts > 0 and session.expired():
                break

            outcome = check()
            if inspect.isawaitable(outcome):
                outcome = await outcome
            session.attempts += 1

            if isinstance(outcome, Done):
                bus.emit(
                    WAIT_STOP,
                    {"duration": session.elapsed()},
                    {**extra, "operation": operation, "attempts": session.attempts},
                )
                return Ok(outcome.result)

            if isinstance(outcome, Failed):
                logger.debug(
                    "Poll %s failed after %d attempt(s): %s",
                    operation,
                    session.attempts,
                    outcome.error.message,
                )
                return Err(outcome.error)

            if not isinstance(outcome, Continue):
                raise TypeError(
                    f"check returned {outcome!r}; expected Done, Continue or Failed"
                )

            sleep_for = min(session.delay, session.remaining())
            logger.debug(
                "Poll %s attempt %d: %s; next check in %.3fs",
                operation,
                session.attempts,
                outcome.diagnostic or "not ready",
                max(sleep_for, 0.0),
            )
            if sleep_for > 0:
                await asyncio.sleep(sleep_for)
            session.advance(policy, rng)
    except asyncio.CancelledError:
        logger.debug(
            "Poll %s cancelled after %d attempt(s)",
            operation,
            session.attempts,
        )
        raise

    duration = session.elapsed()
    bus.emit(
        WAIT_TIMEOUT,
        {"duration": duration},
        {
            **extra,
            "operation": operation,
            "attempts": session.attempts,
            "reason": reason,
        },
    )
    logger.warning(
        "Poll %s timed out after %.2fs and %d attempt(s)",
        operation,
        duration,
        session.attempts,
        extra={"operation": operation, "attempts": session.attempts},
    )
    return Err(FlyPollTimeoutError(reason, attempts=session.attempts))
