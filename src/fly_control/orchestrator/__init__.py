"""Multi-step workflows with polling, backoff and wait telemetry."""

from .backoff import DEFAULT_BACKOFF, BackoffPolicy
from .operations import FlyOperations
from .poll import Continue, Done, Failed, PollOutcome, PollSession, poll_until
from .workflows import create_app_and_wait, create_machine_and_wait

__all__ = [
    "BackoffPolicy",
    "Continue",
    "DEFAULT_BACKOFF",
    "Done",
    "Failed",
    "FlyOperations",
    "PollOutcome",
    "PollSession",
    "create_app_and_wait",
    "create_machine_and_wait",
    "poll_until",
]
