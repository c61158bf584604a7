"""Two-armed result returned by the orchestration workflows.

Workflows never raise for expected failures (remote errors, timeouts).
They return ``Ok(value)`` or ``Err(error)`` and leave the decision to the
caller. ``unwrap()`` is the bridge back to exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from .errors import FlyError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: FlyError

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise self.error


Result = Union[Ok[T], Err]
