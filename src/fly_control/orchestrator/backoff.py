"""Backoff policy for polling loops.

Delays grow geometrically from ``initial_delay`` up to ``max_delay``. Every
delay after the first gets up to ``jitter`` (a fraction) added on top, so
concurrent pollers hitting the same endpoint drift apart. Jitter only ever
lengthens a delay.

With the defaults the pre-jitter sequence is, in seconds::

    0.5, 0.75, 1.125, 1.6875, 2.53125, 3.796875, 5.0, 5.0, ...
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    initial_delay: float = 0.5
    multiplier: float = 1.5
    max_delay: float = 5.0
    jitter: float = 0.2

    def __post_init__(self) -> None:
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be > 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")

    def with_initial_delay(self, initial_delay: float) -> BackoffPolicy:
        """Copy with a different starting delay (the cap follows if needed)."""
        return replace(
            self,
            initial_delay=initial_delay,
            max_delay=max(self.max_delay, initial_delay),
        )

    def next_base(self, base: float) -> float:
        return min(base * self.multiplier, self.max_delay)

    def jittered(self, base: float, rng: random.Random | None = None) -> float:
        """``base`` plus a uniform draw from ``[0, jitter * base]``."""
        uniform = (rng or random).uniform
        return base + uniform(0, self.jitter * base)

    def bases(self, count: int) -> list[float]:
        """First ``count`` pre-jitter delays."""
        delays: list[float] = []
        base = self.initial_delay
        for _ in range(count):
            delays.append(base)
            base = self.next_base(base)
        return delays


DEFAULT_BACKOFF = BackoffPolicy()
