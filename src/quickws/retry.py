"""Linear backoff retry policy with integer jitter."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field

from quickws.types import RandomInt


def random_int(low: float, high: float) -> int:
    """Return a uniformly drawn integer in ``[ceil(low), floor(high))``.

    An empty range yields ``ceil(low)``.
    """
    low = math.ceil(low)
    high = math.floor(high)
    if high <= low:
        return low
    return random.randrange(low, high)


@dataclass(frozen=True)
class BackoffConfig:
    """Backoff parameters, in seconds."""

    base_delay: float = 2
    max_delay: float = 30
    increment: float = 2
    jitter: float = 2


@dataclass
class RetryState:
    """Mutable retry bookkeeping owned by a single connection."""

    max_retries: int
    defaults: BackoffConfig = field(default_factory=BackoffConfig)
    current_retry_count: int = 0
    base_delay: float = field(init=False)
    max_delay: float = field(init=False)
    increment: float = field(init=False)
    jitter: float = field(init=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Zero the retry count and restore the default backoff parameters."""
        self.current_retry_count = 0
        self.base_delay = self.defaults.base_delay
        self.max_delay = self.defaults.max_delay
        self.increment = self.defaults.increment
        self.jitter = self.defaults.jitter

    @property
    def exhausted(self) -> bool:
        return self.current_retry_count >= self.max_retries


class RetryPolicy:
    """Decides whether to retry and how long to wait before doing so.

    The delay for retry ``k`` is ``base + increment * k`` plus an integer
    jitter drawn from ``[-jitter, +jitter)``, capped at ``max_delay`` and
    floored at zero.
    """

    def __init__(self, state: RetryState, rand_int: RandomInt | None = None) -> None:
        self.state = state
        self._rand_int = rand_int or random_int

    def record_failure(self) -> bool:
        """Count one failed attempt. Returns True if another retry is allowed."""
        self.state.current_retry_count += 1
        return not self.state.exhausted

    def next_delay(self) -> float:
        """Calculate the delay in seconds for the current retry count."""
        s = self.state
        raw = (
            s.base_delay
            + s.increment * s.current_retry_count
            + self._rand_int(-s.jitter, s.jitter)
        )
        return max(min(raw, s.max_delay), 0)

    def reset(self) -> None:
        """Reset the retry count (call on successful connection)."""
        self.state.reset()
