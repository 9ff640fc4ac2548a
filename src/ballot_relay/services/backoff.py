"""Exponential backoff with jitter for failed deliveries."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta

JITTER_LOW = 0.5
JITTER_HIGH = 1.5


@dataclass
class BackoffPolicy:
    """Delay before a failed record becomes eligible again.

    The delay for ``retry_count = k`` is ``base_delay * 2**k`` scaled by a
    uniform factor in ``[0.5, 1.5]`` so many clients recovering at once do not
    retry in lockstep. There is no retry limit; ``max_delay`` only caps the wait.
    """

    base_delay: float = 1.0
    max_delay: float | None = None
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if self.max_delay is not None and self.max_delay <= 0:
            raise ValueError("max_delay must be > 0")

    def jitter(self) -> float:
        return self.rng.uniform(JITTER_LOW, JITTER_HIGH)

    def next_delay(self, retry_count: int) -> float:
        """Seconds to wait before the next attempt of a record with ``retry_count`` failures.

        Returns ``math.inf`` once ``2**retry_count`` no longer fits in a float.
        """
        if retry_count < 0:
            raise ValueError("retry_count must be >= 0")
        try:
            nominal = self.base_delay * 2.0**retry_count
        except OverflowError:
            nominal = math.inf
        delay = nominal * self.jitter()
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def next_attempt_at(self, failed_at: datetime, retry_count: int) -> datetime:
        """Return when the record is eligible again.

        Deadlines past the largest representable datetime are pinned to it.
        """
        latest = datetime.max.replace(tzinfo=failed_at.tzinfo)
        delay = self.next_delay(retry_count)
        if delay >= (latest - failed_at).total_seconds():
            return latest
        return failed_at + timedelta(seconds=delay)
