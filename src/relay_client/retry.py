# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Retry policy for relay requests.

Only transport failures and 5xx responses are retried. The delay before
retry ``attempt + 1`` is an exponential base capped at 5 seconds, scaled by a
uniform jitter factor in ``[0.5, 1.0]``.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass

BASE_DELAY_MS = 1000
MAX_DELAY_MS = 5000


def base_delay_ms(attempt: int) -> float:
    """Unjittered delay after the 0-indexed ``attempt``."""
    return min(BASE_DELAY_MS * 2**attempt, MAX_DELAY_MS)


def backoff_delay_ms(attempt: int, rand: Callable[[], float] = random.random) -> float:
    """Jittered delay in milliseconds after the 0-indexed ``attempt``.

    Args:
        attempt: Index of the attempt that just failed.
        rand: Source of uniform values in ``[0, 1)``.
    """
    return base_delay_ms(attempt) * (0.5 + rand() * 0.5)


def should_retry_status(status: int) -> bool:
    """True for statuses worth another attempt (5xx)."""
    return status >= 500


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry budget.

    Attributes:
        retries: Extra attempts after the first; total attempts = retries + 1.
    """

    retries: int = 2

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def has_budget(self, attempt: int) -> bool:
        """True if another attempt may follow the 0-indexed ``attempt``."""
        return attempt < self.retries

    def delay_seconds(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        return backoff_delay_ms(attempt, rand) / 1000
