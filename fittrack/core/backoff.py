"""Retry backoff policy shared by notifications and outbox deliveries."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from fittrack.core.config import AppSettings, get_settings


@dataclass
class BackoffPolicy:
    """Exponential backoff with additive jitter.

    ``attempts`` is the number of attempts already made; the first retry waits
    ``base_delay`` and every following one doubles it, up to
    ``2 ** (max_exponent - 1)`` times the base.
    """

    base_delay: timedelta = timedelta(seconds=30)
    max_exponent: int = 8
    jitter_ratio: float = 0.2
    rng: random.Random = field(default_factory=random.Random)

    def delay_for(self, attempts: int) -> timedelta:
        exponent = min(max(attempts, 1), self.max_exponent)
        delay = self.base_delay * (2 ** (exponent - 1))
        if self.jitter_ratio > 0:
            delay += delay * (self.rng.random() * self.jitter_ratio)
        return delay

    def next_attempt_at(self, attempts: int, now: datetime) -> datetime:
        return now + self.delay_for(attempts)


def build_backoff_policy(settings: Optional[AppSettings] = None) -> BackoffPolicy:
    """Materialize the backoff policy from application settings."""

    settings = settings or get_settings()
    return BackoffPolicy(
        base_delay=timedelta(seconds=settings.retry_base_delay_seconds),
        max_exponent=settings.retry_max_exponent,
        jitter_ratio=settings.retry_jitter_ratio,
    )
