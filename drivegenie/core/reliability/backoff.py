"""
Retry with capped exponential backoff, and an ordered tier chain.

``retry_with_backoff`` retries one operation.  ``run_tiers`` walks an
ordered list of tiers (best first), giving each tier its own retry
budget through the same driver, and only raises once every tier has
failed.  There is exactly one retry loop; tiers are data.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: float = 0.0,
) -> float:
    """Delay before retry number ``attempt`` (1-based), capped at ``max_delay``.

    ``jitter`` is a fraction of the delay added at random.
    """
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    if jitter:
        delay += random.uniform(0, delay * jitter)
    return delay


def retry_with_backoff(
    operation: Callable[[], T],
    *,
    retries: int = 2,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    label: str = "operation",
) -> T:
    """Call ``operation`` up to ``retries + 1`` times.

    Raises the last error when every attempt fails.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except retry_on as e:
            if attempt >= retries:
                raise
            attempt += 1
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "%s attempt %d failed (%s); retrying in %.1fs",
                label, attempt, e, delay,
            )
            sleep(delay)


@dataclass(frozen=True)
class RetryTier:
    """One rung of a degrade chain."""

    name: str
    retries: int = 1
    base_delay: float = 1.0
    max_delay: float = 30.0


class TiersExhausted(Exception):
    """Every tier failed.  ``errors`` maps tier name → last error."""

    def __init__(self, errors: dict[str, BaseException]):
        self.errors = errors
        names = ", ".join(errors) or "none"
        super().__init__(f"All tiers failed ({names})")

    @property
    def last_error(self) -> BaseException | None:
        if not self.errors:
            return None
        return list(self.errors.values())[-1]


def run_tiers(
    tiers: Sequence[RetryTier],
    operation: Callable[[RetryTier], T],
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` against each tier in order until one succeeds."""
    errors: dict[str, BaseException] = {}
    for tier in tiers:
        logger.info("Trying tier '%s'", tier.name)
        try:
            return retry_with_backoff(
                lambda: operation(tier),
                retries=tier.retries,
                base_delay=tier.base_delay,
                max_delay=tier.max_delay,
                retry_on=retry_on,
                sleep=sleep,
                label=tier.name,
            )
        except retry_on as e:
            logger.warning("Tier '%s' failed: %s", tier.name, e)
            errors[tier.name] = e
    raise TiersExhausted(errors)
