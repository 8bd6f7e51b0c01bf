"""
Cancellable timed polling.

Both agent readiness checks (installed client, launcher) go through
``poll_until`` so they share one interval/ceiling/heartbeat behaviour.
Waiting happens on the cancel token's event, so a cancel wakes the
poller immediately instead of after the current interval.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from drivegenie.core.errors import RunCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """Cooperative cancellation flag shared by one run."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    def check(self) -> None:
        """Raise RunCancelled if cancellation was requested."""
        if self._event.is_set():
            raise RunCancelled(self._reason or "cancelled")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``.  Returns True if cancelled meanwhile."""
        return self._event.wait(seconds)


@dataclass
class PollResult(Generic[T]):
    """Outcome of a polling pass."""

    value: T | None
    attempts: int

    @property
    def found(self) -> bool:
        return self.value is not None


def poll_until(
    probe: Callable[[], T | None],
    *,
    attempts: int,
    interval: float = 1.0,
    cancel: CancelToken | None = None,
    heartbeat_every: int = 5,
    on_heartbeat: Callable[[int, int], None] | None = None,
) -> PollResult[T]:
    """Call ``probe`` until it returns a value or ``attempts`` run out.

    Exhaustion is not an error: the result simply has ``found`` False.

    Raises:
        RunCancelled: If ``cancel`` fires before or between attempts.
    """
    token = cancel or CancelToken()
    for attempt in range(1, attempts + 1):
        token.check()
        value = probe()
        if value is not None:
            return PollResult(value=value, attempts=attempt)

        if heartbeat_every and attempt % heartbeat_every == 0 and on_heartbeat:
            on_heartbeat(attempt, attempts)

        if attempt < attempts and token.wait(interval):
            token.check()

    logger.debug("Polling exhausted after %d attempts", attempts)
    return PollResult(value=None, attempts=attempts)
