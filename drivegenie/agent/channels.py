"""
RunChannels — one-way, thread-safe fan-out of agent output.

The agent publishes on two named channels and never reads anything
back:

    log         one human-readable line per message (str)
    progress    an int in 0..100, or INDETERMINATE (-1)

Observers (the bridge, the CLI, tests) subscribe callbacks.  A small
replay buffer lets an observer that attaches late (e.g. a window that
finishes loading after the run began) catch up on what it missed.

Thread safety model
───────────────────
- ``_lock`` protects ``_subscribers`` and ``_buffer``.
- Callbacks are invoked outside the lock, on the publishing thread.
- A callback that raises is logged and dropped; the run continues.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

LOG = "log"
PROGRESS = "progress"
CHANNELS = (LOG, PROGRESS)

Subscriber = Callable[[str, Any], None]


class RunChannels:
    """Publish-only channel hub shared by one agent and its observers."""

    def __init__(self, *, buffer_size: int = 200) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._buffer: deque[tuple[str, Any]] = deque(maxlen=buffer_size)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ── Subscribing ─────────────────────────────────────────────

    def subscribe(self, callback: Subscriber, *, replay: bool = False) -> None:
        """Register ``callback(channel, value)``.

        With ``replay=True`` the buffered history is delivered first.
        """
        with self._lock:
            history = list(self._buffer) if replay else []
            self._subscribers.append(callback)
        for channel, value in history:
            self._deliver(callback, channel, value)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    # ── Publishing ──────────────────────────────────────────────

    def log(self, line: str) -> None:
        self._publish(LOG, line)

    def progress(self, value: int) -> None:
        self._publish(PROGRESS, int(value))

    def _publish(self, channel: str, value: Any) -> None:
        with self._lock:
            self._buffer.append((channel, value))
            targets = list(self._subscribers)
        for callback in targets:
            self._deliver(callback, channel, value)

    def _deliver(self, callback: Subscriber, channel: str, value: Any) -> None:
        try:
            callback(channel, value)
        except Exception as e:
            logger.warning("Channel subscriber failed, dropping it: %s", e)
            self.unsubscribe(callback)

    # ── Introspection ───────────────────────────────────────────

    def history(self, channel: str | None = None) -> list[Any]:
        """Buffered values, optionally restricted to one channel."""
        with self._lock:
            items = list(self._buffer)
        if channel is None:
            return items
        return [value for ch, value in items if ch == channel]
