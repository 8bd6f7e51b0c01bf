"""
Deferred removal of a run's temporary files.

The installer may still hold the package and config file open for a
moment after it exits, so deletion waits out a grace delay on a
daemon timer.  Nothing here raises.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def remove_quietly(paths: Iterable[Path]) -> list[Path]:
    """Delete each path, ignoring failures.  Returns what was removed."""
    removed: list[Path] = []
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Cleanup skipped %s: %s", path, e)
            continue
        removed.append(path)
    return removed


def schedule_cleanup(paths: Iterable[Path], delay: float) -> threading.Timer | None:
    """Remove ``paths`` after ``delay`` seconds on a background timer.

    Returns the started timer (callers may ``join`` it), or None when
    there is nothing to remove.
    """
    targets = list(paths)
    if not targets:
        return None
    timer = threading.Timer(delay, remove_quietly, args=(targets,))
    timer.daemon = True
    timer.start()
    logger.debug("Cleanup of %d file(s) scheduled in %.1fs", len(targets), delay)
    return timer
