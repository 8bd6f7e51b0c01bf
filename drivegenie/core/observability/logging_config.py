"""
Logging configuration — one setup call per process.

Two entrypoints call ``setup_logging``: the ``drivegenie`` CLI and the
agent entry script inside a generated bundle.  Every module uses
``logger = logging.getLogger(__name__)`` and inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  DRIVEGENIE_LOG_LEVEL env var  >  WARNING (default)

Optional file output via DRIVEGENIE_LOG_FILE / DRIVEGENIE_LOG_FILE_LEVEL.
The agent always writes a file next to its temp files so a failed
unattended install leaves something to read.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass

ENV_LEVEL = "DRIVEGENIE_LOG_LEVEL"
ENV_FILE = "DRIVEGENIE_LOG_FILE"
ENV_FILE_LEVEL = "DRIVEGENIE_LOG_FILE_LEVEL"

# ── Format strings ──────────────────────────────────────────────

_FMT_MINIMAL = "%(message)s"
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_SHORT = "%H:%M:%S"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# The generative-service client logs request details at INFO
_NOISY_LOGGERS = ("urllib3", "google", "grpc", "httpx")


@dataclass(frozen=True)
class LoggingOptions:
    """Resolved logging settings."""

    level: str = "WARNING"
    log_file: str | None = None
    log_file_level: str | None = None

    @classmethod
    def from_env(cls, flag_level: str | None = None) -> LoggingOptions:
        """Combine an optional CLI-flag level with environment overrides."""
        return cls(
            level=flag_level or os.environ.get(ENV_LEVEL, "WARNING"),
            log_file=os.environ.get(ENV_FILE) or None,
            log_file_level=os.environ.get(ENV_FILE_LEVEL) or None,
        )


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger: stderr always, a file optionally.

    Calling it again replaces the previous handlers, so the bundle entry
    script and the CLI can both call it without doubling output.
    """
    console_level = _parse_level(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # A closed console stream (e.g. a detached window) must not kill a run
    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    if level <= logging.DEBUG:
        formatter = logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_SHORT)
    elif level <= logging.INFO:
        formatter = logging.Formatter(_FMT_VERBOSE, datefmt=_DATEFMT_SHORT)
    else:
        formatter = logging.Formatter(_FMT_MINIMAL)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
    return handler


def setup_from_options(options: LoggingOptions, quiet_third_party: bool = True) -> None:
    setup_logging(
        level=options.level,
        log_file=options.log_file,
        log_file_level=options.log_file_level,
        quiet_third_party=quiet_third_party,
    )


class ChannelHandler(logging.Handler):
    """Forward formatted records to a one-way observer callback.

    A running agent attaches one of these to the host adapter and
    download loggers so their WARNING+ records reach the UI log pane
    as well as the log file.
    """

    def __init__(self, emit_line: Callable[[str], None], level: int = logging.WARNING):
        super().__init__(level)
        self._emit_line = emit_line
        self.setFormatter(logging.Formatter(_FMT_MINIMAL))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._emit_line(self.format(record))
        except Exception:
            self.handleError(record)


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
