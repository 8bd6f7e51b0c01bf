"""
Error taxonomy.

Configuration and generation errors surface before an artifact exists.
Acquisition and install errors are fatal to an agent run. Configure and
launch problems are never raised out of a run: the agent logs them and
moves on.
"""

from __future__ import annotations


class DriveGenieError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigError(DriveGenieError):
    """Raised when installer configuration is invalid or missing.

    ``issues`` carries the individual validation messages, if any.
    """

    def __init__(self, message: str, issues: list[str] | None = None):
        super().__init__(message)
        self.issues = list(issues or [])


class GenerationError(DriveGenieError):
    """Raised when an artifact producer fails."""


class AcquisitionError(DriveGenieError):
    """Package could not be downloaded or located."""


class InstallError(DriveGenieError):
    """The installer process failed or exited non-zero."""


class RunCancelled(DriveGenieError):
    """A deployment run was aborted through its cancel token."""
