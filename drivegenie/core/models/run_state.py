"""
DeploymentRunState — runtime state of one agent run.

Lives only inside a running DeploymentAgent.  The observer sees it
through the log/progress channels; nothing persists it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

# Progress value meaning "a blocking step is running, no percentage".
INDETERMINATE = -1


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RunPhase(StrEnum):
    """Agent phases.  FAILED is reachable from every other phase."""

    ACQUIRING = "acquiring"
    INSTALLING = "installing"
    CONFIGURING = "configuring"
    LAUNCHING = "launching"
    DONE = "done"
    FAILED = "failed"


class DeploymentRunState(BaseModel):
    """Phase, progress and the append-only log of one run."""

    run_token: str
    phase: RunPhase = RunPhase.ACQUIRING
    progress: int = 0
    log: list[str] = Field(default_factory=list)
    started_at: str = Field(default_factory=_now_iso)
    ended_at: str | None = None

    @property
    def finished(self) -> bool:
        return self.phase in (RunPhase.DONE, RunPhase.FAILED)

    def enter(self, phase: RunPhase) -> None:
        """Move to ``phase``; terminal phases stamp ``ended_at``."""
        self.phase = phase
        if self.finished:
            self.ended_at = _now_iso()

    def set_progress(self, value: int) -> int:
        """Clamp and record a progress value, returning what was stored."""
        if value != INDETERMINATE:
            value = max(0, min(100, value))
        self.progress = value
        return value

    def append_log(self, line: str) -> None:
        self.log.append(line)


class RunResult(BaseModel):
    """Final verdict of a run as reported to the presentation layer."""

    success: bool
    error: str | None = None
    run_token: str = ""
    phase: RunPhase = RunPhase.DONE

    def to_dict(self) -> dict:
        return {"success": self.success, "error": self.error}
