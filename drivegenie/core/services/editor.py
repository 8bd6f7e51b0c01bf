"""
Editor session — the only place an InstallerConfig changes.

The wizard never mutates a shared config.  It sends commands to one
``EditorSession``, which validates each change and swaps in a new
frozen snapshot.  Producers receive ``session.snapshot()``.

    session = EditorSession()
    session.apply(SetField("app_name", "Drive"))
    session.apply(ToggleBackupRoot(BackupRoot.C))
    config = session.snapshot()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from drivegenie.core.errors import ConfigError
from drivegenie.core.models.installer import (
    BackendConfig,
    BackupRoot,
    InstallerConfig,
    ScriptFile,
)
from drivegenie.core.services import backup_policy

logger = logging.getLogger(__name__)


def _rebuild(config: InstallerConfig, **changes: Any) -> InstallerConfig:
    """Validated copy of ``config`` with ``changes`` applied."""
    unknown = set(changes) - set(InstallerConfig.model_fields)
    if unknown:
        raise ConfigError(f"Unknown config field(s): {', '.join(sorted(unknown))}")
    data = config.model_dump()
    data.update(changes)
    try:
        return InstallerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value: {e}") from e


class EditCommand(ABC):
    """One user edit.  Commands are pure: old snapshot in, new one out."""

    @abstractmethod
    def apply(self, config: InstallerConfig) -> InstallerConfig:
        """Return the edited snapshot."""


@dataclass(frozen=True)
class SetField(EditCommand):
    name: str
    value: Any

    def apply(self, config: InstallerConfig) -> InstallerConfig:
        if self.name == "backend":
            raise ConfigError("Use SetBackendField to edit backend settings.")
        return _rebuild(config, **{self.name: self.value})


@dataclass(frozen=True)
class SetBackendField(EditCommand):
    name: str
    value: Any

    def apply(self, config: InstallerConfig) -> InstallerConfig:
        if self.name not in BackendConfig.model_fields:
            raise ConfigError(f"Unknown backend field: {self.name}")
        backend = config.backend.model_dump()
        backend[self.name] = self.value
        return _rebuild(config, backend=backend)


@dataclass(frozen=True)
class ToggleBackupRoot(EditCommand):
    root: BackupRoot

    def apply(self, config: InstallerConfig) -> InstallerConfig:
        selection = backup_policy.toggle(config.backup_selection, self.root)
        return _rebuild(config, backup_selection=selection)


@dataclass(frozen=True)
class AddScript(EditCommand):
    script: ScriptFile

    def apply(self, config: InstallerConfig) -> InstallerConfig:
        return _rebuild(
            config,
            automation_scripts=(*config.automation_scripts, self.script),
        )


@dataclass(frozen=True)
class RemoveScript(EditCommand):
    name: str

    def apply(self, config: InstallerConfig) -> InstallerConfig:
        remaining = tuple(s for s in config.automation_scripts if s.name != self.name)
        return _rebuild(config, automation_scripts=remaining)


@dataclass(frozen=True)
class UpdateScript(EditCommand):
    name: str
    changes: dict[str, Any] = field(default_factory=dict)

    def apply(self, config: InstallerConfig) -> InstallerConfig:
        if not any(s.name == self.name for s in config.automation_scripts):
            raise ConfigError(f"No automation script named '{self.name}'")
        try:
            scripts = tuple(
                ScriptFile.model_validate({**s.model_dump(), **self.changes})
                if s.name == self.name
                else s
                for s in config.automation_scripts
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid script change: {e}") from e
        return _rebuild(config, automation_scripts=scripts)


class EditorSession:
    """Single owner of the in-progress config.  Not thread-safe."""

    def __init__(self, initial: InstallerConfig | None = None):
        self._current = initial or InstallerConfig()
        self._history: list[InstallerConfig] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    def snapshot(self) -> InstallerConfig:
        """The current immutable config."""
        return self._current

    def apply(self, command: EditCommand) -> InstallerConfig:
        """Apply one edit.  A rejected edit leaves the session unchanged."""
        updated = command.apply(self._current)
        self._history.append(self._current)
        self._current = updated
        logger.debug("Applied %s", command)
        return updated

    def undo(self) -> InstallerConfig:
        """Revert the most recent edit."""
        if not self._history:
            raise ConfigError("Nothing to undo")
        self._current = self._history.pop()
        return self._current
