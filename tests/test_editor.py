"""
Tests for the editor session — commands, snapshots, undo.
"""

import pytest

from drivegenie.core.errors import ConfigError
from drivegenie.core.models.installer import BackupRoot, InstallerConfig, ScriptFile, ScriptKind
from drivegenie.core.services.editor import (
    AddScript,
    EditorSession,
    RemoveScript,
    SetBackendField,
    SetField,
    ToggleBackupRoot,
    UpdateScript,
)


class TestSetField:
    def test_sets_value(self):
        session = EditorSession()
        config = session.apply(SetField("app_name", "New Name"))
        assert config.app_name == "New Name"
        assert session.snapshot() is config

    def test_lax_string_parsing(self):
        config = EditorSession().apply(SetField("silent_install", "false"))
        assert config.silent_install is False

    def test_unknown_field(self):
        with pytest.raises(ConfigError, match="Unknown config field"):
            EditorSession().apply(SetField("colour", "red"))

    def test_invalid_value_leaves_session_unchanged(self):
        session = EditorSession()
        before = session.snapshot()
        with pytest.raises(ConfigError):
            session.apply(SetField("backup_mode", "hourly"))
        assert session.snapshot() is before
        assert not session.can_undo

    def test_backend_requires_backend_command(self):
        with pytest.raises(ConfigError, match="SetBackendField"):
            EditorSession().apply(SetField("backend", {}))

    def test_previous_snapshot_untouched(self):
        session = EditorSession()
        before = session.snapshot()
        session.apply(SetField("publisher", "Ops"))
        assert before.publisher == "IT"


class TestSetBackendField:
    def test_sets_value(self):
        config = EditorSession().apply(SetBackendField("server_address", "10.0.0.5"))
        assert config.backend.server_address == "10.0.0.5"
        assert config.backend.username == "admin"

    def test_bool_from_string(self):
        config = EditorSession().apply(SetBackendField("enabled", "no"))
        assert config.backend.enabled is False

    def test_unknown_field(self):
        with pytest.raises(ConfigError, match="Unknown backend field"):
            EditorSession().apply(SetBackendField("port", "6690"))


class TestToggleBackupRoot:
    def test_toggle_applies_exclusivity(self):
        session = EditorSession(InstallerConfig(backup_selection=frozenset({BackupRoot.DESKTOP})))
        config = session.apply(ToggleBackupRoot(BackupRoot.C))
        assert config.backup_selection == {BackupRoot.C}

    def test_set_field_cannot_bypass_exclusivity(self):
        config = EditorSession().apply(SetField("backup_selection", ["C:", "Desktop"]))
        assert config.backup_selection == {BackupRoot.C}


class TestScripts:
    def test_add_update_remove(self):
        session = EditorSession()
        session.apply(AddScript(ScriptFile(name="a.ps1", content="Write-Host 1")))
        config = session.apply(UpdateScript("a.ps1", {"kind": "batch", "content": "echo 1"}))
        assert config.automation_scripts[0].kind == ScriptKind.BATCH
        assert config.automation_scripts[0].content == "echo 1"
        config = session.apply(RemoveScript("a.ps1"))
        assert config.automation_scripts == ()

    def test_update_missing(self):
        with pytest.raises(ConfigError, match="No automation script"):
            EditorSession().apply(UpdateScript("ghost.ps1", {"content": "x"}))

    def test_update_invalid_kind(self):
        session = EditorSession()
        session.apply(AddScript(ScriptFile(name="a.ps1")))
        with pytest.raises(ConfigError, match="Invalid script change"):
            session.apply(UpdateScript("a.ps1", {"kind": "python"}))


class TestUndo:
    def test_undo_restores_previous(self):
        session = EditorSession()
        original = session.snapshot()
        session.apply(SetField("app_name", "One"))
        session.apply(SetField("app_name", "Two"))
        assert session.undo().app_name == "One"
        assert session.undo() is original

    def test_nothing_to_undo(self):
        with pytest.raises(ConfigError, match="Nothing to undo"):
            EditorSession().undo()
