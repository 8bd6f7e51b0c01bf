"""
Tests for domain models — defaults, derived values, immutability.
"""

import pytest
from pydantic import ValidationError

from drivegenie.core.models import (
    BackendConfig,
    BackupMode,
    BackupRoot,
    InstallerConfig,
    ScriptFile,
    ScriptKind,
)
from drivegenie.core.models.installer import (
    CURRENT_USER_TOKEN,
    DEFAULT_IDENTIFIER,
    parse_list,
    sanitize_identifier,
)
from drivegenie.core.models.run_state import (
    INDETERMINATE,
    DeploymentRunState,
    RunPhase,
    RunResult,
)


class TestInstallerConfig:
    """InstallerConfig model tests."""

    def test_defaults(self):
        c = InstallerConfig()
        assert c.use_online_installer is True
        assert c.run_as_admin is True
        assert c.silent_install is True
        assert c.force_clean_install is True
        assert c.backup_mode == BackupMode.CONTINUOUS
        assert c.backup_selection == frozenset()
        assert c.automation_scripts == ()
        assert c.backend.enabled is True
        assert c.backend.as_user == CURRENT_USER_TOKEN

    def test_frozen(self):
        c = InstallerConfig()
        with pytest.raises(ValidationError):
            c.app_name = "changed"

    def test_projects_and_departments_parsed(self):
        c = InstallerConfig(project_list=" A, ,B ,", department_list="X,Y")
        assert c.projects == ["A", "B"]
        assert c.departments == ["X", "Y"]

    def test_ordered_backup_selection(self):
        c = InstallerConfig(backup_selection=frozenset({BackupRoot.E, BackupRoot.DESKTOP}))
        assert c.ordered_backup_selection == [BackupRoot.DESKTOP, BackupRoot.E]

    def test_backup_selection_from_strings(self):
        c = InstallerConfig.model_validate({"backup_selection": ["C:", "D:"]})
        assert c.backup_selection == frozenset({BackupRoot.C, BackupRoot.D})

    def test_c_drive_drops_desktop(self):
        c = InstallerConfig(backup_selection=frozenset({BackupRoot.C, BackupRoot.DESKTOP}))
        assert c.backup_selection == frozenset({BackupRoot.C})

    def test_c_drive_drops_desktop_from_strings(self):
        c = InstallerConfig.model_validate({"backup_selection": ["Desktop", "C:", "E:"]})
        assert c.backup_selection == frozenset({BackupRoot.C, BackupRoot.E})

    def test_unknown_backup_root_rejected(self):
        with pytest.raises(ValidationError):
            InstallerConfig.model_validate({"backup_selection": ["Z:"]})

    def test_app_identifier(self):
        assert InstallerConfig(app_name="Synology Drive 助手").app_identifier == "synology-drive"

    def test_round_trip_through_dump(self):
        c = InstallerConfig(
            automation_scripts=(ScriptFile(name="a.ps1", content="echo 1"),),
            backup_selection=frozenset({BackupRoot.C}),
        )
        again = InstallerConfig.model_validate(c.model_dump(mode="json"))
        assert again == c


class TestSanitizeIdentifier:
    def test_spaces_become_hyphens(self):
        assert sanitize_identifier("My Drive App") == "my-drive-app"

    def test_non_ascii_dropped(self):
        assert sanitize_identifier("同步助手 Pro") == "pro"

    def test_symbols_dropped(self):
        assert sanitize_identifier("Drive@Home!") == "drivehome"

    def test_too_short_falls_back(self):
        assert sanitize_identifier("助手") == DEFAULT_IDENTIFIER
        assert sanitize_identifier("x") == DEFAULT_IDENTIFIER
        assert sanitize_identifier("") == DEFAULT_IDENTIFIER

    def test_leading_trailing_hyphens_trimmed(self):
        assert sanitize_identifier(" 助手 drive ") == "drive"


class TestParseList:
    def test_trims_and_drops_empty(self):
        assert parse_list(" a ,b,, c ") == ["a", "b", "c"]

    def test_empty(self):
        assert parse_list("") == []
        assert parse_list(" , ") == []


class TestScriptFile:
    def test_file_name_uses_interpreter_suffix(self):
        assert ScriptFile(name="setup.txt", kind=ScriptKind.BATCH).file_name == "setup.bat"
        assert ScriptFile(name="map", kind=ScriptKind.VBS).file_name == "map.vbs"
        assert ScriptFile(name="init.ps1").file_name == "init.ps1"

    def test_file_name_is_filesystem_safe(self):
        assert ScriptFile(name="映射 网络 drive.ps1").file_name == "drive.ps1"
        assert ScriptFile(name="../../evil.ps1").file_name == "evil.ps1"

    def test_file_name_never_empty(self):
        assert ScriptFile(name="脚本").file_name == "script.ps1"


class TestBackendConfig:
    def test_local_path_uses_user_token(self):
        assert CURRENT_USER_TOKEN in BackendConfig().local_path

    def test_frozen(self):
        with pytest.raises(ValidationError):
            BackendConfig().password = "x"


class TestRunState:
    def test_initial_phase(self):
        s = DeploymentRunState(run_token="t")
        assert s.phase == RunPhase.ACQUIRING
        assert not s.finished
        assert s.ended_at is None

    def test_terminal_phase_stamps_end(self):
        s = DeploymentRunState(run_token="t")
        s.enter(RunPhase.FAILED)
        assert s.finished
        assert s.ended_at is not None

    def test_progress_clamped(self):
        s = DeploymentRunState(run_token="t")
        assert s.set_progress(150) == 100
        assert s.set_progress(-5) == 0
        assert s.set_progress(INDETERMINATE) == INDETERMINATE

    def test_result_to_dict(self):
        r = RunResult(success=False, error="boom", phase=RunPhase.FAILED)
        assert r.to_dict() == {"success": False, "error": "boom"}
