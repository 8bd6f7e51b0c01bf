"""
Tests for the backend configuration payload and the deployment plan.
"""

import json
from pathlib import Path

import pytest

from drivegenie.agent.payload import (
    build_backend_payload,
    device_name,
    write_payload,
)
from drivegenie.agent.plan import DeploymentPlan
from drivegenie.core.models.installer import BackendConfig, BackupRoot, InstallerConfig


def _plan(**overrides) -> DeploymentPlan:
    return DeploymentPlan.from_config(InstallerConfig(**overrides))


class TestDeploymentPlan:
    def test_backend_dropped_when_disabled(self):
        plan = _plan(backend=BackendConfig(enabled=False, password="secret"))
        assert plan.backend is None
        assert not plan.backend_enabled
        assert "secret" not in plan.model_dump_json()

    def test_download_url_dropped_when_bundled(self):
        plan = _plan(use_online_installer=False)
        assert plan.download_url == ""
        assert plan.msi_file_name == "SynologyDrive.msi"

    def test_default_selection_ordered(self):
        plan = _plan(backup_selection=frozenset({BackupRoot.F, BackupRoot.C}))
        assert plan.default_backup_selection == (BackupRoot.C, BackupRoot.F)

    def test_json_round_trip(self):
        plan = _plan(backup_selection=frozenset({BackupRoot.D}))
        assert DeploymentPlan.model_validate_json(plan.model_dump_json()) == plan


class TestDeviceName:
    def test_segments_verbatim(self):
        assert device_name("卖场", "卖场服务部", "PC-01") == "卖场-卖场服务部-PC-01"


class TestBuildBackendPayload:
    def test_connection_fields(self):
        payload = build_backend_payload(_plan(), project="卖场", department="卖场服务部", hostname="PC01")
        conn = payload["connections"][0]
        assert conn["server_address"] == "192.168.1.100"
        assert conn["username"] == "admin"
        assert conn["as_user"] == "$"
        assert conn["enable_ssl"] is True
        assert conn["computer_name"] == "卖场-卖场服务部-PC01"
        session = conn["sync_sessions"][0]
        assert session == {
            "sharefolder": "home",
            "remote_path": "/",
            "local_path": "C:\\Users\\$\\SynologyDrive",
            "sync_direction": "BOTH_DIR",
        }

    def test_no_device_name_without_user_info(self):
        payload = build_backend_payload(_plan(use_info_for_device_name=False), project="A", department="B")
        assert "computer_name" not in payload["connections"][0]

    def test_no_device_name_when_blank(self):
        payload = build_backend_payload(_plan(), project="", department="")
        assert "computer_name" not in payload["connections"][0]

    def test_continuous_backup(self):
        payload = build_backend_payload(_plan(), backup_roots={BackupRoot.D})
        assert payload["backup_source"] == ["D:\\"]
        assert payload["backup_mode"] == 0
        assert "backup_start_time" not in payload

    def test_scheduled_backup(self):
        plan = _plan(backup_mode="scheduled", backup_start_time="21:30")
        payload = build_backend_payload(plan, backup_roots={BackupRoot.E})
        assert payload["backup_mode"] == 2
        assert payload["backup_start_time"] == "21:30"

    def test_backup_disabled(self):
        payload = build_backend_payload(_plan(enable_backup_selection=False), backup_roots={BackupRoot.D})
        assert "backup_source" not in payload
        assert "backup_mode" not in payload

    def test_filters_disabled(self):
        payload = build_backend_payload(_plan(enable_smart_filters=False))
        assert "black_list" not in payload
        assert "max_file_size" not in payload

    def test_requires_backend(self):
        with pytest.raises(ValueError):
            build_backend_payload(_plan(backend=BackendConfig(enabled=False)))

    def test_end_to_end_c_drive_with_filters(self, tmp_path: Path):
        config = InstallerConfig(
            use_online_installer=True,
            force_clean_install=True,
            enable_smart_filters=True,
            backup_selection=frozenset({BackupRoot.C}),
        )
        plan = DeploymentPlan.from_config(config)
        payload = build_backend_payload(
            plan,
            project="总经办",
            department="总经办",
            hostname="PC01",
            backup_roots=plan.default_backup_selection,
        )
        path = write_payload(payload, tmp_path / "config.json")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["backup_source"] == ["C:\\"]
        assert not any("Desktop" in p for p in data["backup_source"])
        assert data["max_file_size"] == 2147483648
        assert data["black_list"]

    def test_written_as_utf8_without_escapes(self, tmp_path: Path):
        payload = build_backend_payload(_plan(), project="卖场", department="卖场服务部", hostname="PC")
        text = write_payload(payload, tmp_path / "c.json").read_text(encoding="utf-8")
        assert "卖场服务部" in text
