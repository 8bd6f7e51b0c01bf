"""
Tests for use cases — config check and artifact generation.
"""

from pathlib import Path

from drivegenie.core.config.loader import write_config, write_default_config
from drivegenie.core.models.installer import InstallerConfig
from drivegenie.core.use_cases.config_check import check_config
from drivegenie.core.use_cases.generate import run_generate


class TestCheckConfig:
    def test_valid_defaults(self, tmp_path: Path):
        path = write_default_config(tmp_path / "installer.yml")
        result = check_config(path)
        assert result.valid
        assert result.config_path == path
        assert result.errors == []
        assert any("plaintext" in w for w in result.warnings)

    def test_auto_detect(self, tmp_path: Path, monkeypatch):
        write_default_config(tmp_path / "installer.yml")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        result = check_config()
        assert result.valid
        assert result.config_path == (tmp_path / "installer.yml").resolve()

    def test_nothing_found(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = check_config()
        assert not result.valid
        assert result.errors == ["No installer.yml found."]
        assert result.to_dict()["config_path"] is None

    def test_validation_errors(self, tmp_path: Path):
        config = InstallerConfig(project_list="", download_url="ftp://mirror/x.msi")
        path = write_config(config, tmp_path / "installer.yml")
        result = check_config(path)
        assert not result.valid
        assert len(result.errors) == 2
        assert result.to_dict()["project_count"] == 0

    def test_broken_yaml(self, tmp_path: Path):
        path = tmp_path / "installer.yml"
        path.write_text("app_name: [unclosed\n", encoding="utf-8")
        result = check_config(path)
        assert not result.valid
        assert "Invalid YAML" in result.errors[0]


class TestRunGenerate:
    def test_script(self, tmp_path: Path):
        config_path = write_default_config(tmp_path / "installer.yml")
        out = tmp_path / "out"
        result = run_generate("script", out, config_path=config_path, build_helper=True)
        assert result.ok
        assert result.written == [out / "setup_script.iss", out / "build.bat"]
        data = result.to_dict()
        assert data["kind"] == "script"
        assert data["identifier"] == "synology-drive"

    def test_build_helper_keeps_crlf(self, tmp_path: Path):
        config_path = write_default_config(tmp_path / "installer.yml")
        run_generate("script", tmp_path / "out", config_path=config_path, build_helper=True)
        assert b"\r\n" in (tmp_path / "out" / "build.bat").read_bytes()

    def test_invalid_config_reports_issues(self, tmp_path: Path):
        path = write_config(InstallerConfig(app_name=" "), tmp_path / "installer.yml")
        result = run_generate("bundle", tmp_path / "out", config_path=path)
        assert not result.ok
        assert result.issues == ["app_name must not be empty."]
        assert not (tmp_path / "out").exists()

    def test_unknown_strategy(self, tmp_path: Path):
        config_path = write_default_config(tmp_path / "installer.yml")
        result = run_generate("zip", tmp_path / "out", config_path=config_path)
        assert not result.ok
        assert "zip" in result.error

    def test_delegated_without_key(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        config_path = write_default_config(tmp_path / "installer.yml")
        result = run_generate("delegated", tmp_path / "out", config_path=config_path)
        assert not result.ok
        assert "API key" in result.error

    def test_unwritable_output(self, tmp_path: Path):
        config_path = write_default_config(tmp_path / "installer.yml")
        blocker = tmp_path / "out"
        blocker.write_text("not a directory")
        result = run_generate("script", blocker, config_path=config_path)
        assert not result.ok
        assert result.error.startswith("Cannot write artifact")
