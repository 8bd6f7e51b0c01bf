"""
Tests for artifact generators — Inno Setup script, build helper, bundle.
"""

import json
from pathlib import Path

import pytest
import yaml

from drivegenie.agent.plan import DeploymentPlan
from drivegenie.core.errors import ConfigError, GenerationError
from drivegenie.core.models.installer import (
    BackendConfig,
    InstallerConfig,
    ScriptFile,
    ScriptKind,
)
from drivegenie.core.models.template import ArtifactKind
from drivegenie.core.services.generators.bundle import BUNDLE_FILES, generate_bundle
from drivegenie.core.services.generators.inno_script import (
    IssBuilder,
    build_script,
    generate_build_helper,
    generate_inno_script,
    validate_script_directives,
)
from drivegenie.core.services.producer import Strategy, produce
from drivegenie.core.use_cases.generate import write_file


def _setup_section(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    in_setup = False
    for line in text.splitlines():
        if line.startswith("["):
            in_setup = line == "[Setup]"
            continue
        if in_setup and "=" in line:
            name, _, value = line.partition("=")
            values[name] = value
    return values


# ═══════════════════════════════════════════════════════════════════
#  Inno Setup script
# ═══════════════════════════════════════════════════════════════════


class TestInnoScript:
    def test_deterministic(self, config):
        assert build_script(config) == build_script(config)

    def test_directive_contract(self, config):
        text = generate_inno_script(config).content
        setup = _setup_section(text)
        assert setup["WizardStyle"] == "modern"
        assert setup["RestartApplications"] == "yes"
        assert setup["CloseApplications"] == "yes"
        assert " " not in setup["OutputBaseFilename"]
        assert "UseAbsolutePaths" not in setup
        assert "WizardImageFile" not in setup
        assert validate_script_directives(text) == []

    def test_booleans_are_yes_no(self, config):
        setup = _setup_section(build_script(config))
        for name in ("CreateAppDir", "Uninstallable", "SolidCompression", "ShowLanguageDialog"):
            assert setup[name] in ("yes", "no")

    def test_app_id_stable_per_identifier(self):
        a = _setup_section(build_script(InstallerConfig(app_name="Alpha Drive")))
        b = _setup_section(build_script(InstallerConfig(app_name="Beta Drive")))
        again = _setup_section(build_script(InstallerConfig(app_name="Alpha Drive")))
        assert a["AppId"] == again["AppId"]
        assert a["AppId"] != b["AppId"]
        assert a["AppId"].startswith("{{")

    def test_privileges(self):
        assert _setup_section(build_script(InstallerConfig()))["PrivilegesRequired"] == "admin"
        lowest = build_script(InstallerConfig(run_as_admin=False))
        assert _setup_section(lowest)["PrivilegesRequired"] == "lowest"

    def test_online_mode_downloads(self, config):
        text = build_script(config)
        assert "DownloadTemporaryFile(" in text
        assert "ExtractTemporaryFile" not in text
        assert "[Files]" not in text

    def test_offline_mode_embeds(self, offline_config):
        text = build_script(offline_config)
        assert "ExtractTemporaryFile('SynologyDrive.msi')" in text
        assert 'Source: "SynologyDrive.msi"; Flags: dontcopy' in text
        assert "DownloadTemporaryFile" not in text

    def test_backend_config_and_force_clean(self, config):
        text = build_script(config)
        assert "WriteBackendConfig;" in text
        assert "CONFIGPATH=" in text
        assert "ForceClean;" in text
        assert "DelTree(ExpandConstant(LocalStateDir)" in text
        assert "{localappdata}\\SynologyDrive" in text
        assert text.index("ForceClean;\n  try") < text.index("  WriteBackendConfig;\n  Params")

    def test_backend_disabled_has_no_credentials(self, offline_config):
        text = build_script(offline_config)
        assert "hunter2" not in text
        assert "192.168.1.100" not in text
        assert "CONFIGPATH" not in text
        assert "ForceClean" not in text

    def test_silent_flag(self):
        assert "/qn /norestart" in build_script(InstallerConfig())
        assert "/qn" not in build_script(
            InstallerConfig(silent_install=False, force_clean_install=False)
        ).split("function PrepareToInstall")[1]

    def test_config_json_holes(self, config):
        text = build_script(config)
        assert "GetComputerNameString" in text
        assert "BackupSourceJson" in text
        assert '"max_file_size":2147483648' in text
        assert "@@" not in text

    def test_departments_cascade(self, config):
        text = build_script(config)
        assert "if Project = '职能部门' then" in text
        assert "DeptCombo.Items.Add('财务管理部');" in text
        assert "DeptCombo.Items.Add('项目综合部');" in text
        assert "ProjectCombo.Items.Add('万晟汇');" in text

    def test_backup_checklist_exclusivity(self, config):
        text = build_script(config)
        assert "procedure BackupListClickCheck" in text
        # D: is preselected, the others are not
        assert "AddCheckBox('D: 盘', '', 0, True" in text
        assert "AddCheckBox('C: 盘', '', 0, False" in text

    def test_declaration_order(self, config):
        text = build_script(config)
        order = [
            "function BackupSourceJson",
            "procedure FillDepartments",
            "procedure UpdateNextButton",
            "procedure ProjectChange",
            "procedure BackupListClickCheck",
            "function BuildConfigJson",
            "procedure InitializeWizard",
            "function UpdateReadyMemo",
            "function PrepareToInstall",
        ]
        positions = [text.index(marker) for marker in order]
        assert positions == sorted(positions)

    def test_no_user_page_when_disabled(self):
        text = build_script(
            InstallerConfig(collect_user_info=False, enable_backup_selection=False)
        )
        assert "CreateCustomPage" not in text
        assert "UpdateReadyMemo" not in text
        assert "computer_name" not in text

    def test_hostile_text_escaped(self):
        config = InstallerConfig(
            app_name="Bob's {app} Drive",
            welcome_message="第一行\n第二行",
            warning_message="Don't panic",
            project_list="O'Brien,总经办",
        )
        text = build_script(config)
        assert "AppName=Bob's {{app} Drive" in text
        assert "WelcomeLabel2=第一行%n第二行" in text
        assert "'Don''t panic'" in text
        assert "ProjectCombo.Items.Add('O''Brien');" in text
        assert validate_script_directives(text) == []

    def test_multiline_app_name_rejected(self):
        with pytest.raises(GenerationError, match="single line"):
            generate_inno_script(InstallerConfig(app_name="a\nb"))

    def test_license_page(self):
        text = build_script(InstallerConfig(license_text="条款一"))
        assert "CreateOutputMsgMemoPage" in text
        assert "'条款一'" in text

    def test_automation_scripts(self, config):
        scripts = (
            ScriptFile(name="map drive.ps1", content="New-PSDrive -Name Z"),
            ScriptFile(name="fix", kind=ScriptKind.BATCH, content="echo ok"),
            ScriptFile(name="empty.vbs", kind=ScriptKind.VBS, content="  "),
        )
        text = build_script(config.model_copy(update={"automation_scripts": scripts}))
        assert "RunAutomationScripts;" in text
        assert "'map_drive.ps1'" in text
        assert "'fix.bat'" in text
        assert "empty" not in text
        assert "ssPostInstall" in text

    def test_no_scripts_section_without_content(self, config):
        assert "RunAutomationScripts" not in build_script(config)


class TestValidateScriptDirectives:
    GOOD = "[Setup]\nWizardStyle=modern\nRestartApplications=yes\nCloseApplications=yes\n"

    def test_good(self):
        assert validate_script_directives(self.GOOD) == []

    def test_forbidden(self):
        issues = validate_script_directives(self.GOOD + "UseAbsolutePaths=no\n")
        assert any("forbidden" in i for i in issues)

    def test_spaced_name(self):
        issues = validate_script_directives(self.GOOD + "Restart Applications=yes\n")
        assert any("spaces" in i for i in issues)

    def test_bad_boolean(self):
        issues = validate_script_directives(self.GOOD + "SolidCompression=true\n")
        assert any("yes or no" in i for i in issues)

    def test_spaced_output_name(self):
        issues = validate_script_directives(self.GOOD + "OutputBaseFilename=my setup\n")
        assert any("OutputBaseFilename" in i for i in issues)

    def test_missing_required(self):
        issues = validate_script_directives("[Setup]\nAppName=x\n")
        assert len(issues) == 3

    def test_wrong_required_value(self):
        text = self.GOOD.replace("modern", "classic")
        assert any("WizardStyle" in i for i in validate_script_directives(text))

    def test_other_sections_ignored(self):
        text = self.GOOD + "[Code]\nRestart Applications = anything\n"
        assert validate_script_directives(text) == []


class TestIssBuilder:
    def test_forbidden_directive(self):
        with pytest.raises(ValueError, match="not allowed"):
            IssBuilder().directive("WizardImageFile", "x.bmp")

    def test_bad_name(self):
        with pytest.raises(ValueError, match="Invalid directive"):
            IssBuilder().directive("Close Applications", True)

    def test_render_sections(self):
        text = (
            IssBuilder()
            .directive("AppName", "x")
            .entry("Files", ("Source", "a b.msi"), ("Flags", "dontcopy"))
            .render()
        )
        assert text == '[Setup]\nAppName=x\n\n[Files]\nSource: "a b.msi"; Flags: dontcopy\n'


# ═══════════════════════════════════════════════════════════════════
#  Build helper
# ═══════════════════════════════════════════════════════════════════


class TestBuildHelper:
    def test_crlf_and_paths(self):
        content = generate_build_helper().content
        assert content.endswith("\r\n")
        assert "\n" not in content.replace("\r\n", "")
        assert 'set "ISCC_PATH=D:\\Program Files (x86)\\Inno Setup 6\\ISCC.exe"' in content
        assert 'set "SCRIPT_NAME=setup_script.iss"' in content

    def test_custom_compiler_escaped(self):
        content = generate_build_helper(compiler_path="C:\\100%\\ISCC.exe").content
        assert "C:\\100%%\\ISCC.exe" in content

    def test_written_bytes_keep_crlf(self, tmp_path: Path):
        path = write_file(tmp_path, generate_build_helper())
        assert b"\r\n" in path.read_bytes()
        assert b"\r\r\n" not in path.read_bytes()


# ═══════════════════════════════════════════════════════════════════
#  Bundle
# ═══════════════════════════════════════════════════════════════════


def _bundle(config: InstallerConfig) -> dict[str, str]:
    return {f.path: f.content for f in generate_bundle(config)}


class TestBundle:
    def test_five_files(self, config):
        assert tuple(_bundle(config)) == BUNDLE_FILES

    def test_deterministic(self, config):
        assert _bundle(config) == _bundle(config)

    def test_manifest(self, config):
        manifest = yaml.safe_load(_bundle(config)["bundle.yml"])
        assert manifest["name"] == config.app_identifier
        assert manifest["version"] == config.app_version
        assert manifest["target"] == {"platform": "windows", "format": "portable"}
        assert manifest["extra_resources"] == [{"from": "resources", "to": "resources"}]
        assert "pywebview" in manifest["requirements"]

    def test_embedded_plan_matches_config(self, config):
        source = _bundle(config)["agent_main.py"]
        compile(source, "agent_main.py", "exec")
        namespace: dict = {}
        line = next(l for l in source.splitlines() if l.startswith("PLAN_JSON = "))
        exec(line, namespace)  # noqa: S102
        plan = DeploymentPlan.model_validate_json(namespace["PLAN_JSON"])
        assert plan == DeploymentPlan.from_config(config)

    def test_bridge_compiles(self, config):
        compile(_bundle(config)["bridge.py"], "bridge.py", "exec")

    def test_no_credentials_when_backend_disabled(self, offline_config):
        for name, content in _bundle(offline_config).items():
            assert "hunter2" not in content, name
            assert "192.168.1.100" not in content, name

    def test_credentials_present_when_enabled(self):
        config = InstallerConfig(backend=BackendConfig(password="s3cret"))
        assert "s3cret" in _bundle(config)["agent_main.py"]

    def test_index_settings(self, config):
        html = _bundle(config)["index.html"]
        start = html.index("const SETTINGS = ") + len("const SETTINGS = ")
        settings = json.loads(html[start:html.index(";\n", start)])
        assert settings["projects"] == config.projects
        assert settings["departments"]["职能部门"] == ["人力行政部", "财务管理部", "运营管理部"]
        assert settings["exclusive"] == {"C:": "Desktop", "Desktop": "C:"}
        checked = [r["value"] for r in settings["backupRoots"] if r["checked"]]
        assert checked == ["D:"]

    def test_index_never_prechecks_c_and_desktop(self):
        config = InstallerConfig.model_validate({"backup_selection": ["C:", "Desktop"]})
        html = _bundle(config)["index.html"]
        start = html.index("const SETTINGS = ") + len("const SETTINGS = ")
        settings = json.loads(html[start:html.index(";\n", start)])
        checked = [r["value"] for r in settings["backupRoots"] if r["checked"]]
        assert checked == ["C:"]

    def test_index_escapes_text(self):
        config = InstallerConfig(
            app_name='<script>alert("x")</script>',
            project_list="</script><b>",
        )
        html = _bundle(config)["index.html"]
        assert '<script>alert("x")</script>' not in html
        assert "</script><b>" not in html

    def test_hostile_app_name_in_python(self):
        config = InstallerConfig(app_name="It's \"quoted\" \\ drive")
        source = _bundle(config)["agent_main.py"]
        namespace: dict = {}
        exec(next(l for l in source.splitlines() if l.startswith("APP_TITLE = ")), namespace)  # noqa: S102
        assert namespace["APP_TITLE"] == config.app_name

    def test_pip_conf(self, config):
        conf = _bundle(config)["pip.conf"]
        assert conf.startswith("[global]\n")
        assert "index-url = https://pypi.tuna.tsinghua.edu.cn/simple" in conf
        assert "trusted-host = pypi.tuna.tsinghua.edu.cn" in conf


# ═══════════════════════════════════════════════════════════════════
#  Producer
# ═══════════════════════════════════════════════════════════════════


class TestProduce:
    def test_script(self, config):
        artifact = produce(config, Strategy.SCRIPT, build_helper=True)
        assert artifact.kind == ArtifactKind.SCRIPT
        assert artifact.paths == ["setup_script.iss", "build.bat"]

    def test_bundle(self, config):
        artifact = produce(config, "bundle")
        assert artifact.kind == ArtifactKind.BUNDLE
        assert artifact.get("index.html") is not None

    def test_invalid_config_produces_nothing(self):
        with pytest.raises(ConfigError):
            produce(InstallerConfig(download_url=""), Strategy.SCRIPT)

    def test_unknown_strategy(self, config):
        with pytest.raises(ValueError):
            produce(config, "zip")

    def test_iss_written_with_bom(self, config, tmp_path: Path):
        artifact = produce(config, Strategy.SCRIPT)
        path = write_file(tmp_path, artifact.files[0])
        assert path.read_bytes().startswith(b"\xef\xbb\xbf")
