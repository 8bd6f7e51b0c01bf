"""
Inno Setup script generator — one ``setup_script.iss`` per config.

The script is assembled through ``IssBuilder`` rather than a text
template: directives go through one formatting path (booleans become
``yes``/``no``, names are checked, values escaped), and the finished
text is checked again by ``validate_script_directives`` before it is
returned.  Output is deterministic: the same config always yields the
same bytes.

What the compiled installer does at run time:

    wizard      welcome text, optional warning/license pages, a custom
                page with cascading project/department combos and the
                backup root checklist (Next disabled until valid), and
                a ready-memo summary
    prepare     force-clean (uninstall + wipe local state), download or
                extract the MSI, write config.json, run msiexec
    post        run automation scripts
"""

from __future__ import annotations

import json
import re
import uuid

from drivegenie.agent.payload import build_backend_payload
from drivegenie.agent.plan import LOCAL_STATE_DIR, UNINSTALL_DISPLAY_NAME, DeploymentPlan
from drivegenie.core.errors import GenerationError
from drivegenie.core.models.installer import BackupMode, BackupRoot, InstallerConfig, ScriptKind
from drivegenie.core.models.template import GeneratedFile
from drivegenie.core.services import backup_policy
from drivegenie.core.services.departments import DEPARTMENT_OVERRIDES
from drivegenie.core.services.escaping import (
    batch_set_value,
    inno_constant_text,
    inno_quoted,
    pascal_string,
    single_line,
)

SCRIPT_FILE_NAME = "setup_script.iss"
BUILD_HELPER_FILE_NAME = "build.bat"
DEFAULT_COMPILER_PATH = "D:\\Program Files (x86)\\Inno Setup 6\\ISCC.exe"
UNINSTALL_KEY = "SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Uninstall"
DOWNLOAD_FILE_NAME = "Setup.msi"
CONFIG_FILE_NAME = "config.json"

# ── Directive contract ──────────────────────────────────────────

FORBIDDEN_DIRECTIVES = frozenset({"UseAbsolutePaths", "WizardImageFile", "WizardSmallImageFile"})

REQUIRED_VALUES = {
    "WizardStyle": "modern",
    "RestartApplications": "yes",
    "CloseApplications": "yes",
}

BOOLEAN_DIRECTIVES = frozenset({
    "CloseApplications",
    "CreateAppDir",
    "DisableDirPage",
    "DisableProgramGroupPage",
    "DisableReadyPage",
    "DisableWelcomePage",
    "RestartApplications",
    "SetupLogging",
    "ShowLanguageDialog",
    "SolidCompression",
    "Uninstallable",
})

_DIRECTIVE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
_SECTION_RE = re.compile(r"^\[(?P<name>[^\]]+)\]\s*$")

_APP_ID_NAMESPACE = uuid.UUID("6f3a1c52-8d0e-4b7a-9c51-2e4f7a9b0d13")


def validate_script_directives(text: str) -> list[str]:
    """Check the ``[Setup]`` section of an Inno Setup script.

    Returns a list of human-readable violations (empty when the script
    honours the directive contract).
    """
    issues: list[str] = []
    values: dict[str, str] = {}
    section = ""

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        match = _SECTION_RE.match(line)
        if match:
            section = match.group("name").strip().lower()
            continue
        if section != "setup" or not line or line.startswith(";"):
            continue
        if "=" not in line:
            issues.append(f"line {lineno}: not a directive: {line!r}")
            continue

        name, _, value = line.partition("=")
        name, value = name.strip(), value.strip()
        if not _DIRECTIVE_NAME_RE.match(name):
            issues.append(f"line {lineno}: directive name contains spaces or symbols: {name!r}")
            continue
        if name in FORBIDDEN_DIRECTIVES:
            issues.append(f"line {lineno}: forbidden directive {name}")
        if name in BOOLEAN_DIRECTIVES and value.lower() not in ("yes", "no"):
            issues.append(f"line {lineno}: {name} must be yes or no, got {value!r}")
        if name == "OutputBaseFilename" and " " in value:
            issues.append(f"line {lineno}: OutputBaseFilename contains spaces")
        values[name] = value

    for name, expected in REQUIRED_VALUES.items():
        actual = values.get(name)
        if actual is None:
            issues.append(f"missing directive {name}={expected}")
        elif actual.lower() != expected:
            issues.append(f"{name} must be {expected}, got {actual!r}")
    return issues


# ── Builder ─────────────────────────────────────────────────────


class IssBuilder:
    """Ordered sections of an Inno Setup script."""

    def __init__(self) -> None:
        self._sections: dict[str, list[str]] = {}

    def _lines(self, section: str) -> list[str]:
        return self._sections.setdefault(section, [])

    def directive(self, name: str, value: str | bool, *, raw: bool = False) -> IssBuilder:
        """Add a ``[Setup]`` directive.

        ``raw`` values are written as-is (they contain Inno constants
        such as ``{autopf}``); other strings have ``{`` escaped.
        """
        if not _DIRECTIVE_NAME_RE.match(name):
            raise ValueError(f"Invalid directive name: {name!r}")
        if name in FORBIDDEN_DIRECTIVES:
            raise ValueError(f"Directive not allowed: {name}")
        if isinstance(value, bool):
            text = "yes" if value else "no"
        else:
            single_line(value, name)
            text = value if raw else inno_constant_text(value)
        self._lines("Setup").append(f"{name}={text}")
        return self

    def entry(self, section: str, *params: tuple[str, str]) -> IssBuilder:
        """Add a ``Key: value; Key: value`` line to ``section``.

        Values are quoted except ``Flags``, which is a keyword list.
        """
        parts = [
            f"{key}: {value}" if key == "Flags" else f"{key}: {inno_quoted(value)}"
            for key, value in params
        ]
        self._lines(section).append("; ".join(parts))
        return self

    def message(self, name: str, text: str) -> IssBuilder:
        """Override a wizard message.  Line breaks become ``%n``."""
        value = text.replace("\r\n", "\n").replace("\n", "%n")
        self._lines("Messages").append(f"{name}={value}")
        return self

    def code(self, text: str) -> IssBuilder:
        self._lines("Code").append(text.rstrip("\n"))
        return self

    def render(self) -> str:
        blocks = []
        for name, lines in self._sections.items():
            blocks.append("\n".join([f"[{name}]", *lines]))
        return "\n\n".join(blocks) + "\n"


# ── Pascal code fragments ───────────────────────────────────────

_PASCAL_HELPERS = """\
function JsonQuote(const S: String): String;
var
  I: Integer;
  C: String;
begin
  Result := '"';
  for I := 1 to Length(S) do
  begin
    C := Copy(S, I, 1);
    if C = '\\' then
      C := '\\\\'
    else if C = '"' then
      C := '\\"';
    Result := Result + C;
  end;
  Result := Result + '"';
end;

function OnDownloadProgress(const Url, FileName: String; const Progress, ProgressMax: Int64): Boolean;
begin
  if ProgressMax > 0 then
    WizardForm.StatusLabel.Caption := Format('正在下载安装包... %d%%', [Progress * 100 div ProgressMax]);
  Result := True;
end;
"""

_PASCAL_UNINSTALL = """\
procedure UninstallFrom(RootKey: Integer);
var
  Names: TArrayOfString;
  I, ResultCode: Integer;
  Display: String;
begin
  if not RegGetSubkeyNames(RootKey, UninstallKey, Names) then
    Exit;
  for I := 0 to GetArrayLength(Names) - 1 do
  begin
    if (Copy(Names[I], 1, 1) = '{') and
       RegQueryStringValue(RootKey, UninstallKey + '\\' + Names[I], 'DisplayName', Display) and
       (Pos(UninstallDisplayName, Display) > 0) then
    begin
      Log('Uninstalling ' + Names[I]);
      Exec('msiexec.exe', '/x ' + Names[I] + ' /qn /norestart', '', SW_HIDE, ewWaitUntilTerminated, ResultCode);
    end;
  end;
end;

procedure ForceClean;
begin
  UninstallFrom(HKLM32);
  if IsWin64 then
    UninstallFrom(HKLM64);
  DelTree(ExpandConstant(LocalStateDir), True, True, True);
end;
"""


def _app_id(identifier: str) -> str:
    """Stable AppId (``{{`` is a literal brace in directive values)."""
    value = uuid.uuid5(_APP_ID_NAMESPACE, identifier)
    return "{{" + str(value).upper() + "}"


def _inno_path_constant(path: str) -> str:
    """``%LOCALAPPDATA%\\x`` → ``{localappdata}\\x``."""
    return path.replace("%LOCALAPPDATA%", "{localappdata}")


def _department_code(config: InstallerConfig) -> str:
    lines = [
        "procedure FillDepartments(const Project: String);",
        "begin",
        "  DeptCombo.Items.Clear;",
    ]
    keyword = "if"
    for project, departments in DEPARTMENT_OVERRIDES.items():
        lines.append(f"  {keyword} Project = {pascal_string(project)} then")
        lines.append("  begin")
        lines.extend(f"    DeptCombo.Items.Add({pascal_string(d)});" for d in departments)
        lines.append("  end")
        keyword = "else if"
    lines.append(f"  {keyword} Project <> '' then")
    lines.append("  begin")
    lines.extend(f"    DeptCombo.Items.Add({pascal_string(d)});" for d in config.departments)
    lines.append("  end;")
    lines.append("  DeptCombo.ItemIndex := -1;")
    lines.append("end;")
    return "\n".join(lines) + "\n"


def _backup_code() -> str:
    roots = list(BackupRoot)
    desktop = roots.index(BackupRoot.DESKTOP)
    drive_c = roots.index(BackupRoot.C)
    cases = "\n".join(
        f"    {i}: Result := {pascal_string(backup_policy.root_path(root))};"
        for i, root in enumerate(roots)
    )
    return f"""\
function BackupRootPath(Index: Integer): String;
begin
  case Index of
{cases}
  end;
end;

function HasBackupSelection: Boolean;
var
  I: Integer;
begin
  Result := False;
  for I := 0 to BackupList.Items.Count - 1 do
    if BackupList.Checked[I] then
      Result := True;
end;

function BackupSourceJson: String;
var
  I: Integer;
begin
  Result := '';
  for I := 0 to BackupList.Items.Count - 1 do
  begin
    if not BackupList.Checked[I] then
      Continue;
    if (I = {desktop}) and BackupList.Checked[{drive_c}] then
      Continue;
    if Result <> '' then
      Result := Result + ',';
    Result := Result + JsonQuote(BackupRootPath(I));
  end;
  Result := '[' + Result + ']';
end;

function BackupSummary(const Space, NewLine: String): String;
var
  I: Integer;
begin
  Result := '';
  for I := 0 to BackupList.Items.Count - 1 do
    if BackupList.Checked[I] then
      Result := Result + Space + BackupList.ItemCaption[I] + NewLine;
end;
"""


def _backup_click_code() -> str:
    """Checklist handler: ``C:`` and the desktop evict each other."""
    roots = list(BackupRoot)
    desktop = roots.index(BackupRoot.DESKTOP)
    drive_c = roots.index(BackupRoot.C)
    return f"""\
procedure BackupListClickCheck(Sender: TObject);
begin
  if (BackupList.ItemIndex = {drive_c}) and BackupList.Checked[{drive_c}] then
    BackupList.Checked[{desktop}] := False;
  if (BackupList.ItemIndex = {desktop}) and BackupList.Checked[{desktop}] then
    BackupList.Checked[{drive_c}] := False;
  UpdateNextButton;
end;
"""


_COMPUTER_NAME_MARKER = "@@COMPUTER_NAME@@"
_BACKUP_SOURCE_MARKER = "@@BACKUP_SOURCE@@"


def _config_json_code(config: InstallerConfig) -> str:
    """``BuildConfigJson``: the backend payload with run-time holes.

    The payload is built by the same function the bundle agent uses;
    fields only known on the target machine are swapped for markers and
    the JSON text is split around them into Pascal string literals.
    """
    plan = DeploymentPlan.from_config(config)
    payload = build_backend_payload(
        plan,
        project="project",
        department="department",
        hostname="host",
        backup_roots=(),
    )
    connection = payload["connections"][0]
    if "computer_name" in connection:
        connection["computer_name"] = _COMPUTER_NAME_MARKER
    if "backup_source" in payload:
        payload["backup_source"] = _BACKUP_SOURCE_MARKER

    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    holes = {
        json.dumps(_COMPUTER_NAME_MARKER): (
            "JsonQuote(ProjectCombo.Text + '-' + DeptCombo.Text + '-' + GetComputerNameString)"
        ),
        json.dumps(_BACKUP_SOURCE_MARKER): "BackupSourceJson",
    }
    pattern = "(" + "|".join(re.escape(k) for k in holes) + ")"
    parts = [
        holes[piece] if piece in holes else pascal_string(piece)
        for piece in re.split(pattern, text)
        if piece
    ]
    body = "\n    + ".join(parts)
    return f"""\
function BuildConfigJson: String;
begin
  Result := {body};
end;

procedure WriteBackendConfig;
var
  Lines: TArrayOfString;
begin
  SetArrayLength(Lines, 1);
  Lines[0] := BuildConfigJson;
  SaveStringsToUTF8FileWithoutBOM(ExpandConstant('{{tmp}}\\{CONFIG_FILE_NAME}'), Lines, False);
end;
"""


def _scripts_code(config: InstallerConfig) -> str:
    runners = {
        ScriptKind.POWERSHELL: (
            "'powershell.exe'",
            "'-NoProfile -ExecutionPolicy Bypass -File \"' + Path + '\"'",
        ),
        ScriptKind.BATCH: ("'cmd.exe'", "'/c \"' + Path + '\"'"),
        ScriptKind.VBS: ("'cscript.exe'", "'//NoLogo \"' + Path + '\"'"),
    }
    lines = [
        "procedure RunAutomationScripts;",
        "var",
        "  Content: TArrayOfString;",
        "  Path: String;",
        "  ResultCode: Integer;",
        "begin",
        "  SetArrayLength(Content, 1);",
    ]
    for script in config.automation_scripts:
        if not script.content.strip():
            continue
        program, params = runners[script.kind]
        save = (
            "SaveStringsToUTF8File"
            if script.kind == ScriptKind.POWERSHELL
            else "SaveStringsToUTF8FileWithoutBOM"
        )
        lines += [
            f"  Content[0] := {pascal_string(script.content)};",
            f"  Path := ExpandConstant('{{tmp}}') + '\\' + {pascal_string(script.file_name)};",
            f"  {save}(Path, Content, False);",
            f"  if not Exec({program}, {params}, '', SW_HIDE, ewWaitUntilTerminated, ResultCode)"
            " or (ResultCode <> 0) then",
            f"    Log('Automation script failed: ' + {pascal_string(script.name)});",
        ]
    lines.append("end;")
    return "\n".join(lines) + "\n"


def _next_button_code(config: InstallerConfig) -> str:
    """``UpdateNextButton``: Next stays disabled until the page is complete."""
    checks = []
    if config.collect_user_info:
        checks.append("  Ok := (ProjectCombo.Text <> '') and (DeptCombo.Text <> '');")
    if config.enable_backup_selection:
        checks.append("  Ok := Ok and HasBackupSelection;")
    return "\n".join([
        "procedure UpdateNextButton;",
        "var",
        "  Ok: Boolean;",
        "begin",
        "  Ok := True;",
        *checks,
        "  WizardForm.NextButton.Enabled := Ok;",
        "end;",
    ]) + "\n"


_COMBO_HANDLERS = """\
procedure ProjectChange(Sender: TObject);
begin
  FillDepartments(ProjectCombo.Text);
  UpdateNextButton;
end;

procedure DeptChange(Sender: TObject);
begin
  UpdateNextButton;
end;
"""


def _user_page_body(config: InstallerConfig) -> str:
    """Statements inside InitializeWizard that build the custom page."""
    selected = set(config.backup_selection)
    body = ["  UserPage := CreateCustomPage(AfterID, '用户信息', '请选择所属项目、部门和需要备份的位置');"]
    if config.collect_user_info:
        projects = "\n".join(
            f"  ProjectCombo.Items.Add({pascal_string(p)});" for p in config.projects
        )
        body.append(f"""\
  Lbl := TNewStaticText.Create(UserPage);
  Lbl.Parent := UserPage.Surface;
  Lbl.Caption := '所属项目:';
  Lbl.Top := Y;
  ProjectCombo := TNewComboBox.Create(UserPage);
  ProjectCombo.Parent := UserPage.Surface;
  ProjectCombo.Style := csDropDownList;
  ProjectCombo.Top := Y + ScaleY(16);
  ProjectCombo.Width := UserPage.SurfaceWidth;
{projects}
  ProjectCombo.OnChange := @ProjectChange;
  Y := Y + ScaleY(44);

  Lbl := TNewStaticText.Create(UserPage);
  Lbl.Parent := UserPage.Surface;
  Lbl.Caption := '所属部门:';
  Lbl.Top := Y;
  DeptCombo := TNewComboBox.Create(UserPage);
  DeptCombo.Parent := UserPage.Surface;
  DeptCombo.Style := csDropDownList;
  DeptCombo.Top := Y + ScaleY(16);
  DeptCombo.Width := UserPage.SurfaceWidth;
  DeptCombo.OnChange := @DeptChange;
  Y := Y + ScaleY(48);""")
    if config.enable_backup_selection:
        items = "\n".join(
            f"  BackupList.AddCheckBox({pascal_string(_root_caption(root))}, '', 0, "
            f"{'True' if root in selected else 'False'}, True, False, False, nil);"
            for root in BackupRoot
        )
        body.append(f"""\
  Lbl := TNewStaticText.Create(UserPage);
  Lbl.Parent := UserPage.Surface;
  Lbl.Caption := '备份位置 (C: 已包含桌面):';
  Lbl.Top := Y;
  BackupList := TNewCheckListBox.Create(UserPage);
  BackupList.Parent := UserPage.Surface;
  BackupList.Top := Y + ScaleY(16);
  BackupList.Width := UserPage.SurfaceWidth;
  BackupList.Height := ScaleY(110);
{items}
  BackupList.OnClickCheck := @BackupListClickCheck;""")
    return "\n".join(body)


def _root_caption(root: BackupRoot) -> str:
    if root == BackupRoot.DESKTOP:
        return "桌面 (Desktop)"
    return f"{root.value} 盘"


def _ready_memo_code(config: InstallerConfig) -> str:
    lines = [
        "function UpdateReadyMemo(Space, NewLine, MemoUserInfoInfo, MemoDirInfo, MemoTypeInfo,",
        "  MemoComponentsInfo, MemoGroupInfo, MemoTasksInfo: String): String;",
        "begin",
        "  Result := '';",
    ]
    if config.collect_user_info:
        lines += [
            "  Result := Result + '所属项目:' + NewLine + Space + ProjectCombo.Text + NewLine + NewLine;",
            "  Result := Result + '所属部门:' + NewLine + Space + DeptCombo.Text + NewLine + NewLine;",
        ]
    if config.enable_backup_selection:
        mode = (
            f"定时备份 ({config.backup_start_time})"
            if config.backup_mode == BackupMode.SCHEDULED
            else "实时备份"
        )
        lines += [
            "  Result := Result + '备份位置:' + NewLine + BackupSummary(Space, NewLine) + NewLine;",
            f"  Result := Result + '备份模式:' + NewLine + Space + {pascal_string(mode)} + NewLine;",
        ]
    lines.append("end;")
    return "\n".join(lines) + "\n"


def _prepare_code(config: InstallerConfig) -> str:
    backend = config.backend.enabled
    lines = [
        "function PrepareToInstall(var NeedsRestart: Boolean): String;",
        "var",
        "  ResultCode: Integer;",
        "  PackagePath, Params: String;",
        "begin",
        "  Result := '';",
    ]
    if backend and config.force_clean_install:
        lines.append("  ForceClean;")
    if config.use_online_installer:
        lines += [
            "  try",
            f"    DownloadTemporaryFile({pascal_string(config.download_url)}, "
            f"'{DOWNLOAD_FILE_NAME}', '', @OnDownloadProgress);",
            "  except",
            "    Result := '下载安装包失败: ' + GetExceptionMessage;",
            "    Exit;",
            "  end;",
            f"  PackagePath := ExpandConstant('{{tmp}}\\{DOWNLOAD_FILE_NAME}');",
        ]
    else:
        msi = pascal_string(config.msi_file_name)
        lines += [
            f"  ExtractTemporaryFile({msi});",
            f"  PackagePath := ExpandConstant('{{tmp}}') + '\\' + {msi};",
        ]
    qn = " /qn" if config.silent_install else ""
    lines.append(f"  Params := '/i \"' + PackagePath + '\"{qn} /norestart';")
    if backend:
        lines += [
            "  WriteBackendConfig;",
            f"  Params := Params + ' CONFIGPATH=\"' + ExpandConstant('{{tmp}}\\{CONFIG_FILE_NAME}') + '\"';",
        ]
    lines += [
        "  WizardForm.StatusLabel.Caption := '正在安装 Synology Drive Client...';",
        "  if not Exec('msiexec.exe', Params, '', SW_SHOW, ewWaitUntilTerminated, ResultCode) then",
        "    Result := '无法启动安装程序: ' + SysErrorMessage(ResultCode)",
        "  else if ResultCode <> 0 then",
        "    Result := Format('安装程序返回错误代码 %d', [ResultCode]);",
        "end;",
    ]
    return "\n".join(lines) + "\n"


def _wizard_code(config: InstallerConfig) -> str:
    has_page = config.collect_user_info or config.enable_backup_selection
    lines = [
        "procedure InitializeWizard;",
        "var",
        "  AfterID, Y: Integer;",
        "  Lbl: TNewStaticText;",
        "begin",
        "  AfterID := wpWelcome;",
        "  Y := 0;",
    ]
    if config.warning_message.strip():
        title = pascal_string(config.warning_title or "注意")
        lines.append(
            f"  AfterID := CreateOutputMsgPage(AfterID, {title}, {title}, "
            f"{pascal_string(config.warning_message)}).ID;"
        )
    if config.license_text.strip():
        lines.append(
            "  AfterID := CreateOutputMsgMemoPage(AfterID, '许可协议', "
            "'请在继续安装前阅读以下许可协议', '', "
            f"{pascal_string(config.license_text)}).ID;"
        )
    if has_page:
        lines.append(_user_page_body(config))
    lines.append("end;")

    if has_page:
        lines += [
            "",
            "procedure CurPageChanged(CurPageID: Integer);",
            "begin",
            "  if CurPageID = UserPage.ID then",
            "    UpdateNextButton;",
            "end;",
            "",
            "function NextButtonClick(CurPageID: Integer): Boolean;",
            "begin",
            "  Result := True;",
            "  if CurPageID = UserPage.ID then",
            "  begin",
            "    UpdateNextButton;",
            "    Result := WizardForm.NextButton.Enabled;",
            "  end;",
            "end;",
        ]
    return "\n".join(lines) + "\n"


def _pascal_code(config: InstallerConfig) -> str:
    """The whole ``[Code]`` section, declarations before use."""
    collect = config.collect_user_info
    backup = config.enable_backup_selection
    has_page = collect or backup
    backend = config.backend.enabled
    scripts = any(s.content.strip() for s in config.automation_scripts)

    decls = [
        "const",
        f"  UninstallKey = {pascal_string(UNINSTALL_KEY)};",
        f"  UninstallDisplayName = {pascal_string(UNINSTALL_DISPLAY_NAME)};",
        f"  LocalStateDir = {pascal_string(_inno_path_constant(LOCAL_STATE_DIR))};",
        "",
        "var",
        "  UserPage: TWizardPage;",
        "  ProjectCombo: TNewComboBox;",
        "  DeptCombo: TNewComboBox;",
        "  BackupList: TNewCheckListBox;",
    ]
    chunks = ["\n".join(decls), _PASCAL_HELPERS]
    if backup:
        chunks.append(_backup_code())
    if collect:
        chunks.append(_department_code(config))
    if has_page:
        chunks.append(_next_button_code(config))
    if collect:
        chunks.append(_COMBO_HANDLERS)
    if backup:
        chunks.append(_backup_click_code())
    if backend and config.force_clean_install:
        chunks.append(_PASCAL_UNINSTALL)
    if backend:
        chunks.append(_config_json_code(config))
    if scripts:
        chunks.append(_scripts_code(config))
    chunks.append(_wizard_code(config))
    if has_page:
        chunks.append(_ready_memo_code(config))
    chunks.append(_prepare_code(config))
    if scripts:
        chunks.append(
            "procedure CurStepChanged(CurStep: TSetupStep);\n"
            "begin\n"
            "  if CurStep = ssPostInstall then\n"
            "    RunAutomationScripts;\n"
            "end;\n"
        )
    return "\n".join(chunk.rstrip("\n") + "\n" for chunk in chunks)


# ── Public API ──────────────────────────────────────────────────


def build_script(config: InstallerConfig) -> str:
    """Render the full ``.iss`` text for ``config``."""
    identifier = config.app_identifier
    b = IssBuilder()

    b.directive("AppId", _app_id(identifier), raw=True)
    b.directive("AppName", config.app_name)
    if config.app_version.strip():
        b.directive("AppVersion", config.app_version)
    else:
        b.directive("AppVerName", config.app_name)
    b.directive("AppPublisher", config.publisher)
    b.directive("CreateAppDir", False)
    b.directive("Uninstallable", False)
    b.directive("DisableWelcomePage", False)
    b.directive("DisableDirPage", True)
    b.directive("DisableProgramGroupPage", True)
    b.directive("DisableReadyPage", False)
    b.directive("ShowLanguageDialog", False)
    b.directive("PrivilegesRequired", "admin" if config.run_as_admin else "lowest")
    b.directive("OutputDir", "Output")
    b.directive("OutputBaseFilename", f"{identifier}-setup")
    b.directive("Compression", "lzma2")
    b.directive("SolidCompression", True)
    b.directive("WizardStyle", "modern")
    b.directive("RestartApplications", True)
    b.directive("CloseApplications", True)
    b.directive("SetupLogging", True)

    b.entry(
        "Languages",
        ("Name", "chinesesimplified"),
        ("MessagesFile", "compiler:Languages\\ChineseSimplified.isl"),
    )
    if config.welcome_message.strip():
        b.message("WelcomeLabel2", config.welcome_message)
    if not config.use_online_installer:
        b.entry("Files", ("Source", config.msi_file_name), ("Flags", "dontcopy"))

    b.code(_pascal_code(config))
    return b.render()


def generate_inno_script(config: InstallerConfig) -> GeneratedFile:
    """Generate ``setup_script.iss``.

    Raises:
        GenerationError: If a value cannot be represented in the script
            or the rendered script breaks the directive contract.
    """
    try:
        text = build_script(config)
    except ValueError as e:
        raise GenerationError(f"Cannot render Inno Setup script: {e}") from e

    issues = validate_script_directives(text)
    if issues:
        raise GenerationError("Rendered script violates directive contract: " + "; ".join(issues))

    mode = "download" if config.use_online_installer else "bundled"
    return GeneratedFile(
        path=SCRIPT_FILE_NAME,
        content=text,
        reason=f"Inno Setup script for {config.app_name} ({mode} mode)",
    )


def generate_build_helper(
    script_name: str = SCRIPT_FILE_NAME,
    compiler_path: str = DEFAULT_COMPILER_PATH,
) -> GeneratedFile:
    """Generate ``build.bat``, which compiles the script with ISCC."""
    compiler = batch_set_value(compiler_path)
    script = batch_set_value(script_name)
    lines = [
        "@echo off",
        "chcp 65001 >nul",
        "title Drive Installer Builder",
        "cd /d \"%~dp0\"",
        "",
        f'set "ISCC_PATH={compiler}"',
        f'set "SCRIPT_NAME={script}"',
        "",
        'if not exist "%ISCC_PATH%" (',
        "    echo [错误] 找不到 Inno Setup 编译器: \"%ISCC_PATH%\"",
        "    echo 请修改本文件中的 ISCC_PATH 为实际安装路径。",
        "    pause",
        "    exit /b 1",
        ")",
        'if not exist "%SCRIPT_NAME%" (',
        "    echo [错误] 找不到 \"%SCRIPT_NAME%\"，请将脚本与本文件放在同一目录。",
        "    pause",
        "    exit /b 1",
        ")",
        "",
        "echo 正在编译 %SCRIPT_NAME% ...",
        '"%ISCC_PATH%" "%SCRIPT_NAME%"',
        "if %errorlevel% neq 0 (",
        "    echo [失败] 编译出错，请查看上方输出。",
        "    pause",
        "    exit /b 1",
        ")",
        "echo [成功] 安装包已生成，请查看 Output 目录。",
        "pause",
    ]
    return GeneratedFile(
        path=BUILD_HELPER_FILE_NAME,
        content="\r\n".join(lines) + "\r\n",
        reason="Compile helper for the Inno Setup compiler",
    )
