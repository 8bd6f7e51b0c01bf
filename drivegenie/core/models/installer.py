"""
Installer configuration — the root model every producer consumes.

An ``InstallerConfig`` is a frozen snapshot.  The wizard (or the YAML
file the CLI reads) builds one, an ``EditorSession`` replaces it
field-by-field while the user edits, and a producer receives the final
snapshot exactly once per generation request.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Placeholder understood by the sync client as "the interactive user".
CURRENT_USER_TOKEN = "$"

DEFAULT_IDENTIFIER = "drive-installer"

_NON_ASCII_RE = re.compile(r"[^\x00-\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_ID_CHARS_RE = re.compile(r"[^A-Za-z0-9-]")
_UNSAFE_FILE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class BackupMode(StrEnum):
    """How the sync client schedules backup tasks."""

    CONTINUOUS = "continuous"
    SCHEDULED = "scheduled"


class BackupRoot(StrEnum):
    """Roots a user may select for backup.  Order is display order."""

    DESKTOP = "Desktop"
    C = "C:"
    D = "D:"
    E = "E:"
    F = "F:"
    G = "G:"


class ScriptKind(StrEnum):
    """Interpreter used for a post-install automation script."""

    POWERSHELL = "powershell"
    BATCH = "batch"
    VBS = "vbs"

    @property
    def suffix(self) -> str:
        return {"powershell": ".ps1", "batch": ".bat", "vbs": ".vbs"}[self.value]


class ScriptFile(BaseModel):
    """A named post-install script, run after the package installs."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ScriptKind = ScriptKind.POWERSHELL
    content: str = ""

    @property
    def file_name(self) -> str:
        """Filesystem-safe name carrying the extension its interpreter expects."""
        stem = self.name.rsplit(".", 1)[0] if "." in self.name else self.name
        stem = _UNSAFE_FILE_CHARS_RE.sub("_", stem).strip("._") or "script"
        return stem + self.kind.suffix


class BackendConfig(BaseModel):
    """Connection settings for the remote sync server.

    Credentials are plain strings; they are written verbatim into the
    generated artifact because the sync client's mass-deployment
    format expects them that way.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    server_address: str = "192.168.1.100"
    username: str = "admin"
    password: str = ""
    enable_ssl: bool = True
    allow_untrusted_certificate: bool = True
    as_user: str = CURRENT_USER_TOKEN
    share_folder: str = "home"
    remote_path: str = "/"
    local_path: str = rf"C:\Users\{CURRENT_USER_TOKEN}\SynologyDrive"


def parse_list(text: str) -> list[str]:
    """Split comma-separated text, trim entries and drop empty ones."""
    return [part.strip() for part in text.split(",") if part.strip()]


def sanitize_identifier(name: str) -> str:
    """Derive a stable build identifier from an application name.

    >>> sanitize_identifier("Synology Drive 助手")
    'synology-drive'
    """
    ascii_only = _NON_ASCII_RE.sub("", name)
    hyphenated = _WHITESPACE_RE.sub("-", ascii_only)
    cleaned = _INVALID_ID_CHARS_RE.sub("", hyphenated).lower().strip("-")
    if len(cleaned) < 2:
        return DEFAULT_IDENTIFIER
    return cleaned


class InstallerConfig(BaseModel):
    """Everything the user chose in the wizard, as one immutable value."""

    model_config = ConfigDict(frozen=True)

    # ── Identity ─────────────────────────────────────────────────
    app_name: str = "Synology Drive 助手"
    app_version: str = "3.5.1"
    publisher: str = "IT"
    msi_file_name: str = "SynologyDrive.msi"
    use_online_installer: bool = True
    download_url: str = (
        "https://archive.synology.cn/download/Utility/SynologyDriveClient/"
        "3.5.1-12888/Windows/Installer/Synology%20Drive%20Client-3.5.1-12888.msi"
    )

    # ── Presentation text ────────────────────────────────────────
    welcome_message: str = "本向导将自动下载并安装最新的 Synology Drive Client。"
    warning_title: str = "安装前须知"
    warning_message: str = "安装过程中将连接服务器配置环境，请确保网络畅通。"
    license_text: str = ""

    # ── Behavior ─────────────────────────────────────────────────
    run_as_admin: bool = True
    silent_install: bool = True
    force_clean_install: bool = True

    # ── User info ────────────────────────────────────────────────
    collect_user_info: bool = True
    use_info_for_device_name: bool = True
    project_list: str = "总经办,职能部门,卖场,万晟汇"
    department_list: str = "项目综合部,客户服务部,工程维护部,秩序维护部,环境维护部"

    # ── Backup policy ────────────────────────────────────────────
    enable_backup_selection: bool = True
    backup_mode: BackupMode = BackupMode.CONTINUOUS
    backup_start_time: str = "22:00"
    enable_smart_filters: bool = True
    backup_selection: frozenset[BackupRoot] = Field(default_factory=frozenset)

    # ── Automation ───────────────────────────────────────────────
    automation_scripts: tuple[ScriptFile, ...] = ()

    # ── Backend ──────────────────────────────────────────────────
    backend: BackendConfig = Field(default_factory=BackendConfig)

    # ── Bundle ───────────────────────────────────────────────────
    registry_mirror: str = "https://pypi.tuna.tsinghua.edu.cn/simple"

    @field_validator("backup_selection")
    @classmethod
    def _drop_redundant_desktop(cls, value: frozenset[BackupRoot]) -> frozenset[BackupRoot]:
        """``C:`` already covers the desktop, so the two never coexist."""
        from drivegenie.core.services.backup_policy import normalize

        return normalize(value)

    @property
    def app_identifier(self) -> str:
        """Sanitized identifier used to name build metadata and temp files."""
        return sanitize_identifier(self.app_name)

    @property
    def projects(self) -> list[str]:
        return parse_list(self.project_list)

    @property
    def departments(self) -> list[str]:
        return parse_list(self.department_list)

    @property
    def ordered_backup_selection(self) -> list[BackupRoot]:
        """The selection in enumeration order (stable for rendering)."""
        return [root for root in BackupRoot if root in self.backup_selection]
