"""
DeploymentPlan — the values a bundle encodes for its agent.

A plan is derived from an InstallerConfig at generation time and
serialized into the bundle's entry script.  The agent never sees the
InstallerConfig itself; it only knows what the plan says.  When the
backend is disabled the plan carries no backend section at all, so no
credentials end up in the bundle.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from drivegenie.core.models.installer import (
    BackendConfig,
    BackupMode,
    BackupRoot,
    InstallerConfig,
    ScriptFile,
)

# ── Synology Drive Client layout ─────────────────────────────────

PROGRAM_ROOTS = ("C:\\Program Files", "C:\\Program Files (x86)")
CLIENT_BIN_DIR = "Synology\\SynologyDrive\\bin"
UNINSTALL_DISPLAY_NAME = "Synology Drive Client"
LOCAL_STATE_DIR = "%LOCALAPPDATA%\\SynologyDrive"


def _candidates(executable: str) -> list[str]:
    return [f"{root}\\{CLIENT_BIN_DIR}\\{executable}" for root in PROGRAM_ROOTS]


class ClientLayout(BaseModel):
    """Where the installed client lives and how to talk to it."""

    model_config = ConfigDict(frozen=True)

    uninstall_display_name: str = UNINSTALL_DISPLAY_NAME
    local_state_dir: str = LOCAL_STATE_DIR
    connect_candidates: tuple[str, ...] = tuple(_candidates("cloud-drive-connect.exe"))
    connect_args: tuple[str, ...] = ("--import-config", "{config_path}")
    launcher_candidates: tuple[str, ...] = tuple(_candidates("launcher.exe"))


class Timing(BaseModel):
    """Polling ceilings and delays.  Tests shrink these."""

    model_config = ConfigDict(frozen=True)

    poll_interval: float = 1.0
    ready_attempts: int = 30
    launcher_attempts: int = 10
    heartbeat_every: int = 5
    download_timeout: float = 60.0
    max_redirects: int = 10
    cleanup_delay: float = 5.0


class DeploymentPlan(BaseModel):
    """Everything the agent needs to run unattended."""

    model_config = ConfigDict(frozen=True)

    app_name: str
    app_identifier: str
    app_version: str = ""

    # ── Package source ───────────────────────────────────────────
    use_online_installer: bool = True
    download_url: str = ""
    msi_file_name: str = ""

    # ── Install behaviour ────────────────────────────────────────
    run_as_admin: bool = True
    silent_install: bool = True
    force_clean_install: bool = False

    # ── User info / backup ───────────────────────────────────────
    collect_user_info: bool = True
    use_info_for_device_name: bool = True
    enable_backup_selection: bool = False
    backup_mode: BackupMode = BackupMode.CONTINUOUS
    backup_start_time: str = ""
    enable_smart_filters: bool = False
    default_backup_selection: tuple[BackupRoot, ...] = ()

    automation_scripts: tuple[ScriptFile, ...] = ()
    backend: BackendConfig | None = None

    layout: ClientLayout = Field(default_factory=ClientLayout)
    timing: Timing = Field(default_factory=Timing)

    @property
    def backend_enabled(self) -> bool:
        return self.backend is not None

    @classmethod
    def from_config(cls, config: InstallerConfig) -> DeploymentPlan:
        """Encode the parts of ``config`` the agent acts on."""
        return cls(
            app_name=config.app_name,
            app_identifier=config.app_identifier,
            app_version=config.app_version,
            use_online_installer=config.use_online_installer,
            download_url=config.download_url if config.use_online_installer else "",
            msi_file_name=config.msi_file_name,
            run_as_admin=config.run_as_admin,
            silent_install=config.silent_install,
            force_clean_install=config.force_clean_install,
            collect_user_info=config.collect_user_info,
            use_info_for_device_name=config.use_info_for_device_name,
            enable_backup_selection=config.enable_backup_selection,
            backup_mode=config.backup_mode,
            backup_start_time=config.backup_start_time,
            enable_smart_filters=config.enable_smart_filters,
            default_backup_selection=tuple(config.ordered_backup_selection),
            automation_scripts=config.automation_scripts,
            backend=config.backend if config.backend.enabled else None,
        )
