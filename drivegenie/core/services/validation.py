"""
Config validation — mode-dependent required fields and sanity checks.

Errors block artifact production.  Warnings are informational and are
reported by ``config check`` only.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from drivegenie.core.errors import ConfigError
from drivegenie.core.models.installer import BackupMode, InstallerConfig

_START_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_config(config: InstallerConfig) -> list[str]:
    """Return every configuration error, empty when the config is usable."""
    errors: list[str] = []

    # ── Package source ───────────────────────────────────────────
    if config.use_online_installer:
        url = config.download_url.strip()
        if not url:
            errors.append("download_url is required when the online installer is enabled.")
        elif urlsplit(url).scheme not in ("http", "https"):
            errors.append(f"download_url must be an http(s) URL: {url}")
    elif not config.msi_file_name.strip():
        errors.append("msi_file_name is required when the package is bundled.")

    if not config.app_name.strip():
        errors.append("app_name must not be empty.")

    # ── User info ────────────────────────────────────────────────
    if config.collect_user_info and not config.projects:
        errors.append("project_list must contain at least one project.")

    # ── Backup policy ────────────────────────────────────────────
    if (
        config.enable_backup_selection
        and config.backup_mode == BackupMode.SCHEDULED
        and not _START_TIME_RE.match(config.backup_start_time)
    ):
        errors.append(
            f"backup_start_time must be HH:MM for scheduled backups, got "
            f"'{config.backup_start_time}'."
        )

    # ── Backend ──────────────────────────────────────────────────
    backend = config.backend
    if backend.enabled:
        if not backend.server_address.strip():
            errors.append("backend.server_address is required when the backend is enabled.")
        if not backend.username.strip():
            errors.append("backend.username is required when the backend is enabled.")

    # ── Automation scripts ───────────────────────────────────────
    names = [s.name.strip() for s in config.automation_scripts]
    if any(not n for n in names):
        errors.append("Every automation script needs a file name.")
    dupes = {n for n in names if n and names.count(n) > 1}
    if dupes:
        errors.append(f"Duplicate automation script names: {', '.join(sorted(dupes))}")

    return errors


def config_warnings(config: InstallerConfig) -> list[str]:
    """Non-blocking observations about a config."""
    warnings: list[str] = []
    backend = config.backend

    if backend.enabled:
        warnings.append(
            "Backend credentials are embedded in plaintext in generated artifacts."
        )
        if not backend.password:
            warnings.append("backend.password is empty.")
        if backend.allow_untrusted_certificate:
            warnings.append("The sync client will accept untrusted TLS certificates.")
        if not backend.enable_ssl:
            warnings.append("TLS is disabled for the backend connection.")

    if config.collect_user_info and not config.departments:
        warnings.append(
            "department_list is empty; projects without an override will offer no departments."
        )

    if config.force_clean_install and not backend.enabled:
        warnings.append("force_clean_install only takes effect when the backend is enabled.")

    return warnings


def ensure_valid(config: InstallerConfig) -> InstallerConfig:
    """Raise ConfigError when ``config`` has errors, else return it."""
    errors = validate_config(config)
    if errors:
        raise ConfigError(
            "Invalid installer configuration: " + "; ".join(errors),
            issues=errors,
        )
    return config
