"""
Config check use case — validate installer.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from drivegenie.core.config.loader import (
    INSTALLER_CONFIG_FILE,
    ConfigError,
    find_config_file,
    load_installer_config,
)
from drivegenie.core.models.installer import InstallerConfig
from drivegenie.core.services.validation import config_warnings, validate_config


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: InstallerConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "app_name": self.config.app_name if self.config else None,
            "app_identifier": self.config.app_identifier if self.config else None,
            "project_count": len(self.config.projects) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate installer configuration and report issues.

    Args:
        config_path: Optional explicit path to installer.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append(f"No {INSTALLER_CONFIG_FILE} found.")
        return result
    result.config_path = config_path

    try:
        config = load_installer_config(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.config = config

    result.errors.extend(validate_config(config))
    result.warnings.extend(config_warnings(config))

    result.valid = len(result.errors) == 0
    return result
