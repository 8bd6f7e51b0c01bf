"""
Configuration loader — reads installer.yml into an InstallerConfig.

This is the primary entry point for loading installer configuration.
It reads YAML, validates against the Pydantic model, and returns a
frozen snapshot.  The reverse direction (``write_config``) lets
``config init`` seed a file with the defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from drivegenie.core.errors import ConfigError
from drivegenie.core.models.installer import InstallerConfig

logger = logging.getLogger(__name__)

# Default config filename
INSTALLER_CONFIG_FILE = "installer.yml"

__all__ = [
    "INSTALLER_CONFIG_FILE",
    "ConfigError",
    "config_to_dict",
    "find_config_file",
    "load_installer_config",
    "write_config",
    "write_default_config",
]


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for installer.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to installer.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / INSTALLER_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_installer_config(path: Path | None = None) -> InstallerConfig:
    """Load and validate installer configuration.

    Args:
        path: Explicit path to installer.yml. If None, searches upward.

    Returns:
        Validated, frozen InstallerConfig.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {INSTALLER_CONFIG_FILE} found. "
            "Run 'drivegenie config init' to create one, or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading installer config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "installer" key or be flat
    if "installer" in data and isinstance(data["installer"], dict):
        data = data["installer"]

    try:
        config = InstallerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid installer configuration: {e}") from e

    logger.info("Loaded installer config for '%s'", config.app_name)
    return config


def config_to_dict(config: InstallerConfig) -> dict[str, Any]:
    """Plain-data form of a config, stable across runs."""
    data = config.model_dump(mode="json")
    data["backup_selection"] = [root.value for root in config.ordered_backup_selection]
    return data


def write_config(config: InstallerConfig, path: Path) -> Path:
    """Write a config as YAML, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = yaml.safe_dump(
        config_to_dict(config),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    path.write_text(text, encoding="utf-8")
    logger.info("Wrote installer config to %s", path)
    return path


def write_default_config(path: Path, *, overwrite: bool = False) -> Path:
    """Seed ``path`` with the default configuration.

    Raises:
        ConfigError: If the file exists and ``overwrite`` is False.
    """
    if path.exists() and not overwrite:
        raise ConfigError(f"{path} already exists (use --force to overwrite)")
    return write_config(InstallerConfig(), path)
