"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from drivegenie.agent.plan import DeploymentPlan, Timing
from drivegenie.core.models.installer import BackendConfig, BackupRoot, InstallerConfig

FAST_TIMING = Timing(
    poll_interval=0,
    ready_attempts=2,
    launcher_attempts=2,
    heartbeat_every=1,
    cleanup_delay=0,
)


@pytest.fixture
def config() -> InstallerConfig:
    """Default config with a backup selection, so it is runnable as-is."""
    return InstallerConfig(backup_selection=frozenset({BackupRoot.D}))


@pytest.fixture
def offline_config() -> InstallerConfig:
    """Bundled-package config with the backend disabled."""
    return InstallerConfig(
        app_name="Drive Setup",
        use_online_installer=False,
        msi_file_name="SynologyDrive.msi",
        backend=BackendConfig(enabled=False, password="hunter2"),
        backup_selection=frozenset({BackupRoot.D}),
    )


@pytest.fixture
def fast_plan():
    """Build a plan for a config with polling shrunk to nothing."""

    def _plan(config: InstallerConfig, **updates) -> DeploymentPlan:
        plan = DeploymentPlan.from_config(config)
        return plan.model_copy(update={"timing": FAST_TIMING, **updates})

    return _plan


@pytest.fixture
def write_yaml(tmp_path: Path):
    """Write an installer.yml from dedented text and return its path."""

    def _write(content: str, name: str = "installer.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write
