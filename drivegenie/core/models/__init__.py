"""
Domain models — Pydantic types for the installer configurator.

All models are re-exported here for convenient access:

    from drivegenie.core.models import InstallerConfig, BackendConfig, BackupRoot
"""

from drivegenie.core.models.installer import (
    CURRENT_USER_TOKEN,
    DEFAULT_IDENTIFIER,
    BackendConfig,
    BackupMode,
    BackupRoot,
    InstallerConfig,
    ScriptFile,
    ScriptKind,
    parse_list,
    sanitize_identifier,
)
from drivegenie.core.models.run_state import (
    INDETERMINATE,
    DeploymentRunState,
    RunPhase,
    RunResult,
)
from drivegenie.core.models.template import Artifact, ArtifactKind, GeneratedFile

__all__ = [
    # template.py
    "Artifact",
    "ArtifactKind",
    # installer.py
    "BackendConfig",
    "BackupMode",
    "BackupRoot",
    "CURRENT_USER_TOKEN",
    "DEFAULT_IDENTIFIER",
    # run_state.py
    "DeploymentRunState",
    "GeneratedFile",
    "INDETERMINATE",
    "InstallerConfig",
    "RunPhase",
    "RunResult",
    "ScriptFile",
    "ScriptKind",
    "parse_list",
    "sanitize_identifier",
]
