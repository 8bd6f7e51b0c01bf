"""
Backend configuration payload — the JSON handed to the MSI via CONFIGPATH.

Field names and nesting are a contract with the installed sync client:

    {
      "connections": [{
        "server_address", "username", "password", "as_user",
        "enable_ssl", "allow_untrusted_certificate", ["computer_name"],
        "sync_sessions": [{"sharefolder", "remote_path",
                           "local_path", "sync_direction"}]
      }],
      "backup_source": [...], "backup_mode": 0 | 2,
      ["backup_start_time"], ["black_list", "max_file_size"]
    }
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from drivegenie.agent.plan import DeploymentPlan
from drivegenie.core.models.installer import BackupMode, BackupRoot
from drivegenie.core.services import backup_policy

SYNC_DIRECTION = "BOTH_DIR"

DEVICE_NAME_TEMPLATE = "{project}-{department}-{hostname}"

BACKUP_MODE_CODES: dict[BackupMode, int] = {
    BackupMode.CONTINUOUS: 0,
    BackupMode.SCHEDULED: 2,
}


def device_name(project: str, department: str, hostname: str) -> str:
    """``project-department-hostname``, each segment verbatim."""
    return DEVICE_NAME_TEMPLATE.format(
        project=project, department=department, hostname=hostname
    )


def build_backend_payload(
    plan: DeploymentPlan,
    *,
    project: str = "",
    department: str = "",
    hostname: str = "",
    backup_roots: Iterable[BackupRoot] = (),
) -> dict[str, Any]:
    """Assemble the payload for one run.

    Raises:
        ValueError: If the plan has no backend section.
    """
    backend = plan.backend
    if backend is None:
        raise ValueError("Plan has no backend configuration")

    connection: dict[str, Any] = {
        "server_address": backend.server_address,
        "username": backend.username,
        "password": backend.password,
        "as_user": backend.as_user,
        "enable_ssl": backend.enable_ssl,
        "allow_untrusted_certificate": backend.allow_untrusted_certificate,
    }
    if plan.collect_user_info and plan.use_info_for_device_name and project and department:
        connection["computer_name"] = device_name(project, department, hostname)
    connection["sync_sessions"] = [
        {
            "sharefolder": backend.share_folder,
            "remote_path": backend.remote_path,
            "local_path": backend.local_path,
            "sync_direction": SYNC_DIRECTION,
        }
    ]

    payload: dict[str, Any] = {"connections": [connection]}

    if plan.enable_backup_selection:
        payload["backup_source"] = backup_policy.backup_sources(backup_roots)
        payload["backup_mode"] = BACKUP_MODE_CODES[plan.backup_mode]
        if plan.backup_mode == BackupMode.SCHEDULED:
            payload["backup_start_time"] = plan.backup_start_time

    if plan.enable_smart_filters:
        payload["black_list"] = backup_policy.black_list()
        payload["max_file_size"] = backup_policy.MAX_FILE_SIZE

    return payload


def write_payload(payload: dict[str, Any], path: Path) -> Path:
    """Serialize ``payload`` as UTF-8 JSON."""
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return path
