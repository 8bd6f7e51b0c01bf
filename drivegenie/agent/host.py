"""
Host adapter — the agent's only route to the operating system.

The agent talks to the machine exclusively through a ``Host``.  Two
privilege contexts exist and are kept apart on purpose:

    run_elevated()  administrator, via the OS consent prompt (installer,
                    uninstaller)
    run()           the current interactive user (config injection,
                    post-install scripts)

Like every adapter, command methods never raise; failures come back
as a ``CommandResult`` with a non-zero code and an error string.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import socket
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from drivegenie.core.models.installer import ScriptKind
from drivegenie.core.services.escaping import command_line, powershell_string

logger = logging.getLogger(__name__)

_PRODUCT_CODE_RE = re.compile(r"^\{[0-9A-Fa-f-]{36}\}$")

_UNINSTALL_KEYS = (
    "HKLM:\\SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\*",
    "HKLM:\\SOFTWARE\\WOW6432Node\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\*",
)

_POWERSHELL = ["powershell.exe", "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass"]


@dataclass
class CommandResult:
    """Outcome of one process invocation."""

    return_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.return_code == 0

    @property
    def error(self) -> str:
        return self.stderr.strip() or f"exit code {self.return_code}"


def interpreter_command(kind: ScriptKind, script_path: str) -> list[str]:
    """Command line that runs a post-install script with its interpreter."""
    if kind == ScriptKind.POWERSHELL:
        return [*_POWERSHELL, "-File", script_path]
    if kind == ScriptKind.BATCH:
        return ["cmd.exe", "/c", script_path]
    return ["cscript.exe", "//NoLogo", script_path]


class Host(ABC):
    """Abstract operating-system facade used by the DeploymentAgent."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Host identifier (e.g. 'windows', 'mock')."""

    @abstractmethod
    def hostname(self) -> str:
        """The machine's network name."""

    @abstractmethod
    def expand_path(self, path: str) -> Path:
        """Expand environment references such as ``%LOCALAPPDATA%``."""

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """Whether ``path`` exists as a regular file."""

    @abstractmethod
    def run_elevated(self, args: list[str]) -> CommandResult:
        """Run as administrator through the consent prompt; block until exit."""

    @abstractmethod
    def run(self, args: list[str]) -> CommandResult:
        """Run as the current user; block until exit."""

    @abstractmethod
    def find_uninstall_codes(self, display_name: str) -> list[str]:
        """Product codes of installed packages whose name contains ``display_name``."""

    @abstractmethod
    def launch_detached(self, path: str) -> CommandResult:
        """Start ``path`` without waiting for it or keeping its handles."""

    @abstractmethod
    def remove_tree(self, path: Path) -> None:
        """Recursively delete a directory.  Raises OSError on failure."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class WindowsHost(Host):
    """Real host: PowerShell for elevation and registry, subprocess otherwise."""

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "windows"

    def hostname(self) -> str:
        return os.environ.get("COMPUTERNAME") or socket.gethostname()

    def expand_path(self, path: str) -> Path:
        return Path(os.path.expandvars(path))

    def file_exists(self, path: str) -> bool:
        return Path(path).is_file()

    def run_elevated(self, args: list[str]) -> CommandResult:
        script = (
            f"$p = Start-Process -FilePath {powershell_string(args[0])}"
            f" -ArgumentList {powershell_string(command_line(args[1:]))}"
            " -Verb RunAs -Wait -PassThru; exit $p.ExitCode"
        )
        return self._execute([*_POWERSHELL, "-Command", script])

    def run(self, args: list[str]) -> CommandResult:
        return self._execute(args)

    def find_uninstall_codes(self, display_name: str) -> list[str]:
        keys = ",".join(powershell_string(k) for k in _UNINSTALL_KEYS)
        pattern = powershell_string(f"*{display_name}*")
        script = (
            f"Get-ItemProperty {keys} -ErrorAction SilentlyContinue"
            f" | Where-Object {{ $_.DisplayName -like {pattern} }}"
            " | ForEach-Object { $_.PSChildName }"
        )
        result = self._execute([*_POWERSHELL, "-Command", script])
        if not result.ok:
            logger.warning("Uninstall lookup failed: %s", result.error)
            return []
        codes = [line.strip() for line in result.stdout.splitlines()]
        return [c for c in codes if _PRODUCT_CODE_RE.match(c)]

    def launch_detached(self, path: str) -> CommandResult:
        flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0
        )
        try:
            subprocess.Popen(
                [path],
                creationflags=flags,
                close_fds=True,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            return CommandResult(return_code=1, stderr=str(e))
        return CommandResult(return_code=0)

    def remove_tree(self, path: Path) -> None:
        shutil.rmtree(path)

    def _execute(self, args: list[str]) -> CommandResult:
        logger.debug("Executing: %s", command_line(args))
        start = time.monotonic()
        # On Windows a string is handed to CreateProcess unchanged
        cmd = command_line(args) if os.name == "nt" else args
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(return_code=1, stderr=f"Command timed out after {self._timeout}s")
        except OSError as e:
            return CommandResult(return_code=1, stderr=f"Command execution error: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        return CommandResult(
            return_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            duration_ms=elapsed_ms,
        )
