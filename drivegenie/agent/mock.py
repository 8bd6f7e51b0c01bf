"""
Mock host — simulates a Windows machine without touching it.

Used by ``drivegenie agent run --mock`` to rehearse a plan on any OS,
and by the test suite.  Every call is recorded; exit codes, registry
entries and files that "appear" after N probes are configurable.
"""

from __future__ import annotations

from pathlib import Path

from drivegenie.agent.host import CommandResult, Host


class MockHost(Host):
    """Scriptable host double.

    By default every command succeeds, nothing is installed and no
    file ever appears.
    """

    def __init__(
        self,
        hostname: str = "DESKTOP-MOCK",
        root: Path | None = None,
    ):
        self._hostname = hostname
        self._root = root
        self.calls: list[tuple[str, list[str]]] = []
        self.removed: list[Path] = []
        self.launched: list[str] = []
        self.uninstall_codes: list[str] = []
        self.elevated_exit_codes: dict[str, int] = {}
        self.user_exit_codes: dict[str, int] = {}
        self.remove_error: OSError | None = None
        # path → number of probes before it exists (0 = immediately)
        self._appear_after: dict[str, int] = {}
        self._probes: dict[str, int] = {}

    @property
    def name(self) -> str:
        return "mock"

    def hostname(self) -> str:
        return self._hostname

    def expand_path(self, path: str) -> Path:
        expanded = path.replace("%LOCALAPPDATA%", "LocalAppData")
        if self._root is not None:
            return self._root / expanded.replace("\\", "/")
        return Path(expanded)

    def make_available(self, path: str, after_probes: int = 0) -> None:
        """Let ``path`` exist once it has been probed ``after_probes`` times."""
        self._appear_after[path] = after_probes

    def probe_count(self, path: str) -> int:
        return self._probes.get(path, 0)

    def file_exists(self, path: str) -> bool:
        seen = self._probes.get(path, 0)
        self._probes[path] = seen + 1
        threshold = self._appear_after.get(path)
        return threshold is not None and seen >= threshold

    def run_elevated(self, args: list[str]) -> CommandResult:
        self.calls.append(("elevated", list(args)))
        return CommandResult(return_code=self._code_for(args, self.elevated_exit_codes))

    def run(self, args: list[str]) -> CommandResult:
        self.calls.append(("user", list(args)))
        code = self._code_for(args, self.user_exit_codes)
        return CommandResult(return_code=code, stderr="" if code == 0 else "mock failure")

    def find_uninstall_codes(self, display_name: str) -> list[str]:
        self.calls.append(("registry", [display_name]))
        return list(self.uninstall_codes)

    def launch_detached(self, path: str) -> CommandResult:
        self.launched.append(path)
        return CommandResult(return_code=0)

    def remove_tree(self, path: Path) -> None:
        if self.remove_error is not None:
            raise self.remove_error
        self.removed.append(path)

    def calls_of(self, kind: str) -> list[list[str]]:
        return [args for k, args in self.calls if k == kind]

    @staticmethod
    def _code_for(args: list[str], codes: dict[str, int]) -> int:
        """First configured code whose key appears in the command line."""
        for key, code in codes.items():
            if any(key in arg for arg in args):
                return code
        return 0
