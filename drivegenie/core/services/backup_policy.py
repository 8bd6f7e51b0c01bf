"""
Backup selection policy — which roots get backed up, and what is skipped.

Selection rules:
    - Toggling adds an absent root and removes a present one.
    - ``C:`` contains the desktop, so ``C:`` and ``Desktop`` never
      coexist.  Whichever was clicked last survives.
    - With selection enabled at least one root is required.

Smart filter policy is a blacklist: everything under the selected
roots is backed up EXCEPT the junk below.  Chat applications keep
their pictures under the same data folder as their video and message
databases, so only those sub-paths are excluded, never the folder.
"""

from __future__ import annotations

from collections.abc import Iterable

from drivegenie.core.models.installer import CURRENT_USER_TOKEN, BackupRoot

# 2 GiB
MAX_FILE_SIZE = 2 * 1024 * 1024 * 1024

JUNK_EXTENSIONS: tuple[str, ...] = (
    ".tmp", ".log", ".bak", ".lnk", ".url", ".sys", ".dll", ".exe", ".msi",
    ".bat", ".cmd", ".com", ".iso", ".gho", ".db", ".db-shm", ".db-wal", ".dat",
)

JUNK_FILE_NAMES: tuple[str, ...] = ("desktop.ini", "Thumbs.db", "~$*")

CHAT_CACHE_PATTERNS: tuple[str, ...] = (
    "WeChat Files\\*\\Video",
    "WeChat Files\\*\\Msg",
    "FileStorage\\Video",
    "FileStorage\\Msg",
)

SYSTEM_DIRECTORIES: tuple[str, ...] = (
    "C:\\Windows",
    "C:\\Program Files",
    "C:\\Program Files (x86)",
    "C:\\ProgramData",
    "C:\\$Recycle.Bin",
)

EXCLUSIVE_PAIRS: dict[BackupRoot, BackupRoot] = {
    BackupRoot.C: BackupRoot.DESKTOP,
    BackupRoot.DESKTOP: BackupRoot.C,
}


def toggle(current: Iterable[BackupRoot], item: BackupRoot) -> frozenset[BackupRoot]:
    """Return the selection after the user clicks ``item``."""
    selection = set(current)
    if item in selection:
        selection.discard(item)
        return frozenset(selection)

    selection.add(item)
    evicted = EXCLUSIVE_PAIRS.get(item)
    if evicted is not None:
        selection.discard(evicted)
    return frozenset(selection)


def normalize(selection: Iterable[BackupRoot]) -> frozenset[BackupRoot]:
    """Resolve a selection that arrived without going through ``toggle``.

    When both ``C:`` and ``Desktop`` are present the desktop is
    redundant and is dropped.
    """
    roots = frozenset(BackupRoot(r) for r in selection)
    if BackupRoot.C in roots:
        roots = roots - {BackupRoot.DESKTOP}
    return roots


def is_valid(selection: Iterable[BackupRoot], enabled: bool) -> bool:
    """Selection is optional when disabled, non-empty when enabled."""
    if not enabled:
        return True
    return len(frozenset(selection)) > 0


def root_path(root: BackupRoot) -> str:
    """Concrete path for a root; the desktop uses the current-user token."""
    if root == BackupRoot.DESKTOP:
        return f"C:\\Users\\{CURRENT_USER_TOKEN}\\Desktop"
    return f"{root.value}\\"


def backup_sources(selection: Iterable[BackupRoot]) -> list[str]:
    """Paths for a selection, in enumeration order."""
    chosen = normalize(selection)
    return [root_path(root) for root in BackupRoot if root in chosen]


def black_list() -> list[str]:
    """All exclusion patterns, in a fixed order."""
    patterns = [f"*{ext}" for ext in JUNK_EXTENSIONS]
    patterns.extend(JUNK_FILE_NAMES)
    patterns.extend(CHAT_CACHE_PATTERNS)
    patterns.extend(SYSTEM_DIRECTORIES)
    return patterns
