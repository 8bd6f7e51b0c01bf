"""
Tests for the backup selection policy and smart filters.
"""

import pytest

from drivegenie.core.models.installer import BackupRoot
from drivegenie.core.services import backup_policy

C = BackupRoot.C
D = BackupRoot.D
DESKTOP = BackupRoot.DESKTOP


# ── Selection ───────────────────────────────────────────────────────


class TestToggle:
    def test_add_and_remove(self):
        selection = backup_policy.toggle(frozenset(), D)
        assert selection == {D}
        assert backup_policy.toggle(selection, D) == frozenset()

    def test_c_evicts_desktop(self):
        assert backup_policy.toggle({DESKTOP, D}, C) == {C, D}

    def test_desktop_evicts_c(self):
        assert backup_policy.toggle({C, D}, DESKTOP) == {DESKTOP, D}

    def test_never_both(self):
        selection = frozenset()
        for item in [C, DESKTOP, C, D, DESKTOP, C]:
            selection = backup_policy.toggle(selection, item)
            assert not {C, DESKTOP} <= selection

    def test_double_toggle_restores_without_eviction(self):
        start = frozenset({D, BackupRoot.E})
        once = backup_policy.toggle(start, BackupRoot.F)
        assert backup_policy.toggle(once, BackupRoot.F) == start


class TestNormalize:
    def test_c_absorbs_desktop(self):
        assert backup_policy.normalize([DESKTOP, C]) == {C}

    def test_accepts_strings(self):
        assert backup_policy.normalize(["D:", "Desktop"]) == {D, DESKTOP}

    def test_unknown_root(self):
        with pytest.raises(ValueError):
            backup_policy.normalize(["Z:"])


class TestIsValid:
    def test_disabled_always_valid(self):
        assert backup_policy.is_valid([], enabled=False)

    def test_enabled_needs_one(self):
        assert not backup_policy.is_valid([], enabled=True)
        assert backup_policy.is_valid([D], enabled=True)


class TestBackupSources:
    def test_paths_in_display_order(self):
        assert backup_policy.backup_sources({BackupRoot.G, DESKTOP}) == [
            "C:\\Users\\$\\Desktop",
            "G:\\",
        ]

    def test_desktop_dropped_with_c(self):
        assert backup_policy.backup_sources({DESKTOP, C, D}) == ["C:\\", "D:\\"]


# ── Smart filters ───────────────────────────────────────────────────


class TestBlackList:
    def test_extensions_become_globs(self):
        patterns = backup_policy.black_list()
        assert "*.tmp" in patterns
        assert "*.msi" in patterns
        assert "*.db-wal" in patterns

    def test_chat_media_kept(self):
        patterns = backup_policy.black_list()
        assert "WeChat Files\\*\\Video" in patterns
        assert not any(p.endswith("Image") for p in patterns)
        assert "WeChat Files" not in patterns

    def test_system_dirs(self):
        assert "C:\\Windows" in backup_policy.black_list()

    def test_max_file_size(self):
        assert backup_policy.MAX_FILE_SIZE == 2147483648

    def test_stable_order(self):
        assert backup_policy.black_list() == backup_policy.black_list()
