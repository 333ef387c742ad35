"""
Unit tests for rin.core.tools.sandbox.
"""

import os

import pytest

from rin.core.tools import resolve_sandboxed_path
from rin.errors import SandboxViolation


class TestSandboxedCallers:
    """Non-privileged callers stay inside their folder."""

    def test_relative_path_resolves_inside_root(self, sandbox_root):
        resolved = resolve_sandboxed_path("notes/today.txt", sandbox_root)
        assert resolved == sandbox_root / "notes" / "today.txt"

    def test_empty_path_is_the_root(self, sandbox_root):
        assert resolve_sandboxed_path("", sandbox_root) == sandbox_root
        assert resolve_sandboxed_path(None, sandbox_root) == sandbox_root

    def test_absolute_path_is_rebased_on_root(self, sandbox_root):
        """A leading slash is stripped, not honoured."""
        resolved = resolve_sandboxed_path("/etc/passwd", sandbox_root)
        assert resolved == sandbox_root / "etc" / "passwd"

    def test_parent_traversal_rejected(self, sandbox_root):
        with pytest.raises(SandboxViolation, match="outside your designated folder"):
            resolve_sandboxed_path("../43/secret.txt", sandbox_root)

    def test_nested_traversal_rejected(self, sandbox_root):
        with pytest.raises(SandboxViolation):
            resolve_sandboxed_path("a/../../../etc/passwd", sandbox_root)

    def test_traversal_that_stays_inside_is_allowed(self, sandbox_root):
        resolved = resolve_sandboxed_path("a/../b.txt", sandbox_root)
        assert resolved == sandbox_root / "b.txt"

    def test_symlink_escaping_root_rejected(self, sandbox_root, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("secret")
        os.symlink(outside, sandbox_root / "link.txt")

        with pytest.raises(SandboxViolation):
            resolve_sandboxed_path("link.txt", sandbox_root)

    def test_dangling_symlink_escaping_root_rejected(self, sandbox_root, tmp_path):
        os.symlink(tmp_path / "does-not-exist", sandbox_root / "dangling")

        with pytest.raises(SandboxViolation):
            resolve_sandboxed_path("dangling", sandbox_root)

    def test_symlink_inside_root_allowed(self, sandbox_root):
        target = sandbox_root / "real.txt"
        target.write_text("ok")
        os.symlink(target, sandbox_root / "alias.txt")

        assert resolve_sandboxed_path("alias.txt", sandbox_root) == sandbox_root / "alias.txt"

    def test_nonexistent_target_allowed_for_writes(self, sandbox_root):
        resolved = resolve_sandboxed_path("new/dir/file.txt", sandbox_root)
        assert not resolved.exists()
        assert str(resolved).startswith(str(sandbox_root))

    def test_new_file_under_symlinked_folder_rejected(self, sandbox_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        os.symlink(outside, sandbox_root / "evil")

        with pytest.raises(SandboxViolation):
            resolve_sandboxed_path("evil/new.txt", sandbox_root)
        with pytest.raises(SandboxViolation):
            resolve_sandboxed_path("evil/deeper/new.txt", sandbox_root)
        assert not (outside / "new.txt").exists()

    def test_new_file_under_symlinked_folder_inside_root_allowed(self, sandbox_root):
        (sandbox_root / "real").mkdir()
        os.symlink(sandbox_root / "real", sandbox_root / "shortcut")

        resolved = resolve_sandboxed_path("shortcut/new.txt", sandbox_root)
        assert resolved == sandbox_root / "shortcut" / "new.txt"


class TestPrivilegedCallers:
    """Admins address the filesystem directly."""

    def test_admin_absolute_path_unchanged(self, sandbox_root):
        assert str(resolve_sandboxed_path("/var/log/syslog", sandbox_root, privileged=True)) == "/var/log/syslog"

    def test_admin_send_file_bare_name_uses_own_folder(self, sandbox_root):
        resolved = resolve_sandboxed_path("report.pdf", sandbox_root, privileged=True, op="send_file")
        assert resolved == sandbox_root / "report.pdf"

    def test_admin_traversal_is_not_checked(self, sandbox_root):
        resolved = resolve_sandboxed_path("../elsewhere.txt", sandbox_root, privileged=True)
        assert str(resolved) == "../elsewhere.txt"
