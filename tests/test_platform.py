"""Tests for platform helpers."""

import os
from pathlib import Path

import pytest

from gof5.core.errors import PermissionDenied
from gof5.daemon.platform import (
    check_permissions,
    get_log_file,
    get_pid_file,
    is_process_running,
)


class TestPaths:
    """Per-user PID and log locations."""

    def test_posix_paths(self, make_context):
        context = make_context(platform="linux")

        assert get_pid_file(context, "jdoe") == Path("/tmp/gof5/jdoe.pid")
        assert get_log_file(context, "jdoe") == Path("/tmp/gof5/jdoe.log")

    def test_windows_uses_temp_dir(self, make_context, monkeypatch, tmp_path):
        """Test that Windows keeps markers under the system temp directory."""
        monkeypatch.setattr("tempfile.gettempdir", lambda: str(tmp_path))
        context = make_context(platform="win32")

        assert get_pid_file(context, "jdoe") == tmp_path / "gof5" / "jdoe.pid"


class TestPermissions:
    """Privilege precheck."""

    def test_root_allowed(self, make_context):
        check_permissions(make_context(euid=0, uid=0))

    def test_unprivileged_refused(self, make_context):
        with pytest.raises(PermissionDenied, match="needs to be run with sudo"):
            check_permissions(make_context(euid=1000, uid=1000))


class TestProcessRunning:
    """Liveness probe."""

    def test_self_is_running(self):
        assert is_process_running(os.getpid())

    def test_invalid_pids(self):
        assert not is_process_running(0)
        assert not is_process_running(-5)

    def test_missing_process(self):
        """Test that a PID beyond the kernel limit is not running."""
        assert not is_process_running(2 ** 22 + 12345)
