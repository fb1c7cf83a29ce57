"""Tests for the PID marker."""

import os

import pytest

from gof5.core.errors import AlreadyRunning
from gof5.daemon import pidfile
from gof5.daemon.pidfile import PidMarker, read_pid_file


@pytest.fixture
def pid_path(tmp_path):
    return tmp_path / "gof5" / "jdoe.pid"


class TestAcquire:
    """Creating and locking the marker."""

    def test_writes_current_pid(self, make_context, pid_path):
        """Test that the marker holds our PID and its directory is created."""
        marker = PidMarker(pid_path, make_context())
        marker.acquire()
        try:
            assert read_pid_file(pid_path) == os.getpid()
            assert marker.owned
        finally:
            marker.release()

        assert not pid_path.exists()

    def test_second_instance_refused(self, make_context, pid_path):
        """Test that a held marker cannot be taken again."""
        first = PidMarker(pid_path, make_context())
        first.acquire()
        try:
            with pytest.raises(AlreadyRunning) as exc:
                PidMarker(pid_path, make_context()).acquire()
            assert exc.value.pid == os.getpid()
            assert read_pid_file(pid_path) == os.getpid()
        finally:
            first.release()

    def test_stale_marker_replaced(self, make_context, pid_path, caplog):
        """Test that an unlocked marker left by a dead process is taken over."""
        caplog.set_level("INFO")
        pid_path.parent.mkdir(parents=True)
        pid_path.write_text("999999")

        marker = PidMarker(pid_path, make_context())
        marker.acquire()
        try:
            assert read_pid_file(pid_path) == os.getpid()
            assert "Replacing stale PID marker of PID 999999" in caplog.text
        finally:
            marker.release()

    def test_garbage_marker_replaced(self, make_context, pid_path):
        pid_path.parent.mkdir(parents=True)
        pid_path.write_text("not a pid\n")

        marker = PidMarker(pid_path, make_context())
        marker.acquire()
        try:
            assert read_pid_file(pid_path) == os.getpid()
        finally:
            marker.release()


class TestAdvisoryMode:
    """Marker handling without flock (Windows)."""

    def test_live_pid_refused(self, make_context, pid_path, monkeypatch):
        """Test that a marker naming a live process blocks start-up."""
        monkeypatch.setattr(pidfile, "is_process_running", lambda pid: True)
        pid_path.parent.mkdir(parents=True)
        pid_path.write_text("4242")

        with pytest.raises(AlreadyRunning) as exc:
            PidMarker(pid_path, make_context(platform="win32")).acquire()

        assert exc.value.pid == 4242

    def test_dead_pid_overwritten(self, make_context, pid_path, monkeypatch):
        """Test that a marker naming a dead process is overwritten."""
        monkeypatch.setattr(pidfile, "is_process_running", lambda pid: False)
        pid_path.parent.mkdir(parents=True)
        pid_path.write_text("4242")

        marker = PidMarker(pid_path, make_context(platform="win32"))
        marker.acquire()

        assert read_pid_file(pid_path) == os.getpid()
        marker.release()
        assert not pid_path.exists()


class TestOwnership:
    """Hand-over between processes."""

    def test_detach_leaves_marker(self, make_context, pid_path):
        """Test that a detached marker survives release."""
        marker = PidMarker(pid_path, make_context())
        marker.acquire()

        marker.detach()
        marker.release()

        assert not marker.owned
        assert read_pid_file(pid_path) == os.getpid()

    def test_adopt_and_rewrite(self, make_context, pid_path):
        """Test that an inherited descriptor can be adopted and rewritten."""
        pid_path.parent.mkdir(parents=True)
        fd = os.open(pid_path, os.O_RDWR | os.O_CREAT, 0o644)

        marker = PidMarker.adopt(pid_path, fd, make_context())
        marker.rewrite(12345)

        assert read_pid_file(pid_path) == 12345
        assert not os.get_inheritable(fd)
        marker.release()
        assert not pid_path.exists()

    def test_adopt_invalid_descriptor(self, make_context, pid_path, tmp_path):
        """Test that adopting a closed descriptor fails."""
        fd = os.open(tmp_path / "scratch", os.O_RDWR | os.O_CREAT)
        os.close(fd)

        with pytest.raises(OSError):
            PidMarker.adopt(pid_path, fd, make_context())

    def test_release_missing_file(self, make_context, pid_path, caplog):
        """Test that a marker removed behind our back is not an error."""
        marker = PidMarker(pid_path, make_context())
        marker.acquire()
        pid_path.unlink()

        marker.release()

        assert "Failed to remove PID file" not in caplog.text

    def test_release_failure_is_warning(self, make_context, pid_path, monkeypatch, caplog):
        """Test that a failed removal is logged, not raised."""
        marker = PidMarker(pid_path, make_context())
        marker.acquire()

        def deny(self, *args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(type(pid_path), "unlink", deny)
        marker.release()
        monkeypatch.undo()

        assert "Failed to remove PID file" in caplog.text
        pid_path.unlink()
