"""PID marker: per-user record of the running gof5 instance.

The marker file holds the decimal PID of the active instance. On POSIX it is
also locked with flock() for as long as the instance lives, so a second
instance cannot start in the window between checking and writing the file.
The lock belongs to the open file description, which lets a parent hand the
marker to its daemon child by passing the descriptor on.
"""

import errno
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from ..core.context import InvocationContext
from ..core.errors import AlreadyRunning, DaemonError
from .platform import is_process_running

if sys.platform != "win32":
    import fcntl

log = logging.getLogger(__name__)


def _read_pid(fd: int) -> Optional[int]:
    try:
        os.lseek(fd, 0, os.SEEK_SET)
        data = os.read(fd, 64)
    except OSError:
        return None
    try:
        return int(data.decode("ascii").strip())
    except (UnicodeDecodeError, ValueError):
        return None


def read_pid_file(path: Path) -> Optional[int]:
    """PID recorded in a marker, or None if absent or garbled."""
    try:
        return int(Path(path).read_text().strip())
    except (OSError, ValueError):
        return None


class PidMarker:
    """Owned PID marker file."""

    def __init__(self, path: Path, context: InvocationContext):
        self.path = Path(path)
        self._locking = not context.is_windows
        self._fd: Optional[int] = None
        self._owned = False

    @property
    def fd(self) -> Optional[int]:
        return self._fd

    @property
    def owned(self) -> bool:
        return self._owned

    def acquire(self) -> None:
        """Create (or take over) the marker and record the current PID.

        Raises:
            AlreadyRunning: If a live instance holds the marker
            DaemonError: If the marker cannot be written
        """
        try:
            self.path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise DaemonError(f"failed to create PID directory: {e}") from e

        while True:
            try:
                fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
            except OSError as e:
                raise DaemonError(f"failed to write PID file: {e}") from e

            if not self._locking:
                previous = _read_pid(fd)
                if previous and previous != os.getpid() and is_process_running(previous):
                    os.close(fd)
                    raise AlreadyRunning(previous, self.path)
                break

            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError as e:
                previous = _read_pid(fd)
                os.close(fd)
                if e.errno in (errno.EWOULDBLOCK, errno.EAGAIN, errno.EACCES):
                    raise AlreadyRunning(previous, self.path) from e
                raise DaemonError(f"failed to lock PID file: {e}") from e

            # the previous owner may have unlinked the file while we waited on it
            try:
                if os.stat(self.path).st_ino == os.fstat(fd).st_ino:
                    break
            except FileNotFoundError:
                pass
            os.close(fd)

        previous = _read_pid(fd)
        if previous and previous != os.getpid():
            log.info(f"Replacing stale PID marker of PID {previous}")

        self._fd = fd
        self._owned = True
        try:
            self.rewrite()
        except OSError as e:
            self.release()
            raise DaemonError(f"failed to write PID file: {e}") from e

    @classmethod
    def adopt(cls, path: Path, fd: int, context: InvocationContext) -> "PidMarker":
        """Take ownership of a marker whose locked descriptor was inherited.

        Raises:
            OSError: If ``fd`` is not an open descriptor
        """
        os.fstat(fd)
        # keep the lock out of processes the engine spawns
        os.set_inheritable(fd, False)
        marker = cls(path, context)
        marker._fd = fd
        marker._owned = True
        return marker

    def rewrite(self, pid: Optional[int] = None) -> None:
        """Record ``pid`` (default: the current process) in the marker.

        Raises:
            OSError: If the marker cannot be written
        """
        if pid is None:
            pid = os.getpid()
        data = str(pid).encode("ascii")
        if self._fd is None:
            self.path.write_bytes(data)
            return
        os.lseek(self._fd, 0, os.SEEK_SET)
        os.ftruncate(self._fd, 0)
        os.write(self._fd, data)

    def _close(self) -> None:
        if self._fd is not None:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = None

    def detach(self) -> None:
        """Give up this process's handle but leave the marker for the new owner."""
        self._close()
        self._owned = False

    def release(self) -> None:
        """Remove the marker if this process owns it."""
        if not self._owned:
            self._close()
            return
        self._owned = False

        # Windows refuses to delete open files
        if not self._locking:
            self._close()
        try:
            self.path.unlink()
        except FileNotFoundError:
            log.debug(f"PID file {self.path} already removed")
        except OSError as e:
            log.warning(f"Failed to remove PID file: {e}")
        finally:
            self._close()
