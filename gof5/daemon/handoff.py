"""Credential hand-off between the foreground parent and its daemon child.

The parent passes three descriptors to the child: the read end of a pipe
carrying the password, the write end of a pipe for the child's start-up
acknowledgement, and optionally the locked PID marker. Only the descriptor
numbers travel through the environment (``__GOF5_HANDOFF``); the password
itself never does.
"""

import logging
import os
from typing import Optional, Tuple

log = logging.getLogger(__name__)


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def _read_all(fd: int, stop: Optional[bytes] = None) -> bytes:
    chunks = []
    while True:
        chunk = os.read(fd, 4096)
        if not chunk:
            break
        chunks.append(chunk)
        if stop is not None and stop in chunk:
            break
    return b"".join(chunks)


def _close(fd: Optional[int]) -> None:
    if fd is None:
        return
    try:
        os.close(fd)
    except OSError:
        pass


class HandoffChannel:
    """Parent side of the hand-off."""

    def __init__(self, marker_fd: Optional[int] = None):
        self._secret_r, self._secret_w = os.pipe()
        self._ack_r, self._ack_w = os.pipe()
        self._marker_fd = marker_fd

    @property
    def env_value(self) -> str:
        """Value for the hand-off variable in the child's environment."""
        fds = [self._secret_r, self._ack_w]
        if self._marker_fd is not None:
            fds.append(self._marker_fd)
        return ":".join(str(fd) for fd in fds)

    @property
    def child_fds(self) -> Tuple[int, ...]:
        """Descriptors the child must inherit."""
        fds = (self._secret_r, self._ack_w)
        if self._marker_fd is not None:
            fds += (self._marker_fd,)
        return fds

    def close_child_ends(self) -> None:
        """Drop the parent's copies of the child's ends once it is launched."""
        _close(self._secret_r)
        _close(self._ack_w)
        self._secret_r = self._ack_w = None

    def send_secret(self, secret: str) -> None:
        """Write the password and close the pipe; the child reads until EOF."""
        try:
            _write_all(self._secret_w, secret.encode("utf-8"))
        finally:
            _close(self._secret_w)
            self._secret_w = None

    def wait_for_ack(self) -> Optional[int]:
        """Block until the child confirms start-up.

        Returns:
            The PID the child reported, or None if it exited without confirming
        """
        try:
            data = _read_all(self._ack_r, stop=b"\n")
        finally:
            _close(self._ack_r)
            self._ack_r = None
        try:
            return int(data.decode("ascii").strip())
        except (UnicodeDecodeError, ValueError):
            return None

    def close(self) -> None:
        for fd in (self._secret_r, self._secret_w, self._ack_r, self._ack_w):
            _close(fd)
        self._secret_r = self._secret_w = self._ack_r = self._ack_w = None


class HandoffReceiver:
    """Child side of the hand-off."""

    def __init__(self, secret_fd: int, ack_fd: int, marker_fd: Optional[int] = None):
        self.secret_fd = secret_fd
        self.ack_fd = ack_fd
        self.marker_fd = marker_fd

    @classmethod
    def parse(cls, value: str) -> "HandoffReceiver":
        """Parse the hand-off variable.

        Raises:
            ValueError: If the value is malformed
        """
        parts = [int(part) for part in value.split(":")]
        if len(parts) not in (2, 3) or any(fd < 0 for fd in parts):
            raise ValueError(f"malformed hand-off value {value!r}")
        return cls(*parts)

    def read_secret(self) -> str:
        """Read the password once; the descriptor is closed afterwards."""
        if self.secret_fd is None:
            return ""
        try:
            return _read_all(self.secret_fd).decode("utf-8")
        finally:
            _close(self.secret_fd)
            self.secret_fd = None

    def acknowledge(self, pid: int) -> None:
        """Tell the parent the daemon has taken over."""
        if self.ack_fd is None:
            return
        try:
            _write_all(self.ack_fd, f"{pid}\n".encode("ascii"))
        except OSError as e:
            log.warning(f"Failed to acknowledge daemon start-up: {e}")
        finally:
            _close(self.ack_fd)
            self.ack_fd = None

    def close(self) -> None:
        _close(self.secret_fd)
        _close(self.ack_fd)
        self.secret_fd = self.ack_fd = None
