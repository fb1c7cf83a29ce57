"""Foreground/daemon process supervision.

A foreground gof5 asked to run as a daemon re-executes itself as a new
session leader with stdin and stdout on /dev/null and stderr on the log
file. The parent passes the password and the locked PID marker to the child
(see :mod:`gof5.daemon.handoff`), waits until the child confirms it has
taken the marker over, and exits.
"""

import enum
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..core.context import InvocationContext, child_environment
from ..core.credentials import require_password
from ..core.errors import DaemonError
from ..core.options import Options
from ..logs import redirect_logging
from .handoff import HandoffChannel, HandoffReceiver
from .pidfile import PidMarker

log = logging.getLogger(__name__)

STDERR_FD = 2


class SupervisorState(enum.Enum):
    FOREGROUND = "foreground"
    PARENT_BEFORE_FORK = "parent-before-fork"
    DAEMON_CHILD = "daemon-child"


class ProcessSupervisor:
    """Drives the foreground -> daemon transition."""

    def __init__(
            self,
            context: InvocationContext,
            argv: Sequence[str],
            log_path: Path,
            popen: Optional[Callable[..., subprocess.Popen]] = None,
    ):
        """Initialize supervisor.

        Args:
            context: Captured invocation context
            argv: Command-line arguments (without the program name) for the child
            log_path: Daemon log file
            popen: Process launcher (default: subprocess.Popen)
        """
        self._context = context
        self._argv = list(argv)
        self.log_path = Path(log_path)
        self._popen = popen or subprocess.Popen
        self._receiver: Optional[HandoffReceiver] = None
        self._log_file = None
        self.state = SupervisorState.DAEMON_CHILD if context.daemon_child else SupervisorState.FOREGROUND

    @property
    def is_daemon_child(self) -> bool:
        return self.state == SupervisorState.DAEMON_CHILD

    def child_command(self) -> list:
        """Command line that re-runs this program with the same arguments."""
        return [sys.executable, "-m", "gof5", *self._argv]

    # === Child side ===

    def receive_password(self) -> Optional[str]:
        """Read the password handed over by the parent (daemon child only).

        Returns:
            The password, or None outside a daemon child or without a hand-off

        Raises:
            DaemonError: If the hand-off variable is malformed; exiting closes
                the inherited descriptors so the waiting parent sees EOF
        """
        if not self.is_daemon_child:
            return None
        if not self._context.handoff:
            log.warning("Started as daemon child without a credential hand-off")
            return None

        try:
            self._receiver = HandoffReceiver.parse(self._context.handoff)
        except ValueError as e:
            raise DaemonError(f"invalid credential hand-off: {e}") from e

        try:
            return self._receiver.read_secret() or None
        except OSError as e:
            log.warning(f"Failed to read credential hand-off: {e}")
            return None

    def enter_daemon_child(self, pid_path: Path) -> PidMarker:
        """Finish start-up in the daemon child.

        Redirects logging and the raw stderr descriptor to the log file,
        takes over the PID marker and confirms start-up to the parent.

        Args:
            pid_path: PID marker path

        Returns:
            The PID marker, now owned by this process

        Raises:
            AlreadyRunning: If there was no inherited marker and another instance holds it
            DaemonError: If there was no inherited marker and it cannot be created
        """
        if not self.is_daemon_child:
            raise DaemonError("not running as daemon child")

        try:
            self.log_path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
            self._log_file = open(self.log_path, "a", buffering=1, encoding="utf-8")
        except OSError as e:
            log.warning(f"Failed to open log file {self.log_path}: {e}")
        else:
            redirect_logging(self._log_file)
            # also capture anything written straight to stderr
            os.dup2(self._log_file.fileno(), STDERR_FD)

        marker = None
        receiver = self._receiver
        if receiver is not None and receiver.marker_fd is not None:
            try:
                marker = PidMarker.adopt(pid_path, receiver.marker_fd, self._context)
            except OSError as e:
                log.warning(f"Inherited PID marker is unusable: {e}")

        if marker is None:
            marker = PidMarker(pid_path, self._context)
            marker.acquire()
        else:
            try:
                marker.rewrite()
            except OSError as e:
                log.warning(f"Failed to rewrite PID file: {e}")

        if receiver is not None:
            receiver.acknowledge(os.getpid())
        log.info(f"Running as daemon (PID {os.getpid()})")
        return marker

    # === Parent side ===

    def daemonize(
            self,
            options: Options,
            marker: Optional[PidMarker],
    ) -> int:
        """Detach into a daemon child.

        On success the marker has been handed to the child and the caller
        should exit with status 0 without removing it.

        Args:
            options: Resolved options, including the password
            marker: PID marker owned by this process

        Returns:
            PID of the daemon child

        Raises:
            DaemonError: If daemon mode is unsupported or the child fails to start
            CredentialError: If no password was resolved
        """
        if self.state != SupervisorState.FOREGROUND:
            raise DaemonError(f"cannot daemonize from state {self.state.value}")
        if self._context.is_windows:
            raise DaemonError("daemon mode is not supported on Windows")

        require_password(options)
        self.state = SupervisorState.PARENT_BEFORE_FORK

        try:
            self.log_path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise DaemonError(f"failed to create log directory: {e}") from e

        try:
            log_fd = os.open(self.log_path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o644)
        except OSError as e:
            raise DaemonError(f"failed to open log file: {e}") from e

        channel = HandoffChannel(marker.fd if marker is not None else None)
        env = child_environment(os.environ, channel.env_value)

        try:
            proc = self._popen(
                self.child_command(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=log_fd,
                env=env,
                pass_fds=channel.child_fds,
                start_new_session=True,
            )
        except OSError as e:
            channel.close()
            raise DaemonError(f"failed to start daemon process: {e}") from e
        finally:
            os.close(log_fd)

        channel.close_child_ends()
        try:
            channel.send_secret(options.password)
        except OSError as e:
            log.debug(f"Credential hand-off interrupted: {e}")

        child_pid = channel.wait_for_ack()
        if child_pid is None:
            try:
                status = proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                status = None
            raise DaemonError(
                f"daemon process exited before taking over (status {status}), see {self.log_path}"
            )

        if marker is not None:
            marker.detach()
        log.info(f"gof5 daemon started (PID {child_pid}), logging to {self.log_path}")
        return child_pid
