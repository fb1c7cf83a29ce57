"""gof5 process supervision: PID marker, credential hand-off, daemonization."""

from .pidfile import PidMarker, read_pid_file
from .platform import check_permissions, get_log_file, get_pid_file, is_process_running
from .supervisor import ProcessSupervisor, SupervisorState

__all__ = [
    "PidMarker",
    "read_pid_file",
    "check_permissions",
    "get_log_file",
    "get_pid_file",
    "is_process_running",
    "ProcessSupervisor",
    "SupervisorState",
]
