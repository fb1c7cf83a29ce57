"""Cross-platform helpers for the process supervisor."""

import tempfile
from pathlib import Path

import psutil

from ..core.context import InvocationContext
from ..core.errors import PermissionDenied

APP_NAME = "gof5"


# === Paths ===

def get_runtime_dir(context: InvocationContext) -> Path:
    """Directory shared by PID markers and daemon logs."""
    if context.is_windows:
        return Path(tempfile.gettempdir()) / APP_NAME
    return Path("/tmp") / APP_NAME


def get_pid_file(context: InvocationContext, username: str) -> Path:
    """Get per-user PID marker path."""
    return get_runtime_dir(context) / f"{username}.pid"


def get_log_file(context: InvocationContext, username: str) -> Path:
    """Get per-user daemon log path."""
    return get_runtime_dir(context) / f"{username}.log"


# === Privileges ===

def is_root(context: InvocationContext) -> bool:
    """Check if running with admin/root privileges."""
    if context.is_windows:
        try:
            import ctypes
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        except (AttributeError, OSError):
            return False
    return context.is_root


def check_permissions(context: InvocationContext) -> None:
    """Tunnel setup needs root (or Administrator on Windows).

    Raises:
        PermissionDenied: If the process is not privileged
    """
    if is_root(context):
        return
    if context.is_windows:
        raise PermissionDenied(f"{APP_NAME} needs to be run as Administrator")
    raise PermissionDenied(f"{APP_NAME} needs to be run with sudo")


# === Process Management ===

def is_process_running(pid: int) -> bool:
    """Check if a process is running.

    Args:
        pid: Process ID

    Returns:
        True if running
    """
    if pid <= 0:
        return False
    try:
        proc = psutil.Process(pid)
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # exists, but owned by someone else
        return True
