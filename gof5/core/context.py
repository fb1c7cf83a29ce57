"""Invocation context: the ambient process identity, captured once.

Everything gof5 learns from its environment (platform, uids, sudo markers,
reserved daemon variables) is read here at start-up and passed explicitly to
the components that need it.
"""

import os
import sys
from dataclasses import dataclass
from typing import Mapping, MutableMapping, Optional

# Password supplied by the user or a supervisor script
PASSWORD_ENV = "GOF5_PASSWORD"

# Reserved for the parent -> daemon child hand-off
DAEMON_ENV = "__GOF5_DAEMONIZED"
DAEMON_SENTINEL = "1"
HANDOFF_ENV = "__GOF5_HANDOFF"

# Set by sudo
SUDO_UID_ENV = "SUDO_UID"
SUDO_USER_ENV = "SUDO_USER"

BSD_PLATFORMS = ("darwin", "freebsd")


@dataclass(frozen=True)
class InvocationContext:
    """Immutable snapshot of the process identity and environment."""

    platform: str
    euid: Optional[int] = None
    uid: Optional[int] = None
    sudo_uid: Optional[str] = None
    sudo_user: Optional[str] = None
    env_password: Optional[str] = None
    daemon_child: bool = False
    handoff: Optional[str] = None

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    @property
    def is_bsd(self) -> bool:
        return self.platform.startswith(BSD_PLATFORMS)

    @property
    def is_root(self) -> bool:
        return self.euid == 0

    @property
    def sudo_invoked(self) -> bool:
        """Running as root on behalf of another user."""
        return self.is_root and bool(self.sudo_uid)

    @classmethod
    def capture(cls, environ: Optional[MutableMapping[str, str]] = None) -> "InvocationContext":
        """Capture the context of the running process.

        The reserved daemon variables are removed from ``environ`` as they
        are read, so nothing this process spawns later inherits them.

        Args:
            environ: Environment to read (default: ``os.environ``)

        Returns:
            The captured context
        """
        if environ is None:
            environ = os.environ

        daemon_child = environ.pop(DAEMON_ENV, None) == DAEMON_SENTINEL
        handoff = environ.pop(HANDOFF_ENV, None)

        return cls(
            platform=sys.platform,
            euid=os.geteuid() if hasattr(os, "geteuid") else None,
            uid=os.getuid() if hasattr(os, "getuid") else None,
            sudo_uid=environ.get(SUDO_UID_ENV) or None,
            sudo_user=environ.get(SUDO_USER_ENV) or None,
            env_password=environ.get(PASSWORD_ENV) or None,
            daemon_child=daemon_child,
            handoff=handoff if daemon_child else None,
        )


def child_environment(base: Mapping[str, str], handoff: str) -> dict:
    """Build the environment for a daemon child.

    Args:
        base: Environment of the parent
        handoff: Value for the hand-off variable (descriptor numbers)

    Returns:
        A new mapping; ``base`` is not modified
    """
    env = dict(base)
    env[DAEMON_ENV] = DAEMON_SENTINEL
    env[HANDOFF_ENV] = handoff
    return env
