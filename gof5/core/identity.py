"""Resolve the user gof5 acts on behalf of."""

import getpass
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .context import InvocationContext
from .errors import IdentityError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    """The effective user: whose home holds the config and who owns it."""

    name: str
    uid: int
    gid: int
    home: str


def _from_passwd(entry) -> UserIdentity:
    return UserIdentity(
        name=entry.pw_name,
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        home=entry.pw_dir,
    )


def _resolve_sudo_user(context: InvocationContext) -> UserIdentity:
    import pwd

    try:
        return _from_passwd(pwd.getpwuid(int(context.sudo_uid)))
    except (KeyError, ValueError) as e:
        uid_error = e
        log.warning(f"Failed to lookup user ID {context.sudo_uid!r}: {e}")

    if not context.sudo_user:
        raise IdentityError(
            f"failed to lookup user ID {context.sudo_uid!r} ({uid_error}) "
            f"and SUDO_USER is not set"
        )

    try:
        return _from_passwd(pwd.getpwnam(context.sudo_user))
    except KeyError as e:
        raise IdentityError(
            f"failed to lookup user ID {context.sudo_uid!r} ({uid_error}); "
            f"failed to lookup user name {context.sudo_user!r} ({e})"
        ) from e


def resolve_identity(context: InvocationContext) -> UserIdentity:
    """Resolve the invoking user.

    When running as root under sudo, the original user is looked up by
    SUDO_UID, falling back to SUDO_USER. Otherwise the real user of the
    process is used. On Windows elevation keeps the original account, so
    only name and home are resolved and the ids stay 0.

    Args:
        context: Captured invocation context

    Returns:
        The resolved identity

    Raises:
        IdentityError: If no identity can be resolved
    """
    if context.is_windows:
        try:
            return UserIdentity(name=getpass.getuser(), uid=0, gid=0, home=str(Path.home()))
        except (OSError, KeyError, RuntimeError) as e:
            raise IdentityError(f"failed to detect home directory: {e}") from e

    if context.sudo_invoked:
        identity = _resolve_sudo_user(context)
        log.debug(f"Resolved sudo user {identity.name} (uid={identity.uid}, gid={identity.gid})")
        return identity

    import pwd

    uid = context.uid if context.uid is not None else os.getuid()
    try:
        return _from_passwd(pwd.getpwuid(uid))
    except KeyError as e:
        raise IdentityError(f"failed to detect home directory: no passwd entry for uid {uid}") from e


def current_username(context: InvocationContext) -> str:
    """Name of the account the process itself runs as.

    Unlike :func:`resolve_identity` this ignores sudo; it names the per-user
    PID and log files, matching ``whoami`` in supervisor scripts.
    """
    if context.is_windows:
        return getpass.getuser()

    import pwd

    uid = context.euid if context.euid is not None else os.geteuid()
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError as e:
        raise IdentityError(f"failed to get current user: no passwd entry for uid {uid}") from e
