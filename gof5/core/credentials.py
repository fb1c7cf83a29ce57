"""VPN password resolution."""

import logging
import os
from typing import Optional

import keyring
from keyring.errors import KeyringError

from .context import PASSWORD_ENV, InvocationContext
from .errors import CredentialError
from .options import Options

log = logging.getLogger(__name__)

KEYRING_SERVICE = "gof5"


def read_password_file(path: str) -> str:
    """Read a password file, trimming surrounding whitespace.

    Raises:
        CredentialError: If the file cannot be read
    """
    try:
        with open(path, encoding="utf-8") as f:
            return f.read().strip()
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialError(f"failed to read password file: {e}") from e


def get_keyring_password(username: str) -> Optional[str]:
    """Look up a stored password in the system keyring.

    Returns:
        The password, or None if there is none or the keyring is unusable
    """
    try:
        return keyring.get_password(KEYRING_SERVICE, username) or None
    except KeyringError as e:
        log.warning(f"Keyring lookup failed: {e}")
        return None


def resolve_password(
        options: Options,
        password_file: str,
        context: InvocationContext,
        handoff_password: Optional[str] = None,
        use_keyring: bool = False,
) -> str:
    """Resolve the VPN password into ``options.password``.

    Sources, first non-empty wins:
    1. the password handed over by the parent (daemon child only)
    2. --password
    3. --password-file
    4. the GOF5_PASSWORD environment variable
    5. the system keyring, if enabled and a username is known

    Args:
        options: Options; ``password`` holds the --password value
        password_file: --password-file value, ignored in a daemon child
        context: Captured invocation context
        handoff_password: Secret received over the hand-off channel
        use_keyring: Consult the system keyring as a last resort

    Returns:
        The resolved password (may be empty)

    Raises:
        CredentialError: If the password file cannot be read
    """
    if context.daemon_child:
        # the parent consumed (and possibly removed) the file before forking
        password_file = ""
        if handoff_password:
            options.password = handoff_password
            return options.password

    if options.password:
        return options.password

    if password_file:
        options.password = read_password_file(password_file)
    elif context.env_password:
        log.debug(f"Using password from {PASSWORD_ENV}")
        options.password = context.env_password

    if not options.password and use_keyring and options.username:
        options.password = get_keyring_password(options.username) or ""
        if options.password:
            log.debug(f"Using password from keyring for {options.username}")

    return options.password


def require_password(options: Options) -> None:
    """Daemon mode needs the password up front; there is no terminal to prompt on.

    Raises:
        CredentialError: If no password was resolved
    """
    if not options.password:
        raise CredentialError(
            "password is required for daemon mode; use --password, --password-file, "
            f"or {PASSWORD_ENV} environment variable"
        )


def discard_password_file(path: str) -> None:
    """Delete a password file once it has been read; failure is only a warning."""
    try:
        os.remove(path)
    except OSError as e:
        log.warning(f"Failed to remove password file: {e}")
    else:
        log.debug(f"Removed password file {path}")
