"""Resolved invocation options handed to the VPN engine."""

from dataclasses import dataclass
from typing import Optional

from .config import Config


@dataclass
class Options:
    """Everything one gof5 invocation knows before connecting.

    Built from the parsed command line, completed by the deep-link handler,
    the configuration resolver and the credential resolver, and left alone
    once the engine takes over.
    """

    server: str = ""
    username: str = ""
    password: str = ""
    session_id: str = ""
    ca_cert: str = ""
    cert: str = ""
    key: str = ""
    config_path: str = ""
    close_session: bool = False
    debug: bool = False
    select: bool = False
    daemon: bool = False
    profile_index: int = 0
    config: Optional[Config] = None

    @property
    def daemon_requested(self) -> bool:
        """True if daemon mode was asked for on the command line or in the settings."""
        return self.daemon or bool(self.config and self.config.daemon)

    def __repr__(self) -> str:
        # Keep the password out of debug logs
        password = "***" if self.password else ""
        return (
            f"Options(server={self.server!r}, username={self.username!r}, "
            f"password={password!r}, session_id={self.session_id!r}, "
            f"config_path={self.config_path!r}, daemon={self.daemon}, "
            f"profile_index={self.profile_index}, config={self.config!r})"
        )
