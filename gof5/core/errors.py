"""Error types raised while bootstrapping gof5."""


class Gof5Error(Exception):
    """Base class for all bootstrap errors."""
    pass


class ConfigError(Gof5Error):
    """Configuration could not be resolved."""
    pass


class IdentityError(ConfigError):
    """The invoking user could not be resolved."""
    pass


class CredentialError(Gof5Error):
    """The VPN password could not be resolved."""
    pass


class PermissionDenied(Gof5Error):
    """The process lacks the privileges needed to set up the tunnel."""
    pass


class DaemonError(Gof5Error):
    """Error while detaching into the background."""
    pass


class AlreadyRunning(DaemonError):
    """Another gof5 instance holds the PID marker."""

    def __init__(self, pid, path):
        self.pid = pid
        self.path = path
        if pid:
            super().__init__(f"gof5 is already running (PID {pid}, marker {path})")
        else:
            super().__init__(f"gof5 is already running (marker {path} is locked)")


class EngineError(Gof5Error):
    """The VPN engine is missing or failed."""
    pass
