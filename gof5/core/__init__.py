"""gof5 core: options, invocation context, configuration and credentials."""

from .config import (
    Config,
    read_config,
    load_document,
    save_document,
    SUPPORTED_DRIVERS,
)
from .context import InvocationContext
from .credentials import discard_password_file, resolve_password, require_password
from .engine import VPNEngine, load_engine
from .errors import (
    Gof5Error,
    ConfigError,
    IdentityError,
    CredentialError,
    PermissionDenied,
    DaemonError,
    AlreadyRunning,
    EngineError,
)
from .identity import UserIdentity, resolve_identity
from .options import Options

__all__ = [
    # Config
    "Config",
    "read_config",
    "load_document",
    "save_document",
    "SUPPORTED_DRIVERS",
    # Context / identity
    "InvocationContext",
    "UserIdentity",
    "resolve_identity",
    # Credentials
    "resolve_password",
    "require_password",
    "discard_password_file",
    # Engine
    "VPNEngine",
    "load_engine",
    "Options",
    # Errors
    "Gof5Error",
    "ConfigError",
    "IdentityError",
    "CredentialError",
    "PermissionDenied",
    "DaemonError",
    "AlreadyRunning",
    "EngineError",
]
