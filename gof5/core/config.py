"""Configuration resolution: user directories, settings document, driver validation."""

import ctypes.util
import dataclasses
import ipaddress
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from .context import InvocationContext
from .errors import ConfigError
from .identity import resolve_identity

log = logging.getLogger(__name__)

CONFIG_DIR = ".gof5"
CONFIG_NAME = "config.yaml"

DRIVER_WIREGUARD = "wireguard"
DRIVER_PPPD = "pppd"
SUPPORTED_DRIVERS = (DRIVER_WIREGUARD, DRIVER_PPPD)

DEFAULT_DNS_LISTEN_ADDR = ipaddress.IPv4Address("127.0.0.245")
# BSD systems don't support listening on 127.0.0.1+N
DEFAULT_BSD_DNS_LISTEN_ADDR = ipaddress.IPv4Address("127.0.0.1")

WINTUN_DLL = "wintun.dll"


@dataclass(frozen=True)
class Config:
    """Resolved settings.

    ``driver``, ``listen_dns`` and ``daemon`` come from the settings
    document; the remaining fields are recomputed on every start.
    """

    driver: str = ""
    listen_dns: Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]] = None
    daemon: bool = False
    path: str = ""
    cookie_path: str = ""
    uid: int = 0
    gid: int = 0
    debug: bool = False


# === Settings document ===

def _scalar_text(config_file: str, key: str, value) -> str:
    """Text of a non-string YAML scalar as written in the document (``false``, ``0``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise ConfigError(f"cannot parse {config_file} file: {key} must be a scalar, got {value!r}")
    return str(value)


def load_document(config_file: str) -> Config:
    """Parse a settings document.

    Args:
        config_file: Path to the YAML document

    Returns:
        Config holding only the persisted fields

    Raises:
        OSError: If the file cannot be read
        ConfigError: If the file exists but cannot be parsed
    """
    with open(config_file, "rb") as f:
        raw = f.read()

    try:
        data = yaml.safe_load(raw)
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot parse {config_file} file: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"cannot parse {config_file} file: expected a mapping, got {type(data).__name__}")

    listen_dns = data.get("listenDNS")
    if listen_dns is not None:
        try:
            listen_dns = ipaddress.ip_address(str(listen_dns))
        except ValueError as e:
            raise ConfigError(f"cannot parse {config_file} file: invalid listenDNS: {e}") from e

    driver = data.get("driver")
    if driver is None:
        driver = ""
    elif not isinstance(driver, str):
        driver = _scalar_text(config_file, "driver", driver)

    daemon = data.get("daemon")
    if daemon is None:
        daemon = False
    elif not isinstance(daemon, bool):
        raise ConfigError(f"cannot parse {config_file} file: daemon must be true or false, got {daemon!r}")

    return Config(driver=driver, listen_dns=listen_dns, daemon=daemon)


def save_document(config_file: str, config: Config) -> None:
    """Write the persisted fields of ``config`` to a settings document."""
    data = {}
    if config.driver:
        data["driver"] = config.driver
    if config.listen_dns is not None:
        data["listenDNS"] = str(config.listen_dns)
    if config.daemon:
        data["daemon"] = True

    with open(config_file, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False)


# === Directories ===

def _ensure_directory(path: str, uid: int, gid: int, kind: str, context: InvocationContext) -> None:
    """Create ``path`` owner-only and hand it to uid/gid, unless it already exists."""
    try:
        os.stat(path)
        return
    except FileNotFoundError:
        pass
    except OSError as e:
        raise ConfigError(f"failed to get {path!r} directory stat: {e}") from e

    log.info(f"{path!r} directory doesn't exist, creating...")
    try:
        os.makedirs(path, mode=0o700, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"failed to create {path!r} {kind} directory: {e}") from e

    # windows preserves the original user parameters, no need to chown
    if not context.is_windows:
        try:
            os.chown(path, uid, gid)
        except OSError as e:
            raise ConfigError(f"failed to set an owner for the {path!r} {kind} directory: {e}") from e


# === Driver checks ===

def check_wintun_driver(context: InvocationContext) -> None:
    """Make sure the WireGuard virtual adapter driver is available.

    Only Windows needs an extra driver (wintun.dll); elsewhere the kernel
    provides TUN devices.

    Raises:
        ConfigError: If wintun.dll cannot be found
    """
    if not context.is_windows:
        return

    candidates = [
        Path(sys.executable).parent / WINTUN_DLL,
        Path(sys.argv[0]).resolve().parent / WINTUN_DLL,
    ]
    if any(candidate.is_file() for candidate in candidates):
        return
    if ctypes.util.find_library("wintun"):
        return

    raise ConfigError(
        f"{WINTUN_DLL} driver is missing, download it from https://www.wintun.net "
        f"and place it next to the gof5 executable"
    )


def _default_listen_dns(context: InvocationContext) -> ipaddress.IPv4Address:
    if context.is_bsd:
        return DEFAULT_BSD_DNS_LISTEN_ADDR
    return DEFAULT_DNS_LISTEN_ADDR


def read_config(debug: bool, custom_config_path: str, context: InvocationContext) -> Config:
    """Resolve the effective configuration.

    Args:
        debug: Debug flag from the command line
        custom_config_path: Explicit settings document path, or "" for the default
        context: Captured invocation context

    Returns:
        Fully resolved, validated Config

    Raises:
        ConfigError: On identity, directory, parse or validation failure
    """
    usr = resolve_identity(context)

    default_dir = os.path.join(usr.home, CONFIG_DIR)
    if custom_config_path:
        config_file = custom_config_path
        config_path = os.path.dirname(os.path.abspath(custom_config_path))
    else:
        config_path = default_dir
        config_file = os.path.join(config_path, CONFIG_NAME)

    # windows preserves the original user parameters, no need to detect uid/gid
    uid, gid = (0, 0) if context.is_windows else (usr.uid, usr.gid)

    _ensure_directory(config_path, uid, gid, "config", context)

    try:
        cfg = load_document(config_file)
    except OSError as e:
        log.info(f"Cannot read config file: {e}")
        cfg = Config()

    driver = cfg.driver or DRIVER_WIREGUARD

    if driver == DRIVER_WIREGUARD:
        check_wintun_driver(context)

    if driver == DRIVER_PPPD and context.is_windows:
        raise ConfigError("pppd driver is not supported in Windows")

    if driver not in SUPPORTED_DRIVERS:
        raise ConfigError(
            f"{driver!r} driver is unsupported, supported drivers are: {list(SUPPORTED_DRIVERS)}"
        )

    listen_dns = cfg.listen_dns
    if listen_dns is None:
        listen_dns = _default_listen_dns(context)

    # Always use ~/.gof5 for cookies regardless of custom config path
    cookie_path = default_dir
    if os.path.abspath(cookie_path) != os.path.abspath(config_path):
        _ensure_directory(cookie_path, uid, gid, "cookie", context)

    return dataclasses.replace(
        cfg,
        driver=driver,
        listen_dns=listen_dns,
        path=config_path,
        cookie_path=cookie_path,
        uid=uid,
        gid=gid,
        debug=debug,
    )
