"""gof5 command-line entry point.

Usage:
    sudo gof5 --server vpn.example.com --username jdoe          (foreground)
    sudo gof5 --server vpn.example.com --username jdoe \\
        --password-file ~/.vpnpass --remove-password-file --daemon
    sudo gof5 'f5-vpn://vpn.example.com?...'                    (deep link)
    gof5 --version
"""

import argparse
import logging
import platform
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from . import __version__
from .core.config import read_config
from .core.context import PASSWORD_ENV, InvocationContext
from .core.credentials import discard_password_file, resolve_password
from .core.engine import VPNEngine, load_engine
from .core.errors import EngineError, Gof5Error
from .core.identity import current_username
from .core.options import Options
from .daemon.pidfile import PidMarker
from .daemon.platform import check_permissions, get_log_file, get_pid_file
from .daemon.supervisor import ProcessSupervisor
from .logs import setup_logging

log = logging.getLogger(__name__)


def version_info() -> str:
    return (
        f"gof5 {__version__} running on Python {platform.python_version()} "
        f"for {sys.platform}/{platform.machine()}"
    )


def fatal(err: BaseException, context: InvocationContext) -> NoReturn:
    """Log a fatal error and exit with status 1."""
    if context.is_windows:
        # Escalated privileges in windows opens a new terminal, and if there is an
        # error, it is impossible to see it. Thus we wait for user to press a button.
        log.error(f"{err}, press enter to exit")
        if sys.stdin is not None:
            sys.stdin.readline()
    else:
        log.error(str(err))
    sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gof5",
        description="F5 VPN client",
    )
    parser.add_argument("url", nargs="?", help="f5-vpn:// deep link to connect with")
    parser.add_argument("--server", default="", help="VPN server address")
    parser.add_argument("--username", default="", help="Login username")
    parser.add_argument("--password", default="", help="Login password")
    parser.add_argument("--password-file", default="", help="Path to file containing password")
    parser.add_argument("--remove-password-file", action="store_true",
                        help="Delete password file immediately after reading")
    parser.add_argument("--session", dest="session_id", default="", help="Reuse a session ID")
    parser.add_argument("--ca-cert", default="", help="Path to a custom CA certificate")
    parser.add_argument("--cert", default="", help="Path to a user TLS certificate")
    parser.add_argument("--key", default="", help="Path to a user TLS key")
    parser.add_argument("--config", dest="config_path", default="",
                        help="Path to config file (default: ~/.gof5/config.yaml)")
    parser.add_argument("--close-session", action="store_true", help="Close HTTPS VPN session on exit")
    parser.add_argument("--debug", action="store_true", help="Show debug logs")
    parser.add_argument("--select", action="store_true", help="Select a server from available F5 servers")
    parser.add_argument("--profile-index", type=int, default=0,
                        help="If multiple VPN profiles are found chose profile n")
    parser.add_argument("--daemon", action="store_true",
                        help="Run in the background (requires a password up front)")
    parser.add_argument("--keyring", action="store_true",
                        help=f"Fall back to the system keyring when no password, file or {PASSWORD_ENV} is given")
    parser.add_argument("--version", action="store_true", help="Show version and exit cleanly")
    parser.add_argument("--log-file", default="",
                        help="Path to log file for daemon mode (default: /tmp/gof5/<username>.log)")
    return parser


def options_from_args(args: argparse.Namespace) -> Options:
    return Options(
        server=args.server,
        username=args.username,
        password=args.password,
        session_id=args.session_id,
        ca_cert=args.ca_cert,
        cert=args.cert,
        key=args.key,
        config_path=args.config_path,
        close_session=args.close_session,
        debug=args.debug,
        select=args.select,
        daemon=args.daemon,
        profile_index=args.profile_index,
    )


def run(
        args: argparse.Namespace,
        argv: List[str],
        context: InvocationContext,
        engine: Optional[VPNEngine] = None,
) -> int:
    """Resolve everything, optionally daemonize, then hand over to the engine.

    Raises:
        Gof5Error: On any fatal condition
    """
    options = options_from_args(args)

    check_permissions(context)

    if engine is None:
        engine = load_engine()

    if args.url:
        try:
            engine.handle_url(options, args.url)
        except Exception as e:
            raise EngineError(f"failed to handle {args.url!r}: {e}") from e

    # Read config before daemonizing so we can check the daemon flag
    options.config = read_config(options.debug, options.config_path, context)

    username = current_username(context)
    log_path = Path(args.log_file) if args.log_file else get_log_file(context, username)
    supervisor = ProcessSupervisor(context, argv, log_path)

    resolve_password(
        options,
        args.password_file,
        context,
        handoff_password=supervisor.receive_password(),
        use_keyring=args.keyring,
    )
    # a daemon child never sees the file; its parent already consumed it
    if args.password_file and args.remove_password_file and not supervisor.is_daemon_child:
        discard_password_file(args.password_file)

    pid_path = get_pid_file(context, username)
    marker = None
    try:
        if supervisor.is_daemon_child:
            marker = supervisor.enter_daemon_child(pid_path)
        else:
            marker = PidMarker(pid_path, context)
            marker.acquire()
            if options.daemon_requested:
                supervisor.daemonize(options, marker)
                return 0

        log.debug(f"Connecting with {options!r}")
        try:
            engine.connect(options)
        except Gof5Error:
            raise
        except Exception as e:
            raise EngineError(str(e) or type(e).__name__) from e
        return 0
    finally:
        if marker is not None:
            marker.release()


def main(argv: Optional[List[str]] = None, engine: Optional[VPNEngine] = None) -> int:
    """Console entry point."""
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)

    if args.version:
        print(version_info())
        return 0

    context = InvocationContext.capture()
    setup_logging(args.debug)

    if args.profile_index < 0:
        fatal(Gof5Error("profile-index cannot be negative"), context)

    try:
        return run(args, argv, context, engine)
    except Gof5Error as e:
        fatal(e, context)


if __name__ == "__main__":
    sys.exit(main())
