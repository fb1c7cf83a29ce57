"""Logging setup shared by the foreground process and the daemon child."""

import logging
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

_handler: Optional[logging.Handler] = None


def _install(handler: logging.Handler) -> None:
    global _handler
    root = logging.getLogger()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    if _handler is not None:
        root.removeHandler(_handler)
        _handler.close()
    root.addHandler(handler)
    _handler = handler


def setup_logging(debug: bool = False) -> None:
    """Log to stderr, at DEBUG level if requested."""
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)
    _install(logging.StreamHandler())


def redirect_logging(stream: TextIO) -> None:
    """Send everything logged from now on to ``stream``."""
    _install(logging.StreamHandler(stream))
