"""Contract with the VPN engine that runs the actual session."""

import logging
import os
from importlib.metadata import entry_points
from typing import Optional, Protocol, runtime_checkable

from .errors import EngineError
from .options import Options

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "gof5.engines"
ENGINE_ENV = "GOF5_ENGINE"


@runtime_checkable
class VPNEngine(Protocol):
    """Interface every VPN engine implements."""

    def connect(self, options: Options) -> None:
        """Run the VPN session until it ends.

        Args:
            options: Fully resolved options

        Raises:
            Exception: Any failure; the CLI treats it as fatal
        """
        ...

    def handle_url(self, options: Options, url: str) -> None:
        """Fill ``options`` from an f5-vpn:// deep link.

        Args:
            options: Options to update in place
            url: The deep link given as positional argument
        """
        ...


def load_engine(name: Optional[str] = None) -> VPNEngine:
    """Load the installed VPN engine.

    Engines register under the ``gof5.engines`` entry-point group. With more
    than one installed, ``name`` (or GOF5_ENGINE) picks one.

    Raises:
        EngineError: If no suitable engine is installed
    """
    name = name or os.environ.get(ENGINE_ENV)
    available = {ep.name: ep for ep in entry_points(group=ENTRY_POINT_GROUP)}

    if not available:
        raise EngineError(f"no VPN engine installed (entry point group {ENTRY_POINT_GROUP!r})")

    if name:
        if name not in available:
            raise EngineError(f"VPN engine {name!r} not found, installed: {sorted(available)}")
        ep = available[name]
    else:
        ep = available[sorted(available)[0]]
        if len(available) > 1:
            log.debug(f"Several VPN engines installed, using {ep.name!r}")

    try:
        factory = ep.load()
        engine = factory()
    except Exception as e:
        raise EngineError(f"failed to load VPN engine {ep.name!r}: {e}") from e

    if not isinstance(engine, VPNEngine):
        raise EngineError(f"VPN engine {ep.name!r} does not implement connect/handle_url")
    return engine
