"""Node naming - optional distributed identity.

``--name`` starts the node in long-name mode (fully-qualified host),
``--sname`` in short-name mode. Giving both is a configuration error.
If the peer-discovery daemon cannot be reached the shell keeps running
as an un-networked node.
"""

import socket
from enum import Enum

from .. import config
from ..errors import ConfigurationError, DistributionUnavailable
from ..project import OptionMapping
from ..telemetry import get_logger

logger = get_logger(__name__)


class NameMode(Enum):
    LONG = "longnames"
    SHORT = "shortnames"


class NameService:
    """Registers the node with the peer-discovery daemon."""

    def __init__(
        self,
        host: str = config.DISCOVERY_HOST,
        port: int = config.DISCOVERY_PORT,
        timeout: float = config.DISCOVERY_CONNECT_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout

    def check_available(self) -> None:
        """Raise DistributionUnavailable if the daemon does not accept connections."""
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                pass
        except OSError as e:
            raise DistributionUnavailable(
                f"peer-discovery daemon not reachable at {self.host}:{self.port}: {e}"
            ) from e

    def start(self, name: str, mode: NameMode) -> str:
        """Start distribution and return the full node name."""
        self.check_available()
        return full_node_name(name, mode)


def full_node_name(name: str, mode: NameMode) -> str:
    """``name@host`` with the host part chosen by mode; names with ``@`` are kept."""
    if "@" in name:
        return name
    if mode == NameMode.LONG:
        host = socket.getfqdn()
    else:
        host = socket.gethostname().split(".")[0]
    return f"{name}@{host}"


_node_name = config.NO_NODE


def node() -> str:
    """Current node name (``nonode@nohost`` when not distributed)."""
    return _node_name


def setup_name(options: OptionMapping, service: NameService | None = None) -> str:
    """Start distributed identity as requested by the options.

    Returns:
        The node name in effect afterwards

    Raises:
        ConfigurationError: both ``name`` and ``sname`` were given
    """
    global _node_name

    name, sname = options.get("name"), options.get("sname")
    if name is not None and sname is not None:
        raise ConfigurationError("Cannot have both short and long node names defined")
    if name is None and sname is None:
        return _node_name

    mode = NameMode.LONG if name is not None else NameMode.SHORT
    service = service or NameService()
    try:
        _node_name = service.start(str(name or sname), mode)
    except DistributionUnavailable as e:
        logger.error(
            f"[Naming] Distribution failed, falling back to {config.NO_NODE}. "
            f"Verify that the peer-discovery daemon is running and try again. ({e})"
        )
        return _node_name

    logger.info(f"[Naming] Node started as {_node_name} ({mode.value})")
    return _node_name


def _reset_for_testing() -> None:
    global _node_name
    _node_name = config.NO_NODE
