"""TOML-based configuration for tickwire servers.

Provides ``load_config`` / ``discover_config`` for loading the ``[server]``
table of a ``tickwire.toml`` file into a frozen ``ServerConfig``.

Example ``tickwire.toml``::

    [server]
    host = "0.0.0.0"
    max_packets_received_per_tick = 5
    max_pending_datagrams = 1024
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

__all__ = [
    "CONFIG_FILENAME",
    "ServerConfig",
    "discover_config",
    "load_config",
]

CONFIG_FILENAME = "tickwire.toml"

logger = logging.getLogger("tickwire.config")


@dataclass(frozen=True)
class ServerConfig:
    """Server tuning.

    Parameters
    ----------
    host : str
        Local address to bind. The default binds every interface.
    max_packets_received_per_tick : int
        Maximum number of datagrams processed by one ``Server.tick()``.
        Datagrams beyond the cap wait for the next tick.
    max_pending_datagrams : int
        Bound on datagrams queued between the socket and ``tick()``.
        Datagrams arriving while the queue is full are dropped.

    Examples
    --------
    >>> ServerConfig(max_packets_received_per_tick=10)
    ServerConfig(host='0.0.0.0', max_packets_received_per_tick=10, max_pending_datagrams=1024)
    """

    host: str = "0.0.0.0"
    max_packets_received_per_tick: int = 5
    max_pending_datagrams: int = 1024

    def __post_init__(self) -> None:
        if self.max_packets_received_per_tick < 1:
            msg = (
                "max_packets_received_per_tick must be at least 1, "
                f"got {self.max_packets_received_per_tick}"
            )
            raise ValueError(msg)
        if self.max_pending_datagrams < 1:
            msg = f"max_pending_datagrams must be at least 1, got {self.max_pending_datagrams}"
            raise ValueError(msg)


def discover_config(start: Path | None = None) -> Path | None:
    """Return the nearest ``tickwire.toml`` at or above *start* (default: cwd)."""
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> ServerConfig:
    """Build a ``ServerConfig`` from the ``[server]`` table of a TOML file.

    Without *path* the file is discovered with ``discover_config``; if none
    exists, or the file has no ``[server]`` table, the defaults are used.
    Keys map one-to-one onto ``ServerConfig`` fields, so an unknown key
    raises ``TypeError`` and an out-of-range value raises ``ValueError``.
    An explicit *path* that does not exist raises ``FileNotFoundError``.
    """
    if path is None:
        path = discover_config()
        if path is None:
            logger.debug("No %s found, using default server config", CONFIG_FILENAME)
            return ServerConfig()
    elif not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        server_raw: dict[str, Any] = tomllib.load(f).get("server", {})

    logger.debug("Loaded server config from %s: %s", path, server_raw)
    return ServerConfig(**server_raw)
