from tickwire.address import Endpoint, format_endpoint, normalize_endpoint, to_sockaddr
from tickwire.config import ServerConfig, discover_config, load_config
from tickwire.connections import ConnectionTable
from tickwire.listeners import ListenerRegistry, PacketListener
from tickwire.packet import (
    HEADER_LENGTH,
    Packet,
    PacketDecodeError,
    PacketType,
)
from tickwire.server import Server, ServerAlreadyStartedError

__all__ = [
    # Server
    "Server",
    "ServerAlreadyStartedError",
    "ServerConfig",
    "discover_config",
    "load_config",
    # Packets
    "HEADER_LENGTH",
    "Packet",
    "PacketDecodeError",
    "PacketType",
    # Dispatch and connections
    "ConnectionTable",
    "ListenerRegistry",
    "PacketListener",
    # Addressing
    "Endpoint",
    "format_endpoint",
    "normalize_endpoint",
    "to_sockaddr",
]
