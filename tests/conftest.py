"""Shared fixtures and a UDP test peer for tickwire tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

import pytest

from tickwire import Endpoint, Packet, PacketType, Server, ServerConfig, normalize_endpoint


class _PeerProtocol(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.received: asyncio.Queue[bytes] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self.received.put_nowait(data)


class UdpPeer:
    """Minimal client side used to drive the server over real sockets."""

    def __init__(self, transport: asyncio.DatagramTransport, protocol: _PeerProtocol) -> None:
        self._transport = transport
        self._protocol = protocol

    @classmethod
    async def open(cls, server_endpoint: Endpoint) -> UdpPeer:
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            _PeerProtocol, remote_addr=("127.0.0.1", server_endpoint[1])
        )
        return cls(transport, protocol)

    @property
    def endpoint(self) -> Endpoint:
        return normalize_endpoint(self._transport.get_extra_info("sockname"))

    def send(self, data: bytes) -> None:
        self._transport.sendto(data)

    def send_packet(self, packet: Packet) -> None:
        self.send(packet.to_bytes())

    def connect(self) -> None:
        self.send_packet(Packet(PacketType.CONNECT))

    def disconnect(self) -> None:
        self.send_packet(Packet(PacketType.DISCONNECT))

    async def receive(self, timeout: float = 1.0) -> Packet:
        data = await asyncio.wait_for(self._protocol.received.get(), timeout)
        return Packet.from_bytes(data)

    async def assert_nothing_received(self, wait: float = 0.1) -> None:
        await asyncio.sleep(wait)
        assert self._protocol.received.empty()

    def close(self) -> None:
        self._transport.close()


async def wait_for_pending(server: Server, count: int, timeout: float = 1.0) -> None:
    """Wait until the server socket has queued at least *count* datagrams."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while server.pending_datagrams < count:
        if loop.time() > deadline:
            msg = f"expected {count} pending datagrams, got {server.pending_datagrams}"
            raise AssertionError(msg)
        await asyncio.sleep(0.005)


async def connect_peer(server: Server, peer: UdpPeer) -> int:
    """Run the connect handshake for *peer* and return the acknowledged id."""
    peer.connect()
    await wait_for_pending(server, 1)
    await server.tick()
    ack = await peer.receive()
    assert ack.type == PacketType.CONNECT
    return ack.read_int()


@pytest.fixture
async def server() -> AsyncIterator[Server]:
    """A server bound to an OS-assigned port on loopback."""
    async with Server(ServerConfig(host="127.0.0.1")) as srv:
        await srv.start(0)
        yield srv


@pytest.fixture
async def make_peer(server: Server) -> AsyncIterator[Callable[[], Awaitable[UdpPeer]]]:
    """Factory opening peers aimed at the ``server`` fixture."""
    peers: list[UdpPeer] = []

    async def _make() -> UdpPeer:
        assert server.endpoint is not None
        peer = await UdpPeer.open(server.endpoint)
        peers.append(peer)
        return peer

    yield _make

    for peer in peers:
        peer.close()
