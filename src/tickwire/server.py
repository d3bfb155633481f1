"""Tick-driven UDP server.

``Server`` owns one UDP socket, a ``ConnectionTable`` and a
``ListenerRegistry``. The host application calls ``start()`` once and then
``tick()`` on a regular cadence (e.g. once per frame). Each tick drains up
to ``ServerConfig.max_packets_received_per_tick`` datagrams, wraps each in
a ``Packet`` and routes it to the listeners registered for its type.

Datagrams are read off the socket by an ``asyncio.DatagramProtocol`` and
queued until the next tick; nothing is dispatched outside ``tick()``.

Handshake:

- ``PacketType.CONNECT`` from an unknown endpoint assigns a client id and
  answers with a ``CONNECT`` packet whose payload is that id (int32).
- ``PacketType.DISCONNECT`` from a connected endpoint releases its id.
  No acknowledgement is sent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Self, TypeAlias

from tickwire.address import Endpoint, format_endpoint, normalize_endpoint, to_sockaddr
from tickwire.config import ServerConfig
from tickwire.connections import ConnectionTable
from tickwire.listeners import ListenerRegistry, PacketListener
from tickwire.packet import HEADER_LENGTH, Packet, PacketType

__all__ = ["Server", "ServerAlreadyStartedError"]


class ServerAlreadyStartedError(RuntimeError):
    """Raised by ``Server.start()`` when the server is already bound."""


@dataclass(frozen=True)
class _Datagram:
    data: bytes
    endpoint: Endpoint


_InboxItem: TypeAlias = _Datagram | Exception


class _ServerProtocol(asyncio.DatagramProtocol):
    """Queues inbound datagrams and socket errors for the next tick."""

    def __init__(self, inbox: asyncio.Queue[_InboxItem], logger: logging.Logger) -> None:
        self._inbox = inbox
        self._logger = logger

    def datagram_received(self, data: bytes, addr: Any) -> None:
        endpoint = normalize_endpoint(addr)
        try:
            self._inbox.put_nowait(_Datagram(data, endpoint))
        except asyncio.QueueFull:
            self._logger.warning(
                "Inbox full (%d pending), dropping %d bytes from %s",
                self._inbox.qsize(), len(data), format_endpoint(endpoint),
            )

    def error_received(self, exc: Exception) -> None:
        try:
            self._inbox.put_nowait(exc)
        except asyncio.QueueFull:
            self._logger.error("UDP error while inbox is full: %s", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc:
            self._logger.error("UDP connection lost: %s", exc)


class Server:
    """UDP server handling connections from multiple clients.

    Parameters
    ----------
    config : ServerConfig | None
        Server tuning. Defaults to ``ServerConfig()``.
    logger : logging.Logger | None
        Logger instance. Defaults to ``tickwire.server``.

    Examples
    --------
    >>> server = Server()
    >>> server.listen(2, lambda packet, endpoint, client_id: print(packet.read_string()))
    >>> await server.start(9000)
    >>> while running:
    ...     await server.tick()
    ...     await asyncio.sleep(1 / 60)
    >>> server.stop()
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or ServerConfig()
        self._logger = logger or logging.getLogger("tickwire.server")
        self._transport: asyncio.DatagramTransport | None = None
        self._inbox: asyncio.Queue[_InboxItem] | None = None
        self._endpoint: Endpoint | None = None
        self._has_started = False
        self._is_stopping = False
        self._connections = ConnectionTable()
        self._listeners = ListenerRegistry()
        self._observers: list[PacketListener] = []
        self._tick_lock = asyncio.Lock()

        self.listen(PacketType.CONNECT, self._on_connect)
        self.listen(PacketType.DISCONNECT, self._on_disconnect)

    # -- state ----------------------------------------------------------------

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def has_started(self) -> bool:
        return self._has_started

    @property
    def is_stopping(self) -> bool:
        return self._is_stopping

    @property
    def endpoint(self) -> Endpoint | None:
        """Bound local ``(host, port)``, or ``None`` when not started."""
        return self._endpoint

    @property
    def connections(self) -> ConnectionTable:
        return self._connections

    @property
    def clients_by_endpoint(self) -> Mapping[Endpoint, int]:
        return self._connections.by_endpoint

    @property
    def clients_by_id(self) -> Mapping[int, Endpoint]:
        return self._connections.by_id

    @property
    def listeners(self) -> ListenerRegistry:
        return self._listeners

    @property
    def pending_datagrams(self) -> int:
        """Datagrams received by the socket and waiting for a tick."""
        if self._inbox is None:
            return 0
        return self._inbox.qsize()

    # -- lifecycle ------------------------------------------------------------

    async def start(self, port: int) -> None:
        """Bind the UDP socket to ``(config.host, port)``.

        Use port ``0`` for an OS-assigned port; the actual port is
        available from ``endpoint`` afterwards.

        Raises
        ------
        ServerAlreadyStartedError
            If the server is already started.
        OSError
            If the socket cannot be bound.
        """
        if self._has_started:
            msg = f"Server already started on {format_endpoint(self._endpoint)}"
            raise ServerAlreadyStartedError(msg)

        loop = asyncio.get_running_loop()
        inbox: asyncio.Queue[_InboxItem] = asyncio.Queue(
            maxsize=self._config.max_pending_datagrams
        )
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _ServerProtocol(inbox, self._logger),
            local_addr=(self._config.host, port),
        )

        self._transport = transport
        self._inbox = inbox
        self._endpoint = normalize_endpoint(transport.get_extra_info("sockname"))
        self._has_started = True
        self._logger.info("Server started successfully on %s.", format_endpoint(self._endpoint))

    def stop(self) -> None:
        """Close the socket and forget every connected client.

        Calling ``stop()`` while stopping or when not started logs a
        warning and does nothing.
        """
        if self._is_stopping:
            self._logger.warning("Failed stopping the server: the server is already trying to stop.")
            return
        if not self._has_started:
            self._logger.warning("Failed stopping the server: the server is not started.")
            return

        self._is_stopping = True
        try:
            transport, self._transport = self._transport, None
            if transport is not None:
                try:
                    transport.close()
                except Exception:
                    self._logger.exception("Failed closing the server socket")
            self._inbox = None
            self._endpoint = None
            self._connections.clear()
            self._has_started = False
        finally:
            self._is_stopping = False
        self._logger.info("Server stopped successfully.")

    async def tick(self) -> None:
        """Process pending datagrams. Call this from the host's main loop."""
        async with self._tick_lock:
            await self._receive_packets()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._has_started:
            self.stop()

    # -- subscriptions --------------------------------------------------------

    def listen(self, packet_type: int, callback: PacketListener) -> None:
        """Call *callback* for every received packet of *packet_type*.

        Callbacks receive ``(packet, endpoint, client_id)`` where
        ``client_id`` is ``None`` if the sender is not connected.
        """
        self._listeners.listen(packet_type, callback)

    def unlisten(self, packet_type: int, callback: PacketListener) -> None:
        self._listeners.unlisten(packet_type, callback)

    def subscribe(self, callback: PacketListener) -> None:
        """Call *callback* for every received packet, whatever its type.

        Subscribers run before the type listeners.
        """
        self._observers.append(callback)

    def unsubscribe(self, callback: PacketListener) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    # -- sending --------------------------------------------------------------

    def send_packet(self, packet: Packet, client_id: int) -> None:
        """Send *packet* to a connected client.

        Unknown client ids are ignored.
        """
        endpoint = self._connections.endpoint_for(client_id)
        if endpoint is None:
            return
        self.send_packet_to(packet, endpoint)

    def send_packet_to(self, packet: Packet, endpoint: Endpoint) -> None:
        """Send *packet* to *endpoint*, connected or not."""
        if self._transport is None:
            return
        self._transport.sendto(packet.to_bytes(), to_sockaddr(endpoint))

    def send_packet_to_all(self, packet: Packet) -> None:
        """Send *packet* to every connected client."""
        if self._transport is None:
            return
        data = packet.to_bytes()
        for endpoint in self._connections.endpoints():
            self._transport.sendto(data, to_sockaddr(endpoint))

    # -- receiving ------------------------------------------------------------

    async def _receive_packets(self) -> None:
        for _ in range(self._config.max_packets_received_per_tick):
            if self.pending_datagrams == 0:
                return
            try:
                datagram = await self._receive()
                packet = Packet.from_bytes(datagram.data)
                self._check_length(datagram, packet)
                client_id = self._connections.id_for(datagram.endpoint)
                await self._on_packet_received(packet, datagram.endpoint, client_id)
            except Exception:
                self._logger.exception("Failed receiving a packet from a client")

    async def _receive(self) -> _Datagram:
        inbox = self._inbox
        if inbox is None or self._transport is None:
            msg = "Server socket is closed"
            raise ConnectionError(msg)
        item = await inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    def _check_length(self, datagram: _Datagram, packet: Packet) -> None:
        size = len(datagram.data)
        sender = format_endpoint(datagram.endpoint)
        if size == 0:
            self._logger.warning(
                "Received an empty packet of type %d from %s (header and data missing).",
                packet.type, sender,
            )
        elif size < HEADER_LENGTH:
            self._logger.warning(
                "Received an empty packet of type %d from %s (header incomplete and data missing).",
                packet.type, sender,
            )
        elif size == HEADER_LENGTH:
            self._logger.warning(
                "Received an empty packet of type %d from %s (data missing).",
                packet.type, sender,
            )

    async def _on_packet_received(
        self, packet: Packet, endpoint: Endpoint, client_id: int | None
    ) -> None:
        for observer in tuple(self._observers):
            result = observer(packet, endpoint, client_id)
            if asyncio.iscoroutine(result):
                await result
        await self._listeners.dispatch(packet, endpoint, client_id)

    # -- handshake ------------------------------------------------------------

    def _on_connect(self, packet: Packet, endpoint: Endpoint, client_id: int | None) -> None:
        sender = format_endpoint(endpoint)
        if endpoint in self._connections:
            self._logger.warning(
                "Client %d (%s) failed to connect: already connected.",
                self._connections.id_for(endpoint), sender,
            )
            return

        new_id = self._connections.add(endpoint)
        self.send_packet(Packet(PacketType.CONNECT).write_int(new_id), new_id)
        self._logger.info("Client %d (%s) successfully connected.", new_id, sender)

    def _on_disconnect(self, packet: Packet, endpoint: Endpoint, client_id: int | None) -> None:
        sender = format_endpoint(endpoint)
        if endpoint not in self._connections:
            self._logger.warning("Client %s failed to disconnect: not connected.", sender)
            return

        removed_id = self._connections.remove(endpoint)
        self._logger.info("Client %d (%s) successfully disconnected.", removed_id, sender)
