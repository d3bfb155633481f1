"""Type-indexed packet listeners.

``ListenerRegistry`` maps a packet type tag to the ordered list of
callbacks subscribed to it and invokes them when a packet of that type is
dispatched.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterator
from typing import TypeAlias

from tickwire.address import Endpoint
from tickwire.packet import Packet

PacketListener: TypeAlias = Callable[[Packet, Endpoint, int | None], Awaitable[None] | None]


class ListenerRegistry:
    """Ordered packet listeners per type tag.

    Listeners may be sync or async. They are invoked in registration
    order and an async listener finishes before the next one starts.
    The same callback may be registered more than once and then runs once
    per registration.

    Examples
    --------
    >>> registry = ListenerRegistry()
    >>> registry.listen(7, lambda packet, endpoint, client_id: print(packet.type))
    >>> await registry.dispatch(Packet(7), ("127.0.0.1", 5000), None)
    7
    """

    def __init__(self) -> None:
        self._listeners: dict[int, list[PacketListener]] = defaultdict(list)

    def listen(self, packet_type: int, callback: PacketListener) -> None:
        """Append *callback* to the listeners for *packet_type*."""
        self._listeners[int(packet_type)].append(callback)

    def unlisten(self, packet_type: int, callback: PacketListener) -> None:
        """Remove the first registration of *callback* for *packet_type*.

        Does nothing if the callback is not registered.
        """
        listeners = self._listeners.get(int(packet_type))
        if listeners and callback in listeners:
            listeners.remove(callback)
            if not listeners:
                del self._listeners[int(packet_type)]

    def listeners_for(self, packet_type: int) -> tuple[PacketListener, ...]:
        return tuple(self._listeners.get(int(packet_type), ()))

    def types(self) -> Iterator[int]:
        return iter(list(self._listeners))

    async def dispatch(
        self, packet: Packet, endpoint: Endpoint, client_id: int | None
    ) -> None:
        """Invoke every listener registered for ``packet.type``.

        A type with no listeners is ignored. Exceptions raised by a
        listener propagate and the remaining listeners are skipped.
        """
        for listener in self.listeners_for(packet.type):
            result = listener(packet, endpoint, client_id)
            if asyncio.iscoroutine(result):
                await result

    def __len__(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())
