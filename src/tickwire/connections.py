"""Bidirectional endpoint <-> client id table.

``ConnectionTable`` keeps two maps that are exact inverses of each other
over the set of currently connected clients.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from tickwire.address import Endpoint


class ConnectionTable:
    """Connected clients, mapped both as endpoint->id and id->endpoint.

    Client ids are the smallest non-negative integer not currently in use,
    so the first clients get ``0, 1, 2, ...`` and an id freed by a
    disconnect is handed to the next client that connects.

    Examples
    --------
    >>> table = ConnectionTable()
    >>> table.add(("127.0.0.1", 5000))
    0
    >>> table.add(("127.0.0.1", 5001))
    1
    >>> table.remove(("127.0.0.1", 5000))
    0
    >>> table.add(("127.0.0.1", 5002))
    0
    """

    def __init__(self) -> None:
        self._by_endpoint: dict[Endpoint, int] = {}
        self._by_id: dict[int, Endpoint] = {}

    @property
    def by_endpoint(self) -> Mapping[Endpoint, int]:
        """Read-only endpoint->id view."""
        return MappingProxyType(self._by_endpoint)

    @property
    def by_id(self) -> Mapping[int, Endpoint]:
        """Read-only id->endpoint view."""
        return MappingProxyType(self._by_id)

    def _next_id(self) -> int:
        client_id = len(self._by_id)
        if client_id not in self._by_id:
            return client_id
        client_id = 0
        while client_id in self._by_id:
            client_id += 1
        return client_id

    def add(self, endpoint: Endpoint) -> int:
        """Register *endpoint* and return its new client id.

        Raises
        ------
        KeyError
            If *endpoint* is already connected.
        """
        if endpoint in self._by_endpoint:
            msg = f"Endpoint already connected: {endpoint}"
            raise KeyError(msg)
        client_id = self._next_id()
        self._by_id[client_id] = endpoint
        self._by_endpoint[endpoint] = client_id
        return client_id

    def remove(self, endpoint: Endpoint) -> int:
        """Remove *endpoint* and return the id it held.

        Raises
        ------
        KeyError
            If *endpoint* is not connected.
        """
        client_id = self._by_endpoint.pop(endpoint)
        del self._by_id[client_id]
        return client_id

    def id_for(self, endpoint: Endpoint) -> int | None:
        return self._by_endpoint.get(endpoint)

    def endpoint_for(self, client_id: int) -> Endpoint | None:
        return self._by_id.get(client_id)

    def endpoints(self) -> Iterator[Endpoint]:
        """Iterate connected endpoints in id->endpoint order."""
        return iter(list(self._by_id.values()))

    def clear(self) -> None:
        self._by_endpoint.clear()
        self._by_id.clear()

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self._by_endpoint

    def __len__(self) -> int:
        return len(self._by_id)

    def __repr__(self) -> str:
        return f"ConnectionTable({self._by_id!r})"
