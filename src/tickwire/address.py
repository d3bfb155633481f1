"""Remote endpoint representation.

An ``Endpoint`` is the ``(host, port)`` pair a datagram came from or is
sent to. It is a plain tuple so it can be used directly as a dict key.

IPv6 link-local peers are only reachable through their interface scope,
so a non-zero ``scope_id`` is kept in the host as ``fe80::1%3``.
``to_sockaddr`` turns such an endpoint back into the 4-tuple
``DatagramTransport.sendto`` needs.
"""

from __future__ import annotations

from typing import Any, TypeAlias

Endpoint: TypeAlias = tuple[str, int]


def normalize_endpoint(addr: Any) -> Endpoint:
    """Reduce a socket-level peer address to ``(host, port)``.

    Examples
    --------
    >>> normalize_endpoint(("127.0.0.1", 9000))
    ('127.0.0.1', 9000)
    >>> normalize_endpoint(("2001:db8::1", 9000, 0, 0))
    ('2001:db8::1', 9000)
    >>> normalize_endpoint(("fe80::1", 9000, 0, 3))
    ('fe80::1%3', 9000)
    """
    host, port = str(addr[0]), int(addr[1])
    if len(addr) >= 4 and addr[3] and "%" not in host:
        host = f"{host}%{addr[3]}"
    return (host, port)


def to_sockaddr(endpoint: Endpoint) -> tuple[Any, ...]:
    """Socket address for sending to *endpoint*.

    Examples
    --------
    >>> to_sockaddr(("127.0.0.1", 9000))
    ('127.0.0.1', 9000)
    >>> to_sockaddr(("fe80::1%3", 9000))
    ('fe80::1', 9000, 0, 3)
    """
    host, port = endpoint
    address, _, scope = host.partition("%")
    if scope.isdigit():
        return (address, port, 0, int(scope))
    return endpoint


def format_endpoint(endpoint: Endpoint | None) -> str:
    """Render an endpoint as ``host:port`` for log messages.

    Examples
    --------
    >>> format_endpoint(("10.0.0.1", 25520))
    '10.0.0.1:25520'
    >>> format_endpoint(None)
    '<none>'
    """
    if endpoint is None:
        return "<none>"
    host, port = endpoint
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"
