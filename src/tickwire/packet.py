"""Packet wire codec.

A packet maps one-to-one to a datagram:

``[type:4][payload]``

- ``type`` is a signed 32-bit little-endian tag that routes the packet to
  listeners.
- ``payload`` is everything after the header and may be empty. Fields are
  appended with the ``write_*`` methods and consumed in the same order with
  the matching ``read_*`` methods.

Variable-length fields (``bytes``, ``str``, msgpack objects) are prefixed
with their length as an unsigned 32-bit integer.
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Any, Self

import msgpack

HEADER_FORMAT = "<i"
HEADER_LENGTH = struct.calcsize(HEADER_FORMAT)

_LENGTH = struct.Struct("<I")


class PacketType(IntEnum):
    """Reserved control packet types.

    Application packet types should start at 2.
    """

    UNKNOWN = -1
    CONNECT = 0
    DISCONNECT = 1


class PacketDecodeError(ValueError):
    """Raised when a read runs past the end of the payload."""


class Packet:
    """A typed message with a read/write payload cursor.

    Parameters
    ----------
    type : int
        Packet type tag.
    payload : bytes
        Initial payload bytes. Further fields can be appended with the
        ``write_*`` methods.

    Examples
    --------
    >>> packet = Packet(PacketType.CONNECT).write_int(3)
    >>> packet.to_bytes()
    b'\\x00\\x00\\x00\\x00\\x03\\x00\\x00\\x00'
    >>> Packet.from_bytes(packet.to_bytes()).read_int()
    3
    """

    __slots__ = ("_type", "_buffer", "_position")

    def __init__(self, type: int, payload: bytes = b"") -> None:
        self._type = int(type)
        self._buffer = bytearray(payload)
        self._position = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> Packet:
        """Wrap a received datagram.

        Never raises. A datagram shorter than the header gets type
        ``PacketType.UNKNOWN`` and an empty payload.

        Examples
        --------
        >>> Packet.from_bytes(b"").type
        -1
        >>> Packet.from_bytes(b"\\x07\\x00\\x00\\x00hi").payload
        b'hi'
        """
        if len(data) < HEADER_LENGTH:
            return cls(PacketType.UNKNOWN)
        (type_,) = struct.unpack_from(HEADER_FORMAT, data)
        return cls(type_, bytes(data[HEADER_LENGTH:]))

    @property
    def type(self) -> int:
        return self._type

    @property
    def payload(self) -> bytes:
        return bytes(self._buffer)

    @property
    def length(self) -> int:
        """Size of the serialized packet (header plus payload)."""
        return HEADER_LENGTH + len(self._buffer)

    @property
    def remaining(self) -> int:
        """Number of payload bytes not yet consumed by ``read_*``."""
        return len(self._buffer) - self._position

    def to_bytes(self) -> bytes:
        return struct.pack(HEADER_FORMAT, self._type) + bytes(self._buffer)

    def rewind(self) -> None:
        """Move the read cursor back to the start of the payload."""
        self._position = 0

    # -- writing ------------------------------------------------------------

    def _pack(self, fmt: str, value: Any) -> Self:
        self._buffer.extend(struct.pack(fmt, value))
        return self

    def write_byte(self, value: int) -> Self:
        return self._pack("<B", value)

    def write_bool(self, value: bool) -> Self:
        return self._pack("<?", value)

    def write_short(self, value: int) -> Self:
        return self._pack("<h", value)

    def write_int(self, value: int) -> Self:
        return self._pack("<i", value)

    def write_uint(self, value: int) -> Self:
        return self._pack("<I", value)

    def write_long(self, value: int) -> Self:
        return self._pack("<q", value)

    def write_float(self, value: float) -> Self:
        return self._pack("<f", value)

    def write_double(self, value: float) -> Self:
        return self._pack("<d", value)

    def write_bytes(self, value: bytes) -> Self:
        self._buffer.extend(_LENGTH.pack(len(value)))
        self._buffer.extend(value)
        return self

    def write_string(self, value: str) -> Self:
        return self.write_bytes(value.encode("utf-8"))

    def write_object(self, value: Any) -> Self:
        """Append any msgpack-serializable value (dicts, lists, scalars)."""
        return self.write_bytes(msgpack.packb(value, use_bin_type=True))

    # -- reading ------------------------------------------------------------

    def _take(self, size: int) -> bytes:
        if size > self.remaining:
            msg = (
                f"Cannot read {size} bytes from packet of type {self._type}: "
                f"only {self.remaining} remaining"
            )
            raise PacketDecodeError(msg)
        start = self._position
        self._position += size
        return bytes(self._buffer[start : self._position])

    def _unpack(self, fmt: str) -> Any:
        (value,) = struct.unpack(fmt, self._take(struct.calcsize(fmt)))
        return value

    def read_byte(self) -> int:
        return self._unpack("<B")

    def read_bool(self) -> bool:
        return self._unpack("<?")

    def read_short(self) -> int:
        return self._unpack("<h")

    def read_int(self) -> int:
        return self._unpack("<i")

    def read_uint(self) -> int:
        return self._unpack("<I")

    def read_long(self) -> int:
        return self._unpack("<q")

    def read_float(self) -> float:
        return self._unpack("<f")

    def read_double(self) -> float:
        return self._unpack("<d")

    def read_bytes(self) -> bytes:
        start = self._position
        (size,) = _LENGTH.unpack(self._take(_LENGTH.size))
        try:
            return self._take(size)
        except PacketDecodeError:
            self._position = start
            raise

    def read_string(self) -> str:
        return self.read_bytes().decode("utf-8")

    def read_object(self) -> Any:
        return msgpack.unpackb(self.read_bytes(), raw=False)

    def __repr__(self) -> str:
        return f"Packet(type={self._type}, payload={len(self._buffer)} bytes)"
