"""Frame builder, field writer and frame reader for tev IPC packets.

Frame layout (all integers little-endian)::

    +----------------+----------+------------------------------+
    | Length         | Type tag |           Payload            |
    | 4 bytes, int32 | 1 byte   |       variable length        |
    +----------------+----------+------------------------------+

- Length: total frame size in bytes, including the length field itself
- Type tag: packet type, see :class:`tev_mcp.protocol.commands.PacketType`
- Payload: the variant's fields in fixed order, no padding

Strings are UTF-8 followed by a single null byte. There is no string length
prefix, so strings may not contain null bytes.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from ..errors import EncodingError

LENGTH_SIZE = 4
HEADER_SIZE = LENGTH_SIZE + 1  # length + type tag
MAX_FRAME_SIZE = 2**31 - 1  # int32 length field

_INT32 = struct.Struct("<i")
_INT64 = struct.Struct("<q")

FLOAT_SIZE = 4
FLOAT_DTYPE = np.dtype("<f4")


@dataclass
class Frame:
    """A decoded frame: type tag plus raw payload."""

    packet_type: int
    payload: bytes

    def __repr__(self) -> str:
        return (
            f"Frame(packet_type={self.packet_type}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def encode_str(value: str) -> bytes:
    """UTF-8 encode a string field and append its null terminator."""
    if "\0" in value:
        raise EncodingError(f"Strings must not contain '\\0': {value!r}")
    try:
        return value.encode("utf-8") + b"\0"
    except UnicodeEncodeError as e:
        raise EncodingError(f"String is not valid UTF-8: {value!r}") from e


def encoded_str_size(value: str) -> int:
    return len(encode_str(value))


def float_count(values: Sequence[float]) -> int:
    """Number of floats in a flat buffer, without materializing it."""
    if isinstance(values, np.ndarray):
        return int(values.size)
    return len(values)


def check_frame_size(size: int) -> int:
    """Raise :class:`EncodingError` if ``size`` does not fit the length field."""
    if size > MAX_FRAME_SIZE:
        raise EncodingError(
            f"Frame of {size} bytes exceeds the maximum of {MAX_FRAME_SIZE}"
        )
    return size


class PacketWriter:
    """Append-only buffer for packet fields.

    Usage::

        writer = PacketWriter()
        writer.write_bool(True)
        writer.write_str("image.exr")
        payload = writer.getvalue()
    """

    def __init__(self) -> None:
        self._buf = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def write_bool(self, value: bool) -> None:
        self._buf.append(1 if value else 0)

    def write_i32(self, value: int) -> None:
        self._pack(_INT32, value, "int32")

    def write_i64(self, value: int) -> None:
        self._pack(_INT64, value, "int64")

    def write_str(self, value: str) -> None:
        self._buf += encode_str(value)

    def write_strs(self, values: Iterable[str]) -> None:
        for value in values:
            self.write_str(value)

    def write_floats(self, values: Sequence[float]) -> None:
        try:
            data = np.asarray(values, dtype=FLOAT_DTYPE)
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Image data is not a float buffer: {e}") from e
        self._buf += data.tobytes()

    def _pack(self, fmt: struct.Struct, value: int, kind: str) -> None:
        try:
            self._buf += fmt.pack(value)
        except struct.error as e:
            raise EncodingError(f"Value {value!r} does not fit {kind}") from e


def build_frame(packet_type: int, payload: bytes = b"") -> bytes:
    """Build a complete frame for one packet.

    Args:
        packet_type: Single-byte packet type tag.
        payload: Packet-specific payload bytes.

    Returns:
        The length-prefixed frame, ready to write to the socket.

    Raises:
        EncodingError: If the frame would not fit the int32 length field.
    """
    if not 0 <= packet_type <= 0xFF:
        raise EncodingError(f"Packet type must be 0-255, got {packet_type}")
    size = check_frame_size(HEADER_SIZE + len(payload))
    return _INT32.pack(size) + bytes([packet_type]) + payload


def parse_frame(data: bytes) -> Frame | None:
    """Parse a single frame.

    Returns:
        A ``Frame`` if ``data`` holds exactly one well-formed frame, or
        ``None`` if it is truncated or its length field disagrees.
    """
    if len(data) < HEADER_SIZE:
        return None

    (size,) = _INT32.unpack_from(data, 0)
    if size < HEADER_SIZE or size != len(data):
        return None

    return Frame(packet_type=data[LENGTH_SIZE], payload=bytes(data[HEADER_SIZE:]))
