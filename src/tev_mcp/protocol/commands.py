"""Packet type tags and the command encoder.

Each packet is identified by a single-byte type tag. The tags and field
orders are fixed by the tev IPC protocol; only the current revision of each
packet is emitted (``OpenImageV2``, ``UpdateImageV3``).
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import EncodingError
from ..models.packets import (
    OpenImage,
    ReloadImage,
    CloseImage,
    CreateImage,
    UpdateImage,
    Packet,
)
from .framing import (
    FLOAT_SIZE,
    HEADER_SIZE,
    PacketWriter,
    build_frame,
    check_frame_size,
    encoded_str_size,
    float_count,
)


class PacketType(IntEnum):
    """Packet type tags."""

    OPEN_IMAGE = 0
    RELOAD_IMAGE = 1
    CLOSE_IMAGE = 2
    UPDATE_IMAGE = 3
    CREATE_IMAGE = 4
    UPDATE_IMAGE_V2 = 5
    UPDATE_IMAGE_V3 = 6
    OPEN_IMAGE_V2 = 7


PACKET_TYPES: dict[type, PacketType] = {
    OpenImage: PacketType.OPEN_IMAGE_V2,
    ReloadImage: PacketType.RELOAD_IMAGE,
    CloseImage: PacketType.CLOSE_IMAGE,
    CreateImage: PacketType.CREATE_IMAGE,
    UpdateImage: PacketType.UPDATE_IMAGE_V3,
}


def packet_type_of(packet: Packet) -> PacketType:
    try:
        return PACKET_TYPES[type(packet)]
    except KeyError:
        raise TypeError(f"Not a tev packet: {type(packet).__name__}") from None


def _check_size(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise EncodingError(f"Image size must be positive, got {width}x{height}")


def _check_update_layout(packet: UpdateImage) -> int:
    """Validate channel addressing into ``image_data``.

    Returns:
        The number of floats in ``image_data``.
    """
    _check_size(packet.width, packet.height)
    if packet.x < 0 or packet.y < 0:
        raise EncodingError(
            f"Update position must be non-negative, got ({packet.x}, {packet.y})"
        )

    count = len(packet.channel_names)
    if count == 0:
        raise EncodingError("Must update at least one channel")
    if len(packet.channel_offsets) != count or len(packet.channel_strides) != count:
        raise EncodingError(
            f"Channel count must be consistent: {count} names, "
            f"{len(packet.channel_offsets)} offsets, "
            f"{len(packet.channel_strides)} strides"
        )
    if any(o < 0 for o in packet.channel_offsets) or any(
        s < 0 for s in packet.channel_strides
    ):
        raise EncodingError("Channel offsets and strides must be non-negative")

    last_pixel = packet.pixel_count - 1
    used = max(
        offset + last_pixel * stride
        for offset, stride in zip(packet.channel_offsets, packet.channel_strides)
    ) + 1
    available = float_count(packet.image_data)
    if used != available:
        raise EncodingError(
            f"Data size does not match the used data range: "
            f"{available} floats given, {used} addressed"
        )
    return available


def frame_size(packet: Packet) -> int:
    """Compute the encoded frame size of ``packet`` without encoding it.

    Raises:
        EncodingError: If an UpdateImage layout is inconsistent.
        TypeError: If ``packet`` is not a tev packet.
    """
    if isinstance(packet, OpenImage):
        body = 1 + encoded_str_size(packet.image_name) + encoded_str_size(
            packet.channel_selector or ""
        )
    elif isinstance(packet, ReloadImage):
        body = 1 + encoded_str_size(packet.image_name)
    elif isinstance(packet, CloseImage):
        body = encoded_str_size(packet.image_name)
    elif isinstance(packet, CreateImage):
        body = (
            1
            + encoded_str_size(packet.image_name)
            + 3 * 4
            + sum(encoded_str_size(name) for name in packet.channel_names)
        )
    elif isinstance(packet, UpdateImage):
        floats = _check_update_layout(packet)
        count = len(packet.channel_names)
        body = (
            1
            + encoded_str_size(packet.image_name)
            + 4
            + sum(encoded_str_size(name) for name in packet.channel_names)
            + 4 * 4
            + 2 * 8 * count
            + FLOAT_SIZE * floats
        )
    else:
        raise TypeError(f"Not a tev packet: {type(packet).__name__}")
    return HEADER_SIZE + body


def encode_packet(packet: Packet) -> bytes:
    """Serialize a command into a complete frame.

    The frame size is checked before any pixel data is converted, so an
    oversized update fails without allocating its buffer.

    Raises:
        EncodingError: On embedded null bytes, invalid sizes or layouts,
            out-of-range integers, or a frame larger than 2**31 - 1 bytes.
        TypeError: If ``packet`` is not a tev packet.
    """
    packet_type = packet_type_of(packet)
    check_frame_size(frame_size(packet))

    writer = PacketWriter()
    if isinstance(packet, OpenImage):
        writer.write_bool(packet.grab_focus)
        writer.write_str(packet.image_name)
        writer.write_str(packet.channel_selector or "")
    elif isinstance(packet, ReloadImage):
        writer.write_bool(packet.grab_focus)
        writer.write_str(packet.image_name)
    elif isinstance(packet, CloseImage):
        writer.write_str(packet.image_name)
    elif isinstance(packet, CreateImage):
        _check_size(packet.width, packet.height)
        writer.write_bool(packet.grab_focus)
        writer.write_str(packet.image_name)
        writer.write_i32(packet.width)
        writer.write_i32(packet.height)
        writer.write_i32(len(packet.channel_names))
        writer.write_strs(packet.channel_names)
    elif isinstance(packet, UpdateImage):
        writer.write_bool(packet.grab_focus)
        writer.write_str(packet.image_name)
        writer.write_i32(len(packet.channel_names))
        writer.write_strs(packet.channel_names)
        writer.write_i32(packet.x)
        writer.write_i32(packet.y)
        writer.write_i32(packet.width)
        writer.write_i32(packet.height)
        for offset in packet.channel_offsets:
            writer.write_i64(offset)
        for stride in packet.channel_strides:
            writer.write_i64(stride)
        writer.write_floats(packet.image_data)

    return build_frame(packet_type, writer.getvalue())


serialize = encode_packet
