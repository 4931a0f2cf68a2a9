"""Protocol layer: frame building, packet type tags and the command encoder."""

from .framing import Frame, build_frame, parse_frame, MAX_FRAME_SIZE
from .commands import PacketType, encode_packet, frame_size, serialize
