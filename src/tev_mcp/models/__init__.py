"""Command values: one immutable dataclass per tev operation."""

from .packets import (
    OpenImage,
    ReloadImage,
    CloseImage,
    CreateImage,
    UpdateImage,
    Packet,
)
