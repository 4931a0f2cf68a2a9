"""Command values sent to tev.

Each class is one variant of the closed command set. Values are immutable and
carry no encoding logic; :func:`tev_mcp.protocol.commands.encode_packet`
serializes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Union


@dataclass(frozen=True)
class OpenImage:
    """Open an image from disk. ``image_name`` is the path."""

    image_name: str
    channel_selector: str | None = None
    grab_focus: bool = True


@dataclass(frozen=True)
class ReloadImage:
    """Reload an opened image (by name or path) from disk."""

    image_name: str
    grab_focus: bool = True


@dataclass(frozen=True)
class CloseImage:
    """Close an opened image."""

    image_name: str


@dataclass(frozen=True)
class CreateImage:
    """Create a new black image with the given size and channels."""

    image_name: str
    width: int
    height: int
    channel_names: tuple[str, ...] = ("R", "G", "B", "A")
    grab_focus: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "channel_names", tuple(self.channel_names))


@dataclass(frozen=True, eq=False)
class UpdateImage:
    """Overwrite a rectangle of pixels in one or more channels.

    ``image_data`` is a flat float buffer. Channel ``i`` reads pixel ``p``
    (row-major inside the rectangle) from
    ``image_data[channel_offsets[i] + p * channel_strides[i]]``, which covers
    both interleaved and planar layouts.
    """

    image_name: str
    channel_names: tuple[str, ...]
    x: int
    y: int
    width: int
    height: int
    channel_offsets: tuple[int, ...]
    channel_strides: tuple[int, ...]
    image_data: Sequence[float] = field(repr=False)
    grab_focus: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "channel_names", tuple(self.channel_names))
        object.__setattr__(self, "channel_offsets", tuple(self.channel_offsets))
        object.__setattr__(self, "channel_strides", tuple(self.channel_strides))

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def from_channel(
        cls,
        image_name: str,
        channel_name: str,
        x: int,
        y: int,
        width: int,
        height: int,
        image_data: Sequence[float],
        grab_focus: bool = False,
        channel_offset: int = 0,
        channel_stride: int = 1,
    ) -> UpdateImage:
        """Update a single channel."""
        return cls(
            image_name=image_name,
            channel_names=(channel_name,),
            x=x,
            y=y,
            width=width,
            height=height,
            channel_offsets=(channel_offset,),
            channel_strides=(channel_stride,),
            image_data=image_data,
            grab_focus=grab_focus,
        )

    @classmethod
    def from_channels(
        cls,
        image_name: str,
        channel_names: Sequence[str],
        x: int,
        y: int,
        width: int,
        height: int,
        image_data: Sequence[float],
        grab_focus: bool = False,
        interleaved: bool = True,
    ) -> UpdateImage:
        """Update several channels stored in one buffer.

        Interleaved data is ``RGBRGB...``; planar data is ``RR..GG..BB..``.
        """
        count = len(channel_names)
        if interleaved:
            offsets = tuple(range(count))
            strides = (count,) * count
        else:
            plane = width * height
            offsets = tuple(i * plane for i in range(count))
            strides = (1,) * count
        return cls(
            image_name=image_name,
            channel_names=tuple(channel_names),
            x=x,
            y=y,
            width=width,
            height=height,
            channel_offsets=offsets,
            channel_strides=strides,
            image_data=image_data,
            grab_focus=grab_focus,
        )


Packet = Union[OpenImage, ReloadImage, CloseImage, CreateImage, UpdateImage]
