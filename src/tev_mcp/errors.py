"""Exception types raised by the tev client.

Every error derives from :class:`TevError` and also from the closest builtin
exception, so callers can catch either.
"""

from __future__ import annotations


class TevError(Exception):
    """Base class for all tev client errors."""


class EncodingError(TevError, ValueError):
    """A command cannot be encoded into a frame."""


class TevConnectionError(TevError, ConnectionError):
    """The peer is unreachable, or the connection is not open."""


class SpawnError(TevError, OSError):
    """The tev process could not be launched."""


class TevIOError(TevError, IOError):
    """A write on an established connection failed."""
