"""IPC client and MCP server for the tev image viewer."""

from .client import TevClient
from .config import Endpoint, RetryPolicy
from .errors import (
    TevError,
    EncodingError,
    TevConnectionError,
    SpawnError,
    TevIOError,
)
from .models.packets import (
    OpenImage,
    ReloadImage,
    CloseImage,
    CreateImage,
    UpdateImage,
)
from .protocol.commands import encode_packet, serialize
from .transport.tcp_connection import ConnectionState

__version__ = "0.1.0"
