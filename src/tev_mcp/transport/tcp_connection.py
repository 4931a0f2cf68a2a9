"""TCP connection to a running tev instance.

The connection is write-only: tev never replies to IPC packets. Once a write
fails the connection is FAILED for good and must be replaced.
"""

from __future__ import annotations

import logging
import socket
from enum import Enum

from ..config import Endpoint
from ..errors import TevConnectionError, TevIOError

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


class TcpConnection:
    """Owns the socket to tev.

    Usage::

        conn = TcpConnection()
        conn.open(Endpoint("127.0.0.1", 14158))
        conn.write(frame_bytes)
        conn.close()

    Not thread-safe: concurrent writes may interleave on the wire.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._sock: socket.socket | None = None
        self._endpoint: Endpoint | None = None
        self._state = ConnectionState.UNCONNECTED

    @classmethod
    def wrap(cls, sock: socket.socket) -> TcpConnection:
        """Adopt a socket that is already connected to tev."""
        conn = cls(timeout=sock.gettimeout())
        conn._sock = sock
        conn._state = ConnectionState.CONNECTED
        try:
            host, port = sock.getpeername()[:2]
            conn._endpoint = Endpoint(host=host, port=port)
        except (OSError, ValueError, TypeError):
            # socketpair / AF_UNIX peers have no (host, port)
            conn._endpoint = None
        return conn

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def endpoint(self) -> Endpoint | None:
        return self._endpoint

    def open(self, endpoint: Endpoint) -> Endpoint:
        """Connect to tev at ``endpoint``.

        Raises:
            TevConnectionError: If nothing is listening, or the connection
                was already used.
        """
        if self._state is not ConnectionState.UNCONNECTED:
            raise TevConnectionError(
                f"Connection is {self._state.value}; create a new one"
            )

        try:
            sock = socket.create_connection(
                (endpoint.host, endpoint.port), timeout=self._timeout
            )
        except OSError as e:
            raise TevConnectionError(
                f"Could not connect to tev at {endpoint}. "
                f"Ensure tev is running with IPC enabled. "
                f"Last error: {e}"
            ) from e

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._sock = sock
        self._endpoint = endpoint
        self._state = ConnectionState.CONNECTED
        logger.info("Connected to tev at %s", endpoint)
        return endpoint

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._sock is None:
            if self._state is ConnectionState.UNCONNECTED:
                self._state = ConnectionState.CLOSED
            return

        sock, self._sock = self._sock, None
        try:
            sock.close()
        except OSError as e:
            logger.warning("Error closing connection: %s", e)
        finally:
            if self._state is not ConnectionState.FAILED:
                self._state = ConnectionState.CLOSED
            logger.info("Disconnected from tev")

    def write(self, data: bytes) -> int:
        """Write one complete frame.

        Returns:
            Number of bytes written.

        Raises:
            TevConnectionError: If the connection was never opened or is closed.
            TevIOError: If the write fails, or an earlier write failed.
        """
        if self._state is ConnectionState.FAILED:
            raise TevIOError("Connection to tev failed earlier; reconnect first")
        if self._state is not ConnectionState.CONNECTED or self._sock is None:
            raise TevConnectionError("Not connected to tev")

        try:
            self._sock.sendall(data)
        except OSError as e:
            self._fail()
            raise TevIOError(f"Write to tev failed: {e}") from e
        return len(data)

    def _fail(self) -> None:
        self._state = ConnectionState.FAILED
        self.close()

    def __repr__(self) -> str:
        return f"TcpConnection(endpoint={self._endpoint}, state={self._state.value})"
