"""High-level tev client.

Example::

    from tev_mcp import TevClient, CreateImage

    # Spawn tev if it isn't running yet; assumes tev is on PATH.
    with TevClient.spawn_path_default() as client:
        client.send(CreateImage("test", width=1920, height=1080,
                                channel_names=("R", "G", "B"), grab_focus=False))
"""

from __future__ import annotations

import logging
import os
import socket
import time
from typing import Sequence

from .config import DEFAULT_EXECUTABLE, Endpoint, RetryPolicy
from .errors import SpawnError, TevConnectionError
from .models.packets import (
    OpenImage,
    ReloadImage,
    CloseImage,
    CreateImage,
    UpdateImage,
    Packet,
)
from .protocol.commands import encode_packet
from .transport.launcher import (
    detach,
    iter_output_lines,
    read_announced_endpoint,
    spawn_tev,
)
from .transport.tcp_connection import ConnectionState, TcpConnection

logger = logging.getLogger(__name__)


class TevClient:
    """A connection to one tev instance.

    Construct with :meth:`connect`, :meth:`connect_default`, :meth:`wrap`,
    :meth:`spawn`, :meth:`spawn_path_default` or :meth:`spawn_announced`, then
    push commands with :meth:`send`. Sends are fire-and-forget.
    """

    def __init__(self, connection: TcpConnection) -> None:
        self._connection = connection

    # ─── construction ─────────────────────────────────────────────────

    @classmethod
    def connect(
        cls,
        endpoint: Endpoint | str | None = None,
        timeout: float | None = None,
    ) -> TevClient:
        """Connect to an already running tev, without spawning.

        Args:
            endpoint: ``Endpoint`` or ``"host:port"``; the default loopback
                endpoint when omitted.
            timeout: Socket timeout in seconds for connect and writes.

        Raises:
            TevConnectionError: If tev is not listening.
        """
        endpoint = _as_endpoint(endpoint)
        connection = TcpConnection(timeout=timeout)
        connection.open(endpoint)
        return cls(connection)

    @classmethod
    def connect_default(cls) -> TevClient:
        """Connect to tev on ``127.0.0.1:14158``."""
        return cls.connect(Endpoint())

    @classmethod
    def wrap(cls, sock: socket.socket) -> TevClient:
        """Use a socket that is already connected to tev."""
        return cls(TcpConnection.wrap(sock))

    @classmethod
    def spawn(
        cls,
        executable: str | os.PathLike,
        args: Sequence[str] = (),
        endpoint: Endpoint | str | None = None,
        retry: RetryPolicy | None = None,
        timeout: float | None = None,
    ) -> TevClient:
        """Connect to tev, launching it first if nothing is listening.

        A direct connect is tried first. If it fails, ``executable`` is started
        and the connect is retried ``retry.attempts`` times, ``retry.delay``
        seconds apart, while tev starts up.

        Raises:
            SpawnError: If the process cannot be started.
            TevConnectionError: If tev is still unreachable after all retries.
        """
        endpoint = _as_endpoint(endpoint)
        retry = retry or RetryPolicy()

        try:
            return cls.connect(endpoint, timeout=timeout)
        except TevConnectionError as e:
            logger.info("tev not reachable at %s (%s), spawning it", endpoint, e)

        launch_args = list(args)
        if not endpoint.is_default and not any(
            a.startswith("--hostname") for a in launch_args
        ):
            launch_args.append(f"--hostname={endpoint.hostname}")
        process = spawn_tev(executable, launch_args)

        last_error: TevConnectionError | None = None
        try:
            for attempt in range(retry.attempts):
                time.sleep(retry.delay)
                try:
                    return cls.connect(endpoint, timeout=timeout)
                except TevConnectionError as e:
                    last_error = e
                    logger.debug(
                        "Connect attempt %d/%d to %s failed",
                        attempt + 1,
                        retry.attempts,
                        endpoint,
                    )
        finally:
            detach(process)

        raise TevConnectionError(
            f"tev did not start listening on {endpoint} after "
            f"{retry.attempts} attempts"
        ) from last_error

    @classmethod
    def spawn_path_default(cls, retry: RetryPolicy | None = None) -> TevClient:
        """Spawn ``tev`` from ``PATH`` and connect on the default endpoint."""
        return cls.spawn(DEFAULT_EXECUTABLE, retry=retry)

    @classmethod
    def spawn_announced(
        cls,
        executable: str | os.PathLike = DEFAULT_EXECUTABLE,
        args: Sequence[str] = (),
        retry: RetryPolicy | None = None,
        timeout: float | None = None,
    ) -> TevClient:
        """Spawn tev and connect wherever it reports listening.

        tev prints its IPC address on stdout, either its own socket or that of
        an instance that was already running. Waits for that line at most
        ``retry.attempts * retry.delay`` seconds; a tev that stays silent
        that long is killed.

        Raises:
            SpawnError: If tev cannot start, exits without an address, or
                does not announce one in time.
            TevConnectionError: If the announced address refuses the connect.
        """
        retry = retry or RetryPolicy()
        wait = retry.attempts * retry.delay

        process = spawn_tev(executable, args, announce=True)
        try:
            endpoint = read_announced_endpoint(iter_output_lines(process.stdout, wait))
        except SpawnError:
            if process.poll() is None:
                process.kill()
            process.wait()
            raise
        finally:
            process.stdout.close()

        detach(process)
        return cls.connect(endpoint, timeout=timeout)

    # ─── state ────────────────────────────────────────────────────────

    @property
    def connection(self) -> TcpConnection:
        return self._connection

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def connected(self) -> bool:
        return self._connection.connected

    @property
    def endpoint(self) -> Endpoint | None:
        return self._connection.endpoint

    # ─── commands ─────────────────────────────────────────────────────

    def send(self, packet: Packet) -> None:
        """Encode ``packet`` and write it to tev in one write.

        Raises:
            EncodingError: If the packet cannot be encoded; nothing is sent.
            TevIOError: If the write fails; the client is then unusable.
            TevConnectionError: If the client was closed.
        """
        frame = encode_packet(packet)
        self._connection.write(frame)
        logger.debug("Sent %s (%d bytes)", type(packet).__name__, len(frame))

    def open_image(
        self,
        path: str,
        channel_selector: str | None = None,
        grab_focus: bool = True,
    ) -> None:
        self.send(OpenImage(path, channel_selector=channel_selector, grab_focus=grab_focus))

    def reload_image(self, image_name: str, grab_focus: bool = True) -> None:
        self.send(ReloadImage(image_name, grab_focus=grab_focus))

    def close_image(self, image_name: str) -> None:
        self.send(CloseImage(image_name))

    def create_image(
        self,
        image_name: str,
        width: int,
        height: int,
        channel_names: Sequence[str] = ("R", "G", "B", "A"),
        grab_focus: bool = True,
    ) -> None:
        self.send(CreateImage(image_name, width, height, tuple(channel_names), grab_focus))

    def update_image(
        self,
        image_name: str,
        image_data: Sequence[float],
        width: int,
        height: int,
        channel_names: Sequence[str] = ("R", "G", "B", "A"),
        x: int = 0,
        y: int = 0,
        grab_focus: bool = False,
        interleaved: bool = True,
    ) -> None:
        """Send pixels for several channels stored in one flat buffer."""
        self.send(
            UpdateImage.from_channels(
                image_name,
                channel_names,
                x,
                y,
                width,
                height,
                image_data,
                grab_focus=grab_focus,
                interleaved=interleaved,
            )
        )

    # ─── teardown ─────────────────────────────────────────────────────

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        self._connection.close()

    def __enter__(self) -> TevClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"TevClient({self._connection!r})"


def _as_endpoint(endpoint: Endpoint | str | None) -> Endpoint:
    if endpoint is None:
        return Endpoint()
    if isinstance(endpoint, str):
        return Endpoint.parse(endpoint)
    return endpoint
