"""Launching tev as a detached process."""

from __future__ import annotations

import logging
import os
import selectors
import shutil
import subprocess
import time
from typing import IO, Iterable, Iterator, Sequence

from ..config import Endpoint
from ..errors import SpawnError

logger = logging.getLogger(__name__)

# Lines tev prints once its IPC socket is up
ANNOUNCE_PATTERNS = (
    "Initialized IPC, listening on ",
    "Connected to primary instance at ",
)
ESCAPE = "\x1b"


def resolve_executable(executable: str | os.PathLike) -> str:
    """Resolve a tev executable.

    Paths (anything containing a directory separator) are used as given;
    bare names are looked up on ``PATH``.

    Raises:
        SpawnError: If a bare name is not found on ``PATH``.
    """
    executable = os.fspath(executable)
    if os.sep in executable or (os.altsep and os.altsep in executable):
        return executable

    found = shutil.which(executable)
    if found is None:
        raise SpawnError(f"Could not find '{executable}' on PATH")
    return found


def spawn_tev(
    executable: str | os.PathLike,
    args: Sequence[str] = (),
    announce: bool = False,
) -> subprocess.Popen:
    """Start tev detached from the calling process.

    Args:
        executable: Path or name of the tev binary.
        args: Extra command-line arguments.
        announce: Pipe stdout (binary) so the caller can read the IPC
            address from it.

    Raises:
        SpawnError: If the process cannot be started.
    """
    command = [resolve_executable(executable), *args]
    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if announce else subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise SpawnError(f"Could not start {command[0]}: {e}") from e

    logger.info("Spawned tev (pid %d): %s", process.pid, " ".join(command))
    return process


def parse_announcement(line: str) -> Endpoint | None:
    """Extract the IPC address from one line of tev's output, if present."""
    for pattern in ANNOUNCE_PATTERNS:
        start = line.find(pattern)
        if start == -1:
            continue
        rest = line[start + len(pattern):]
        # cut off trailing terminal escape codes
        end = rest.find(ESCAPE)
        hostname = rest if end == -1 else rest[:end]
        return Endpoint.parse(hostname)
    return None


def detach(process: subprocess.Popen) -> None:
    """Stop tracking a spawned tev that should outlive this client.

    A process that already exited is reaped. One that is still running is
    marked finished so ``Popen`` does not warn about it on collection.
    """
    if process.poll() is None:
        process.returncode = 0


def iter_output_lines(stream: IO[bytes], timeout: float) -> Iterator[str]:
    """Yield decoded lines from a child's stdout pipe until EOF.

    A trailing partial line is yielded only when the stream ends.

    Raises:
        TimeoutError: If ``timeout`` seconds pass before the stream ends.
    """
    deadline = time.monotonic() + timeout
    fd = stream.fileno()
    pending = b""
    with selectors.DefaultSelector() as selector:
        selector.register(fd, selectors.EVENT_READ)
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0 or not selector.select(remaining):
                raise TimeoutError(f"no IPC announcement from tev within {timeout:g} s")
            chunk = os.read(fd, 4096)
            if not chunk:
                break
            *lines, pending = (pending + chunk).split(b"\n")
            for line in lines:
                yield line.decode("utf-8", errors="replace") + "\n"
    if pending:
        yield pending.decode("utf-8", errors="replace")


def read_announced_endpoint(lines: IO[str] | Iterable[str]) -> Endpoint:
    """Read tev's stdout until it announces where it listens.

    Raises:
        SpawnError: If the output ends, or times out, without an
            announcement. The message carries everything that was read.
    """
    read = []
    try:
        for line in lines:
            endpoint = parse_announcement(line)
            if endpoint is not None:
                logger.debug("tev announced IPC endpoint %s", endpoint)
                return endpoint
            read.append(line.rstrip("\n"))
    except TimeoutError as e:
        output = "\n".join(read)
        raise SpawnError(f"Gave up waiting: {e}. Output:\n{output}") from e

    output = "\n".join(read)
    raise SpawnError(f"tev exited without announcing an IPC address. Output:\n{output}")
