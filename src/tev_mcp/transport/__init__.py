"""Transport layer: the TCP connection to tev and launching tev itself."""

from .tcp_connection import ConnectionState, TcpConnection
from .launcher import (
    detach,
    iter_output_lines,
    read_announced_endpoint,
    resolve_executable,
    spawn_tev,
)
