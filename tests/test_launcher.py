"""Tests for spawning tev and reading its startup announcement."""

import io
import os
import sys
import time
from unittest.mock import MagicMock, patch

import pytest

from tev_mcp.config import Endpoint
from tev_mcp.errors import SpawnError
from tev_mcp.transport.launcher import (
    detach,
    iter_output_lines,
    parse_announcement,
    read_announced_endpoint,
    resolve_executable,
    spawn_tev,
)


def test_resolve_path_used_as_given():
    path = os.path.join("opt", "tev", "tev")
    assert resolve_executable(path) == path


def test_resolve_bare_name_via_path():
    with patch("tev_mcp.transport.launcher.shutil.which", return_value="/usr/bin/tev") as which:
        assert resolve_executable("tev") == "/usr/bin/tev"
    which.assert_called_once_with("tev")


def test_resolve_missing_name():
    with patch("tev_mcp.transport.launcher.shutil.which", return_value=None):
        with pytest.raises(SpawnError):
            resolve_executable("tev")


def test_spawn_error_is_os_error():
    with patch("tev_mcp.transport.launcher.shutil.which", return_value=None):
        with pytest.raises(OSError):
            resolve_executable("tev")


def test_parse_primary_announcement():
    line = "Initialized IPC, listening on 127.0.0.1:14158\n"
    assert parse_announcement(line) == Endpoint("127.0.0.1", 14158)


def test_parse_secondary_announcement_strips_escape_codes():
    """Trailing terminal color codes are cut off."""
    line = "\x1b[32mConnected to primary instance at 10.0.0.2:15000\x1b[0m"
    assert parse_announcement(line) == Endpoint("10.0.0.2", 15000)


def test_parse_unrelated_line():
    assert parse_announcement("Loading window...") is None


def test_read_announced_endpoint_skips_noise():
    stream = io.StringIO(
        "Loading window...\n"
        "Initialized IPC, listening on 127.0.0.1:14159\n"
        "never read\n"
    )
    assert read_announced_endpoint(stream) == Endpoint("127.0.0.1", 14159)


def test_read_announced_endpoint_missing():
    """The error carries the output read before the stream closed."""
    stream = io.StringIO("Loading window...\nCould not open display\n")
    with pytest.raises(SpawnError) as exc_info:
        read_announced_endpoint(stream)
    assert "Could not open display" in str(exc_info.value)


def test_spawn_tev_runs_detached():
    process = spawn_tev(sys.executable, ["-c", "pass"])
    try:
        assert process.wait(timeout=30) == 0
        assert process.stdout is None
    finally:
        if process.poll() is None:
            process.kill()


def test_spawn_tev_announce_pipes_stdout():
    script = "print('Initialized IPC, listening on 127.0.0.1:14170', flush=True)"
    process = spawn_tev(sys.executable, ["-c", script], announce=True)
    try:
        lines = iter_output_lines(process.stdout, timeout=30)
        assert read_announced_endpoint(lines) == Endpoint("127.0.0.1", 14170)
    finally:
        process.stdout.close()
        process.wait(timeout=30)


def test_spawn_tev_missing_binary():
    with pytest.raises(SpawnError):
        spawn_tev(os.path.join(os.sep, "nonexistent", "tev"))


def test_iter_output_lines_splits_and_keeps_partial_tail():
    script = "import sys; sys.stdout.write('one\\ntwo\\npartial'); sys.stdout.flush()"
    process = spawn_tev(sys.executable, ["-c", script], announce=True)
    try:
        assert list(iter_output_lines(process.stdout, timeout=30)) == [
            "one\n",
            "two\n",
            "partial",
        ]
    finally:
        process.stdout.close()
        process.wait(timeout=30)


def test_iter_output_lines_times_out_on_silent_child():
    """A child that never writes or exits cannot block the reader forever."""
    process = spawn_tev(sys.executable, ["-c", "import time; time.sleep(30)"], announce=True)
    try:
        started = time.monotonic()
        with pytest.raises(TimeoutError):
            list(iter_output_lines(process.stdout, timeout=0.5))
        assert time.monotonic() - started < 10
    finally:
        process.kill()
        process.stdout.close()
        process.wait(timeout=30)


def test_read_announced_endpoint_timeout_becomes_spawn_error():
    def lines():
        yield "Loading window...\n"
        raise TimeoutError("no IPC announcement from tev within 1 s")

    with pytest.raises(SpawnError) as exc_info:
        read_announced_endpoint(lines())
    assert "Loading window..." in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, TimeoutError)


def test_detach_marks_running_process():
    """A still-running tev is marked finished so Popen stops tracking it."""
    process = MagicMock()
    process.returncode = None
    process.poll.return_value = None
    detach(process)
    assert process.returncode == 0


def test_detach_keeps_exit_status_of_finished_process():
    """A tev that already exited is reaped and keeps its real status."""
    process = MagicMock()
    process.returncode = None

    def poll():
        process.returncode = 3
        return 3

    process.poll.side_effect = poll
    detach(process)
    assert process.returncode == 3
