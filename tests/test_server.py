"""Tests for the MCP server tools."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from tev_mcp.client import TevClient
from tev_mcp.config import Endpoint
from tev_mcp.errors import EncodingError, TevIOError
from tev_mcp.models.packets import CloseImage, CreateImage, OpenImage, UpdateImage
from tev_mcp.transport.tcp_connection import ConnectionState


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        # Remove cached server module so it re-imports with our mock
        sys.modules.pop("tev_mcp.server", None)
        import tev_mcp.server as server_mod

    return server_mod


def _mock_client() -> MagicMock:
    client = MagicMock(spec=TevClient)
    client.connected = True
    client.state = ConnectionState.CONNECTED
    client.endpoint = Endpoint()
    return client


@pytest.fixture
def server():
    server_mod = _get_server_module()
    yield server_mod
    server_mod._client = None


def test_tools_require_connection(server):
    with pytest.raises(RuntimeError):
        server.close_image("img")


def test_connect_uses_settings_endpoint(server):
    client = _mock_client()
    with patch.object(server.TevClient, "connect", return_value=client) as connect:
        result = server.connect()

    connect.assert_called_once_with(server._settings.endpoint)
    assert result == {"connected": True, "state": "connected", "hostname": "127.0.0.1:14158"}


def test_connect_explicit_hostname(server):
    client = _mock_client()
    with patch.object(server.TevClient, "connect", return_value=client) as connect:
        server.connect("127.0.0.1:15000")
    connect.assert_called_once_with(Endpoint("127.0.0.1", 15000))


def test_connect_when_already_connected(server):
    server._client = _mock_client()
    with patch.object(server.TevClient, "connect") as connect:
        result = server.connect()
    connect.assert_not_called()
    assert result["message"] == "Already connected"


def test_spawn_uses_settings(server):
    client = _mock_client()
    with patch.object(server.TevClient, "spawn", return_value=client) as spawn:
        result = server.spawn()

    spawn.assert_called_once_with(
        server._settings.executable,
        endpoint=server._settings.endpoint,
        retry=server._settings.retry,
    )
    assert result["connected"] is True


def test_disconnect(server):
    client = _mock_client()
    server._client = client
    assert server.disconnect() == {"disconnected": True}
    client.close.assert_called_once()
    assert server._client is None
    assert server.disconnect() == {"disconnected": True}


def test_open_image_sends_packet(server):
    client = _mock_client()
    with patch.object(server, "_get_client", return_value=client):
        result = server.open_image("a.exr", channel_selector="diffuse")

    client.send.assert_called_once_with(
        OpenImage("a.exr", channel_selector="diffuse", grab_focus=True)
    )
    assert result == {"sent": "OpenImage", "image": "a.exr"}


def test_create_image_default_channels(server):
    client = _mock_client()
    with patch.object(server, "_get_client", return_value=client):
        server.create_image("img", 4, 3)

    client.send.assert_called_once_with(CreateImage("img", 4, 3, ("R", "G", "B", "A"), True))


def test_update_image_builds_layout(server):
    client = _mock_client()
    with patch.object(server, "_get_client", return_value=client):
        server.update_image("img", [0.0, 1.0], 2, 1, channel_names=["Y"])

    (packet,) = client.send.call_args[0]
    assert isinstance(packet, UpdateImage)
    assert packet.channel_names == ("Y",)
    assert packet.channel_offsets == (0,)
    assert packet.channel_strides == (1,)
    assert list(packet.image_data) == [0.0, 1.0]


def test_encoding_error_reported(server):
    client = _mock_client()
    client.send.side_effect = EncodingError("Strings must not contain '\\0'")
    with patch.object(server, "_get_client", return_value=client):
        result = server.close_image("bad")
    assert "error" in result


def test_io_error_propagates(server):
    client = _mock_client()
    client.send.side_effect = TevIOError("Write to tev failed")
    with patch.object(server, "_get_client", return_value=client):
        with pytest.raises(TevIOError):
            server.close_image("img")
    client.send.assert_called_once_with(CloseImage("img"))


def test_connection_resource(server):
    info = json.loads(server.resource_connection())
    assert info["connected"] is False

    server._client = _mock_client()
    info = json.loads(server.resource_connection())
    assert info == {"connected": True, "state": "connected", "hostname": "127.0.0.1:14158"}
