"""MCP server entry point for the tev image viewer.

Exposes tev's IPC commands as tools via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import TevClient
from .config import Endpoint, Settings
from .errors import EncodingError
from .models.packets import (
    OpenImage,
    ReloadImage,
    CloseImage,
    CreateImage,
    UpdateImage,
)

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "tev",
    instructions="Control the tev HDR image viewer: open, create, update and close images.",
)

# Global connection state
_client: TevClient | None = None
_settings = Settings.from_env()


def _get_client() -> TevClient:
    """Get the active tev client, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to tev. Use the 'connect' or 'spawn' tool first."
        )
    return _client


def _send(packet) -> dict[str, Any]:
    """Send one packet; encoding problems are reported, not raised."""
    client = _get_client()
    try:
        client.send(packet)
    except EncodingError as e:
        logger.warning("Rejected %s: %s", type(packet).__name__, e)
        return {"error": str(e)}
    return {"sent": type(packet).__name__, "image": packet.image_name}


def _connection_info(client: TevClient) -> dict[str, Any]:
    return {
        "connected": client.connected,
        "state": client.state.value,
        "hostname": client.endpoint.hostname if client.endpoint else None,
    }


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(hostname: str | None = None) -> dict[str, Any]:
    """Connect to a running tev instance.

    Args:
        hostname: tev's IPC address as host:port (default 127.0.0.1:14158,
                  or TEV_HOSTNAME).
    """
    global _client
    if _client is not None and _client.connected:
        result = _connection_info(_client)
        result["message"] = "Already connected"
        return result

    endpoint = Endpoint.parse(hostname) if hostname else _settings.endpoint
    _client = TevClient.connect(endpoint)
    return _connection_info(_client)


@mcp.tool()
def spawn(executable: str | None = None, hostname: str | None = None) -> dict[str, Any]:
    """Connect to tev, starting it first if it is not running.

    Args:
        executable: Path or name of the tev binary (default "tev" on PATH,
                    or TEV_EXECUTABLE).
        hostname: IPC address as host:port.
    """
    global _client
    if _client is not None and _client.connected:
        result = _connection_info(_client)
        result["message"] = "Already connected"
        return result

    endpoint = Endpoint.parse(hostname) if hostname else _settings.endpoint
    _client = TevClient.spawn(
        executable or _settings.executable,
        endpoint=endpoint,
        retry=_settings.retry,
    )
    return _connection_info(_client)


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to tev. tev itself keeps running."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.close()
    _client = None
    return {"disconnected": True}


# ─── IMAGE TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def open_image(
    path: str,
    channel_selector: str | None = None,
    grab_focus: bool = True,
) -> dict[str, Any]:
    """Open an image file in tev.

    Args:
        path: Image path as seen by the tev process.
        channel_selector: Optional channel/layer filter, e.g. "diffuse".
        grab_focus: Bring the image to the front.
    """
    return _send(OpenImage(path, channel_selector=channel_selector, grab_focus=grab_focus))


@mcp.tool()
def reload_image(image_name: str, grab_focus: bool = True) -> dict[str, Any]:
    """Reload an opened image from disk.

    Args:
        image_name: Name or path of the opened image.
        grab_focus: Bring the image to the front.
    """
    return _send(ReloadImage(image_name, grab_focus=grab_focus))


@mcp.tool()
def close_image(image_name: str) -> dict[str, Any]:
    """Close an opened image.

    Args:
        image_name: Name or path of the opened image.
    """
    return _send(CloseImage(image_name))


@mcp.tool()
def create_image(
    image_name: str,
    width: int,
    height: int,
    channel_names: list[str] | None = None,
    grab_focus: bool = True,
) -> dict[str, Any]:
    """Create a new black image.

    Args:
        image_name: Name shown in tev.
        width: Width in pixels.
        height: Height in pixels.
        channel_names: Channels to create (default R, G, B, A).
        grab_focus: Bring the image to the front.
    """
    channels = tuple(channel_names) if channel_names else ("R", "G", "B", "A")
    return _send(CreateImage(image_name, width, height, channels, grab_focus))


@mcp.tool()
def update_image(
    image_name: str,
    pixels: list[float],
    width: int,
    height: int,
    channel_names: list[str] | None = None,
    x: int = 0,
    y: int = 0,
    interleaved: bool = True,
    grab_focus: bool = False,
) -> dict[str, Any]:
    """Write pixel values into a rectangle of an existing image.

    Args:
        image_name: Name of an image created with create_image (or opened).
        pixels: Flat list of float values for all channels.
        width: Rectangle width in pixels.
        height: Rectangle height in pixels.
        channel_names: Channels present in ``pixels`` (default R, G, B, A).
        x: Left edge of the rectangle.
        y: Top edge of the rectangle.
        interleaved: True for RGBRGB... ordering, False for planar RR..GG..
        grab_focus: Bring the image to the front.
    """
    channels = tuple(channel_names) if channel_names else ("R", "G", "B", "A")
    return _send(
        UpdateImage.from_channels(
            image_name,
            channels,
            x,
            y,
            width,
            height,
            pixels,
            grab_focus=grab_focus,
            interleaved=interleaved,
        )
    )


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("tev://connection")
def resource_connection() -> str:
    """Current connection to tev."""
    if _client is None:
        return json.dumps({
            "connected": False,
            "state": "unconnected",
            "hostname": _settings.endpoint.hostname,
        })
    return json.dumps(_connection_info(_client))


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
