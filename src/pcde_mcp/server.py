"""MCP server entry point for the PCDE.

Exposes the driver operations as tools and resources via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
Serial settings default to the file named by ``PCDE_CONFIG``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import yaml
from mcp.server.fastmcp import FastMCP

from .config import SerialConfig, config_from_env
from .device import PCDE
from .exceptions import PCDEError
from .protocol.commands import MEASURABLE_CHANNELS, Channel, parse_channel
from .protocol.parser import NO_BATTERY
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "pcde",
    instructions="MCP server for the PCDE power distribution unit",
)

# Global connection state
_device: PCDE | None = None


def _get_device() -> PCDE:
    """Get the connected driver, raising if not connected."""
    if _device is None or not _device.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _device


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str | None = None,
    baudrate: int | None = None,
    simulate: bool | None = None,
) -> dict[str, Any]:
    """Open the serial connection to the PCDE.

    Args:
        port: Serial device, e.g. /dev/ttyUSB0. Defaults to the config file.
        baudrate: Line speed. Defaults to the config file (19200).
        simulate: Talk to a simulated PCDE instead of hardware.
    """
    global _device
    if _device is not None and _device.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _device.connection.port_name,
        }

    try:
        config = config_from_env()
    except (OSError, yaml.YAMLError, ValueError) as e:
        return {"connected": False, "error": f"Invalid configuration: {e}"}

    serial_config = SerialConfig(
        port=port or config.serial.port,
        baudrate=baudrate or config.serial.baudrate,
        write_timeout_ms=config.serial.write_timeout_ms,
        read_timeout_ms=config.serial.read_timeout_ms,
    )
    use_simulator = config.simulate if simulate is None else simulate

    device = PCDE(framing=config.framing)
    try:
        if use_simulator:
            device.setup_test_serial(serial_config)
        else:
            device.setup_serial(serial_config)
    except (ConnectionError, ValueError) as e:
        return {"connected": False, "error": str(e)}

    _device = device
    return {
        "connected": True,
        "port": device.connection.port_name,
        "baudrate": serial_config.baudrate,
        "framing": device.framing.value,
        "simulated": use_simulator,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial connection."""
    global _device
    if _device is None:
        return {"disconnected": True}
    _device.close()
    _device = None
    return {"disconnected": True}


@mcp.tool()
def list_serial_ports() -> dict[str, Any]:
    """List serial ports available on this machine."""
    return {"ports": SerialConnection.list_ports()}


# ─── MEASUREMENT TOOLS ────────────────────────────────────────────────

@mcp.tool()
def list_channels() -> dict[str, Any]:
    """List voltage/current channels with their protocol index."""
    return {"channels": {c.name: int(c) for c in MEASURABLE_CHANNELS}}


@mcp.tool()
def get_voltage_current(channel: str) -> dict[str, Any]:
    """Read voltage and current of one channel.

    Args:
        channel: Channel name (e.g. OUT_24VDC, MCS) or index 1-8.
    """
    try:
        ch = parse_channel(channel)
    except ValueError as e:
        return {"error": str(e)}
    if ch is Channel.INVALID:
        return {"error": "Channel INVALID has no measurement"}

    device = _get_device()
    try:
        reading = device.get_va(ch)
    except PCDEError as e:
        return {"channel": ch.name, "error": str(e)}
    return {"channel": ch.name, **reading.to_dict()}


@mcp.tool()
def get_all_voltage_current() -> dict[str, Any]:
    """Read voltage and current of every channel, one request at a time."""
    device = _get_device()
    readings: dict[str, Any] = {}
    for ch in MEASURABLE_CHANNELS:
        try:
            readings[ch.name] = device.get_va(ch).to_dict()
        except PCDEError as e:
            readings[ch.name] = {"error": str(e)}
    return {"readings": readings}


# ─── MCS / BATTERY TOOLS ──────────────────────────────────────────────

@mcp.tool()
def get_mcs_status() -> dict[str, Any]:
    """Report whether the Motor Control Subsystem is on."""
    device = _get_device()
    try:
        return {"mcs_on": device.get_mcs_status()}
    except PCDEError as e:
        return {"error": str(e)}


@mcp.tool()
def set_mcs_status(on: bool) -> dict[str, Any]:
    """Turn the Motor Control Subsystem on or off.

    Args:
        on: True to power up the MCS, False to shut it down.
    """
    device = _get_device()
    try:
        device.set_mcs_status(on)
    except PCDEError as e:
        return {"error": str(e)}
    return {"success": True, "mcs_on": on}


@mcp.tool()
def get_battery_percentage() -> dict[str, Any]:
    """Read the battery charge; reports battery_present=false if none."""
    device = _get_device()
    try:
        percentage = device.get_battery_percentage()
    except PCDEError as e:
        return {"error": str(e)}
    return {
        "battery_present": percentage != NO_BATTERY,
        "percentage": percentage,
    }


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("pcde://channels")
def resource_channels() -> str:
    """Voltage/current channels and their protocol index."""
    return json.dumps(list_channels(), indent=2)


@mcp.resource("pcde://device/status")
def resource_device_status() -> str:
    """Connection state of the driver."""
    if _device is None or not _device.connected:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "port": _device.connection.port_name,
        "framing": _device.framing.value,
        "last_exchange": _device.state.value,
    }, indent=2)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
