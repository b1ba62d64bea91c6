"""Tests for the MCP tools, run against the simulated PCDE."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from pcde_mcp.config import CONFIG_ENV_VAR


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the decorators no-ops that return the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
        sys.modules.pop("pcde_mcp.server", None)
        import pcde_mcp.server as server_mod

    return server_mod


@pytest.fixture
def server(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    server_mod = _get_server_module()
    yield server_mod
    server_mod.disconnect()


def test_tools_require_connection(server):
    with pytest.raises(RuntimeError, match="connect"):
        server.get_mcs_status()


def test_connect_simulated(server):
    result = server.connect(simulate=True)
    assert result["connected"] is True
    assert result["simulated"] is True
    assert result["framing"] == "zero"

    again = server.connect(simulate=True)
    assert again["message"] == "Already connected"


def test_connect_without_port(server):
    result = server.connect()
    assert result["connected"] is False
    assert "error" in result


def test_connect_missing_config_file(server, monkeypatch, tmp_path):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.yaml"))
    result = server.connect(simulate=True)
    assert result["connected"] is False
    assert "error" in result


def test_connect_invalid_config_file(server, monkeypatch, tmp_path):
    path = tmp_path / "pcde.yaml"
    path.write_text("serial: [unclosed")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    result = server.connect(simulate=True)
    assert result["connected"] is False
    assert "error" in result


def test_list_channels(server):
    channels = server.list_channels()["channels"]
    assert channels["BATTERY_INPUT"] == 1
    assert channels["MCS"] == 8
    assert "INVALID" not in channels


def test_get_voltage_current(server):
    server.connect(simulate=True)
    result = server.get_voltage_current("battery_input")
    assert result == {"channel": "BATTERY_INPUT", "voltage_v": 29.85, "current_a": 0.16}


def test_get_voltage_current_bad_channel(server):
    server.connect(simulate=True)
    assert "error" in server.get_voltage_current("OUT_48V")
    assert "error" in server.get_voltage_current("INVALID")


def test_get_all_voltage_current(server):
    server.connect(simulate=True)
    readings = server.get_all_voltage_current()["readings"]
    assert len(readings) == 8
    assert readings["OUT_24VDC"] == {"voltage_v": 24.02, "current_a": 1.25}


def test_mcs_tools(server):
    server.connect(simulate=True)
    assert server.get_mcs_status() == {"mcs_on": False}
    assert server.set_mcs_status(True) == {"success": True, "mcs_on": True}
    assert server.get_mcs_status() == {"mcs_on": True}


def test_battery_tool(server):
    server.connect(simulate=True)
    assert server.get_battery_percentage() == {"battery_present": True, "percentage": 87}

    server._device.connection._port.battery_percentage = None
    assert server.get_battery_percentage() == {"battery_present": False, "percentage": -1}


def test_driver_error_reported(server):
    server.connect(simulate=True)
    server._device.connection._port.respond = MagicMock(return_value=b"XX\x00")
    assert "error" in server.get_mcs_status()


def test_device_status_resource(server):
    assert json.loads(server.resource_device_status()) == {"connected": False}
    server.connect(simulate=True)
    status = json.loads(server.resource_device_status())
    assert status["connected"] is True
    assert status["port"] == "sim://pcde"


def test_disconnect(server):
    server.connect(simulate=True)
    assert server.disconnect() == {"disconnected": True}
    assert server._device is None
