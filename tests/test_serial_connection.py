"""Tests for the pyserial transport."""

from unittest.mock import MagicMock, patch

import pytest
import serial

from pcde_mcp.exceptions import FramingTimeout, TransportTimeout, WriteTimeout
from pcde_mcp.protocol.framing import Framer, FramingPolicy
from pcde_mcp.transport.serial_connection import SerialConnection


def _mock_port(*chunks: bytes) -> MagicMock:
    """A pyserial port whose reads return ``chunks`` and then time out."""
    port = MagicMock()
    port.is_open = True
    port.in_waiting = 0
    port.read.side_effect = list(chunks) + [b""]
    port.write.side_effect = lambda data: len(data)
    return port


def _connection(port: MagicMock) -> SerialConnection:
    conn = SerialConnection()
    conn.open_port(port, "/dev/ttyTEST")
    return conn


@patch("pcde_mcp.transport.serial_connection.serial.Serial")
def test_open_configures_port(mock_serial_cls):
    conn = SerialConnection()
    conn.configure(9600, read_timeout=0.5, write_timeout=0.25)
    conn.open("/dev/ttyUSB0")

    kwargs = mock_serial_cls.call_args.kwargs
    assert kwargs["port"] == "/dev/ttyUSB0"
    assert kwargs["baudrate"] == 9600
    assert kwargs["timeout"] == 0.5
    assert kwargs["write_timeout"] == 0.25
    assert conn.connected
    assert conn.port_name == "/dev/ttyUSB0"


@patch("pcde_mcp.transport.serial_connection.serial.Serial")
def test_open_failure_raises_connection_error(mock_serial_cls):
    mock_serial_cls.side_effect = serial.SerialException("no such device")
    conn = SerialConnection()
    with pytest.raises(ConnectionError, match="/dev/ttyUSB9"):
        conn.open("/dev/ttyUSB9")
    assert not conn.connected


def test_open_requires_port_name():
    with pytest.raises(ValueError):
        SerialConnection().open("")


def test_configure_rejects_bad_baudrate():
    with pytest.raises(ValueError):
        SerialConnection().configure(0, 1.0, 1.0)


def test_configure_applies_to_open_port():
    port = _mock_port()
    conn = _connection(port)
    conn.configure(115200, read_timeout=2.0, write_timeout=3.0)
    assert port.baudrate == 115200
    assert port.timeout == 2.0
    assert port.write_timeout == 3.0


def test_write_before_open():
    with pytest.raises(ConnectionError):
        SerialConnection().write(b"St")


def test_write_sends_bytes():
    port = _mock_port()
    conn = _connection(port)
    assert conn.write(b"VA3") == 3
    port.reset_input_buffer.assert_called_once_with()
    port.write.assert_called_once_with(b"VA3")


def test_write_timeout():
    port = _mock_port()
    port.write.side_effect = serial.SerialTimeoutException("write timeout")
    conn = _connection(port)
    with pytest.raises(WriteTimeout):
        conn.write(b"St")


def test_write_timeout_is_not_a_read_timeout():
    """A failed write must not look like a silent device."""
    assert not issubclass(WriteTimeout, TransportTimeout)


def test_read_until_single_chunk():
    conn = _connection(_mock_port(b"O", b"N\n"))
    assert conn.read_until(Framer(FramingPolicy.NEWLINE, 5), 5) == b"ON\n"


def test_read_until_zero_framing_across_chunks():
    port = _mock_port(b"0.16A", b"\x00", b"29.85V", b"\x00")
    conn = _connection(port)
    frame = conn.read_until(Framer(FramingPolicy.ZERO_TERMINATED, 15), 15)
    assert frame == b"0.16A\x0029.85V\x00"


def test_read_until_requests_waiting_bytes_within_limit():
    port = _mock_port(b"42%\x00")
    port.in_waiting = 10
    conn = _connection(port)
    conn.read_until(Framer(FramingPolicy.ZERO_TERMINATED, 6), 6)
    port.read.assert_called_once_with(6)


def test_read_until_drops_trailing_bytes():
    conn = _connection(_mock_port(b"ON\nXY"))
    assert conn.read_until(Framer(FramingPolicy.NEWLINE, 5), 5) == b"ON\n"


def test_read_until_silent_device():
    conn = _connection(_mock_port())
    with pytest.raises(TransportTimeout) as exc_info:
        conn.read_until(Framer(FramingPolicy.NEWLINE, 6), 6)
    assert exc_info.value.received == b""


def test_read_until_timeout_keeps_partial_bytes():
    conn = _connection(_mock_port(b"4", b"2"))
    with pytest.raises(TransportTimeout) as exc_info:
        conn.read_until(Framer(FramingPolicy.NEWLINE, 6), 6)
    assert exc_info.value.received == b"42"


def test_read_until_framing_timeout():
    conn = _connection(_mock_port(b"OFF", b"XY"))
    with pytest.raises(FramingTimeout):
        conn.read_until(Framer(FramingPolicy.NEWLINE, 5), 5)


def test_read_until_plain_predicate_framing_timeout():
    """The length cutoff holds even for predicates without one."""
    conn = _connection(_mock_port(b"ABCD"))
    with pytest.raises(FramingTimeout):
        conn.read_until(lambda buffer: 0, 4)


def test_close():
    port = _mock_port()
    conn = _connection(port)
    conn.close()
    port.close.assert_called_once_with()
    assert not conn.connected
    # Closing twice is harmless
    conn.close()


@patch("pcde_mcp.transport.serial_connection.list_ports.comports")
def test_list_ports(mock_comports):
    mock_comports.return_value = [MagicMock(device="/dev/ttyUSB0")]
    assert SerialConnection.list_ports() == ["/dev/ttyUSB0"]
