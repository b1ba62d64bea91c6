"""Serial connection to the PCDE.

Wraps a pyserial port and implements blocking, frame-delimited reads.
The port is 8N1; baud rate and timeouts come from the configuration.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import serial
from serial.tools import list_ports

from ..exceptions import FramingTimeout, TransportTimeout, WriteTimeout

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 19200
DEFAULT_TIMEOUT_S = 1.0


class SerialConnection:
    """Manages the serial line to the PCDE.

    Usage::

        conn = SerialConnection()
        conn.configure(19200, read_timeout=1.0, write_timeout=1.0)
        conn.open("/dev/ttyUSB0")
        conn.write(b"St")
        reply = conn.read_until(framer, max_bytes=5)
        conn.close()
    """

    def __init__(
        self,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout: float | None = DEFAULT_TIMEOUT_S,
        write_timeout: float | None = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._baudrate = baudrate
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout
        self._port: Any = None
        self._port_name = ""

    @property
    def connected(self) -> bool:
        return self._port is not None and self._port.is_open

    @property
    def port_name(self) -> str:
        return self._port_name

    @property
    def baudrate(self) -> int:
        return self._baudrate

    def configure(
        self,
        baudrate: int,
        read_timeout: float | None,
        write_timeout: float | None,
    ) -> None:
        """Set baud rate and timeouts (seconds), applied to an open port too."""
        if baudrate <= 0:
            raise ValueError(f"Baud rate must be positive, got {baudrate}")
        self._baudrate = baudrate
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout

        if self.connected:
            self._port.baudrate = baudrate
            self._port.timeout = read_timeout
            self._port.write_timeout = write_timeout
            logger.debug(
                "Reconfigured %s: %d baud, read timeout %s s, write timeout %s s",
                self._port_name, baudrate, read_timeout, write_timeout,
            )

    def open(self, port_name: str) -> None:
        """Open the serial device node.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if not port_name:
            raise ValueError("Serial port name must not be empty")

        try:
            port = serial.Serial(
                port=port_name,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._read_timeout,
                write_timeout=self._write_timeout,
            )
        except serial.SerialException as e:
            raise ConnectionError(
                f"Could not open serial port {port_name}: {e}"
            ) from e

        self.open_port(port, port_name)

    def open_port(self, port: Any, port_name: str = "") -> None:
        """Use an already constructed pyserial-compatible port object."""
        port.baudrate = self._baudrate
        port.timeout = self._read_timeout
        port.write_timeout = self._write_timeout
        self._port = port
        self._port_name = port_name or getattr(port, "port", "") or repr(port)
        logger.info("Connected to %s at %d baud", self._port_name, self._baudrate)

    def close(self) -> None:
        """Close the serial port."""
        if self._port is None:
            return

        try:
            self._port.close()
        except serial.SerialException as e:
            logger.warning("Error closing %s: %s", self._port_name, e)
        finally:
            self._port = None
            logger.info("Disconnected from %s", self._port_name)

    def write(self, data: bytes) -> int:
        """Write raw bytes to the device.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
            WriteTimeout: If the write does not complete in time.
        """
        port = self._require_port()
        # Stale bytes would be taken for the start of the reply
        port.reset_input_buffer()
        logger.debug("TX %r", data)
        try:
            written = port.write(data)
            port.flush()
        except serial.SerialTimeoutException as e:
            raise WriteTimeout(f"Write of {data!r} timed out") from e
        return written if written is not None else len(data)

    def read_until(
        self,
        predicate: Callable[[bytearray], int],
        max_bytes: int,
    ) -> bytes:
        """Read until ``predicate`` reports a complete frame.

        Args:
            predicate: Called with the accumulated buffer after every
                chunk; returns the frame length, or 0 to keep reading.
            max_bytes: Upper bound on the number of bytes requested
                from the port for this frame.

        Returns:
            The frame bytes. Bytes received after the frame are dropped.

        Raises:
            ConnectionError: If not connected.
            TransportTimeout: If the port stays silent for a full read
                timeout.
            FramingTimeout: If ``max_bytes`` arrive without a frame.
        """
        port = self._require_port()
        buffer = bytearray()

        while True:
            wanted = min(max(port.in_waiting, 1), max_bytes - len(buffer))
            chunk = port.read(wanted)
            if not chunk:
                raise TransportTimeout(
                    f"Read timed out after {len(buffer)} bytes on {self._port_name}",
                    received=bytes(buffer),
                )
            buffer.extend(chunk)

            used = predicate(buffer)
            if used:
                if used < len(buffer):
                    logger.warning(
                        "Discarding %d bytes after frame: %r",
                        len(buffer) - used, bytes(buffer[used:]),
                    )
                frame = bytes(buffer[:used])
                logger.debug("RX %r", frame)
                return frame

            if len(buffer) >= max_bytes:
                raise FramingTimeout(
                    f"No complete frame within {max_bytes} bytes: {bytes(buffer)!r}"
                )

    @staticmethod
    def list_ports() -> list[str]:
        """List serial device names available on this machine."""
        return [p.device for p in list_ports.comports()]

    def _require_port(self) -> Any:
        if not self.connected:
            raise ConnectionError("Not connected to device")
        return self._port

    def __enter__(self) -> SerialConnection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
