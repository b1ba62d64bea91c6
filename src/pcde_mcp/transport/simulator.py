"""Simulated PCDE for running the driver without hardware.

``SimulatedPCDE`` behaves like an open pyserial port: requests written
to it are answered with wire-accurate replies that can be read back.
State set through it (channel readings, MCS state, battery charge)
shows up in subsequent replies, and ``Up`` / ``Sh`` change the MCS state.

Usage::

    sim = SimulatedPCDE(framing=FramingPolicy.NEWLINE)
    sim.set_reading(Channel.OUT_5V, voltage=5.02, current=0.31)
    conn = SerialConnection()
    conn.open_port(sim, "sim://pcde")
"""

from __future__ import annotations

import logging

from ..protocol.commands import Channel
from ..protocol.framing import FramingPolicy

logger = logging.getLogger(__name__)

ACK = b"OK"

# Nominal readings per channel: (voltage, current)
DEFAULT_READINGS: dict[Channel, tuple[float, float]] = {
    Channel.BATTERY_INPUT: (29.85, 0.16),
    Channel.EXTERNAL_INPUT: (0.0, 0.0),
    Channel.OUT_24VDC: (24.02, 1.25),
    Channel.OUT_12VOBC: (12.01, 0.85),
    Channel.OUT_12V: (12.04, 0.42),
    Channel.OUT_5V: (5.01, 0.33),
    Channel.PTU: (24.0, 0.6),
    Channel.MCS: (24.1, 2.3),
}


class SimulatedPCDE:
    """In-memory stand-in for the PCDE serial port."""

    def __init__(
        self,
        framing: FramingPolicy = FramingPolicy.ZERO_TERMINATED,
        battery_percentage: int | None = 87,
        mcs_on: bool = False,
        chunk_size: int | None = None,
    ) -> None:
        self.framing = FramingPolicy(framing)
        self.battery_percentage = battery_percentage
        self.mcs_on = mcs_on
        # Limit bytes per read to mimic a slow line
        self.chunk_size = chunk_size
        self.readings = dict(DEFAULT_READINGS)
        self.requests: list[bytes] = []

        self.port = "sim://pcde"
        self.baudrate = 19200
        self.timeout: float | None = 1.0
        self.write_timeout: float | None = 1.0
        self.is_open = True
        self._pending = bytearray()

    def set_reading(self, channel: Channel, voltage: float, current: float) -> None:
        self.readings[Channel(channel)] = (voltage, current)

    @property
    def terminator(self) -> bytes:
        return b"\n" if self.framing is FramingPolicy.NEWLINE else b"\x00"

    @property
    def separator(self) -> bytes:
        return b"0" if self.framing is FramingPolicy.NEWLINE else b"\x00"

    # --- pyserial interface ---

    @property
    def in_waiting(self) -> int:
        if self.chunk_size is not None:
            return min(len(self._pending), self.chunk_size)
        return len(self._pending)

    def write(self, data: bytes) -> int:
        self._check_open()
        request = bytes(data)
        self.requests.append(request)
        reply = self.respond(request)
        if reply is None:
            logger.debug("Simulator ignores %r", request)
        else:
            self._pending.extend(reply)
        return len(request)

    def read(self, size: int = 1) -> bytes:
        self._check_open()
        if self.chunk_size is not None:
            size = min(size, self.chunk_size)
        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        self._pending.clear()

    def close(self) -> None:
        self.is_open = False

    # --- device behaviour ---

    def respond(self, request: bytes) -> bytes | None:
        """Build the reply the device sends for ``request``.

        Returns None when the device stays silent: unknown requests, and
        battery queries while no battery is connected.
        """
        if request.startswith(b"VA"):
            index = request[2:]
            if not index.isdigit() or int(index) not in self.readings:
                return None
            voltage, current = self.readings[Channel(int(index))]
            return (
                f"{current:.2f}A".encode("ascii")
                + self.separator
                + f"{voltage:.2f}V".encode("ascii")
                + self.terminator
            )
        if request == b"St":
            return (b"ON" if self.mcs_on else b"OFF") + self.terminator
        if request in (b"Up", b"Sh"):
            self.mcs_on = request == b"Up"
            return ACK + self.terminator
        if request == b"Bt":
            if self.battery_percentage is None:
                return None
            return f"{self.battery_percentage}%".encode("ascii") + self.terminator
        return None

    def _check_open(self) -> None:
        if not self.is_open:
            raise OSError("Simulated port is closed")
