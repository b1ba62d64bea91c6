"""Driver for the Power Distribution and Control Electronics (PCDE).

Every public operation is one request/response exchange over the serial
line: build the command, write it, read the framed reply, decode it.
The protocol allows a single outstanding request, so a ``PCDE`` must not
be used from several threads without external locking.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from .config import SerialConfig
from .exceptions import TransportTimeout
from .protocol.commands import (
    Channel,
    Command,
    build_battery_request,
    build_mcs_status_request,
    build_set_mcs_status,
    build_va_request,
)
from .protocol.framing import DEFAULT_POLICY, Framer, FramingPolicy
from .protocol.parser import NO_BATTERY, VAReading, parse_reply
from .transport.serial_connection import SerialConnection
from .transport.simulator import SimulatedPCDE

logger = logging.getLogger(__name__)


class ExchangeState(Enum):
    """Progress of the current or most recent exchange."""

    IDLE = "idle"
    ENCODING = "encoding"
    AWAITING_REPLY = "awaiting_reply"
    DECODING = "decoding"
    DONE = "done"
    FAILED = "failed"


class PCDE:
    """High level access to the PCDE.

    Usage::

        pcde = PCDE()
        pcde.setup_serial(SerialConfig(port="/dev/ttyUSB0"))
        reading = pcde.get_va(Channel.OUT_24VDC)
        pcde.set_mcs_status(True)
        pcde.close()
    """

    def __init__(
        self,
        connection: SerialConnection | None = None,
        framing: FramingPolicy = DEFAULT_POLICY,
    ) -> None:
        self.connection = connection or SerialConnection()
        self.framing = FramingPolicy(framing)
        self.state = ExchangeState.IDLE

    @property
    def connected(self) -> bool:
        return self.connection.connected

    def setup_serial(self, config: SerialConfig) -> None:
        """Configure the serial line and open ``config.port``."""
        self.connection.close()
        self.connection.configure(
            config.baudrate, config.read_timeout, config.write_timeout
        )
        self.connection.open(config.port)
        self.state = ExchangeState.IDLE

    def setup_test_serial(
        self, config: SerialConfig, simulator: SimulatedPCDE | None = None
    ) -> SimulatedPCDE:
        """Like ``setup_serial`` but talk to a simulated device.

        Returns:
            The simulator, so callers can adjust its state.
        """
        self.connection.close()
        self.connection.configure(
            config.baudrate, config.read_timeout, config.write_timeout
        )
        simulator = simulator or SimulatedPCDE(framing=self.framing)
        self.connection.open_port(simulator, simulator.port)
        self.state = ExchangeState.IDLE
        return simulator

    def close(self) -> None:
        self.connection.close()

    def get_va(self, channel: Channel) -> VAReading:
        """Read voltage (V) and current (A) of a channel."""
        return self._exchange(lambda: build_va_request(channel))

    def get_mcs_status(self) -> bool:
        """Return True if the Motor Control Subsystem is on."""
        return self._exchange(build_mcs_status_request)

    def set_mcs_status(self, status: bool) -> None:
        """Turn the Motor Control Subsystem on (True) or off (False)."""
        self._exchange(lambda: build_set_mcs_status(status))

    def get_battery_percentage(self) -> int:
        """Return the battery charge in percent.

        The PCDE does not answer this request when no battery is
        connected. A read timeout without any received byte therefore
        yields ``NO_BATTERY`` (-1) instead of an error.
        """
        try:
            return self._exchange(build_battery_request)
        except TransportTimeout as e:
            if e.received:
                raise
            logger.warning("No reply to battery request, assuming no battery")
            self.state = ExchangeState.DONE
            return NO_BATTERY

    def _exchange(self, build) -> Any:
        self.state = ExchangeState.ENCODING
        try:
            command: Command = build()

            self.state = ExchangeState.AWAITING_REPLY
            self.connection.write(command.request)
            framer = Framer(self.framing, command.max_reply_length)
            command.record_reply(
                self.connection.read_until(framer, command.max_reply_length)
            )

            self.state = ExchangeState.DECODING
            result = parse_reply(command)
        except Exception:
            self.state = ExchangeState.FAILED
            raise

        self.state = ExchangeState.DONE
        logger.debug("%r -> %r", command.request, result)
        return result

    def __enter__(self) -> PCDE:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
