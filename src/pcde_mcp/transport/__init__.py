"""Transport layer: pyserial connection and a simulated device."""

from .serial_connection import SerialConnection
from .simulator import SimulatedPCDE
