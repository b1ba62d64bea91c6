"""Decoding of PCDE reply frames into typed values."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from ..exceptions import MalformedReply
from .commands import (
    BatteryStatusRequest,
    Command,
    MCSSetStatusRequest,
    MCSStatusRequest,
    VARequest,
)

# Field width bounds: values carry two decimals, so six characters cover
# readings up to 999.99
MAX_CURRENT_FIELD = 6
MAX_VOLTAGE_FIELD = 6
MAX_PERCENT_FIELD = 4

NO_BATTERY = -1

# Plain ASCII decimal: digits with an optional decimal point, no sign
_DECIMAL = re.compile(rb"\d+(\.\d*)?|\.\d+")


@dataclass(frozen=True)
class VAReading:
    """Voltage (V) and current (A) of one channel."""

    voltage: float
    current: float

    def to_dict(self) -> dict:
        return {"voltage_v": self.voltage, "current_a": self.current}


def _to_float(field: bytes, name: str, reply: bytes) -> float:
    if _DECIMAL.fullmatch(field) is None:
        raise MalformedReply(
            f"Non-numeric {name} field {field!r} in VA reply {reply!r}"
        )
    return float(field)


def parse_va(reply: bytes) -> VAReading:
    """Extract voltage and current from a VA reply.

    Reply example: ``0.16A\\x0029.85V00``. The current field precedes the
    ``'A'`` marker; the voltage field starts two bytes after it (skipping
    the separator) and ends at ``'V'``. Only the last six voltage bytes
    are kept when the field is longer.
    """
    current_end: int | None = None
    for i, byte in enumerate(reply):
        if byte == ord("A") and current_end is None:
            if i > MAX_CURRENT_FIELD:
                raise MalformedReply(f"Current field too long in VA reply {reply!r}")
            current_end = i
        elif byte == ord("V"):
            if current_end is None:
                raise MalformedReply(f"Voltage before current in VA reply {reply!r}")
            start = current_end + 2
            if i - start > MAX_VOLTAGE_FIELD:
                start = i - MAX_VOLTAGE_FIELD
            return VAReading(
                voltage=_to_float(reply[start:i], "voltage", reply),
                current=_to_float(reply[:current_end], "current", reply),
            )

    raise MalformedReply(f"No full VA response delivered: {reply!r}")


def parse_mcs_status(reply: bytes) -> bool:
    """Return True for an ``ON`` reply and False for ``OFF``."""
    if reply.startswith(b"ON"):
        return True
    if reply.startswith(b"OFF"):
        return False
    raise MalformedReply(f"Invalid response to MCS status request: {reply!r}")


def parse_set_mcs_status(reply: bytes) -> None:
    """The acknowledgement carries no fields; receiving it is success."""
    return None


def parse_battery_percentage(reply: bytes) -> int:
    """Return the charge in percent from a ``<digits>%`` reply."""
    end = reply.find(b"%")
    if end < 0:
        raise MalformedReply(f"No percent sign in battery reply {reply!r}")
    if end > MAX_PERCENT_FIELD:
        raise MalformedReply(f"Percentage field too long in battery reply {reply!r}")

    field = reply[:end]
    if not field.isdigit():
        raise MalformedReply(f"Non-numeric percentage {field!r} in battery reply")
    return int(field)


_PARSERS: dict[type[Command], Callable[[bytes], Any]] = {
    VARequest: parse_va,
    MCSStatusRequest: parse_mcs_status,
    MCSSetStatusRequest: parse_set_mcs_status,
    BatteryStatusRequest: parse_battery_percentage,
}


def parse_reply(command: Command) -> Any:
    """Decode the reply recorded on ``command`` with the matching parser.

    Raises:
        MalformedReply: If the reply fields are invalid.
        ValueError: If the command has no reply yet or is of an
            unknown type.
    """
    parser = _PARSERS.get(type(command))
    if parser is None:
        raise ValueError(f"No reply parser for {type(command).__name__}")
    if not command.has_reply:
        raise ValueError(f"{type(command).__name__} has no reply to decode")
    return parser(command.reply)
