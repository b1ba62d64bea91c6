"""Request descriptors for the PCDE serial protocol.

Every request is a short ASCII code. Each command object carries the
payload to send, the maximum reply size the device may answer with, and
a slot that receives the raw reply once the exchange completes::

    +-----------------------+---------+-----------+
    | Request               | Payload | Max reply |
    +-----------------------+---------+-----------+
    | Voltage/current (VA)  | VA<n>   | 15 bytes  |
    | MCS status            | St      | 5 bytes   |
    | MCS on / off          | Up / Sh | 4 bytes   |
    | Battery percentage    | Bt      | 6 bytes   |
    +-----------------------+---------+-----------+

A command object is good for exactly one request/response round trip.
"""

from __future__ import annotations

from enum import IntEnum


class Channel(IntEnum):
    """Voltage/current measurement channels of the PCDE."""

    INVALID = 0
    BATTERY_INPUT = 1
    EXTERNAL_INPUT = 2
    OUT_24VDC = 3
    OUT_12VOBC = 4
    OUT_12V = 5
    OUT_5V = 6
    PTU = 7
    MCS = 8


# Channels that map to a physical measurement point
MEASURABLE_CHANNELS: tuple[Channel, ...] = tuple(
    c for c in Channel if c is not Channel.INVALID
)

VA_MAX_REPLY = 15
MCS_STATUS_MAX_REPLY = 5
MCS_SET_STATUS_MAX_REPLY = 4
BATTERY_MAX_REPLY = 6


class Command:
    """A single request and the slot for its reply."""

    def __init__(self, request: bytes, max_reply_length: int) -> None:
        if max_reply_length < 1:
            raise ValueError(
                f"max_reply_length must be positive, got {max_reply_length}"
            )
        self._request = bytes(request)
        self._max_reply_length = max_reply_length
        self._reply: bytes | None = None

    @property
    def request(self) -> bytes:
        return self._request

    @property
    def max_reply_length(self) -> int:
        return self._max_reply_length

    @property
    def reply(self) -> bytes:
        return self._reply if self._reply is not None else b""

    @property
    def reply_length(self) -> int:
        return len(self.reply)

    @property
    def has_reply(self) -> bool:
        return self._reply is not None

    def record_reply(self, data: bytes) -> None:
        """Store the raw reply for this exchange.

        Raises:
            RuntimeError: If a reply was already recorded.
            ValueError: If ``data`` is longer than ``max_reply_length``.
        """
        if self._reply is not None:
            raise RuntimeError(
                f"{type(self).__name__} already holds a reply; "
                f"commands cannot be reused"
            )
        if len(data) > self._max_reply_length:
            raise ValueError(
                f"Reply of {len(data)} bytes exceeds the maximum of "
                f"{self._max_reply_length} for {self._request!r}"
            )
        self._reply = bytes(data)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(request={self._request!r}, "
            f"max_reply_length={self._max_reply_length}, "
            f"reply={self._reply!r})"
        )


class VARequest(Command):
    """Voltage and current reading of one channel."""

    def __init__(self, channel: Channel) -> None:
        self._channel = Channel(channel)
        super().__init__(b"VA" + str(int(self._channel)).encode("ascii"), VA_MAX_REPLY)

    @property
    def channel(self) -> Channel:
        return self._channel


class MCSStatusRequest(Command):
    """Query whether the Motor Control Subsystem is running."""

    def __init__(self) -> None:
        super().__init__(b"St", MCS_STATUS_MAX_REPLY)


class MCSSetStatusRequest(Command):
    """Switch the Motor Control Subsystem on (``Up``) or off (``Sh``)."""

    def __init__(self, status: bool) -> None:
        self._status = bool(status)
        super().__init__(b"Up" if self._status else b"Sh", MCS_SET_STATUS_MAX_REPLY)

    @property
    def status(self) -> bool:
        return self._status


class BatteryStatusRequest(Command):
    """Query the battery charge in percent."""

    def __init__(self) -> None:
        super().__init__(b"Bt", BATTERY_MAX_REPLY)


def build_va_request(channel: Channel) -> VARequest:
    """Build a voltage/current request.

    Args:
        channel: Measurement channel; its index is appended to ``VA``.
    """
    return VARequest(channel)


def build_mcs_status_request() -> MCSStatusRequest:
    """Build an MCS status query."""
    return MCSStatusRequest()


def build_set_mcs_status(status: bool) -> MCSSetStatusRequest:
    """Build a command turning the MCS on (True) or off (False)."""
    return MCSSetStatusRequest(status)


def build_battery_request() -> BatteryStatusRequest:
    """Build a battery percentage query."""
    return BatteryStatusRequest()


def parse_channel(value: Channel | int | str) -> Channel:
    """Resolve a channel from an enum member, an index or a name.

    Names are matched case-insensitively, e.g. ``"out_5v"`` or ``"PTU"``.
    Numeric strings are treated as indices.

    Raises:
        ValueError: If the value names no channel.
    """
    if isinstance(value, Channel):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            value = int(text)
        else:
            try:
                return Channel[text.upper()]
            except KeyError:
                raise ValueError(
                    f"Unknown channel '{value}'. Valid: {[c.name for c in Channel]}"
                ) from None
    try:
        return Channel(value)
    except ValueError:
        raise ValueError(
            f"Channel index must be 0-{len(Channel) - 1}, got {value}"
        ) from None
