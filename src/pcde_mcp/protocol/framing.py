"""Frame detection for PCDE replies.

The device answers every request with one ASCII frame. Two terminator
conventions exist across firmware revisions:

- ``NEWLINE``: the frame ends with a line feed (0x0A).
- ``ZERO_TERMINATED``: the frame ends with a zero byte (0x00). VA replies
  also use a zero byte to separate the current field from the voltage
  field, right after the current unit marker::

      +----------------+-----+------+----------------+-----+-----+------+
      | current digits | 'A' | 0x00 | voltage digits | 'V' | pad | 0x00 |
      +----------------+-----+------+----------------+-----+-----+------+

  A zero byte is therefore only a terminator when the byte before it is
  not ``'A'``. A reply whose last payload byte is ``'A'`` can not be
  framed under this convention; the firmware never sends one.

Serial reads deliver bytes in arbitrary chunks, so completion is decided
on the accumulated buffer, not on individual reads.
"""

from __future__ import annotations

from enum import Enum

from ..exceptions import FramingTimeout
from .commands import VA_MAX_REPLY

LINE_FEED = 0x0A
ZERO_BYTE = 0x00
CURRENT_UNIT = ord("A")


class FramingPolicy(str, Enum):
    """Terminator convention of the connected firmware."""

    NEWLINE = "newline"
    ZERO_TERMINATED = "zero"


DEFAULT_POLICY = FramingPolicy.ZERO_TERMINATED


def extract_packet(
    buffer: bytes | bytearray, policy: FramingPolicy = DEFAULT_POLICY
) -> int:
    """Return the length of the first complete frame in ``buffer``.

    Args:
        buffer: Bytes accumulated since the request was written.
        policy: Terminator convention to apply.

    Returns:
        Number of bytes belonging to the frame, terminator included,
        or 0 if no complete frame has arrived yet.
    """
    if policy is FramingPolicy.NEWLINE:
        index = buffer.find(LINE_FEED)
        return index + 1 if index >= 0 else 0

    index = buffer.find(ZERO_BYTE)
    while index >= 0:
        # Zero after the current unit is the VA field separator
        if index == 0 or buffer[index - 1] != CURRENT_UNIT:
            return index + 1
        index = buffer.find(ZERO_BYTE, index + 1)
    return 0


class Framer:
    """Frame-completion predicate for a single exchange.

    Usage::

        framer = Framer(FramingPolicy.ZERO_TERMINATED, max_length=15)
        framer(b"0.16A\\x00")            # -> 0, keep reading
        framer(b"0.16A\\x0029.85V\\x00")  # -> 13, frame complete

    Raises ``FramingTimeout`` once ``max_length`` bytes have been
    accumulated without a complete frame.
    """

    def __init__(
        self,
        policy: FramingPolicy = DEFAULT_POLICY,
        max_length: int = VA_MAX_REPLY,
    ) -> None:
        if max_length < 1:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.policy = FramingPolicy(policy)
        self.max_length = max_length

    def __call__(self, buffer: bytes | bytearray) -> int:
        used = extract_packet(buffer, self.policy)
        if used:
            return used
        if len(buffer) >= self.max_length:
            raise FramingTimeout(
                f"No {self.policy.value} terminated frame within "
                f"{self.max_length} bytes: {bytes(buffer)!r}"
            )
        return 0

    def remaining(self, buffer: bytes | bytearray) -> int:
        """Bytes that may still be read before the length cutoff."""
        return max(self.max_length - len(buffer), 0)

    def __repr__(self) -> str:
        return f"Framer(policy={self.policy.value}, max_length={self.max_length})"
