"""Protocol layer: command descriptors, reply framing, and reply decoding."""

from .commands import Channel, Command, parse_channel
from .framing import Framer, FramingPolicy, extract_packet
from .parser import NO_BATTERY, VAReading, parse_reply
