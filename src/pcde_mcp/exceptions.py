"""Error types raised by the PCDE driver."""

from __future__ import annotations


class PCDEError(Exception):
    """Base class for all driver errors."""


class TransportTimeout(PCDEError, TimeoutError):
    """No data arrived within the configured read timeout.

    ``received`` holds whatever bytes were accumulated before the
    timeout, empty if the device stayed silent.
    """

    def __init__(self, message: str, received: bytes = b"") -> None:
        super().__init__(message)
        self.received = received


class FramingTimeout(PCDEError):
    """The reply reached its maximum length without a complete frame."""


class MalformedReply(PCDEError, ValueError):
    """A complete frame arrived but its fields could not be decoded."""


class WriteTimeout(PCDEError, TimeoutError):
    """The request could not be written within the write timeout."""
