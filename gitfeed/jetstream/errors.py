"""Jetstream connection and decoding errors."""

from __future__ import annotations


class JetstreamError(RuntimeError):
    """Base class for upstream stream failures."""


class TransportError(JetstreamError):
    """Raised when dialling or reading the upstream connection fails.

    Always recovered by reconnecting; never fatal to the process.
    """

    @classmethod
    def handshake_timeout(cls, url: str, timeout_s: float) -> TransportError:
        """Return an error for a handshake that exceeded its deadline."""
        return cls(f"handshake with {url} exceeded {timeout_s:g}s")

    @classmethod
    def read_failed(cls, detail: str) -> TransportError:
        """Return an error for a failed read on a live connection."""
        return cls(f"read failed: {detail}")

    @classmethod
    def read_timeout(cls, timeout_s: float) -> TransportError:
        """Return an error for a read that outlived the keepalive deadline."""
        return cls(f"no message received within {timeout_s:g}s")

    @classmethod
    def message_too_large(cls, size: int, limit: int) -> TransportError:
        """Return an error for a message above the inbound size ceiling."""
        return cls(f"message of {size} bytes exceeds limit of {limit} bytes")


class DecodeError(JetstreamError):
    """Raised when an inbound message is not a valid Jetstream event.

    Handled like a transport failure: the connection is assumed compromised.
    """

    @classmethod
    def invalid_payload(cls, detail: str) -> DecodeError:
        """Return an error wrapping the decoder's diagnostic."""
        return cls(f"malformed Jetstream event: {detail}")


class ReconnectAttemptsExceededError(JetstreamError):
    """Raised when a bounded reconnect policy runs out of attempts."""

    def __init__(self, attempts: int) -> None:
        """Record the number of failed attempts."""
        self.attempts = attempts
        super().__init__(
            f"maximum reconnection attempts exceeded after {attempts} attempts"
        )
