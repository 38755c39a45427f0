"""Error types raised by the mock relay substrate."""

from __future__ import annotations


class MockRelayError(Exception):
    """Base class for mock relay errors."""


class InvalidParameters(MockRelayError, ValueError):
    """A builder was called without a field its kind requires."""


class InvalidEvent(MockRelayError, ValueError):
    """An event failed wire-level shape validation."""


class EventTimeout(MockRelayError, TimeoutError):
    """No matching event was observed before the deadline."""


class ConnectionClosed(MockRelayError):
    """The relay closed the connection."""

    def __init__(self, code: int = 1000, reason: str = "") -> None:
        super().__init__(f"connection closed ({code}): {reason}" if reason else f"connection closed ({code})")
        self.code = code
        self.reason = reason


class ConnectionNeverResponds(MockRelayError):
    """The relay accepted the connection but never answered."""
