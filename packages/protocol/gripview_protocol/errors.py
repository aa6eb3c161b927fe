"""Error taxonomy shared by the codec, transport and session."""

from __future__ import annotations


class StreamError(Exception):
    """Base class for every recoverable streaming failure."""


class StreamConnectionError(StreamError, ConnectionError):
    """The socket could not be opened, or closed while a read was in flight."""


class ProtocolError(StreamError):
    """Received bytes do not follow the framing contract."""


class DecodeError(StreamError):
    """A frame payload is not a valid image encoding."""
