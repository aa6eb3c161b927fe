"""Wire protocol package for the GRIP dashboard image stream."""

from .buffer import DEFAULT_CAPACITY, FrameBuffer, ensure_capacity
from .codec import decode_frame_header, decode_handshake, encode_handshake, parse_frame_header, read_payload
from .errors import DecodeError, ProtocolError, StreamConnectionError, StreamError
from .models import (
    DEFAULT_PORT,
    MAGIC_NUMBERS,
    CloseReason,
    ConnectionTarget,
    FrameHeader,
    SessionState,
    StreamParameters,
)
from .replay import ReplayEvent, ReplayReport, ReplayRunner
from .transport import SocketTransport

__all__ = [
    "DEFAULT_CAPACITY",
    "DEFAULT_PORT",
    "MAGIC_NUMBERS",
    "CloseReason",
    "ConnectionTarget",
    "DecodeError",
    "FrameBuffer",
    "FrameHeader",
    "ProtocolError",
    "ReplayEvent",
    "ReplayReport",
    "ReplayRunner",
    "SessionState",
    "SocketTransport",
    "StreamConnectionError",
    "StreamError",
    "StreamParameters",
    "decode_frame_header",
    "decode_handshake",
    "encode_handshake",
    "ensure_capacity",
    "parse_frame_header",
    "read_payload",
]
