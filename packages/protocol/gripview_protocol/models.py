"""Typed models for the GRIP dashboard stream protocol and session state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


DEFAULT_PORT = 1180
MAGIC_NUMBERS = b"\x01\x00\x00\x00"
HW_COMPRESSION = -1
SIZE_640X480 = 0


class SessionState(str, Enum):
    IDLE = "Idle"
    CONNECTING = "Connecting"
    HANDSHAKING = "Handshaking"
    STREAMING = "Streaming"
    BACKOFF_WAIT = "BackoffWait"
    CLOSED = "Closed"


class CloseReason(str, Enum):
    OK = "ok"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ConnectionTarget:
    host: str
    port: int = DEFAULT_PORT


@dataclass(frozen=True)
class StreamParameters:
    fps: int
    compression: int = HW_COMPRESSION
    size_mode: int = SIZE_640X480


@dataclass(frozen=True)
class FrameHeader:
    magic: bytes
    payload_length: int
