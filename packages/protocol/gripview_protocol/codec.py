"""Handshake encoding and frame header parsing for the GRIP dashboard protocol.

The client speaks first: three signed 32-bit big-endian integers (frame rate,
compression level, size mode).  The server then sends frames forever, each a
4-byte magic prefix, a big-endian unsigned 32-bit length and that many bytes
of encoded image.  Nothing in here touches a socket; readers are duck-typed
objects exposing ``read_exact(n)`` and ``read_into(view)``.
"""

from __future__ import annotations

import struct
from typing import Protocol

from .errors import ProtocolError, StreamConnectionError
from .models import HW_COMPRESSION, MAGIC_NUMBERS, SIZE_640X480, FrameHeader, StreamParameters


HANDSHAKE = struct.Struct(">iii")
LENGTH = struct.Struct(">I")
HEADER_SIZE = len(MAGIC_NUMBERS) + LENGTH.size


class FrameReader(Protocol):
    def read_exact(self, size: int) -> bytes: ...

    def read_into(self, view: memoryview) -> int: ...


def encode_handshake(fps: int, compression: int = HW_COMPRESSION, size_mode: int = SIZE_640X480) -> bytes:
    return HANDSHAKE.pack(int(fps), int(compression), int(size_mode))


def decode_handshake(data: bytes) -> StreamParameters:
    if len(data) != HANDSHAKE.size:
        raise ProtocolError(f"handshake must be {HANDSHAKE.size} bytes, got {len(data)}")
    fps, compression, size_mode = HANDSHAKE.unpack(data)
    return StreamParameters(fps=fps, compression=compression, size_mode=size_mode)


def parse_frame_header(data: bytes) -> FrameHeader:
    if len(data) != HEADER_SIZE:
        raise ProtocolError(f"frame header must be {HEADER_SIZE} bytes, got {len(data)}")
    magic = bytes(data[: len(MAGIC_NUMBERS)])
    if magic != MAGIC_NUMBERS:
        raise ProtocolError("invalid magic")
    (length,) = LENGTH.unpack(data[len(MAGIC_NUMBERS) :])
    return FrameHeader(magic=magic, payload_length=length)


def decode_frame_header(reader: FrameReader, max_length: int | None = None) -> int:
    """Read one frame header and return the declared payload length.

    A length above ``max_length`` is rejected before any buffer is sized.
    """
    magic = reader.read_exact(len(MAGIC_NUMBERS))
    if len(magic) != len(MAGIC_NUMBERS):
        raise StreamConnectionError("stream closed while reading frame magic")
    if magic != MAGIC_NUMBERS:
        raise ProtocolError("invalid magic")

    raw_length = reader.read_exact(LENGTH.size)
    if len(raw_length) != LENGTH.size:
        raise StreamConnectionError("stream closed while reading frame length")
    (length,) = LENGTH.unpack(raw_length)
    if max_length is not None and length > max_length:
        raise ProtocolError(f"frame length {length} exceeds limit {max_length}")
    return length


def read_payload(reader: FrameReader, buffer: bytearray, length: int, exact: bool = True) -> int:
    """Fill ``buffer[:length]`` from the reader and return the byte count.

    With ``exact=False`` a single read is issued and may come back short.
    With ``exact=True`` reads repeat until ``length`` bytes arrived or the
    peer closed the stream.  The count can be short in both modes.
    """
    if length <= 0:
        return 0
    if len(buffer) < length:
        raise ValueError(f"buffer holds {len(buffer)} bytes, frame needs {length}")

    view = memoryview(buffer)
    received = reader.read_into(view[:length])
    if not exact:
        return received

    while 0 < received < length:
        chunk = reader.read_into(view[received:length])
        if chunk == 0:
            break
        received += chunk
    return received
