import struct
import sys
import unittest
from io import BytesIO
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

from gripview_protocol.codec import (
    decode_frame_header,
    decode_handshake,
    encode_handshake,
    parse_frame_header,
    read_payload,
)
from gripview_protocol.errors import ProtocolError, StreamConnectionError


class FakeReader:
    """In-memory reader that hands out at most ``chunk`` bytes per read_into."""

    def __init__(self, data, chunk=None):
        self.stream = BytesIO(data)
        self.chunk = chunk
        self.read_calls = 0

    def read_exact(self, size):
        return self.stream.read(size)

    def read_into(self, view):
        self.read_calls += 1
        size = len(view) if self.chunk is None else min(len(view), self.chunk)
        data = self.stream.read(size)
        view[: len(data)] = data
        return len(data)


class HandshakeTests(unittest.TestCase):
    def test_handshake_layout(self):
        payload = encode_handshake(30)
        self.assertEqual(len(payload), 12)
        self.assertEqual(payload, bytes.fromhex("0000001e" "ffffffff" "00000000"))

    def test_handshake_round_trip(self):
        for fps in (1, 15, 30, 120):
            self.assertEqual(struct.unpack(">iii", encode_handshake(fps)), (fps, -1, 0))
            params = decode_handshake(encode_handshake(fps))
            self.assertEqual((params.fps, params.compression, params.size_mode), (fps, -1, 0))

    def test_decode_handshake_rejects_wrong_size(self):
        with self.assertRaises(ProtocolError):
            decode_handshake(b"\x00" * 11)


class FrameHeaderTests(unittest.TestCase):
    def test_valid_header_returns_length(self):
        for length in (0, 1, 100, 0xFFFFFFFF):
            reader = FakeReader(b"\x01\x00\x00\x00" + struct.pack(">I", length))
            self.assertEqual(decode_frame_header(reader), length)

    def test_bad_magic_is_protocol_error(self):
        for magic in (b"\x02\x00\x00\x00", b"\x00\x00\x00\x01", b"\x01\x00\x00\x01", b"\xff\xff\xff\xff"):
            reader = FakeReader(magic + struct.pack(">I", 4))
            with self.assertRaises(ProtocolError) as ctx:
                decode_frame_header(reader)
            self.assertEqual(str(ctx.exception), "invalid magic")

    def test_short_header_is_connection_error(self):
        with self.assertRaises(StreamConnectionError):
            decode_frame_header(FakeReader(b"\x01\x00"))
        with self.assertRaises(StreamConnectionError):
            decode_frame_header(FakeReader(b"\x01\x00\x00\x00\x00\x00"))

    def test_connection_error_is_builtin_connection_error(self):
        self.assertTrue(issubclass(StreamConnectionError, ConnectionError))

    def test_parse_frame_header(self):
        header = parse_frame_header(bytes.fromhex("01000000 00000010"))
        self.assertEqual(header.payload_length, 16)
        with self.assertRaises(ProtocolError):
            parse_frame_header(bytes.fromhex("02000000 00000010"))

    def test_length_over_limit_is_protocol_error(self):
        reader = FakeReader(b"\x01\x00\x00\x00" + struct.pack(">I", 0xFFFFFFFF))
        with self.assertRaises(ProtocolError) as ctx:
            decode_frame_header(reader, max_length=1024)
        self.assertIn("exceeds limit", str(ctx.exception))

    def test_length_at_limit_is_accepted(self):
        reader = FakeReader(b"\x01\x00\x00\x00" + struct.pack(">I", 1024))
        self.assertEqual(decode_frame_header(reader, max_length=1024), 1024)


class ReadPayloadTests(unittest.TestCase):
    def test_exact_read_loops_over_short_reads(self):
        reader = FakeReader(bytes(range(50)), chunk=8)
        buf = bytearray(64)
        self.assertEqual(read_payload(reader, buf, 50), 50)
        self.assertEqual(bytes(buf[:50]), bytes(range(50)))
        self.assertGreater(reader.read_calls, 1)

    def test_single_read_keeps_short_read(self):
        reader = FakeReader(bytes(range(50)), chunk=8)
        buf = bytearray(64)
        self.assertEqual(read_payload(reader, buf, 50, exact=False), 8)
        self.assertEqual(reader.read_calls, 1)

    def test_exact_read_stops_when_peer_closes(self):
        reader = FakeReader(b"0123456789", chunk=4)
        buf = bytearray(64)
        self.assertEqual(read_payload(reader, buf, 50), 10)
        self.assertEqual(bytes(buf[:10]), b"0123456789")

    def test_zero_length_reads_nothing(self):
        reader = FakeReader(b"abc")
        self.assertEqual(read_payload(reader, bytearray(4), 0), 0)
        self.assertEqual(reader.read_calls, 0)

    def test_buffer_too_small(self):
        with self.assertRaises(ValueError):
            read_payload(FakeReader(b"abcdef"), bytearray(2), 6)


if __name__ == "__main__":
    unittest.main()
