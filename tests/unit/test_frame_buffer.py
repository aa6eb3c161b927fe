import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))

from gripview_protocol.buffer import DEFAULT_CAPACITY, FrameBuffer, ensure_capacity


def _expected_growth(length, capacity):
    while length < capacity:
        length = int(length * 1.5)
    return length


class EnsureCapacityTests(unittest.TestCase):
    def test_reuses_buffer_when_big_enough(self):
        buf = bytearray(100)
        for n in (0, 1, 99, 100):
            self.assertIs(ensure_capacity(buf, n), buf)

    def test_grows_by_floored_steps(self):
        buf = bytearray(100)
        grown = ensure_capacity(buf, 101)
        self.assertIsNot(grown, buf)
        self.assertEqual(len(grown), 150)

        self.assertEqual(len(ensure_capacity(bytearray(100), 226)), 337)
        self.assertEqual(len(ensure_capacity(bytearray(3), 5)), 6)

    def test_growth_is_smallest_step_reaching_capacity(self):
        for length in (2, 7, 1000, DEFAULT_CAPACITY):
            for capacity in (length + 1, length * 2, length * 5 + 3):
                out = ensure_capacity(bytearray(length), capacity)
                self.assertGreaterEqual(len(out), capacity)
                self.assertEqual(len(out), _expected_growth(length, capacity))

    def test_degenerate_buffer_grows_to_request(self):
        self.assertEqual(len(ensure_capacity(bytearray(), 10)), 10)
        self.assertEqual(len(ensure_capacity(bytearray(1), 10)), 10)


class FrameBufferTests(unittest.TestCase):
    def test_default_capacity(self):
        self.assertEqual(FrameBuffer().capacity, 64 * 1024)

    def test_ensure_keeps_largest(self):
        fb = FrameBuffer(capacity=10)
        first = fb.ensure(5)
        self.assertIs(first, fb.data)
        fb.ensure(40)
        self.assertEqual(fb.capacity, 50)
        fb.ensure(20)
        self.assertEqual(fb.capacity, 50)

    def test_view_length(self):
        fb = FrameBuffer(capacity=16)
        fb.data[:4] = b"abcd"
        self.assertEqual(bytes(fb.view(4)), b"abcd")


if __name__ == "__main__":
    unittest.main()
