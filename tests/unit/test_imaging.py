import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "protocol"))
sys.path.insert(0, str(ROOT / "packages" / "imaging"))

from gripview_imaging import build_test_pattern, decode_image, describe_image, encode_image
from gripview_protocol.errors import DecodeError


class DecodeImageTests(unittest.TestCase):
    def test_decodes_jpeg_payload(self):
        payload = encode_image(build_test_pattern("quadrants", width=64, height=48))
        image = decode_image(payload)
        self.assertEqual(image.size, (64, 48))
        self.assertEqual(describe_image(image)["format"], "JPEG")

    def test_decodes_png_from_memoryview(self):
        payload = encode_image(build_test_pattern("red", width=8, height=8), fmt="PNG")
        image = decode_image(memoryview(bytearray(payload)))
        self.assertEqual(image.getpixel((0, 0)), (255, 0, 0))

    def test_empty_payload(self):
        with self.assertRaises(DecodeError):
            decode_image(b"")

    def test_garbage_payload(self):
        with self.assertRaises(DecodeError):
            decode_image(b"not an image at all")

    def test_truncated_payload(self):
        payload = encode_image(build_test_pattern("checkerboard", width=64, height=64))
        with self.assertRaises(DecodeError):
            decode_image(payload[:10])
        with self.assertRaises(DecodeError):
            decode_image(payload[: len(payload) // 2])


class PatternTests(unittest.TestCase):
    def test_pattern_dimensions(self):
        img = build_test_pattern("quadrants", width=640, height=480)
        self.assertEqual(img.size, (640, 480))
        self.assertEqual(img.getpixel((0, 0)), (255, 0, 0))
        self.assertEqual(img.getpixel((639, 479)), (255, 255, 255))

    def test_unknown_pattern(self):
        with self.assertRaises(ValueError):
            build_test_pattern("plaid", width=4, height=4)


if __name__ == "__main__":
    unittest.main()
