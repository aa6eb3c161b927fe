"""Image codec helpers for decoded stream frames."""

from .decode import decode_image, describe_image
from .patterns import PATTERNS, build_test_pattern, encode_image

__all__ = [
    "PATTERNS",
    "build_test_pattern",
    "decode_image",
    "describe_image",
    "encode_image",
]
