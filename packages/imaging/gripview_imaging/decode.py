"""Frame payload decoding through Pillow."""

from __future__ import annotations

from io import BytesIO

from PIL import Image

from gripview_protocol.errors import DecodeError


def decode_image(data: bytes | bytearray | memoryview) -> Image.Image:
    """Decode one frame payload into a fully loaded image.

    ``load()`` is forced here so truncated payloads fail on the capture
    thread instead of later, lazily, inside the consumer.
    """
    if len(data) == 0:
        raise DecodeError("empty frame payload")
    try:
        image = Image.open(BytesIO(bytes(data)))
        image.load()
    except Exception as exc:
        raise DecodeError(f"cannot decode frame ({len(data)} bytes): {exc}") from exc
    return image


def describe_image(image: Image.Image) -> dict[str, object]:
    return {
        "format": image.format,
        "mode": image.mode,
        "width": image.width,
        "height": image.height,
    }
