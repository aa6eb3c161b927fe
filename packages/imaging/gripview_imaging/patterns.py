"""Deterministic test images and payload encoding."""

from __future__ import annotations

from io import BytesIO

from PIL import Image, ImageDraw


PATTERNS = ("black", "white", "red", "green", "blue", "quadrants", "h-gradient", "v-gradient", "checkerboard")

_SOLID = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 255, 0),
    "blue": (0, 0, 255),
}


def build_test_pattern(name: str, width: int = 640, height: int = 480) -> Image.Image:
    if name in _SOLID:
        return Image.new("RGB", (width, height), _SOLID[name])

    img = Image.new("RGB", (width, height), (0, 0, 0))
    draw = ImageDraw.Draw(img)
    if name == "quadrants":
        half_w, half_h = width // 2, height // 2
        draw.rectangle((0, 0, half_w - 1, half_h - 1), fill=(255, 0, 0))
        draw.rectangle((half_w, 0, width - 1, half_h - 1), fill=(0, 255, 0))
        draw.rectangle((0, half_h, half_w - 1, height - 1), fill=(0, 0, 255))
        draw.rectangle((half_w, half_h, width - 1, height - 1), fill=(255, 255, 255))
    elif name == "h-gradient":
        for x in range(width):
            v = int(255 * (x / max(width - 1, 1)))
            draw.line((x, 0, x, height - 1), fill=(v, v, v))
    elif name == "v-gradient":
        for y in range(height):
            v = int(255 * (y / max(height - 1, 1)))
            draw.line((0, y, width - 1, y), fill=(v, v, v))
    elif name == "checkerboard":
        for y in range(0, height, 24):
            for x in range(0, width, 24):
                if (x // 24 + y // 24) % 2 == 0:
                    draw.rectangle((x, y, x + 23, y + 23), fill=(255, 255, 255))
    else:
        raise ValueError(f"Unknown pattern: {name}")
    return img


def encode_image(image: Image.Image, fmt: str = "JPEG", quality: int = 80) -> bytes:
    """Encode an image the way a GRIP server would before framing it."""
    out = BytesIO()
    if fmt.upper() == "JPEG":
        image.convert("RGB").save(out, format="JPEG", quality=quality)
    else:
        image.save(out, format=fmt)
    return out.getvalue()
