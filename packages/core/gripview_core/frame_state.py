"""Latest-frame cell shared between the capture thread and the renderer."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from PIL import Image


UNKNOWN_ERROR = "Unknown error"


@dataclass(frozen=True)
class FrameSnapshot:
    image: Image.Image | None = None
    error: str = ""
    sequence: int = 0

    @property
    def has_image(self) -> bool:
        return self.image is not None

    @property
    def display_text(self) -> str:
        """Text a renderer shows in place of an image."""
        return self.error or UNKNOWN_ERROR


class SharedFrameState:
    """Holds either the latest decoded image or the latest error.

    Writers swap in a new immutable snapshot under the lock; readers get the
    current snapshot back without waiting for anything else.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = FrameSnapshot()

    def publish_image(self, image: Image.Image) -> FrameSnapshot:
        with self._lock:
            self._snapshot = FrameSnapshot(image=image, error="", sequence=self._snapshot.sequence + 1)
            return self._snapshot

    def publish_error(self, message: str) -> FrameSnapshot:
        with self._lock:
            self._snapshot = FrameSnapshot(image=None, error=message or "", sequence=self._snapshot.sequence + 1)
            return self._snapshot

    def set(self, value: Any) -> FrameSnapshot:
        if isinstance(value, Image.Image):
            return self.publish_image(value)
        if isinstance(value, BaseException):
            return self.publish_error(str(value))
        return self.publish_error("" if value is None else str(value))

    def get(self) -> FrameSnapshot:
        with self._lock:
            return self._snapshot
