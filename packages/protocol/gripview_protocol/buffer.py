"""Reusable receive buffer sized to the largest frame seen so far."""

from __future__ import annotations

import logging


DEFAULT_CAPACITY = 64 * 1024
GROWTH_FACTOR = 1.5

_log = logging.getLogger("gripview.protocol")


def ensure_capacity(buffer: bytearray, capacity: int) -> bytearray:
    """Return a buffer holding at least ``capacity`` bytes.

    The supplied buffer is returned as-is when it is already big enough.
    Otherwise a new zeroed buffer is allocated whose length is the first
    1.5x step (floored) of the current length that reaches ``capacity``.
    Contents are not carried over; every frame overwrites the used prefix.
    """
    if capacity <= len(buffer):
        return buffer

    new_capacity = len(buffer)
    if new_capacity < 2:
        # 0 and 1 never grow under floor(n * 1.5).
        new_capacity = capacity
    while new_capacity < capacity:
        new_capacity = int(new_capacity * GROWTH_FACTOR)

    _log.info("growing frame buffer to %d bytes", new_capacity, extra={"event": "buffer_grow"})
    return bytearray(new_capacity)


class FrameBuffer:
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._data = bytearray(max(0, capacity))

    @property
    def capacity(self) -> int:
        return len(self._data)

    @property
    def data(self) -> bytearray:
        return self._data

    def ensure(self, capacity: int) -> bytearray:
        self._data = ensure_capacity(self._data, capacity)
        return self._data

    def view(self, length: int) -> memoryview:
        return memoryview(self._data)[:length]
