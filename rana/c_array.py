"""Fixed-size circular array that always exposes its newest elements as one window."""

from __future__ import annotations

C_ARRAY_SIZE = 50000
C_ARRAY_QUEUE_SIZE = 5


class CircularArray:
    """Ring of fixed-size elements; ``get`` returns the last few, oldest first.

    The newest elements near the end of the buffer are mirrored into its head,
    so the window of the last ``C_ARRAY_QUEUE_SIZE`` elements is always
    contiguous. Not thread safe.
    """

    def __init__(self, elem_size: int) -> None:
        if elem_size <= 0:
            raise ValueError("elem_size must be positive")
        if (C_ARRAY_SIZE // elem_size) // 2 <= C_ARRAY_QUEUE_SIZE:
            raise ValueError(
                f"elem_size {elem_size} leaves room for fewer than two windows"
            )
        self.elem_size = elem_size
        self._data = bytearray(C_ARRAY_SIZE)
        self._index = C_ARRAY_QUEUE_SIZE

    def get(self) -> list[bytes]:
        """Return the last ``C_ARRAY_QUEUE_SIZE`` elements, oldest first."""
        start = (self._index - C_ARRAY_QUEUE_SIZE) * self.elem_size
        window = bytes(self._data[start:start + C_ARRAY_QUEUE_SIZE * self.elem_size])
        size = self.elem_size
        return [window[offset:offset + size] for offset in range(0, len(window), size)]

    def put(self, payload: bytes) -> None:
        """Append one element of exactly ``elem_size`` bytes."""
        payload = bytes(payload)
        if len(payload) != self.elem_size:
            raise ValueError(
                f"payload must be {self.elem_size} bytes, got {len(payload)}"
            )
        slots_left = (C_ARRAY_SIZE - self._index * self.elem_size) // self.elem_size
        if slots_left == 0:
            self._index = C_ARRAY_QUEUE_SIZE - 1
        elif slots_left < C_ARRAY_QUEUE_SIZE:
            self._write(C_ARRAY_QUEUE_SIZE - (slots_left + 1), payload)
        self._write(self._index, payload)
        self._index += 1

    def _write(self, slot: int, payload: bytes) -> None:
        start = slot * self.elem_size
        self._data[start:start + self.elem_size] = payload