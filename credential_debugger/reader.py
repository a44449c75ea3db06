"""Cursor based reader for fixed binary layouts."""
from __future__ import annotations

from typing import Union

from .errors import BufferUnderrun

__all__ = ["BinaryFieldReader"]

BytesLike = Union[bytes, bytearray, memoryview]


class BinaryFieldReader:
    """Read big-endian fields from a byte buffer, advancing a cursor.

    The reader keeps a ``memoryview`` over the buffer so slices are taken
    without copying the whole payload. A failed read raises
    :class:`BufferUnderrun` and leaves the cursor where it was.
    """

    def __init__(self, data: BytesLike, position: int = 0) -> None:
        self._view = memoryview(data).cast("B")
        if position < 0 or position > len(self._view):
            raise ValueError(f"Reader position {position} is outside the buffer.")
        self._position = position

    @property
    def position(self) -> int:
        return self._position

    def remaining(self) -> int:
        return len(self._view) - self._position

    def _take(self, length: int) -> memoryview:
        if length < 0:
            raise ValueError("Read length must not be negative.")
        available = self.remaining()
        if length > available:
            raise BufferUnderrun(self._position, length, available)
        start = self._position
        self._position += length
        return self._view[start : self._position]

    def read_bytes(self, length: int) -> bytes:
        return bytes(self._take(length))

    def read_bytes_as_hex(self, length: int) -> str:
        """Read ``length`` bytes and return them as lowercase hex."""

        return self._take(length).hex()

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_u16_be(self) -> int:
        return int.from_bytes(self._take(2), "big")

    def read_u32_be(self) -> int:
        return int.from_bytes(self._take(4), "big")

    def read_remaining(self) -> bytes:
        return self.read_bytes(self.remaining())
