"""Error kinds raised by the credential decoders and exporters."""
from __future__ import annotations

__all__ = [
    "BufferUnderrun",
    "DecodeError",
    "FieldNotFound",
    "MalformedEncoding",
    "UnsupportedExportAction",
]


class DecodeError(ValueError):
    """Base class for failures while decoding an embedded payload."""


class BufferUnderrun(DecodeError):
    """Raised when a fixed or variable length read exceeds the buffer."""

    def __init__(self, offset: int, requested: int, available: int) -> None:
        super().__init__(
            f"Unexpected end of data at offset {offset}: "
            f"needed {requested} bytes, {available} available."
        )
        self.offset = offset
        self.requested = requested
        self.available = available


class MalformedEncoding(DecodeError):
    """Raised when CBOR or text decoding of an embedded value fails."""


class UnsupportedExportAction(ValueError):
    """Raised when an export action does not apply to the requested field."""


class FieldNotFound(KeyError):
    """Raised when an exported field is absent from the parsed credential."""
