"""tfrecordio exception hierarchy.

Framing errors mean the stream cannot be trusted from the current position.
Model errors mean a record was framed correctly but is not a valid example.
Conversion errors mean a valid example could not be mapped to or from the
requested native representation.

End of input is never an exception: readers return ``None`` and iteration stops.
"""

from __future__ import annotations

from typing import Any, Sequence


class TFRecordError(Exception):
    """Base exception for all tfrecordio failures."""


class StreamClosedError(TFRecordError):
    """Raised when a record stream is used after close()."""


# ── Framing ──────────────────────────────────────────────────


class FramingError(TFRecordError):
    """A record could not be deframed.

    Attributes:
        offset: Byte offset of the start of the failed record in the stream.
    """

    def __init__(self, message: str, offset: int = 0) -> None:
        super().__init__(f"{message} (record at byte offset {offset})")
        self.offset = offset


class TruncatedHeaderError(FramingError):
    """The stream ended inside a record's length field or length checksum."""

    def __init__(self, available: int, offset: int = 0) -> None:
        super().__init__(
            f"Truncated record header: got {available} of 12 bytes", offset
        )
        self.available = available


class TruncatedPayloadError(FramingError):
    """The stream ended inside a record's payload or payload checksum."""

    def __init__(self, expected: int, actual: int, offset: int = 0) -> None:
        super().__init__(
            f"Truncated record payload: expected {expected} bytes, got {actual}", offset
        )
        self.expected = expected
        self.actual = actual


class CorruptLengthChecksumError(FramingError):
    """The stored length checksum does not match the length bytes."""

    def __init__(self, expected: int, actual: int, offset: int = 0) -> None:
        super().__init__(
            f"Corrupt length checksum: stored 0x{expected:08x}, computed 0x{actual:08x}",
            offset,
        )
        self.expected = expected
        self.actual = actual


class RecordTooLargeError(CorruptLengthChecksumError):
    """A length field exceeds the configured maximum record size."""

    def __init__(self, length: int, limit: int, offset: int = 0) -> None:
        FramingError.__init__(
            self, f"Record length {length} exceeds maximum of {limit} bytes", offset
        )
        self.expected = limit
        self.actual = length
        self.length = length
        self.limit = limit


class CorruptPayloadChecksumError(FramingError):
    """The stored payload checksum does not match the payload bytes."""

    def __init__(self, expected: int, actual: int, offset: int = 0) -> None:
        super().__init__(
            f"Corrupt payload checksum: stored 0x{expected:08x}, computed 0x{actual:08x}",
            offset,
        )
        self.expected = expected
        self.actual = actual


# ── Example model ────────────────────────────────────────────


class ModelError(TFRecordError):
    """A correctly framed record does not form a valid example."""


class MalformedExampleError(ModelError):
    """Raised for unparseable payloads, repeated feature names or ambiguous kinds."""


class InconsistentSequenceLengthError(ModelError):
    """Feature lists of a sequence example have different numbers of steps."""

    def __init__(self, lengths: dict[str, int]) -> None:
        super().__init__(f"Feature lists have inconsistent lengths: {lengths}")
        self.lengths = lengths


# ── Conversion ───────────────────────────────────────────────


class ConversionError(TFRecordError):
    """A feature could not be mapped to or from a native representation."""


class ShapeMismatchError(ConversionError):
    """The requested shape does not hold the available elements."""

    def __init__(self, requested: Sequence[int], actual: Any, message: str | None = None) -> None:
        super().__init__(
            message or f"Cannot reshape {actual} elements into shape {tuple(requested)}"
        )
        self.requested = tuple(requested)
        self.actual = actual


class RaggedConversionError(ConversionError):
    """Byte strings of unequal length cannot form a byte tensor."""

    def __init__(self, lengths: Sequence[int]) -> None:
        distinct = sorted(set(lengths))
        super().__init__(
            f"Byte strings have unequal lengths {distinct}; "
            "pass passthrough=True to keep them as byte strings"
        )
        self.lengths = list(lengths)


class UnsupportedElementTypeError(ConversionError):
    """The element type is not int64, float32 or bytes."""

    def __init__(self, dtype: Any) -> None:
        super().__init__(
            f"Unsupported element type {dtype}: expected int64, float32, uint8 or bytes"
        )
        self.dtype = dtype


class UnsupportedImageFormatError(ConversionError):
    """The image payload does not start with a recognized format header."""


class SizeOverflowError(ConversionError):
    """A size computation exceeded the representable range."""
