"""Record framing: length + masked CRC32C protocol.

The pure halves (:func:`encode_record`, :func:`parse_header`,
:func:`verify_payload`) never touch I/O, so the blocking and asyncio streams
share them and checksums are always computed over complete buffers.
"""

from __future__ import annotations

from typing import Protocol

from tfrecordio.errors import (
    CorruptLengthChecksumError,
    CorruptPayloadChecksumError,
    RecordTooLargeError,
    SizeOverflowError,
    TruncatedHeaderError,
    TruncatedPayloadError,
)
from tfrecordio.storage.checksum import masked_crc32c
from tfrecordio.storage.format import (
    CHECKSUM_FORMAT,
    DEFAULT_MAX_RECORD_LENGTH,
    FOOTER_SIZE,
    FRAME_OVERHEAD,
    HEADER_FORMAT,
    HEADER_SIZE,
    LENGTH_FORMAT,
    LENGTH_SIZE,
    READ_CHUNK_SIZE,
    UINT64_MAX,
)


class ByteSource(Protocol):
    """Anything with a blocking ``read``; an empty result means end of input."""

    def read(self, size: int, /) -> bytes: ...


def encoded_size(payload_length: int) -> int:
    """Number of bytes a payload of ``payload_length`` occupies once framed."""
    if payload_length < 0:
        raise ValueError(f"Payload length must be non-negative, got {payload_length}")
    total = payload_length + FRAME_OVERHEAD
    if total > UINT64_MAX:
        raise SizeOverflowError(
            f"Framed size of a {payload_length}-byte payload does not fit in 64 bits"
        )
    return total


def encode_record(payload: bytes, max_length: int = DEFAULT_MAX_RECORD_LENGTH) -> bytes:
    """Frame one payload.

    Args:
        payload: Raw record bytes.
        max_length: Largest payload accepted.

    Returns:
        ``length || mask(length) || payload || mask(payload)``.

    Raises:
        RecordTooLargeError: If the payload exceeds ``max_length``.
    """
    payload = bytes(payload)
    length = len(payload)
    if length > max_length:
        raise RecordTooLargeError(length, max_length)

    length_bytes = LENGTH_FORMAT.pack(length)
    return b"".join(
        [
            length_bytes,
            CHECKSUM_FORMAT.pack(masked_crc32c(length_bytes)),
            payload,
            CHECKSUM_FORMAT.pack(masked_crc32c(payload)),
        ]
    )


def parse_header(
    header: bytes,
    offset: int = 0,
    check_integrity: bool = True,
    max_length: int = DEFAULT_MAX_RECORD_LENGTH,
) -> int:
    """Validate a 12-byte record header and return the payload length.

    Args:
        header: Length field followed by its masked checksum.
        offset: Stream offset of the record, reported in errors.
        check_integrity: Compare the stored checksum with the computed one.
        max_length: Largest payload length accepted.

    Raises:
        TruncatedHeaderError: If fewer than 12 bytes are given.
        CorruptLengthChecksumError: If the checksum does not match.
        RecordTooLargeError: If the length exceeds ``max_length``.
    """
    if len(header) < HEADER_SIZE:
        raise TruncatedHeaderError(len(header), offset)

    length, stored = HEADER_FORMAT.unpack(header[:HEADER_SIZE])
    if check_integrity:
        actual = masked_crc32c(bytes(header[:LENGTH_SIZE]))
        if actual != stored:
            raise CorruptLengthChecksumError(stored, actual, offset)
    if length > max_length:
        raise RecordTooLargeError(length, max_length, offset)
    return length


def verify_payload(
    body: bytes,
    length: int,
    offset: int = 0,
    check_integrity: bool = True,
) -> bytes:
    """Split ``payload || checksum`` and validate the checksum.

    Args:
        body: Bytes read after the header; complete only if ``length + 4`` long.
        length: Payload length from the header.
        offset: Stream offset of the record, reported in errors.
        check_integrity: Compare the stored checksum with the computed one.

    Returns:
        The payload bytes.

    Raises:
        TruncatedPayloadError: If ``body`` is short.
        CorruptPayloadChecksumError: If the checksum does not match.
    """
    expected_size = length + FOOTER_SIZE
    if len(body) < expected_size:
        raise TruncatedPayloadError(expected_size, len(body), offset)

    payload = bytes(body[:length])
    if check_integrity:
        (stored,) = CHECKSUM_FORMAT.unpack(body[length:expected_size])
        actual = masked_crc32c(payload)
        if actual != stored:
            raise CorruptPayloadChecksumError(stored, actual, offset)
    return payload


def read_exact(source: ByteSource, size: int) -> bytes:
    """Read ``size`` bytes, looping over short reads.

    Returns fewer bytes only when the source hits end of input. Reads are
    capped at READ_CHUNK_SIZE so nothing is allocated for bytes that never arrive.
    """
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = source.read(min(remaining, READ_CHUNK_SIZE))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_record(
    source: ByteSource,
    offset: int = 0,
    check_integrity: bool = True,
    max_length: int = DEFAULT_MAX_RECORD_LENGTH,
) -> bytes | None:
    """Read and deframe one record.

    Args:
        source: Blocking byte source positioned at a record boundary.
        offset: Stream offset of the source position, reported in errors.
        check_integrity: Verify both checksums.
        max_length: Largest payload length accepted.

    Returns:
        The payload, or None if the source was already at end of input.

    Raises:
        FramingError: Any of the truncation or corruption errors.
    """
    header = read_exact(source, HEADER_SIZE)
    if not header:
        return None

    length = parse_header(header, offset, check_integrity, max_length)
    body = read_exact(source, length + FOOTER_SIZE)
    return verify_payload(body, length, offset, check_integrity)
