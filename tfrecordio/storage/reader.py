"""Sequential, blocking record reader.

Reads one record per call from a file path or any binary stream. After a
failed read the cursor stays right after the bytes that attempt consumed, so
the caller decides whether to stop or to keep reading from there.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Iterator

from tfrecordio.errors import FramingError, StreamClosedError
from tfrecordio.storage.codec import ByteSource, decode_record
from tfrecordio.utils.logging import get_logger
from tfrecordio.utils.schema import ReaderOptions

logger = get_logger(__name__)


class _CountingSource:
    """Wraps a byte source and counts the bytes handed out."""

    def __init__(self, source: ByteSource) -> None:
        self._source = source
        self.consumed = 0

    def read(self, size: int) -> bytes:
        chunk = self._source.read(size)
        self.consumed += len(chunk)
        return chunk


class RecordReader:
    """Sequential reader for TFRecord files and binary streams.

    Paths are opened lazily and closed by the reader. File objects passed in
    are borrowed and left open on close().

    Args:
        source: Path to a record file, or a binary stream positioned at a
            record boundary.
        options: Integrity and size limits.
    """

    def __init__(self, source: str | Path | BinaryIO, options: ReaderOptions | None = None) -> None:
        self.options = options or ReaderOptions()
        self.path: Path | None = None
        self._stream: BinaryIO | None = None
        self._owns_stream = False

        if isinstance(source, (str, Path)):
            self.path = Path(source)
            if not self.path.exists():
                raise FileNotFoundError(f"Record file not found: {self.path}")
            self._owns_stream = True
        else:
            self._stream = source

        self._offset = 0
        self._records_read = 0
        self._exhausted = False
        self._closed = False

    def open(self) -> None:
        """Open the file for reading (no-op for borrowed streams)."""
        if self._closed:
            raise StreamClosedError("Reader is closed.")
        if self._stream is None and self.path is not None:
            self._stream = open(self.path, "rb")
            logger.debug("record_reader_opened", path=str(self.path))

    def close(self) -> None:
        """Close the file if the reader opened it."""
        if self._closed:
            return
        if self._owns_stream and self._stream is not None:
            self._stream.close()
            logger.debug(
                "record_reader_closed", path=str(self.path), records=self._records_read
            )
        self._stream = None
        self._closed = True

    def __enter__(self) -> RecordReader:
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def offset(self) -> int:
        """Bytes consumed from the source so far."""
        return self._offset

    @property
    def records_read(self) -> int:
        """Records successfully decoded so far."""
        return self._records_read

    def read_record(self) -> bytes | None:
        """Read the next record.

        Returns:
            The payload, or None at end of input. Once None has been returned
            every later call returns None too.

        Raises:
            FramingError: If the next record is truncated or corrupt.
        """
        if self._closed:
            raise StreamClosedError("Reader is closed.")
        if self._stream is None:
            self.open()
        if self._exhausted:
            return None

        assert self._stream is not None
        start = self._offset
        counter = _CountingSource(self._stream)
        try:
            payload = decode_record(
                counter,
                offset=start,
                check_integrity=self.options.check_integrity,
                max_length=self.options.max_record_length,
            )
        except FramingError as error:
            logger.warning(
                "record_decode_failed",
                path=str(self.path) if self.path else None,
                offset=start,
                error=type(error).__name__,
            )
            raise
        finally:
            self._offset += counter.consumed

        if payload is None:
            self._exhausted = True
            return None

        self._records_read += 1
        return payload

    def seek(self, offset: int) -> None:
        """Move the cursor to ``offset`` on a seekable stream.

        Used by callers that implement their own recovery after a failed read.
        """
        if self._closed:
            raise StreamClosedError("Reader is closed.")
        if self._stream is None:
            self.open()
        assert self._stream is not None
        self._stream.seek(offset)
        self._offset = offset
        self._exhausted = False

    def __iter__(self) -> Iterator[bytes]:
        while True:
            payload = self.read_record()
            if payload is None:
                return
            yield payload
