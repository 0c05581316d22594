"""Sequential, blocking record writer.

Each write_record() emits one fully framed record in a single write call.
Nothing is flushed implicitly: call flush() or close() when the bytes must
reach the sink.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO

from tfrecordio.errors import StreamClosedError
from tfrecordio.storage.codec import encode_record
from tfrecordio.utils.logging import get_logger
from tfrecordio.utils.schema import WriterOptions

logger = get_logger(__name__)


class RecordWriter:
    """Writes framed records to a file path or a binary stream.

    Paths are opened lazily (parent directories are created) and closed by
    the writer. Streams passed in are borrowed: close() flushes them but
    leaves them open.

    Args:
        sink: Output path, or a binary stream with write() and flush().
        options: Append mode and size limits.
    """

    def __init__(self, sink: str | Path | BinaryIO, options: WriterOptions | None = None) -> None:
        self.options = options or WriterOptions()
        self.path: Path | None = None
        self._stream: BinaryIO | None = None
        self._owns_stream = False

        if isinstance(sink, (str, Path)):
            self.path = Path(sink)
            self._owns_stream = True
        else:
            self._stream = sink

        self._records_written = 0
        self._bytes_written = 0
        self._closed = False

    def open(self) -> None:
        """Open the output file (no-op for borrowed streams)."""
        if self._closed:
            raise StreamClosedError("Writer is closed.")
        if self._stream is None and self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            mode = "ab" if self.options.append else "wb"
            self._stream = open(self.path, mode)
            logger.debug("record_writer_opened", path=str(self.path), mode=mode)

    def write_record(self, payload: bytes) -> None:
        """Append one framed record.

        Args:
            payload: Raw record bytes.

        Raises:
            RecordTooLargeError: If the payload exceeds the configured maximum.
        """
        if self._closed:
            raise StreamClosedError("Writer is closed.")
        if self._stream is None:
            self.open()

        frame = encode_record(payload, self.options.max_record_length)
        assert self._stream is not None
        self._stream.write(frame)
        self._records_written += 1
        self._bytes_written += len(frame)

    def flush(self) -> None:
        """Flush the underlying stream."""
        if self._closed:
            raise StreamClosedError("Writer is closed.")
        if self._stream is not None:
            self._stream.flush()

    def close(self) -> None:
        """Flush, and close the file if the writer opened it."""
        if self._closed:
            return
        if self._stream is not None:
            self._stream.flush()
            if self._owns_stream:
                self._stream.close()
                logger.debug(
                    "record_writer_closed",
                    path=str(self.path),
                    records=self._records_written,
                    bytes=self._bytes_written,
                )
        self._stream = None
        self._closed = True

    def __enter__(self) -> RecordWriter:
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def records_written(self) -> int:
        return self._records_written

    @property
    def bytes_written(self) -> int:
        return self._bytes_written
