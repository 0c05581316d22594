"""asyncio record streams.

Each stream instance runs one task that owns the byte channel. Callers talk
to it through queues, so a caller cancelled while waiting never leaves the
channel in the middle of a record:

* AsyncRecordReader: a record being decoded when its caller is cancelled is
  handed to the next read_record() call instead of being lost.
* AsyncRecordWriter: frames are fully encoded before they are queued and
  written with a single sink write. A cancelled write_record() has either
  queued its frame, which is then written in full, or queued nothing.

Checksums are only computed over complete buffers; suspension happens only
while waiting on the channel.
"""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Any, AsyncIterator, BinaryIO, Protocol, Union

from tfrecordio.errors import FramingError, StreamClosedError
from tfrecordio.storage.codec import encode_record, parse_header, verify_payload
from tfrecordio.storage.format import (
    DEFAULT_MAX_RECORD_LENGTH,
    FOOTER_SIZE,
    HEADER_SIZE,
    READ_CHUNK_SIZE,
)
from tfrecordio.utils.logging import get_logger
from tfrecordio.utils.schema import ReaderOptions, WriterOptions

logger = get_logger(__name__)


class AsyncByteSource(Protocol):
    async def read(self, size: int, /) -> bytes: ...


class AsyncByteSink(Protocol):
    async def write(self, data: bytes, /) -> None: ...

    async def flush(self) -> None: ...


# ── Channel adapters ─────────────────────────────────────────


class AsyncFileSource:
    """Blocking binary file read from a worker thread."""

    def __init__(self, file: BinaryIO) -> None:
        self._file = file

    @classmethod
    async def open(cls, path: str | Path) -> AsyncFileSource:
        file = await asyncio.to_thread(open, Path(path), "rb")
        return cls(file)

    async def read(self, size: int) -> bytes:
        return await asyncio.to_thread(self._file.read, size)

    async def close(self) -> None:
        await asyncio.to_thread(self._file.close)


class AsyncFileSink:
    """Blocking binary file written from a worker thread."""

    def __init__(self, file: BinaryIO) -> None:
        self._file = file

    @classmethod
    async def open(cls, path: str | Path, append: bool = False) -> AsyncFileSink:
        path = Path(path)
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        file = await asyncio.to_thread(open, path, "ab" if append else "wb")
        return cls(file)

    async def write(self, data: bytes) -> None:
        await asyncio.to_thread(self._file.write, data)

    async def flush(self) -> None:
        await asyncio.to_thread(self._file.flush)

    async def close(self) -> None:
        await asyncio.to_thread(self._file.close)


class StreamReaderSource:
    """Adapts an asyncio.StreamReader."""

    def __init__(self, reader: asyncio.StreamReader) -> None:
        self._reader = reader

    async def read(self, size: int) -> bytes:
        return await self._reader.read(size)


class StreamWriterSink:
    """Adapts an asyncio.StreamWriter. Data is buffered before the first await."""

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    async def write(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def flush(self) -> None:
        await self._writer.drain()

    async def close(self) -> None:
        self._writer.close()
        await self._writer.wait_closed()


# ── Decoding ─────────────────────────────────────────────────


class _CountingSource:
    def __init__(self, source: AsyncByteSource) -> None:
        self._source = source
        self.consumed = 0

    async def read(self, size: int) -> bytes:
        chunk = await self._source.read(size)
        self.consumed += len(chunk)
        return chunk


async def read_exact_async(source: AsyncByteSource, size: int) -> bytes:
    """Read ``size`` bytes, fewer only at end of input."""
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = await source.read(min(remaining, READ_CHUNK_SIZE))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


async def decode_record_async(
    source: AsyncByteSource,
    offset: int = 0,
    check_integrity: bool = True,
    max_length: int = DEFAULT_MAX_RECORD_LENGTH,
) -> bytes | None:
    """Awaitable counterpart of :func:`tfrecordio.storage.codec.decode_record`."""
    header = await read_exact_async(source, HEADER_SIZE)
    if not header:
        return None

    length = parse_header(header, offset, check_integrity, max_length)
    body = await read_exact_async(source, length + FOOTER_SIZE)
    return verify_payload(body, length, offset, check_integrity)


# ── Reader ───────────────────────────────────────────────────

_Result = Union[bytes, None, BaseException]


class AsyncRecordReader:
    """asyncio reader for TFRecord files and byte sources.

    Same semantics as :class:`tfrecordio.storage.reader.RecordReader`: None
    at end of input (and on every call after it), framing errors raised with
    the cursor left after the bytes the failed attempt consumed.

    A single instance serves one caller at a time.

    Args:
        source: Path to a record file, or an object with an awaitable read().
        options: Integrity and size limits. ``readahead`` records are decoded
            before they are requested.
    """

    def __init__(
        self,
        source: str | Path | AsyncByteSource,
        options: ReaderOptions | None = None,
    ) -> None:
        self.options = options or ReaderOptions()
        self.path: Path | None = None
        self._source: Any = None
        self._owns_source = False

        if isinstance(source, (str, Path)):
            self.path = Path(source)
            if not self.path.exists():
                raise FileNotFoundError(f"Record file not found: {self.path}")
            self._owns_source = True
        else:
            self._source = source

        self._task: asyncio.Task[None] | None = None
        self._requests: asyncio.Queue[None] = asyncio.Queue()
        self._results: asyncio.Queue[_Result] = asyncio.Queue()
        self._pending = 0
        self._end_delivered = False
        self._exhausted = False
        self._offset = 0
        self._records_read = 0
        self._closed = False

    async def open(self) -> None:
        """Open the file if needed and start the reader task."""
        if self._closed:
            raise StreamClosedError("Reader is closed.")
        if self._source is None and self.path is not None:
            self._source = await AsyncFileSource.open(self.path)
            logger.debug("async_record_reader_opened", path=str(self.path))
        if self._task is None:
            self._task = asyncio.create_task(self._pump())

    async def close(self) -> None:
        """Stop the reader task and close the file if the reader opened it."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._owns_source and self._source is not None:
            await self._source.close()
        self._source = None

    async def __aenter__(self) -> AsyncRecordReader:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def offset(self) -> int:
        """Bytes consumed from the source so far, including read-ahead."""
        return self._offset

    @property
    def records_read(self) -> int:
        return self._records_read

    async def read_record(self) -> bytes | None:
        """Read the next record, or None at end of input.

        Raises:
            FramingError: If the next record is truncated or corrupt.
        """
        if self._closed:
            raise StreamClosedError("Reader is closed.")
        if self._end_delivered:
            return None
        if self._task is None:
            await self.open()

        if self._pending == 0:
            self._request()
        result = await self._results.get()
        self._pending -= 1

        if isinstance(result, BaseException):
            raise result
        if result is None:
            self._end_delivered = True
            return None

        self._records_read += 1
        while self._pending < self.options.readahead:
            self._request()
        return result

    def _request(self) -> None:
        self._pending += 1
        self._requests.put_nowait(None)

    async def _pump(self) -> None:
        while True:
            await self._requests.get()
            if self._exhausted:
                self._results.put_nowait(None)
                continue

            start = self._offset
            counter = _CountingSource(self._source)
            result: _Result
            try:
                result = await decode_record_async(
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
                result = error
            except Exception as error:
                # Channel failures belong to the caller that asked for the record.
                result = error

            self._offset += counter.consumed
            if result is None:
                self._exhausted = True
            self._results.put_nowait(result)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        while True:
            payload = await self.read_record()
            if payload is None:
                return
            yield payload


# ── Writer ───────────────────────────────────────────────────

_WRITE = "write"
_FLUSH = "flush"
_STOP = "stop"


class AsyncRecordWriter:
    """asyncio writer for TFRecord files and byte sinks.

    Records reach the sink in call order. Nothing is flushed implicitly.
    Once the sink fails, every later call raises that failure.

    Args:
        sink: Output path, or an object with awaitable write() and flush().
        options: Append mode and size limits.
    """

    def __init__(
        self,
        sink: str | Path | AsyncByteSink,
        options: WriterOptions | None = None,
    ) -> None:
        self.options = options or WriterOptions()
        self.path: Path | None = None
        self._sink: Any = None
        self._owns_sink = False

        if isinstance(sink, (str, Path)):
            self.path = Path(sink)
            self._owns_sink = True
        else:
            self._sink = sink

        self._task: asyncio.Task[None] | None = None
        self._queue: asyncio.Queue[tuple[str, bytes, asyncio.Future[None]]] = asyncio.Queue()
        self._failure: BaseException | None = None
        self._records_written = 0
        self._bytes_written = 0
        self._closed = False

    async def open(self) -> None:
        """Open the file if needed and start the writer task."""
        if self._closed:
            raise StreamClosedError("Writer is closed.")
        if self._sink is None and self.path is not None:
            self._sink = await AsyncFileSink.open(self.path, append=self.options.append)
            logger.debug("async_record_writer_opened", path=str(self.path))
        if self._task is None:
            self._task = asyncio.create_task(self._drain())

    async def write_record(self, payload: bytes) -> None:
        """Append one framed record and wait until the sink accepted it.

        Raises:
            RecordTooLargeError: If the payload exceeds the configured maximum.
        """
        self._check_usable()
        frame = encode_record(payload, self.options.max_record_length)
        if self._task is None:
            await self.open()
        await self._submit(_WRITE, frame)

    async def flush(self) -> None:
        """Flush the sink after every record written so far."""
        self._check_usable()
        if self._task is None:
            return
        await self._submit(_FLUSH)

    async def close(self) -> None:
        """Flush, stop the writer task and close the file if the writer opened it."""
        if self._closed:
            return
        try:
            if self._task is not None and self._failure is None:
                await self._submit(_FLUSH)
        finally:
            self._closed = True
            if self._task is not None:
                await self._submit(_STOP)
                self._task = None
            if self._owns_sink and self._sink is not None:
                await self._sink.close()
                logger.debug(
                    "async_record_writer_closed",
                    path=str(self.path),
                    records=self._records_written,
                    bytes=self._bytes_written,
                )
            self._sink = None

    async def __aenter__(self) -> AsyncRecordWriter:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def records_written(self) -> int:
        return self._records_written

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    def _check_usable(self) -> None:
        if self._closed:
            raise StreamClosedError("Writer is closed.")
        if self._failure is not None:
            raise self._failure

    async def _submit(self, op: str, data: bytes = b"") -> None:
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((op, data, done))
        await done

    async def _drain(self) -> None:
        while True:
            op, data, done = await self._queue.get()
            if op == _STOP:
                done.set_result(None)
                return

            if self._failure is None:
                try:
                    if op == _WRITE:
                        await asyncio.shield(self._sink.write(data))
                        self._records_written += 1
                        self._bytes_written += len(data)
                    else:
                        await asyncio.shield(self._sink.flush())
                except Exception as error:
                    self._failure = error
                    logger.error(
                        "record_sink_failed",
                        path=str(self.path) if self.path else None,
                        op=op,
                        error=repr(error),
                    )

            if done.cancelled():
                continue
            if self._failure is not None:
                done.set_exception(self._failure)
            else:
                done.set_result(None)
