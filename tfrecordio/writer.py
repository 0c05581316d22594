"""ExampleWriter: write examples and sequence examples to a TFRecord file.

Usage:
    from tfrecordio import ExampleWriter

    with ExampleWriter("train.tfrecord") as writer:
        for image, label in samples:
            writer.write({"image": image, "label": label})

Values may be feature values (BytesList, Int64List, FloatList), Python
scalars, lists, bytes or str, numpy arrays of int64, float32 or uint8, or
framework tensors exposing ``.numpy()``.

Sequence examples:

    writer.write_sequence(SequenceExample(
        context={"id": BytesList((b"clip-7",))},
        feature_lists={"frame": [Int64List((1,)), Int64List((2,))]},
    ))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Iterable, Mapping

from tfrecordio.convert.tensor import arrays_to_features
from tfrecordio.example.codec import MessageCodec, encode_example, encode_sequence_example
from tfrecordio.example.features import SequenceExample
from tfrecordio.storage.async_io import AsyncByteSink, AsyncRecordWriter
from tfrecordio.storage.format import FILE_EXTENSION
from tfrecordio.storage.writer import RecordWriter
from tfrecordio.utils.schema import WriterOptions


def _with_extension(path: str | Path) -> Path:
    path = Path(path)
    if not path.suffix:
        path = path.with_suffix(FILE_EXTENSION)
    return path


class ExampleWriter:
    """Writes one serialized example per record.

    Args:
        sink: Output path (``.tfrecord`` is appended when it has no suffix)
            or a binary stream, which is borrowed and left open.
        options: Append mode and size limits.
        codec: Message codec; the protobuf codec by default.
    """

    def __init__(
        self,
        sink: str | Path | BinaryIO,
        options: WriterOptions | None = None,
        codec: MessageCodec | None = None,
    ) -> None:
        if isinstance(sink, (str, Path)):
            sink = _with_extension(sink)
        self._writer = RecordWriter(sink, options)
        self._codec = codec
        self._closed = False

    def write(self, features: Mapping[str, Any]) -> None:
        """Write one example.

        Args:
            features: Feature names mapped to feature values or array-likes.

        Raises:
            UnsupportedElementTypeError: If an array has an unsupported dtype.
            MalformedExampleError: If a name is not a str.
        """
        payload = encode_example(arrays_to_features(features), self._codec)
        self._writer.write_record(payload)

    def write_sequence(self, sequence: SequenceExample) -> None:
        """Write one sequence example.

        Raises:
            InconsistentSequenceLengthError: If the feature lists differ in length.
        """
        self._writer.write_record(encode_sequence_example(sequence, self._codec))

    def write_payload(self, payload: bytes) -> None:
        """Write an already serialized payload as one record."""
        self._writer.write_record(payload)

    def flush(self) -> None:
        self._writer.flush()

    def close(self) -> None:
        """Flush and close the output."""
        self._writer.close()
        self._closed = True

    @property
    def num_records(self) -> int:
        """Number of records written so far."""
        return self._writer.records_written

    @property
    def path(self) -> Path | None:
        """Output path, or None when writing to a stream."""
        return self._writer.path

    def __enter__(self) -> ExampleWriter:
        self._writer.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return f"ExampleWriter(path='{self.path}', records={self.num_records}, status={status})"


class AsyncExampleWriter:
    """asyncio counterpart of :class:`ExampleWriter`.

    Args:
        sink: Output path or an object with awaitable write(), flush() and close().
        options: Append mode and size limits.
        codec: Message codec; the protobuf codec by default.
    """

    def __init__(
        self,
        sink: str | Path | AsyncByteSink,
        options: WriterOptions | None = None,
        codec: MessageCodec | None = None,
    ) -> None:
        if isinstance(sink, (str, Path)):
            sink = _with_extension(sink)
        self._writer = AsyncRecordWriter(sink, options)
        self._codec = codec

    async def write(self, features: Mapping[str, Any]) -> None:
        payload = encode_example(arrays_to_features(features), self._codec)
        await self._writer.write_record(payload)

    async def write_sequence(self, sequence: SequenceExample) -> None:
        await self._writer.write_record(encode_sequence_example(sequence, self._codec))

    async def flush(self) -> None:
        await self._writer.flush()

    async def close(self) -> None:
        await self._writer.close()

    @property
    def num_records(self) -> int:
        return self._writer.records_written

    @property
    def path(self) -> Path | None:
        return self._writer.path

    async def __aenter__(self) -> AsyncExampleWriter:
        await self._writer.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"AsyncExampleWriter(path='{self.path}', records={self.num_records})"


def write_examples(
    path: str | Path,
    examples: Iterable[Mapping[str, Any] | SequenceExample],
    options: WriterOptions | None = None,
    codec: MessageCodec | None = None,
) -> Path:
    """Write every example in ``examples`` to ``path`` and return the file path.

    Items that are :class:`SequenceExample` instances are written as
    sequence examples, everything else as plain examples.
    """
    with ExampleWriter(path, options, codec) as writer:
        for example in examples:
            if isinstance(example, SequenceExample):
                writer.write_sequence(example)
            else:
                writer.write(example)
    assert writer.path is not None
    return writer.path
