"""ExampleReader: read examples back from a TFRecord file.

Usage:
    from tfrecordio import ExampleReader

    with ExampleReader("train.tfrecord") as reader:
        for features in reader:
            print(features["label"])          # Int64List(value=(7,))

    # numpy arrays instead of feature values
    reader = ExampleReader("train.tfrecord", as_arrays=True, shapes={"image": (28, 28)})
    first = reader.read()                     # {"image": array(...), "label": array([7])}

    # sequence examples
    for sequence in ExampleReader("clips.tfrecord", sequence=True):
        for step in sequence.steps():
            ...

    print(summarize("train.tfrecord"))       # record count, sizes, feature kinds
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Iterator, Mapping, Sequence

import numpy as np

from tfrecordio.convert.tensor import feature_to_tensor, features_to_arrays
from tfrecordio.errors import MalformedExampleError
from tfrecordio.example.codec import MessageCodec, decode_example, decode_sequence_example
from tfrecordio.example.features import SequenceExample
from tfrecordio.storage.async_io import AsyncByteSource, AsyncRecordReader
from tfrecordio.storage.format import FILE_EXTENSION
from tfrecordio.storage.index import index_records
from tfrecordio.storage.reader import RecordReader
from tfrecordio.utils.logging import get_logger
from tfrecordio.utils.schema import FeatureSummary, ReaderOptions, RecordFileSummary

logger = get_logger(__name__)


def _find_record_file(path: str | Path) -> Path:
    # Writers append .tfrecord to suffix-less names
    path = Path(path)
    if not path.suffix and not path.exists():
        named = path.with_suffix(FILE_EXTENSION)
        if named.exists():
            return named
    return path


class _ExampleDecoder:
    """Turns record payloads into the value shape a reader was asked for."""

    def __init__(
        self,
        codec: MessageCodec | None,
        sequence: bool,
        as_arrays: bool,
        shapes: Mapping[str, Sequence[int]] | None,
        passthrough: bool,
    ) -> None:
        self.codec = codec
        self.sequence = sequence
        self.as_arrays = as_arrays
        self.shapes = dict(shapes or {})
        self.passthrough = passthrough

    def __call__(self, payload: bytes) -> Any:
        if self.sequence:
            sequence = decode_sequence_example(payload, self.codec)
            return self._sequence_arrays(sequence) if self.as_arrays else sequence

        features = decode_example(payload, self.codec)
        if self.as_arrays:
            return features_to_arrays(features, self.shapes, passthrough=self.passthrough)
        return features

    def _sequence_arrays(self, sequence: SequenceExample) -> dict[str, Any]:
        context = features_to_arrays(sequence.context, self.shapes, passthrough=self.passthrough)
        feature_lists: dict[str, list[np.ndarray]] = {}
        for name, steps in sequence.feature_lists.items():
            shape = self.shapes.get(name)
            feature_lists[name] = [
                feature_to_tensor(step, shape, passthrough=self.passthrough) for step in steps
            ]
        return {"context": context, "feature_lists": feature_lists}


class ExampleReader:
    """Iterate over the examples stored in a TFRecord file or stream.

    Args:
        source: Path to a record file (a missing suffix-less name falls back to
            ``<name>.tfrecord``), or a binary stream (borrowed).
        options: Integrity and size limits.
        codec: Message codec; the protobuf codec by default.
        sequence: Decode records as sequence examples.
        as_arrays: Yield numpy arrays instead of feature values. Sequence
            examples become ``{"context": {...}, "feature_lists": {name: [array per step]}}``.
        shapes: Target shapes per feature name, used with ``as_arrays``.
        passthrough: Keep byte features as object arrays of byte strings.
    """

    def __init__(
        self,
        source: str | Path | BinaryIO,
        options: ReaderOptions | None = None,
        codec: MessageCodec | None = None,
        sequence: bool = False,
        as_arrays: bool = False,
        shapes: Mapping[str, Sequence[int]] | None = None,
        passthrough: bool = False,
    ) -> None:
        if isinstance(source, (str, Path)):
            source = _find_record_file(source)
        self._reader = RecordReader(source, options)
        self._codec = codec
        self._decode = _ExampleDecoder(codec, sequence, as_arrays, shapes, passthrough)

    def close(self) -> None:
        """Close the underlying file."""
        self._reader.close()

    def __enter__(self) -> ExampleReader:
        self._reader.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # --- Properties ---

    @property
    def path(self) -> Path | None:
        return self._reader.path

    @property
    def options(self) -> ReaderOptions:
        return self._reader.options

    @property
    def records_read(self) -> int:
        """Number of records decoded so far."""
        return self._reader.records_read

    @property
    def offset(self) -> int:
        """Byte offset of the next record."""
        return self._reader.offset

    # --- Data Access ---

    def read(self) -> Any:
        """Read the next example, or None at end of input.

        Raises:
            FramingError: If the record is truncated or corrupt.
            MalformedExampleError: If the payload is not a valid example.
        """
        payload = self._reader.read_record()
        if payload is None:
            return None
        return self._decode(payload)

    def __iter__(self) -> Iterator[Any]:
        for payload in self._reader:
            yield self._decode(payload)

    # --- Display ---

    def summary(self) -> RecordFileSummary:
        """Summarize the file this reader was opened on.

        Raises:
            ValueError: If the reader was created from a stream.
        """
        if self.path is None:
            raise ValueError("summary() needs a reader opened on a file path.")
        return summarize(self.path, self.options, self._codec)

    def __repr__(self) -> str:
        return f"ExampleReader(path='{self.path}', records_read={self.records_read})"


class AsyncExampleReader:
    """asyncio counterpart of :class:`ExampleReader`.

    Supports ``async with`` and ``async for``; read() returns None at end of input.
    """

    def __init__(
        self,
        source: str | Path | AsyncByteSource,
        options: ReaderOptions | None = None,
        codec: MessageCodec | None = None,
        sequence: bool = False,
        as_arrays: bool = False,
        shapes: Mapping[str, Sequence[int]] | None = None,
        passthrough: bool = False,
    ) -> None:
        if isinstance(source, (str, Path)):
            source = _find_record_file(source)
        self._reader = AsyncRecordReader(source, options)
        self._decode = _ExampleDecoder(codec, sequence, as_arrays, shapes, passthrough)

    async def close(self) -> None:
        await self._reader.close()

    async def __aenter__(self) -> AsyncExampleReader:
        await self._reader.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def path(self) -> Path | None:
        return self._reader.path

    @property
    def records_read(self) -> int:
        return self._reader.records_read

    async def read(self) -> Any:
        payload = await self._reader.read_record()
        if payload is None:
            return None
        return self._decode(payload)

    def __aiter__(self) -> Any:
        return self._iterate()

    async def _iterate(self) -> Any:
        async for payload in self._reader:
            yield self._decode(payload)

    def __repr__(self) -> str:
        return f"AsyncExampleReader(path='{self.path}', records_read={self.records_read})"


def read_examples(path: str | Path, **kwargs: Any) -> list[Any]:
    """Read every example of a file into a list.

    Keyword arguments are passed to :class:`ExampleReader`.
    """
    with ExampleReader(path, **kwargs) as reader:
        return list(reader)


def summarize(
    path: str | Path,
    options: ReaderOptions | None = None,
    codec: MessageCodec | None = None,
) -> RecordFileSummary:
    """Count the records of a file and describe the features of its first example.

    Raises:
        FramingError: If any record is truncated or corrupt.
    """
    path = _find_record_file(path)
    entries = index_records(path, options)

    features: list[FeatureSummary] = []
    if entries:
        with RecordReader(path, options) as reader:
            first = reader.read_record()
        try:
            decoded = decode_example(first or b"", codec)
        except MalformedExampleError as error:
            logger.info("summary_first_record_not_example", path=str(path), error=str(error))
        else:
            features = [
                FeatureSummary(name=name, kind=feature.kind, length=len(feature))
                for name, feature in decoded.items()
            ]

    return RecordFileSummary(
        path=str(path),
        num_records=len(entries),
        num_bytes=path.stat().st_size,
        payload_bytes=sum(entry.length for entry in entries),
        features=features,
    )
