"""Record indexes and random access across record files.

An index lists the byte offset and payload length of every record in a file.
The text form matches the common ``tfrecord2idx`` layout: one
``"<offset> <frame_size>"`` line per record.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Iterator, Sequence

from tfrecordio.errors import StreamClosedError, TruncatedHeaderError
from tfrecordio.storage.codec import decode_record
from tfrecordio.storage.format import FRAME_OVERHEAD
from tfrecordio.storage.reader import RecordReader
from tfrecordio.utils.logging import get_logger
from tfrecordio.utils.schema import ReaderOptions, RecordIndexEntry

logger = get_logger(__name__)


def index_records(
    source: str | Path | BinaryIO, options: ReaderOptions | None = None
) -> list[RecordIndexEntry]:
    """Walk a record file and return the location of every record.

    Args:
        source: Path or binary stream positioned at the first record.
        options: Integrity and size limits applied while walking.

    Raises:
        FramingError: If any record is truncated or corrupt.
    """
    entries: list[RecordIndexEntry] = []
    reader = RecordReader(source, options)
    with reader:
        while True:
            offset = reader.offset
            payload = reader.read_record()
            if payload is None:
                break
            entries.append(RecordIndexEntry(offset=offset, length=len(payload)))
    return entries


def write_index(entries: Sequence[RecordIndexEntry], path: str | Path) -> Path:
    """Write a text index, one ``offset frame_size`` line per record."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        for entry in entries:
            f.write(f"{entry.offset} {entry.frame_size}\n")
    return path


def read_index(path: str | Path) -> list[RecordIndexEntry]:
    """Parse a text index written by :func:`write_index`."""
    entries = []
    with open(path) as f:
        for line_number, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            parts = line.split()
            if len(parts) != 2:
                raise ValueError(f"{path}:{line_number}: expected 'offset frame_size', got {line!r}")
            offset, frame_size = int(parts[0]), int(parts[1])
            if frame_size < FRAME_OVERHEAD:
                raise ValueError(f"{path}:{line_number}: frame size {frame_size} is too small")
            entries.append(RecordIndexEntry(offset=offset, length=frame_size - FRAME_OVERHEAD))
    return entries


class RecordDataset:
    """Random access over the records of one or more files.

    Every file is indexed on construction. Reads seek to the indexed offset and
    decode a single record; the last opened file is kept open between reads.

    Args:
        paths: One path or a sequence of paths, read in order.
        options: Integrity and size limits for indexing and reads.
    """

    def __init__(
        self, paths: str | Path | Sequence[str | Path], options: ReaderOptions | None = None
    ) -> None:
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self.options = options or ReaderOptions()
        self.paths = [Path(p) for p in paths]

        self._entries: list[tuple[int, RecordIndexEntry]] = []
        for file_index, path in enumerate(self.paths):
            entries = index_records(path, self.options)
            self._entries.extend((file_index, entry) for entry in entries)
            logger.debug("record_file_indexed", path=str(path), records=len(entries))

        self._open_file: tuple[int, BinaryIO] | None = None
        self._closed = False

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> bytes:
        if self._closed:
            raise StreamClosedError("Dataset is closed.")
        if index < 0:
            index += len(self._entries)
        if not 0 <= index < len(self._entries):
            raise IndexError(f"Record index {index} out of range for {len(self)} records")

        file_index, entry = self._entries[index]
        stream = self._stream_for(file_index)
        stream.seek(entry.offset)
        payload = decode_record(
            stream,
            offset=entry.offset,
            check_integrity=self.options.check_integrity,
            max_length=self.options.max_record_length,
        )
        if payload is None:
            # The file shrank after it was indexed.
            raise TruncatedHeaderError(0, entry.offset)
        return payload

    def __iter__(self) -> Iterator[bytes]:
        for index in range(len(self)):
            yield self[index]

    def entry(self, index: int) -> tuple[Path, RecordIndexEntry]:
        """File and location of the record at ``index``."""
        file_index, entry = self._entries[index]
        return self.paths[file_index], entry

    def _stream_for(self, file_index: int) -> BinaryIO:
        if self._open_file is not None:
            opened_index, stream = self._open_file
            if opened_index == file_index:
                return stream
            stream.close()
        stream = open(self.paths[file_index], "rb")
        self._open_file = (file_index, stream)
        return stream

    def close(self) -> None:
        if self._open_file is not None:
            self._open_file[1].close()
            self._open_file = None
        self._closed = True

    def __enter__(self) -> RecordDataset:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RecordDataset(files={len(self.paths)}, records={len(self)})"
