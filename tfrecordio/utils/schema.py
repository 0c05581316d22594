"""Pydantic models for tfrecordio options and reports."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from tfrecordio.storage.format import DEFAULT_MAX_RECORD_LENGTH, FORMAT_VERSION, FRAME_OVERHEAD


class ReaderOptions(BaseModel):
    """Options for record and example readers."""

    model_config = ConfigDict(frozen=True)

    check_integrity: bool = True
    max_record_length: int = Field(default=DEFAULT_MAX_RECORD_LENGTH, gt=0)
    # Records the asyncio reader decodes before they are requested
    readahead: int = Field(default=0, ge=0)


class WriterOptions(BaseModel):
    """Options for record and example writers."""

    model_config = ConfigDict(frozen=True)

    append: bool = False
    max_record_length: int = Field(default=DEFAULT_MAX_RECORD_LENGTH, gt=0)


class RecordIndexEntry(BaseModel):
    """Location of one record inside a file."""

    model_config = ConfigDict(frozen=True)

    offset: int  # byte offset of the record header
    length: int  # payload length

    @property
    def frame_size(self) -> int:
        return self.length + FRAME_OVERHEAD


class FeatureSummary(BaseModel):
    """Name, kind and length of one feature, as shown by `tfrecordio info`."""

    name: str
    kind: str
    length: int


class RecordFileSummary(BaseModel):
    """Summary of a TFRecord file."""

    path: str
    num_records: int
    num_bytes: int
    payload_bytes: int
    features: list[FeatureSummary] = Field(default_factory=list)
    inspected_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    tfrecordio_version: str = FORMAT_VERSION

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> RecordFileSummary:
        return cls.model_validate_json(data)
