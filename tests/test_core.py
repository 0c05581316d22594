"""Tests for the tfrecordio pipeline: write → read → convert, plus the CLI."""

import io

import numpy as np
import pytest
from click.testing import CliRunner

from tfrecordio import (
    AsyncExampleReader,
    AsyncExampleWriter,
    BytesList,
    ExampleReader,
    ExampleWriter,
    FloatList,
    Int64List,
    ReaderOptions,
    SequenceExample,
    read_examples,
    summarize,
    write_examples,
)
from tfrecordio.cli.main import cli
from tfrecordio.errors import (
    CorruptPayloadChecksumError,
    MalformedExampleError,
    TruncatedHeaderError,
    TruncatedPayloadError,
    UnsupportedElementTypeError,
)
from tfrecordio.storage.codec import encode_record
from tfrecordio.storage.index import read_index
from tfrecordio.storage.reader import RecordReader
from tfrecordio.utils.logging import configure_logging
from tfrecordio.utils.schema import RecordFileSummary


def _write_samples(path, count=3):
    with ExampleWriter(path) as writer:
        for i in range(count):
            writer.write({
                "label": np.array([i], dtype=np.int64),
                "data": np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32) * (i + 1),
                "name": f"sample-{i}",
            })
    return path


# ── Example Writer/Reader ──────────────────────────────────


class TestExampleReaderWriter:
    def test_label_and_data_roundtrip(self, tmp_path):
        path = tmp_path / "train.tfrecord"
        label = np.array([7], dtype=np.int64)
        data = np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32)

        with ExampleWriter(path) as writer:
            writer.write({"label": label, "data": data})
        assert writer.num_records == 1

        with ExampleReader(path) as reader:
            features = reader.read()
            assert reader.read() is None

        assert set(features) == {"label", "data"}
        assert features["label"] == Int64List((7,))
        assert isinstance(features["data"], FloatList)
        assert np.array_equal(np.array(features["data"].value, dtype=np.float32), data)

    def test_as_arrays(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        rows = read_examples(path, as_arrays=True, shapes={"data": (2, 2)})

        assert len(rows) == 3
        assert rows[1]["label"].tolist() == [1]
        assert rows[1]["data"].shape == (2, 2)
        assert rows[1]["data"].dtype == np.float32
        assert bytes(rows[2]["name"][0]) == b"sample-2"

    def test_passthrough(self, tmp_path):
        path = tmp_path / "names.tfrecord"
        write_examples(path, [{"names": [b"a", b"bcd"]}])
        rows = read_examples(path, as_arrays=True, passthrough=True)
        assert rows[0]["names"].tolist() == [b"a", b"bcd"]

    def test_feature_values_pass_through(self, tmp_path):
        path = tmp_path / "raw.tfrecord"
        features = {"ids": Int64List((1, 2, 3)), "tags": BytesList((b"x", b"y"))}
        write_examples(path, [features, features])
        assert read_examples(path) == [features, features]

    def test_suffix_added(self, tmp_path):
        path = write_examples(tmp_path / "noext", [{"x": 1}])
        assert path.name == "noext.tfrecord"
        assert path.exists()

    def test_suffix_less_name_reads_back(self, tmp_path):
        with ExampleWriter(tmp_path / "train") as writer:
            writer.write({"x": 1})

        assert read_examples(tmp_path / "train") == [{"x": Int64List((1,))}]
        assert summarize(str(tmp_path / "train")).num_records == 1

    async def test_suffix_less_name_reads_back_async(self, tmp_path):
        write_examples(tmp_path / "train", [{"x": 2}])
        async with AsyncExampleReader(tmp_path / "train") as reader:
            assert await reader.read() == {"x": Int64List((2,))}

    def test_existing_suffix_less_file_is_read_as_is(self, tmp_path):
        path = tmp_path / "raw"
        path.write_bytes(encode_record(b""))
        assert read_examples(path) == [{}]

    def test_sequence_examples(self, tmp_path):
        path = tmp_path / "clips.tfrecord"
        sequence = SequenceExample.from_steps(
            [{"frame": Int64List((t,)), "reward": FloatList((t / 2,))} for t in range(4)],
            context={"clip": BytesList((b"clip-1",))},
        )
        write_examples(path, [sequence])

        (decoded,) = read_examples(path, sequence=True)
        assert decoded == sequence

        (arrays,) = read_examples(path, sequence=True, as_arrays=True)
        assert bytes(arrays["context"]["clip"][0]) == b"clip-1"
        assert [step.tolist() for step in arrays["feature_lists"]["frame"]] == [[0], [1], [2], [3]]

    def test_stream_source_and_sink(self):
        buffer = io.BytesIO()
        writer = ExampleWriter(buffer)
        writer.write({"x": 1})
        writer.write({"x": 2})
        writer.close()

        buffer.seek(0)
        assert [f["x"] for f in ExampleReader(buffer)] == [Int64List((1,)), Int64List((2,))]

    def test_unsupported_values(self, tmp_path):
        with ExampleWriter(tmp_path / "bad.tfrecord") as writer:
            with pytest.raises(UnsupportedElementTypeError):
                writer.write({"x": np.zeros(3, dtype=np.float64)})
            assert writer.num_records == 0

    def test_non_example_payload(self, tmp_path):
        path = tmp_path / "junk.tfrecord"
        path.write_bytes(encode_record(b"\x0a\x05abc"))
        with ExampleReader(path) as reader:
            with pytest.raises(MalformedExampleError):
                reader.read()

    def test_truncated_file(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord", count=2)
        path.write_bytes(path.read_bytes()[:-5])

        with ExampleReader(path) as reader:
            assert reader.read() is not None
            with pytest.raises(TruncatedPayloadError):
                reader.read()
            assert reader.read() is None

    def test_unchecked_read(self, tmp_path):
        path = tmp_path / "train.tfrecord"
        frame = bytearray(encode_record(b""))
        frame[-1] ^= 0xFF
        path.write_bytes(bytes(frame))

        with pytest.raises(CorruptPayloadChecksumError):
            read_examples(path)
        assert read_examples(path, options=ReaderOptions(check_integrity=False)) == [{}]

    def test_summary(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        summary = summarize(path)

        assert summary.num_records == 3
        assert summary.num_bytes == path.stat().st_size
        assert [f.name for f in summary.features] == ["label", "data", "name"]
        assert [f.kind for f in summary.features] == ["int64_list", "float_list", "bytes_list"]
        assert [f.length for f in summary.features] == [1, 4, 1]

        restored = RecordFileSummary.from_json(summary.to_json())
        assert restored.num_records == 3

        with ExampleReader(path) as reader:
            assert reader.summary().num_records == 3

    def test_summary_needs_path(self):
        with pytest.raises(ValueError):
            ExampleReader(io.BytesIO()).summary()

    def test_repr(self, tmp_path):
        writer = ExampleWriter(tmp_path / "a.tfrecord")
        assert "status=open" in repr(writer)
        writer.close()
        assert "status=closed" in repr(writer)


class TestAsyncExampleReaderWriter:
    async def test_roundtrip(self, tmp_path):
        path = tmp_path / "async.tfrecord"
        async with AsyncExampleWriter(path) as writer:
            await writer.write({"label": 7, "data": np.array([0.5, 1.5], dtype=np.float32)})
            await writer.write({"label": 8, "data": np.array([2.5], dtype=np.float32)})
        assert writer.num_records == 2

        async with AsyncExampleReader(path) as reader:
            first = await reader.read()
            second = await reader.read()
            assert await reader.read() is None

        assert first == {"label": Int64List((7,)), "data": FloatList((0.5, 1.5))}
        assert second["label"] == Int64List((8,))

    async def test_async_iteration_matches_sync(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        async with AsyncExampleReader(path, as_arrays=True) as reader:
            rows = [row async for row in reader]
        expected = read_examples(path, as_arrays=True)
        assert len(rows) == len(expected) == 3
        for row, want in zip(rows, expected):
            assert np.array_equal(row["data"], want["data"])

    async def test_sequences(self, tmp_path):
        path = tmp_path / "clips.tfrecord"
        sequence = SequenceExample(feature_lists={"f": [Int64List((1,)), Int64List((2,))]})
        async with AsyncExampleWriter(path) as writer:
            await writer.write_sequence(sequence)
        async with AsyncExampleReader(path, sequence=True) as reader:
            assert await reader.read() == sequence


# ── CLI ────────────────────────────────────────────────────


class TestCLI:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_info(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        result = CliRunner().invoke(cli, ["info", str(path)])
        assert result.exit_code == 0
        assert "Records" in result.output
        assert "label" in result.output
        assert "float_list" in result.output

    def test_info_json(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        result = CliRunner().invoke(cli, ["info", "--json", str(path)])
        assert result.exit_code == 0
        summary = RecordFileSummary.from_json(result.output.strip())
        assert summary.num_records == 3

    def test_verify_ok(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        result = CliRunner().invoke(cli, ["verify", str(path)])
        assert result.exit_code == 0
        assert "3 record(s)" in result.output

    def test_verify_corrupt(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        data = bytearray(path.read_bytes())
        data[-1] ^= 0xFF
        path.write_bytes(bytes(data))

        result = CliRunner().invoke(cli, ["verify", str(path)])
        assert result.exit_code == 1
        assert "CorruptPayloadChecksumError" in result.output

    def test_cat(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        result = CliRunner().invoke(cli, ["cat", "--limit", "2", str(path)])
        assert result.exit_code == 0
        assert "record 0" in result.output
        assert "record 1" in result.output
        assert "record 2" not in result.output
        assert "sample-1" in result.output

    def test_cat_sequence(self, tmp_path):
        path = tmp_path / "clips.tfrecord"
        write_examples(path, [SequenceExample(feature_lists={"frame": [Int64List((5,))]})])
        result = CliRunner().invoke(cli, ["cat", "--sequence", str(path)])
        assert result.exit_code == 0
        assert "frame" in result.output

    def test_index(self, tmp_path):
        path = _write_samples(tmp_path / "train.tfrecord")
        out = tmp_path / "train.idx"
        result = CliRunner().invoke(cli, ["index", str(path), "-o", str(out)])
        assert result.exit_code == 0

        entries = read_index(out)
        assert len(entries) == 3
        with RecordReader(path) as reader:
            reader.seek(entries[2].offset)
            assert reader.read_record() is not None

    def test_configured_logging_goes_to_stderr(self, capsys):
        configure_logging()
        reader = RecordReader(io.BytesIO(encode_record(b"x") + b"\x00\x01"))
        reader.read_record()
        with pytest.raises(TruncatedHeaderError):
            reader.read_record()

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "record_decode_failed" in captured.err

    def test_missing_file(self, tmp_path):
        result = CliRunner().invoke(cli, ["info", str(tmp_path / "missing.tfrecord")])
        assert result.exit_code != 0
