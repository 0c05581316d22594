"""tfrecordio: read and write TFRecord files without TensorFlow.

Checksummed record framing, the Example / SequenceExample model, and
conversions to numpy arrays and images. Blocking and asyncio streams.

Quick start:
    from tfrecordio import ExampleReader, ExampleWriter, read_examples

    # Write
    with ExampleWriter("train.tfrecord") as writer:
        writer.write({"label": 7, "data": [1.0, 2.0, 3.0]})

    # Read
    for features in ExampleReader("train.tfrecord"):
        print(features["label"])        # Int64List(value=(7,))

    # As numpy arrays
    rows = read_examples("train.tfrecord", as_arrays=True)

    # Raw records
    from tfrecordio.storage.reader import RecordReader
    with RecordReader("train.tfrecord") as reader:
        for payload in reader:
            ...
"""

__version__ = "0.1.0"

from tfrecordio.example.features import (
    BytesList,
    Feature,
    FloatList,
    Int64List,
    SequenceExample,
)
from tfrecordio.reader import AsyncExampleReader, ExampleReader, read_examples, summarize
from tfrecordio.utils.schema import ReaderOptions, WriterOptions
from tfrecordio.writer import AsyncExampleWriter, ExampleWriter, write_examples

__all__ = [
    "AsyncExampleReader",
    "AsyncExampleWriter",
    "BytesList",
    "ExampleReader",
    "ExampleWriter",
    "Feature",
    "FloatList",
    "Int64List",
    "ReaderOptions",
    "SequenceExample",
    "WriterOptions",
    "read_examples",
    "summarize",
    "write_examples",
    "__version__",
]
