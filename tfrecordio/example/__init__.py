"""Structured examples: feature values, sequence examples and their wire codec."""

from tfrecordio.example.codec import (
    MessageCodec,
    decode_example,
    decode_sequence_example,
    encode_example,
    encode_sequence_example,
)
from tfrecordio.example.features import (
    BytesList,
    Feature,
    FeatureMap,
    FloatList,
    Int64List,
    SequenceExample,
)
from tfrecordio.example.proto import ProtobufMessageCodec

__all__ = [
    "BytesList",
    "Feature",
    "FeatureMap",
    "FloatList",
    "Int64List",
    "MessageCodec",
    "ProtobufMessageCodec",
    "SequenceExample",
    "decode_example",
    "decode_sequence_example",
    "encode_example",
    "encode_sequence_example",
]
