"""Encode and decode examples and sequence examples.

Wire-level message parsing is delegated to a :class:`MessageCodec`; this
module only classifies the parsed fields into feature values and checks the
structural rules (unique names, exactly one kind per feature, equal
sequence lengths).
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from tfrecordio.errors import MalformedExampleError, SizeOverflowError
from tfrecordio.example.features import (
    BytesList,
    Feature,
    FloatList,
    Int64List,
    SequenceExample,
)
from tfrecordio.example.proto import default_codec


class MessageCodec(Protocol):
    """Schema-driven message encoding, injected into the example functions.

    Field maps are plain dicts keyed by schema field names. decode_message
    raises MalformedExampleError when the bytes cannot be parsed.
    """

    def decode_message(self, message_type: str, data: bytes) -> dict[str, Any]: ...

    def encode_message(self, message_type: str, fields: Mapping[str, Any]) -> bytes: ...


_KINDS: dict[str, type] = {
    BytesList.kind: BytesList,
    FloatList.kind: FloatList,
    Int64List.kind: Int64List,
}


# ── Decoding ─────────────────────────────────────────────────


def _feature_from_fields(name: str, fields: Mapping[str, Any]) -> Feature:
    unknown = set(fields) - set(_KINDS)
    if unknown:
        raise MalformedExampleError(f"Feature '{name}' has unknown fields {sorted(unknown)}")

    kinds = [kind for kind in _KINDS if kind in fields]
    if len(kinds) != 1:
        raise MalformedExampleError(
            f"Feature '{name}' has {len(kinds)} populated kinds {kinds}; expected exactly one"
        )

    kind = kinds[0]
    values = fields[kind].get("value", [])
    try:
        return _KINDS[kind](tuple(values))
    except (TypeError, ValueError, SizeOverflowError) as error:
        raise MalformedExampleError(f"Feature '{name}' has invalid {kind} values: {error}") from error


def _features_from_entries(entries: list[Mapping[str, Any]], where: str) -> dict[str, Feature]:
    features: dict[str, Feature] = {}
    for entry in entries:
        name = entry.get("key", "")
        if name in features:
            raise MalformedExampleError(f"Feature name '{name}' repeated in {where}")
        features[name] = _feature_from_fields(name, entry.get("value", {}))
    return features


def decode_example(data: bytes, codec: MessageCodec | None = None) -> dict[str, Feature]:
    """Decode a serialized ``tensorflow.Example`` into a feature map.

    Args:
        data: Record payload.
        codec: Message codec; the protobuf codec by default.

    Returns:
        Feature names mapped to feature values, in wire order.

    Raises:
        MalformedExampleError: If the payload is not a structurally valid example.
    """
    codec = codec or default_codec
    fields = codec.decode_message("Example", data)
    entries = fields.get("features", {}).get("feature", [])
    return _features_from_entries(entries, "example")


def decode_sequence_example(data: bytes, codec: MessageCodec | None = None) -> SequenceExample:
    """Decode a serialized ``tensorflow.SequenceExample``.

    Raises:
        MalformedExampleError: If the payload is not structurally valid.
        InconsistentSequenceLengthError: If feature lists differ in length.
    """
    codec = codec or default_codec
    fields = codec.decode_message("SequenceExample", data)

    context = _features_from_entries(
        fields.get("context", {}).get("feature", []), "sequence context"
    )

    feature_lists: dict[str, list[Feature]] = {}
    for entry in fields.get("feature_lists", {}).get("feature_list", []):
        name = entry.get("key", "")
        if name in feature_lists:
            raise MalformedExampleError(f"Feature list name '{name}' repeated in sequence example")
        steps = entry.get("value", {}).get("feature", [])
        feature_lists[name] = [
            _feature_from_fields(f"{name}[{t}]", step) for t, step in enumerate(steps)
        ]

    sequence = SequenceExample(context=context, feature_lists=feature_lists)
    sequence.validate()
    return sequence


# ── Encoding ─────────────────────────────────────────────────


def _feature_to_fields(name: str, feature: Feature) -> dict[str, Any]:
    if isinstance(feature, BytesList):
        return {BytesList.kind: {"value": list(feature.value)}}
    elif isinstance(feature, Int64List):
        return {Int64List.kind: {"value": list(feature.value)}}
    elif isinstance(feature, FloatList):
        return {FloatList.kind: {"value": list(feature.value)}}
    raise MalformedExampleError(
        f"Feature '{name}' must be a BytesList, Int64List or FloatList, "
        f"got {type(feature).__name__}"
    )


def _entries_from_features(features: Mapping[str, Feature]) -> list[dict[str, Any]]:
    entries = []
    for name, feature in features.items():
        if not isinstance(name, str):
            raise MalformedExampleError(f"Feature names must be str, got {type(name).__name__}")
        entries.append({"key": name, "value": _feature_to_fields(name, feature)})
    return entries


def encode_example(features: Mapping[str, Feature], codec: MessageCodec | None = None) -> bytes:
    """Serialize a feature map as a ``tensorflow.Example``.

    Output is deterministic: features are written in mapping order.

    Raises:
        MalformedExampleError: If a name is not a str or a value is not a feature.
    """
    codec = codec or default_codec
    fields = {"features": {"feature": _entries_from_features(features)}}
    return codec.encode_message("Example", fields)


def encode_sequence_example(
    sequence: SequenceExample, codec: MessageCodec | None = None
) -> bytes:
    """Serialize a :class:`SequenceExample`.

    Raises:
        InconsistentSequenceLengthError: If feature lists differ in length.
        MalformedExampleError: If a name or value has the wrong type.
    """
    codec = codec or default_codec
    sequence.validate()

    fields: dict[str, Any] = {}
    if sequence.context:
        fields["context"] = {"feature": _entries_from_features(sequence.context)}
    if sequence.feature_lists:
        lists = []
        for name, steps in sequence.feature_lists.items():
            if not isinstance(name, str):
                raise MalformedExampleError(
                    f"Feature list names must be str, got {type(name).__name__}"
                )
            lists.append(
                {
                    "key": name,
                    "value": {
                        "feature": [
                            _feature_to_fields(f"{name}[{t}]", step)
                            for t, step in enumerate(steps)
                        ]
                    },
                }
            )
        fields["feature_lists"] = {"feature_list": lists}
    return codec.encode_message("SequenceExample", fields)
