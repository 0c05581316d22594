"""TensorFlow example schema for the protobuf runtime.

The messages of ``tensorflow/core/example/feature.proto``,
``tensorflow/core/example/example.proto`` and ``Summary.Image`` are declared
here as a FileDescriptorProto in a private descriptor pool, with the same
field numbers and wire types as the upstream schema.

Two declarations use a wire-equivalent form instead of the upstream one so
that malformed input stays visible after parsing:

* ``map<string, Feature>`` / ``map<string, FeatureList>`` are declared as
  repeated key/value entries. A repeated name is kept instead of overwritten.
* ``Feature.kind`` is declared as three independent optional message fields
  instead of a oneof. Several populated kinds are kept instead of the last one
  winning.
"""

from __future__ import annotations

from typing import Any, Mapping

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError, Message

from tfrecordio.errors import MalformedExampleError

PACKAGE = "tensorflow"

_Field = descriptor_pb2.FieldDescriptorProto

# Full names of repeated fields, filled in while the schema is declared
_REPEATED: set[str] = set()


def _field(
    owner: str,
    name: str,
    number: int,
    field_type: int,
    repeated: bool = False,
    type_name: str | None = None,
    packed: bool = False,
) -> descriptor_pb2.FieldDescriptorProto:
    field = _Field(
        name=name,
        number=number,
        type=field_type,
        label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = f".{PACKAGE}.{type_name}"
    if packed:
        field.options.packed = True
    if repeated:
        _REPEATED.add(f"{PACKAGE}.{owner}.{name}")
    return field


def _message(
    name: str,
    fields: list[descriptor_pb2.FieldDescriptorProto],
    nested: list[descriptor_pb2.DescriptorProto] | None = None,
) -> descriptor_pb2.DescriptorProto:
    message = descriptor_pb2.DescriptorProto(name=name)
    message.field.extend(fields)
    message.nested_type.extend(nested or [])
    return message


def _entry(owner: str, value_type: str) -> descriptor_pb2.DescriptorProto:
    """Key/value message with the wire layout of a map entry."""
    scope = f"{owner}.Entry"
    return _message(
        "Entry",
        [
            _field(scope, "key", 1, _Field.TYPE_STRING),
            _field(scope, "value", 2, _Field.TYPE_MESSAGE, type_name=value_type),
        ],
    )


def _build_schema() -> descriptor_pb2.FileDescriptorProto:
    schema = descriptor_pb2.FileDescriptorProto(
        name="tfrecordio/example.proto", package=PACKAGE, syntax="proto3"
    )
    schema.message_type.extend(
        [
            _message(
                "BytesList",
                [_field("BytesList", "value", 1, _Field.TYPE_BYTES, repeated=True)],
            ),
            _message(
                "FloatList",
                [_field("FloatList", "value", 1, _Field.TYPE_FLOAT, repeated=True, packed=True)],
            ),
            _message(
                "Int64List",
                [_field("Int64List", "value", 1, _Field.TYPE_INT64, repeated=True, packed=True)],
            ),
            _message(
                "Feature",
                [
                    _field("Feature", "bytes_list", 1, _Field.TYPE_MESSAGE, type_name="BytesList"),
                    _field("Feature", "float_list", 2, _Field.TYPE_MESSAGE, type_name="FloatList"),
                    _field("Feature", "int64_list", 3, _Field.TYPE_MESSAGE, type_name="Int64List"),
                ],
            ),
            _message(
                "Features",
                [
                    _field(
                        "Features", "feature", 1, _Field.TYPE_MESSAGE,
                        repeated=True, type_name="Features.Entry",
                    )
                ],
                nested=[_entry("Features", "Feature")],
            ),
            _message(
                "FeatureList",
                [
                    _field(
                        "FeatureList", "feature", 1, _Field.TYPE_MESSAGE,
                        repeated=True, type_name="Feature",
                    )
                ],
            ),
            _message(
                "FeatureLists",
                [
                    _field(
                        "FeatureLists", "feature_list", 1, _Field.TYPE_MESSAGE,
                        repeated=True, type_name="FeatureLists.Entry",
                    )
                ],
                nested=[_entry("FeatureLists", "FeatureList")],
            ),
            _message(
                "Example",
                [_field("Example", "features", 1, _Field.TYPE_MESSAGE, type_name="Features")],
            ),
            _message(
                "SequenceExample",
                [
                    _field(
                        "SequenceExample", "context", 1, _Field.TYPE_MESSAGE,
                        type_name="Features",
                    ),
                    _field(
                        "SequenceExample", "feature_lists", 2, _Field.TYPE_MESSAGE,
                        type_name="FeatureLists",
                    ),
                ],
            ),
            # Summary.Image: an encoded image plus its dimensions
            _message(
                "Image",
                [
                    _field("Image", "height", 1, _Field.TYPE_INT32),
                    _field("Image", "width", 2, _Field.TYPE_INT32),
                    _field("Image", "colorspace", 3, _Field.TYPE_INT32),
                    _field("Image", "encoded_image_string", 4, _Field.TYPE_BYTES),
                ],
            ),
        ]
    )
    return schema


_POOL = descriptor_pool.DescriptorPool()
_POOL.Add(_build_schema())

MESSAGE_TYPES = (
    "BytesList",
    "FloatList",
    "Int64List",
    "Feature",
    "Features",
    "FeatureList",
    "FeatureLists",
    "Example",
    "SequenceExample",
    "Image",
)

_CLASSES: dict[str, type[Message]] = {
    name: message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))
    for name in MESSAGE_TYPES
}


def message_class(message_type: str) -> type[Message]:
    """Generated message class for a schema message name, e.g. ``"Example"``."""
    try:
        return _CLASSES[message_type]
    except KeyError:
        raise KeyError(
            f"Unknown message type '{message_type}'. Known: {list(MESSAGE_TYPES)}"
        ) from None


def message_to_fields(message: Message) -> dict[str, Any]:
    """Convert a parsed message into plain dicts and lists.

    Only present fields appear: set sub-messages (even empty ones), non-empty
    repeated fields and non-default scalars.
    """
    fields: dict[str, Any] = {}
    for field, value in message.ListFields():
        repeated = field.full_name in _REPEATED
        if field.message_type is not None:
            if repeated:
                fields[field.name] = [message_to_fields(item) for item in value]
            else:
                fields[field.name] = message_to_fields(value)
        elif repeated:
            fields[field.name] = list(value)
        else:
            fields[field.name] = value
    return fields


def fields_to_message(message: Message, fields: Mapping[str, Any]) -> Message:
    """Fill ``message`` from the dict form produced by :func:`message_to_fields`."""
    descriptor = message.DESCRIPTOR
    for name, value in fields.items():
        field = descriptor.fields_by_name.get(name)
        if field is None:
            raise ValueError(f"Message {descriptor.full_name} has no field '{name}'")
        repeated = field.full_name in _REPEATED
        if field.message_type is not None:
            if repeated:
                container = getattr(message, name)
                for item in value:
                    fields_to_message(container.add(), item)
            else:
                child = getattr(message, name)
                child.SetInParent()
                fields_to_message(child, value)
        elif repeated:
            getattr(message, name).extend(value)
        else:
            setattr(message, name, value)
    return message


class ProtobufMessageCodec:
    """Message codec backed by the protobuf runtime.

    Field maps are plain dicts keyed by schema field names; repeated fields
    are lists and absent message fields are absent keys.
    """

    def decode_message(self, message_type: str, data: bytes) -> dict[str, Any]:
        message = message_class(message_type)()
        try:
            message.ParseFromString(bytes(data))
        except DecodeError as error:
            raise MalformedExampleError(
                f"Cannot parse {len(data)} bytes as {PACKAGE}.{message_type}: {error}"
            ) from error
        return message_to_fields(message)

    def encode_message(self, message_type: str, fields: Mapping[str, Any]) -> bytes:
        message = fields_to_message(message_class(message_type)(), fields)
        return message.SerializeToString(deterministic=True)


default_codec = ProtobufMessageCodec()
