"""Conversions between feature values and numpy arrays.

Element types map one to one:

    Int64List  <->  int64 array
    FloatList  <->  float32 array
    BytesList  <->  uint8 array of shape (n, row_length), one row per string,
                    or a 1-D object array of bytes with passthrough=True

Arrays are flattened and filled in row-major order. Reshaping only happens
when a shape is requested, and the element count must match exactly.
"""

from __future__ import annotations

import numbers
import operator
from typing import Any, Iterable, Mapping, Sequence

import numpy as np

from tfrecordio.errors import (
    RaggedConversionError,
    ShapeMismatchError,
    SizeOverflowError,
    UnsupportedElementTypeError,
)
from tfrecordio.example.features import BytesList, Feature, FloatList, Int64List

_MAX_ELEMENTS = int(np.iinfo(np.intp).max)


def checked_product(dims: Iterable[int]) -> int:
    """Product of ``dims``, raising SizeOverflowError past the addressable range."""
    total = 1
    for dim in dims:
        total *= dim
        if total > _MAX_ELEMENTS:
            raise SizeOverflowError(
                f"Shape product exceeds the addressable element count {_MAX_ELEMENTS}"
            )
    return total


def resolve_shape(shape: Sequence[int], count: int) -> tuple[int, ...]:
    """Check that ``shape`` holds exactly ``count`` elements, inferring one -1."""
    dims = [operator.index(dim) for dim in shape]
    unknown = [i for i, dim in enumerate(dims) if dim == -1]
    if len(unknown) > 1 or any(dim < -1 for dim in dims):
        raise ShapeMismatchError(
            dims, count, f"Invalid shape {tuple(dims)}: at most one -1 and no other negatives"
        )

    known = checked_product(dim for dim in dims if dim != -1)
    if unknown:
        if known == 0 or count % known:
            raise ShapeMismatchError(dims, count)
        dims[unknown[0]] = count // known
    elif known != count:
        raise ShapeMismatchError(dims, count)
    return tuple(dims)


def feature_to_tensor(
    feature: Feature,
    shape: Sequence[int] | None = None,
    passthrough: bool = False,
) -> np.ndarray:
    """Convert a feature value to a numpy array.

    Args:
        feature: Feature value to convert.
        shape: Optional target shape. For byte tensors it applies to the row
            axis and the row length is appended as the last dimension.
        passthrough: Return byte strings as a 1-D object array instead of a
            uint8 tensor; unequal lengths are then allowed.

    An empty BytesList stores no row length, so it converts to shape (0, 0)
    whatever the shape of the array it was written from.

    Raises:
        RaggedConversionError: If byte strings differ in length without passthrough.
        ShapeMismatchError: If ``shape`` does not hold the available elements.
        UnsupportedElementTypeError: If ``feature`` is not a feature value.
    """
    if isinstance(feature, Int64List):
        array = np.array(feature.value, dtype=np.int64)
    elif isinstance(feature, FloatList):
        array = np.array(feature.value, dtype=np.float32)
    elif isinstance(feature, BytesList):
        if passthrough:
            array = np.empty(len(feature.value), dtype=object)
            for i, item in enumerate(feature.value):
                array[i] = item
        else:
            array = _bytes_to_rows(feature.value)
            if shape is not None:
                rows = resolve_shape(shape, array.shape[0])
                return array.reshape(*rows, array.shape[1])
            return array
    else:
        raise UnsupportedElementTypeError(type(feature).__name__)

    if shape is not None:
        array = array.reshape(resolve_shape(shape, array.size))
    return array


def _bytes_to_rows(values: tuple[bytes, ...]) -> np.ndarray:
    lengths = [len(value) for value in values]
    if len(set(lengths)) > 1:
        raise RaggedConversionError(lengths)
    row_length = lengths[0] if lengths else 0
    checked_product([len(values), row_length])
    rows = np.zeros((len(values), row_length), dtype=np.uint8)
    if row_length:
        rows[:] = np.frombuffer(b"".join(values), dtype=np.uint8).reshape(len(values), row_length)
    return rows


def _as_array(tensor: Any) -> np.ndarray:
    if isinstance(tensor, np.ndarray):
        return tensor
    # Framework tensors (torch, tf eager) expose .numpy()
    if hasattr(tensor, "numpy") and callable(tensor.numpy):
        return np.asarray(tensor.numpy())
    return np.asarray(tensor)


def tensor_to_feature(tensor: Any) -> Feature:
    """Convert an array-like to a feature value, flattening in row-major order.

    Accepts numpy arrays, objects implementing ``__array__`` and framework
    tensors exposing ``.numpy()``. The element type must be exactly int64,
    float32, uint8 (one byte string per last-axis row) or object holding bytes.

    Raises:
        UnsupportedElementTypeError: For any other element type.
    """
    array = _as_array(tensor)
    dtype = array.dtype

    if dtype == np.int64:
        return Int64List(tuple(array.reshape(-1).tolist()))
    if dtype == np.float32:
        return FloatList(tuple(array.reshape(-1).tolist()))
    if dtype == np.uint8:
        if array.ndim <= 1:
            return BytesList((array.tobytes(),))
        num_rows = checked_product(array.shape[:-1])
        rows = array.reshape(num_rows, array.shape[-1])
        return BytesList(tuple(row.tobytes() for row in rows))
    if dtype == object:
        try:
            return BytesList(tuple(array.reshape(-1).tolist()))
        except TypeError as error:
            raise UnsupportedElementTypeError(f"object ({error})") from error
    raise UnsupportedElementTypeError(dtype)


def infer_feature(value: Any) -> Feature:
    """Build a feature value from a feature, a Python scalar/list or an array.

    Python ints become Int64List, Python floats FloatList, bytes and str
    BytesList. An empty list or tuple has no kind and is rejected. Arrays and
    tensors go through :func:`tensor_to_feature`.

    Raises:
        UnsupportedElementTypeError: For an empty list or an unsupported dtype.
    """
    if isinstance(value, (BytesList, Int64List, FloatList)):
        return value
    if isinstance(value, (bytes, str)):
        return BytesList((value,))
    if isinstance(value, numbers.Integral) and not isinstance(value, np.generic):
        return Int64List((value,))
    if isinstance(value, numbers.Real) and not isinstance(value, np.generic):
        return FloatList((value,))
    if isinstance(value, (list, tuple)):
        return _infer_from_sequence(value)
    return tensor_to_feature(value)


def _infer_from_sequence(values: Sequence[Any]) -> Feature:
    if not values:
        # No element to take the kind from
        raise UnsupportedElementTypeError("empty list (pass an Int64List, FloatList or BytesList)")
    if all(isinstance(v, (bytes, str)) for v in values):
        return BytesList(tuple(values))
    if all(isinstance(v, numbers.Integral) for v in values):
        return Int64List(tuple(values))
    if all(isinstance(v, numbers.Real) for v in values):
        return FloatList(tuple(values))
    return tensor_to_feature(values)


def features_to_arrays(
    features: Mapping[str, Feature],
    shapes: Mapping[str, Sequence[int]] | None = None,
    passthrough: bool = False,
) -> dict[str, np.ndarray]:
    """Convert every feature of a feature map; ``shapes`` reshapes selected names."""
    shapes = shapes or {}
    return {
        name: feature_to_tensor(feature, shapes.get(name), passthrough=passthrough)
        for name, feature in features.items()
    }


def arrays_to_features(values: Mapping[str, Any]) -> dict[str, Feature]:
    """Convert a mapping of features, Python values or arrays to a feature map."""
    return {name: infer_feature(value) for name, value in values.items()}
