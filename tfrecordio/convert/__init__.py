"""Conversions between feature values, numpy arrays and images."""

from tfrecordio.convert.image import (
    ColorSpace,
    decode_image,
    decode_pixels,
    detect_image_format,
    encode_image,
    encode_pixels,
    feature_to_image,
    image_to_feature,
    normalize_pixels,
)
from tfrecordio.convert.tensor import (
    arrays_to_features,
    feature_to_tensor,
    features_to_arrays,
    infer_feature,
    resolve_shape,
    tensor_to_feature,
)

__all__ = [
    "ColorSpace",
    "arrays_to_features",
    "decode_image",
    "decode_pixels",
    "detect_image_format",
    "encode_image",
    "encode_pixels",
    "feature_to_image",
    "feature_to_tensor",
    "features_to_arrays",
    "image_to_feature",
    "infer_feature",
    "normalize_pixels",
    "resolve_shape",
    "tensor_to_feature",
]
