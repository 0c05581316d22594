"""Tests for tensor and image conversions."""

import numpy as np
import pytest

from tfrecordio.convert import (
    ColorSpace,
    arrays_to_features,
    decode_image,
    decode_pixels,
    detect_image_format,
    encode_image,
    encode_pixels,
    feature_to_image,
    feature_to_tensor,
    features_to_arrays,
    image_to_feature,
    infer_feature,
    normalize_pixels,
    resolve_shape,
    tensor_to_feature,
)
from tfrecordio.convert.tensor import checked_product
from tfrecordio.errors import (
    RaggedConversionError,
    ShapeMismatchError,
    SizeOverflowError,
    UnsupportedElementTypeError,
    UnsupportedImageFormatError,
)
from tfrecordio.example import BytesList, FloatList, Int64List
from tfrecordio.example.proto import default_codec


class FakeTensor:
    """Stands in for a framework tensor exposing .numpy()."""

    def __init__(self, array):
        self._array = array

    def numpy(self):
        return self._array


def _pixels(height, width, channels):
    rng = np.random.default_rng(seed=height * 100 + width * 10 + channels)
    return rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)


# ── Feature → Tensor ───────────────────────────────────────


class TestFeatureToTensor:
    def test_int64(self):
        array = feature_to_tensor(Int64List((1, 2, 3, 4, 5, 6)))
        assert array.dtype == np.int64
        assert array.tolist() == [1, 2, 3, 4, 5, 6]

    def test_float32(self):
        array = feature_to_tensor(FloatList((0.5, 1.5)))
        assert array.dtype == np.float32
        assert array.tolist() == [0.5, 1.5]

    def test_reshape(self):
        feature = Int64List(tuple(range(6)))
        assert feature_to_tensor(feature, (2, 3)).tolist() == [[0, 1, 2], [3, 4, 5]]
        assert feature_to_tensor(feature, (-1, 2)).shape == (3, 2)

    def test_shape_mismatch(self):
        with pytest.raises(ShapeMismatchError) as info:
            feature_to_tensor(Int64List((1, 2, 3)), (2, 2))
        assert info.value.requested == (2, 2)
        assert info.value.actual == 3

    def test_bytes_tensor(self):
        array = feature_to_tensor(BytesList((b"ab", b"cd", b"ef")))
        assert array.dtype == np.uint8
        assert array.shape == (3, 2)
        assert bytes(array[1]) == b"cd"

    def test_bytes_shape_applies_to_rows(self):
        array = feature_to_tensor(BytesList((b"ab", b"cd", b"ef", b"gh")), (2, 2))
        assert array.shape == (2, 2, 2)

    def test_ragged_bytes(self):
        with pytest.raises(RaggedConversionError) as info:
            feature_to_tensor(BytesList((b"a", b"bcd")))
        assert info.value.lengths == [1, 3]

    def test_passthrough(self):
        array = feature_to_tensor(BytesList((b"a", b"bcd")), passthrough=True)
        assert array.dtype == object
        assert array.tolist() == [b"a", b"bcd"]

    def test_empty(self):
        assert feature_to_tensor(Int64List(())).shape == (0,)
        assert feature_to_tensor(BytesList(())).shape == (0, 0)

    def test_empty_byte_rows_lose_row_length(self):
        feature = tensor_to_feature(np.zeros((0, 4), dtype=np.uint8))
        assert feature == BytesList(())
        array = feature_to_tensor(feature)
        assert array.shape == (0, 0)
        assert array.size == 0

    def test_unsupported(self):
        with pytest.raises(UnsupportedElementTypeError):
            feature_to_tensor([1, 2, 3])


# ── Tensor → Feature ───────────────────────────────────────


class TestTensorToFeature:
    def test_int64_row_major(self):
        feature = tensor_to_feature(np.arange(6, dtype=np.int64).reshape(2, 3))
        assert feature == Int64List((0, 1, 2, 3, 4, 5))

    def test_float32(self):
        feature = tensor_to_feature(np.array([[0.1, 0.2]], dtype=np.float32))
        assert isinstance(feature, FloatList)
        assert np.array_equal(
            np.array(feature.value, dtype=np.float32), np.array([0.1, 0.2], dtype=np.float32)
        )

    def test_uint8_rows(self):
        feature = tensor_to_feature(np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint8))
        assert feature == BytesList((b"\x01\x02\x03", b"\x04\x05\x06"))

    def test_uint8_vector_is_one_string(self):
        assert tensor_to_feature(np.frombuffer(b"abc", dtype=np.uint8)) == BytesList((b"abc",))

    def test_object_bytes(self):
        array = np.array([b"a", b"bcd"], dtype=object)
        assert tensor_to_feature(array) == BytesList((b"a", b"bcd"))

    def test_object_non_bytes(self):
        with pytest.raises(UnsupportedElementTypeError):
            tensor_to_feature(np.array([1, "x"], dtype=object))

    @pytest.mark.parametrize("dtype", [np.float64, np.int32, np.int16, np.bool_, np.complex64])
    def test_unsupported_dtypes(self, dtype):
        with pytest.raises(UnsupportedElementTypeError):
            tensor_to_feature(np.zeros(3, dtype=dtype))

    def test_framework_tensor(self):
        tensor = FakeTensor(np.array([3, 4], dtype=np.int64))
        assert tensor_to_feature(tensor) == Int64List((3, 4))

    @pytest.mark.parametrize(
        "array",
        [
            np.arange(12, dtype=np.int64).reshape(3, 4),
            np.linspace(-1, 1, 8, dtype=np.float32).reshape(2, 4),
            np.arange(24, dtype=np.uint8).reshape(2, 3, 4),
        ],
    )
    def test_order_and_count_preserved(self, array):
        feature = tensor_to_feature(array)
        restored = feature_to_tensor(feature, array.shape if array.dtype != np.uint8 else array.shape[:-1])
        assert restored.dtype == array.dtype
        assert np.array_equal(restored, array)


class TestInference:
    def test_python_values(self):
        assert infer_feature(7) == Int64List((7,))
        assert infer_feature(True) == Int64List((1,))
        assert infer_feature(0.5) == FloatList((0.5,))
        assert infer_feature("text") == BytesList((b"text",))
        assert infer_feature(b"raw") == BytesList((b"raw",))

    def test_python_lists(self):
        assert infer_feature([1, 2]) == Int64List((1, 2))
        assert infer_feature([1, 2.5]) == FloatList((1.0, 2.5))
        assert infer_feature([b"a", "b"]) == BytesList((b"a", b"b"))

    def test_empty_list_is_rejected(self):
        for empty in ([], ()):
            with pytest.raises(UnsupportedElementTypeError):
                infer_feature(empty)
        with pytest.raises(UnsupportedElementTypeError):
            arrays_to_features({"scores": []})
        assert infer_feature(FloatList(())) == FloatList(())

    def test_features_pass_through(self):
        feature = FloatList((1.0,))
        assert infer_feature(feature) is feature

    def test_arrays(self):
        assert infer_feature(np.array([1, 2], dtype=np.int64)) == Int64List((1, 2))
        with pytest.raises(UnsupportedElementTypeError):
            infer_feature(np.array([1.0, 2.0]))

    def test_mappings(self):
        features = arrays_to_features({"a": 1, "b": np.array([0.5], dtype=np.float32)})
        assert features == {"a": Int64List((1,)), "b": FloatList((0.5,))}

        arrays = features_to_arrays(
            {"a": Int64List((1, 2, 3, 4)), "b": FloatList((1.0,))}, shapes={"a": (2, 2)}
        )
        assert arrays["a"].shape == (2, 2)
        assert arrays["b"].shape == (1,)


class TestShapes:
    def test_resolve_shape(self):
        assert resolve_shape((2, -1), 6) == (2, 3)
        assert resolve_shape((), 1) == ()
        with pytest.raises(ShapeMismatchError):
            resolve_shape((-1, -1), 6)
        with pytest.raises(ShapeMismatchError):
            resolve_shape((4, -1), 6)
        with pytest.raises(ShapeMismatchError):
            resolve_shape((-2, 3), 6)

    def test_overflow(self):
        with pytest.raises(SizeOverflowError):
            checked_product([2**40, 2**40])
        with pytest.raises(SizeOverflowError):
            resolve_shape((2**40, 2**40), 4)


# ── Images ─────────────────────────────────────────────────


class TestImages:
    @pytest.mark.parametrize("channels", [1, 2, 3, 4])
    def test_png_roundtrip(self, channels):
        pixels = _pixels(4, 5, channels)
        payload = encode_image(pixels)
        assert np.array_equal(decode_image(payload), pixels)

    def test_grayscale_2d(self):
        pixels = _pixels(3, 3, 1)[..., 0]
        decoded = decode_image(encode_image(pixels))
        assert decoded.shape == (3, 3, 1)
        assert np.array_equal(decoded[..., 0], pixels)

    def test_bgra_roundtrip(self):
        pixels = _pixels(2, 3, 4)
        decoded = decode_image(encode_image(pixels, color_space=ColorSpace.BGRA))
        assert np.array_equal(decoded, pixels)

    def test_payload_fields(self):
        payload = encode_image(_pixels(4, 6, 3))
        fields = default_codec.decode_message("Image", payload)
        assert fields["height"] == 4
        assert fields["width"] == 6
        assert fields["colorspace"] == ColorSpace.RGB
        assert detect_image_format(fields["encoded_image_string"]) == "PNG"

    def test_jpeg(self):
        pixels = _pixels(8, 8, 3)
        decoded = decode_image(encode_image(pixels, image_format="JPEG"))
        assert decoded.shape == (8, 8, 3)

    def test_detect_format(self):
        assert detect_image_format(b"\x89PNG\r\n\x1a\n....") == "PNG"
        assert detect_image_format(b"\xff\xd8\xff\xe0") == "JPEG"
        assert detect_image_format(b"GIF89a") == "GIF"
        assert detect_image_format(b"BM....") == "BMP"
        assert detect_image_format(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "WEBP"
        assert detect_image_format(b"II*\x00") == "TIFF"
        with pytest.raises(UnsupportedImageFormatError):
            detect_image_format(b"not an image")
        with pytest.raises(UnsupportedImageFormatError):
            detect_image_format(b"")

    def test_unrecognized_payload(self):
        payload = default_codec.encode_message(
            "Image",
            {"height": 1, "width": 1, "colorspace": 3, "encoded_image_string": b"garbage"},
        )
        with pytest.raises(UnsupportedImageFormatError):
            decode_image(payload)

    def test_dimension_mismatch(self):
        encoded = encode_pixels(_pixels(4, 5, 3))
        payload = default_codec.encode_message(
            "Image",
            {"height": 9, "width": 5, "colorspace": 3, "encoded_image_string": encoded},
        )
        with pytest.raises(ShapeMismatchError):
            decode_image(payload)

    def test_decode_pixels(self):
        pixels = _pixels(2, 2, 3)
        assert np.array_equal(decode_pixels(encode_pixels(pixels)), pixels)

    def test_channel_mismatch(self):
        with pytest.raises(ShapeMismatchError):
            encode_image(_pixels(2, 2, 3), color_space=ColorSpace.RGBA)
        with pytest.raises(ShapeMismatchError):
            encode_image(_pixels(2, 2, 5))
        with pytest.raises(ShapeMismatchError):
            encode_image(np.zeros((2, 2, 2, 2), dtype=np.uint8))

    def test_normalize_non_negative(self):
        pixels = np.array([[0.0, 0.5], [1.0, 0.25]], dtype=np.float32)
        assert normalize_pixels(pixels).tolist() == [[0, 128], [255, 64]]

    def test_normalize_signed(self):
        pixels = np.array([-1.0, 0.0, 1.0], dtype=np.float32)
        assert normalize_pixels(pixels).tolist() == [1, 128, 255]

    def test_normalize_rejects_integers(self):
        with pytest.raises(UnsupportedElementTypeError):
            normalize_pixels(np.zeros(3, dtype=np.int64))

    def test_float_image(self):
        pixels = np.linspace(0.0, 1.0, 12, dtype=np.float32).reshape(2, 2, 3)
        decoded = decode_image(encode_image(pixels))
        assert decoded.dtype == np.uint8
        assert decoded.max() == 255
        assert decoded.min() == 0

    def test_feature_helpers(self):
        pixels = _pixels(3, 4, 3)
        feature = image_to_feature(pixels)
        assert isinstance(feature, BytesList)
        assert len(feature) == 1
        assert np.array_equal(feature_to_image(feature), pixels)

    def test_feature_to_image_needs_one_payload(self):
        payload = encode_image(_pixels(2, 2, 3))
        with pytest.raises(ShapeMismatchError):
            feature_to_image(BytesList((payload, payload)))
        with pytest.raises(ShapeMismatchError):
            feature_to_image(BytesList(()))
        with pytest.raises(UnsupportedElementTypeError):
            feature_to_image(Int64List((1,)))

    def test_colorspace_channels(self):
        assert ColorSpace.LUMA.num_channels == 1
        assert ColorSpace.DIGITAL_YUV.num_channels == 3
        assert ColorSpace.BGRA.num_channels == 4
        assert ColorSpace.from_channels(2) is ColorSpace.LUMA_ALPHA
