"""
Codec Tests
===========

Tests for ImageCodec decode/encode and metadata handling.
"""

import numpy as np
import pytest

from camera_transformer.image.codec import (
    DecodeError,
    EncodeError,
    ImageCodec,
    metadata_of,
)
from camera_transformer.models.buffer import ImageBuffer, ImageMetadata
from camera_transformer.models.message import ImageMessage, Stamp


@pytest.fixture
def codec():
    return ImageCodec()


class TestDecode:
    """Tests for ImageCodec.decode."""

    def test_bgr8_normalized_to_rgb(self, codec, corner_rgb, corner_message):
        buffer = codec.decode(corner_message)

        assert buffer.encoding == "rgb8"
        assert buffer.pixels.shape == (4, 4, 3)
        assert buffer.pixels.dtype == np.uint8
        np.testing.assert_array_equal(buffer.pixels, corner_rgb)

    def test_rgb8_input(self, codec, random_rgb, message_factory):
        buffer = codec.decode(message_factory(random_rgb, encoding="rgb8"))
        np.testing.assert_array_equal(buffer.pixels, random_rgb)

    def test_rgba8_input_drops_alpha(self, codec, random_rgb, message_factory):
        alpha = np.full(random_rgb.shape[:2] + (1,), 128, dtype=np.uint8)
        rgba = np.concatenate([random_rgb, alpha], axis=2)

        buffer = codec.decode(message_factory(rgba, encoding="rgba8"))

        np.testing.assert_array_equal(buffer.pixels, random_rgb)

    def test_bgra8_input(self, codec, random_rgb, message_factory):
        alpha = np.zeros(random_rgb.shape[:2] + (1,), dtype=np.uint8)
        bgra = np.concatenate([random_rgb[:, :, ::-1], alpha], axis=2)

        buffer = codec.decode(message_factory(bgra, encoding="bgra8"))

        np.testing.assert_array_equal(buffer.pixels, random_rgb)

    def test_mono8_input_expanded(self, codec, message_factory):
        gray = np.arange(12, dtype=np.uint8).reshape(3, 4)

        buffer = codec.decode(message_factory(gray, encoding="mono8"))

        assert buffer.pixels.shape == (3, 4, 3)
        for channel in range(3):
            np.testing.assert_array_equal(buffer.pixels[:, :, channel], gray)

    def test_row_padding_stripped(self, codec, random_rgb):
        height, width = random_rgb.shape[:2]
        step = width * 3 + 4
        padded = np.zeros((height, step), dtype=np.uint8)
        padded[:, : width * 3] = random_rgb[:, :, ::-1].reshape(height, width * 3)
        message = ImageMessage(
            height=height,
            width=width,
            encoding="bgr8",
            step=step,
            data=padded.tobytes(),
        )

        buffer = codec.decode(message)

        np.testing.assert_array_equal(buffer.pixels, random_rgb)

    def test_unsupported_encoding(self, codec):
        message = ImageMessage(height=2, width=2, encoding="16UC1", step=4, data=bytes(8))
        with pytest.raises(DecodeError, match="Unsupported encoding"):
            codec.decode(message)

    def test_truncated_payload(self, codec):
        message = ImageMessage(height=4, width=4, encoding="bgr8", step=12, data=bytes(20))
        with pytest.raises(DecodeError, match="Truncated payload"):
            codec.decode(message)

    def test_step_too_small(self, codec):
        message = ImageMessage(height=2, width=4, encoding="bgr8", step=8, data=bytes(16))
        with pytest.raises(DecodeError, match="Invalid step"):
            codec.decode(message)

    def test_empty_image(self, codec):
        message = ImageMessage(height=0, width=4, encoding="bgr8", step=12, data=b"")
        with pytest.raises(DecodeError, match="Empty image"):
            codec.decode(message)


class TestEncode:
    """Tests for ImageCodec.encode."""

    def test_encode_layout(self, codec, corner_rgb):
        metadata = ImageMetadata(seq=3, stamp=Stamp(secs=10, nsecs=20))

        message = codec.encode(ImageBuffer(pixels=corner_rgb), metadata)

        assert message.encoding == "rgb8"
        assert (message.height, message.width) == (4, 4)
        assert message.step == 12
        assert message.is_bigendian == 0
        assert message.data == corner_rgb.tobytes()

    def test_metadata_copied(self, codec, corner_rgb):
        metadata = ImageMetadata(seq=991, stamp=Stamp(secs=1707321234, nsecs=5))

        message = codec.encode(ImageBuffer(pixels=corner_rgb), metadata)

        assert metadata_of(message) == metadata
        assert message.header.frame_id == ""

    def test_non_contiguous_buffer(self, codec, random_rgb):
        view = random_rgb[::-1, ::-1]
        message = codec.encode(ImageBuffer(pixels=view), ImageMetadata(0, Stamp()))
        assert message.data == np.ascontiguousarray(view).tobytes()

    def test_wrong_shape_is_encode_error(self, codec):
        buffer = ImageBuffer(pixels=np.zeros((4, 4), dtype=np.uint8))
        with pytest.raises(EncodeError, match="Invalid buffer shape"):
            codec.encode(buffer, ImageMetadata(0, Stamp()))

    def test_wrong_dtype_is_encode_error(self, codec):
        buffer = ImageBuffer(pixels=np.zeros((4, 4, 3), dtype=np.float32))
        with pytest.raises(EncodeError, match="Invalid buffer dtype"):
            codec.encode(buffer, ImageMetadata(0, Stamp()))

    def test_decode_of_encoded_message(self, codec, random_rgb):
        """Outbound rgb8 messages are valid inbound messages."""
        message = codec.encode(ImageBuffer(pixels=random_rgb), ImageMetadata(1, Stamp()))
        np.testing.assert_array_equal(codec.decode(message).pixels, random_rgb)


class TestMessageModel:
    """Tests for the ImageMessage wire model."""

    def test_json_carries_base64_data(self, corner_message):
        raw = corner_message.model_dump_json()
        parsed = ImageMessage.model_validate_json(raw)

        assert parsed.data == corner_message.data
        assert parsed.header == corner_message.header

    def test_rosbridge_dict_parsed(self):
        message = ImageMessage.model_validate({
            "header": {"seq": 5, "stamp": {"secs": 1, "nsecs": 2}, "frame_id": "cam"},
            "height": 1,
            "width": 1,
            "encoding": "rgb8",
            "is_bigendian": 0,
            "step": 3,
            "data": "AQID",
        })
        assert message.data == b"\x01\x02\x03"
        assert message.header.stamp.to_sec() == pytest.approx(1.000000002)

    def test_invalid_base64_rejected(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            ImageMessage.model_validate({
                "height": 1, "width": 1, "encoding": "rgb8", "step": 3, "data": "not base64!",
            })

    def test_repr_omits_data(self, corner_message):
        assert "data" not in repr(corner_message)
        assert "seq=7" in repr(corner_message)
