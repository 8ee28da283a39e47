"""
Image Codec
===========

Conversion between raw image messages and in-memory pixel buffers.

Decode path:
    ImageMessage (bgr8 / rgb8 / bgra8 / rgba8 / mono8)
        -> BGR pixel matrix (fixed source encoding)
        -> RGB ImageBuffer (canonical working layout)

Encode path:
    RGB ImageBuffer + ImageMetadata -> ImageMessage (rgb8)

Design Rules:
    - This is the ONLY place in the codebase that touches pixel bytes
    - Decode failures raise DecodeError (bad input, recoverable)
    - Encode failures raise EncodeError (internal invariant violation)
    - No I/O and no shared state
"""

from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from camera_transformer.models.buffer import CANONICAL_ENCODING, ImageBuffer, ImageMetadata
from camera_transformer.models.message import Header, ImageMessage


class DecodeError(Exception):
    """Raised when an inbound message cannot be decoded."""
    pass


class EncodeError(Exception):
    """Raised when a pixel buffer cannot be packaged as a message."""
    pass


# encoding -> (channels, cv2 conversion code to BGR or None if already BGR)
SOURCE_CONVERSIONS: Dict[str, Tuple[int, Optional[int]]] = {
    "bgr8": (3, None),
    "rgb8": (3, cv2.COLOR_RGB2BGR),
    "bgra8": (4, cv2.COLOR_BGRA2BGR),
    "rgba8": (4, cv2.COLOR_RGBA2BGR),
    "mono8": (1, cv2.COLOR_GRAY2BGR),
}


def metadata_of(message: ImageMessage) -> ImageMetadata:
    """Extract identity metadata (sequence counter, stamp) from a message."""
    return ImageMetadata(seq=message.header.seq, stamp=message.header.stamp)


class ImageCodec:
    """
    Stateless image message codec.

    Inbound messages are interpreted through the fixed BGR8 source
    encoding: any encoding convertible to BGR8 is accepted, everything
    else fails decode. Outbound messages are always rgb8.

    Example:
        codec = ImageCodec()

        buffer = codec.decode(message)
        outbound = codec.encode(buffer, metadata_of(message))
    """

    source_encoding = "bgr8"
    output_encoding = CANONICAL_ENCODING

    def decode(self, message: ImageMessage) -> ImageBuffer:
        """
        Decode a raw image message into an RGB buffer.

        Args:
            message: Inbound image message

        Returns:
            ImageBuffer with (H, W, 3) uint8 RGB pixels

        Raises:
            DecodeError: If the payload is malformed or the encoding
                cannot be converted to the source encoding
        """
        bgr = self._to_bgr(message)

        try:
            rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        except cv2.error as e:
            raise DecodeError(
                f"Color conversion failed for image {message.header.seq}: {e}"
            ) from e

        return ImageBuffer(pixels=rgb, encoding=CANONICAL_ENCODING)

    def encode(self, buffer: ImageBuffer, metadata: ImageMetadata) -> ImageMessage:
        """
        Package an RGB buffer as an outbound image message.

        Args:
            buffer: Transformed pixel buffer
            metadata: Identity metadata of the originating message

        Returns:
            ImageMessage with rgb8 encoding and the given seq/stamp

        Raises:
            EncodeError: If the buffer is not an (H, W, 3) uint8 array
        """
        pixels = buffer.pixels
        if not isinstance(pixels, np.ndarray):
            raise EncodeError(f"Buffer pixels must be a numpy array, got {type(pixels).__name__}")
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise EncodeError(f"Invalid buffer shape for {self.output_encoding}: {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise EncodeError(f"Invalid buffer dtype for {self.output_encoding}: {pixels.dtype}")

        height, width = pixels.shape[:2]
        # Empty header apart from seq/stamp
        header = Header(seq=metadata.seq, stamp=metadata.stamp)

        return ImageMessage(
            header=header,
            height=height,
            width=width,
            encoding=self.output_encoding,
            is_bigendian=0,
            step=width * 3,
            data=np.ascontiguousarray(pixels).tobytes(),
        )

    def _to_bgr(self, message: ImageMessage) -> np.ndarray:
        """Interpret message bytes in the source encoding (BGR8)."""
        seq = message.header.seq
        conversion = SOURCE_CONVERSIONS.get(message.encoding)
        if conversion is None:
            raise DecodeError(
                f"Unsupported encoding for image {seq}: "
                f"'{message.encoding}' cannot be converted to {self.source_encoding}"
            )
        channels, code = conversion

        height, width, step = message.height, message.width, message.step
        if height == 0 or width == 0:
            raise DecodeError(f"Empty image {seq}: {width}x{height}")

        row_bytes = width * channels
        if step < row_bytes:
            raise DecodeError(
                f"Invalid step for image {seq}: {step} < {row_bytes} "
                f"({width} px * {channels} channels)"
            )

        expected = step * height
        if len(message.data) < expected:
            raise DecodeError(
                f"Truncated payload for image {seq}: "
                f"got {len(message.data)} bytes, expected {expected}"
            )

        rows = np.frombuffer(message.data, dtype=np.uint8, count=expected).reshape(height, step)
        # Strip row padding
        pixels = np.ascontiguousarray(rows[:, :row_bytes])
        if channels == 1:
            pixels = pixels.reshape(height, width)
        else:
            pixels = pixels.reshape(height, width, channels)

        if code is None:
            return pixels

        try:
            return cv2.cvtColor(pixels, code)
        except cv2.error as e:
            raise DecodeError(
                f"Conversion {message.encoding} -> {self.source_encoding} "
                f"failed for image {seq}: {e}"
            ) from e
