"""
Geometric Transforms
====================

Per-stream pixel transforms applied between decode and encode.

Design Rules:
    - Transforms are pure: the input buffer is never modified
    - Dimensions and channel layout are preserved
"""

from enum import Enum
from typing import Callable, Dict

import cv2

from camera_transformer.models.buffer import ImageBuffer


class TransformKind(str, Enum):
    """Transform selected for a stream mapping."""

    ROTATE_180 = "rotate_180"


def rotate_180(buffer: ImageBuffer) -> ImageBuffer:
    """
    Rotate a buffer by 180 degrees.

    Reverses both row and column order (point reflection about the image
    center), so applying it twice yields the original buffer.

    Args:
        buffer: Decoded image buffer

    Returns:
        New ImageBuffer with the same shape and encoding
    """
    return ImageBuffer(pixels=cv2.flip(buffer.pixels, -1), encoding=buffer.encoding)


_TRANSFORMS: Dict[TransformKind, Callable[[ImageBuffer], ImageBuffer]] = {
    TransformKind.ROTATE_180: rotate_180,
}


def apply_transform(kind: TransformKind, buffer: ImageBuffer) -> ImageBuffer:
    """
    Apply the transform identified by ``kind``.

    Raises:
        ValueError: If no transform is registered for ``kind``
    """
    try:
        transform = _TRANSFORMS[kind]
    except KeyError:
        raise ValueError(f"Unknown transform: {kind}")
    return transform(buffer)
