"""
Image Module
============

Pixel-level processing for the camera transformer:
    - ImageCodec: message <-> RGB buffer conversion
    - Transforms: geometric per-stream transforms (180 degree rotation)
"""

from camera_transformer.image.codec import (
    DecodeError,
    EncodeError,
    ImageCodec,
    metadata_of,
)
from camera_transformer.image.transforms import TransformKind, apply_transform, rotate_180

__all__ = [
    "DecodeError",
    "EncodeError",
    "ImageCodec",
    "metadata_of",
    "TransformKind",
    "apply_transform",
    "rotate_180",
]
