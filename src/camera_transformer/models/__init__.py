"""
Data Models
===========

Message and buffer models for the camera transformer.

Models:
    Wire:
        - Stamp, Header, ImageMessage: Image message as carried by the transport

    In-memory:
        - ImageBuffer: Decoded RGB pixel buffer
        - ImageMetadata: Identity metadata copied onto outbound messages
"""

from camera_transformer.models.message import Header, ImageMessage, Stamp
from camera_transformer.models.buffer import CANONICAL_ENCODING, ImageBuffer, ImageMetadata

__all__ = [
    # Wire
    "Stamp",
    "Header",
    "ImageMessage",
    # In-memory
    "CANONICAL_ENCODING",
    "ImageBuffer",
    "ImageMetadata",
]
