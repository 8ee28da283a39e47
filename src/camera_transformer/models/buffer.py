"""
Image Buffer Models
===================

In-memory pixel buffer and identity metadata used between decode and encode.

Design Rules:
    - ImageBuffer is created fresh per message and never retained
    - Pixels are always (H, W, 3) uint8 in the canonical RGB layout
    - ImageMetadata is copied verbatim from inbound to outbound messages
"""

from dataclasses import dataclass

import numpy as np

from camera_transformer.models.message import Stamp


CANONICAL_ENCODING = "rgb8"


@dataclass(frozen=True, slots=True, eq=False)
class ImageBuffer:
    """
    Decoded image in the canonical working layout.

    Attributes:
        pixels: Pixel array, shape (height, width, 3), dtype uint8
        encoding: Channel layout name, always "rgb8" after decode
    """

    pixels: np.ndarray
    encoding: str = CANONICAL_ENCODING

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2]) if self.pixels.ndim == 3 else 1

    def __repr__(self) -> str:
        return (
            f"ImageBuffer({self.width}x{self.height}, "
            f"channels={self.channels}, encoding={self.encoding})"
        )


@dataclass(frozen=True, slots=True)
class ImageMetadata:
    """
    Identity metadata of a message.

    The transform changes pixel content only; these values are stamped
    unchanged onto the republished message.

    Attributes:
        seq: Sequence counter from the inbound header
        stamp: Time stamp from the inbound header
    """

    seq: int
    stamp: Stamp
