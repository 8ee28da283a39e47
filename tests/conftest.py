"""
Test Configuration
==================

Pytest fixtures and test configuration for camera-transformer.
"""

import numpy as np
import pytest

from camera_transformer.models.message import Header, ImageMessage, Stamp


def make_message(
    pixels: np.ndarray,
    encoding: str = "bgr8",
    seq: int = 7,
    secs: int = 1707321234,
    nsecs: int = 567000000,
) -> ImageMessage:
    """Build an ImageMessage from a pixel array in the given encoding."""
    height, width = pixels.shape[:2]
    channels = 1 if pixels.ndim == 2 else pixels.shape[2]
    return ImageMessage(
        header=Header(seq=seq, stamp=Stamp(secs=secs, nsecs=nsecs), frame_id="cam"),
        height=height,
        width=width,
        encoding=encoding,
        step=width * channels,
        data=np.ascontiguousarray(pixels, dtype=np.uint8).tobytes(),
    )


@pytest.fixture
def corner_rgb():
    """
    4x4 RGB image with distinguishable corners.

    (0,0) red, (0,3) green, (3,0) blue, (3,3) white, everything else
    a gradient so no two pixels collide.
    """
    image = np.zeros((4, 4, 3), dtype=np.uint8)
    for row in range(4):
        for col in range(4):
            image[row, col] = (10 + row * 4 + col, 40 + row, 80 + col)
    image[0, 0] = (255, 0, 0)
    image[0, 3] = (0, 255, 0)
    image[3, 0] = (0, 0, 255)
    image[3, 3] = (255, 255, 255)
    return image


@pytest.fixture
def corner_message(corner_rgb):
    """The corner image as an inbound bgr8 message."""
    return make_message(corner_rgb[:, :, ::-1], encoding="bgr8")


@pytest.fixture
def random_rgb():
    """Random 6x5 RGB image (non-square, odd width)."""
    rng = np.random.default_rng(seed=42)
    return rng.integers(0, 256, size=(6, 5, 3), dtype=np.uint8)


@pytest.fixture
def message_factory():
    """Factory for ImageMessage objects (see make_message)."""
    return make_message
