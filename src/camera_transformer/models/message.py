"""
Image Message Schema
====================

This module defines the Pydantic models for image messages carried on the
pub/sub transport.

The shape mirrors ROS ``sensor_msgs/Image`` as serialized by the rosbridge
v2 JSON protocol, so the relay can sit behind a stock rosbridge server.

Message Contract:
    {
        "header": {
            "seq": 1234,
            "stamp": {"secs": 1707321234, "nsecs": 567000000},
            "frame_id": "cam1"
        },
        "height": 480,
        "width": 640,
        "encoding": "bgr8",
        "is_bigendian": 0,
        "step": 1920,
        "data": "<base64 pixel bytes>"
    }

Example:
    from camera_transformer.models.message import ImageMessage

    message = ImageMessage.model_validate_json(raw)
    print(f"Received image {message.header.seq} ({message.width}x{message.height})")
"""

import base64
import binascii
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class Stamp(BaseModel):
    """ROS time stamp (seconds + nanoseconds)."""

    model_config = ConfigDict(frozen=True)

    secs: int = Field(default=0, ge=0, description="Whole seconds")
    nsecs: int = Field(
        default=0,
        ge=0,
        lt=1_000_000_000,
        description="Nanoseconds past secs",
    )

    def to_sec(self) -> float:
        """Stamp as floating point seconds."""
        return self.secs + self.nsecs / 1e9


class Header(BaseModel):
    """Standard message header."""

    model_config = ConfigDict(frozen=True)

    seq: int = Field(default=0, ge=0, description="Sequence counter set by publisher")
    stamp: Stamp = Field(default_factory=Stamp)
    frame_id: str = Field(default="", description="Coordinate frame of the image")


class ImageMessage(BaseModel):
    """
    Raw image message.

    Pixel data is kept as raw bytes in memory and carried as base64 in
    JSON, matching how rosbridge encodes uint8[] fields.

    Attributes:
        header: Identity metadata (sequence counter, time stamp)
        height: Number of rows
        width: Number of columns
        encoding: Pixel encoding name (e.g. "bgr8", "rgb8", "mono8")
        is_bigendian: Byte order flag for multi-byte channels
        step: Row length in bytes (may include padding)
        data: Row-major pixel bytes, ``step * height`` long
    """

    model_config = ConfigDict(frozen=True)

    header: Header = Field(default_factory=Header)
    height: int = Field(..., ge=0, description="Image height in pixels")
    width: int = Field(..., ge=0, description="Image width in pixels")
    encoding: str = Field(..., description="Pixel encoding name")
    is_bigendian: int = Field(default=0, ge=0, le=1)
    step: int = Field(..., ge=0, description="Row length in bytes")
    data: bytes = Field(default=b"", repr=False)

    @field_validator("data", mode="before")
    @classmethod
    def _decode_data(cls, value: Any) -> Any:
        """Accept base64 text (JSON) or a list of byte values besides raw bytes."""
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except binascii.Error as e:
                raise ValueError(f"data is not valid base64: {e}")
        if isinstance(value, list):
            # pydantic only wraps ValueError, so TypeError must not escape
            try:
                return bytes(value)
            except (TypeError, ValueError) as e:
                raise ValueError(f"data is not a list of byte values: {e}") from e
        return value

    @field_serializer("data", when_used="json")
    def _encode_data(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel data."""
        return (
            f"ImageMessage(seq={self.header.seq}, "
            f"stamp={self.header.stamp.to_sec():.3f}, "
            f"{self.width}x{self.height}, encoding={self.encoding})"
        )
