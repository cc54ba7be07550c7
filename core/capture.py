"""
Image Capture Providers

A capture provider yields one image payload per face capture attempt. How
the pixels are obtained (phone camera, browser video element, file picker)
is the caller's business; the engine only awaits capture().

Payloads may be raw bytes, a Base64 string, or a data URL
("data:image/jpeg;base64,..."). normalize_payload() turns any of these into
the raw bytes sent as the multipart "image" part.
"""

import base64
import binascii
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from core.errors import CaptureError, ValidationError

ImagePayload = Union[bytes, str]


@dataclass
class CaptureAttempt:
    """
    One face capture, consumed by a single register or verify call.

    Attributes:
        image_payload: Image bytes, Base64 string or data URL.
        target_identity_id: Identity to verify against. None means the
                            capture is for registering a new identity.
    """
    image_payload: ImagePayload
    target_identity_id: Optional[str] = None

    @property
    def is_registration(self) -> bool:
        return self.target_identity_id is None


def normalize_payload(payload: Optional[ImagePayload]) -> bytes:
    """
    Convert an image payload to raw bytes.

    Args:
        payload: Raw bytes, a Base64 string, or a data URL.

    Returns:
        The decoded image bytes.

    Raises:
        ValidationError: If the payload is missing, empty or not valid Base64.
    """
    if payload is None:
        raise ValidationError("No image captured")

    if isinstance(payload, (bytes, bytearray)):
        data = bytes(payload)
    else:
        text = payload.strip()
        if text.startswith("data:"):
            # Strip the "data:image/jpeg;base64," prefix
            _, _, text = text.partition(",")
        try:
            data = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("Image data is not valid Base64") from e

    if not data:
        raise ValidationError("Image data is empty")
    return data


def encode_payload(data: bytes) -> str:
    """Encode raw image bytes as a Base64 string."""
    return base64.b64encode(data).decode("ascii")


class ImageCaptureProvider(ABC):
    """Produces one image payload per call, or raises CaptureError."""

    @abstractmethod
    async def capture(self) -> ImagePayload:
        ...


class StaticCaptureProvider(ImageCaptureProvider):
    """Returns the same payload on every call (pre-captured images, tests)."""

    def __init__(self, payload: ImagePayload):
        self.payload = payload

    async def capture(self) -> ImagePayload:
        return self.payload


class FileCaptureProvider(ImageCaptureProvider):
    """Reads the capture from an image file on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def capture(self) -> ImagePayload:
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise CaptureError(f"Could not read image {self.path}: {e}") from e
