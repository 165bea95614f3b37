# utils/validation.py
"""Client-side checks run before a photo is stored or sent."""

import mimetypes
from typing import Optional

from photodrop.config import MAX_FILE_SIZE
from photodrop.errors import ValidationFailed


def guess_mime_type(name: str, mime_type: Optional[str] = None) -> str:
    """Use the declared type, else guess from the filename extension."""
    return mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream"


def validate_image(name: str, payload: bytes, mime_type: str, max_size: int = MAX_FILE_SIZE) -> None:
    """
    Reject payloads the upload server would refuse anyway.

    Args:
        name: Original filename, used only in messages
        payload: Raw image bytes
        mime_type: Declared MIME type
        max_size: Largest accepted payload in bytes

    Raises:
        ValidationFailed: not an image, empty, or larger than max_size
    """
    if not mime_type.startswith("image/"):
        raise ValidationFailed(f"{name}: file must be an image (got {mime_type})")

    if not payload:
        raise ValidationFailed(f"{name}: file is empty")

    if len(payload) > max_size:
        raise ValidationFailed(
            f"{name}: file too large ({len(payload) // 1024} KB, max {max_size // (1024 * 1024)}MB)"
        )
