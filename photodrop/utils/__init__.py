# utils/__init__.py
"""Shared utilities for the sync client."""

from photodrop.utils.validation import guess_mime_type, validate_image

__all__ = ["guess_mime_type", "validate_image"]
