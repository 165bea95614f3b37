"""Failure taxonomy shared by the sync client.

Nothing here is fatal: listing failures degrade to offline mode, upload
failures leave the record in ``error`` with its payload for a later retry,
and server-side delete failures are logged while the local delete proceeds.
"""

from typing import Optional


class PhotoError(Exception):
    """Base class for all photodrop client errors."""


class NetworkUnavailable(PhotoError):
    """The upload server could not be reached or answered with an error."""


class UploadFailed(PhotoError):
    def __init__(self, photo_id: str, message: str, retryable: bool = True):
        super().__init__(message)
        self.photo_id = photo_id
        self.message = message
        self.retryable = retryable


class ServerDeleteFailed(PhotoError):
    def __init__(self, filename: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.filename = filename
        self.status_code = status_code


class ValidationFailed(PhotoError):
    """Rejected before any network call: not an image, empty, or too large."""


class PhotoNotFound(PhotoError, KeyError):
    def __init__(self, photo_id: str):
        super().__init__(photo_id)
        self.photo_id = photo_id

    def __str__(self) -> str:
        return f"Photo not found: {self.photo_id}"


class InvalidTransition(PhotoError):
    """Requested a status change the record lifecycle does not allow."""
