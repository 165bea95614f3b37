"""Photo records held by the sync client.

A record is one of four variants keyed on ``status``. Each variant only
carries the fields that make sense in that state, so an ``uploaded`` record
without a ``server_filename`` cannot be built, and a ``pending`` or ``error``
record always keeps the payload it needs for a retry.

Records are immutable; every lifecycle step returns a new record with the
same ``id``::

    pending --start_upload--> uploading --mark_uploaded--> uploaded --reclaim--> uploaded (no payload)
                                        \\--mark_failed--> error --start_upload--> uploading
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from photodrop.errors import InvalidTransition
from photodrop.server.models.file import FileEntry

SERVER_ID_PREFIX = "server_"


class PhotoStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    ERROR = "error"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def server_url(api_url: str, filename: str) -> str:
    """Stable URL the server serves a stored file from."""
    return f"{api_url}/uploads/{filename}"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Base
# ─────────────────────────────────────────────────────────────────────────────
class PhotoBase(BaseModel):
    id: str
    name: str
    size: int = 0
    mime_type: str = "image/jpeg"
    created_at: datetime = Field(default_factory=utcnow)
    server_filename: Optional[str] = None
    url: Optional[str] = None
    is_from_server: bool = False

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def has_payload(self) -> bool:
        return getattr(self, "payload", None) is not None

    @property
    def payload_size_kb(self) -> int:
        payload = getattr(self, "payload", None)
        return round(len(payload) / 1024) if payload else 0

    @property
    def sort_key(self) -> datetime:
        return getattr(self, "uploaded_at", None) or self.created_at

    def _become(self, cls, **changes):
        data = {name: getattr(self, name) for name in PhotoBase.model_fields}
        data.update(changes)
        return cls(**data)

    def confirm_uploaded(self, server_filename: str) -> "UploadedPhoto":
        """Promote to ``uploaded`` once the server is known to hold the file."""
        if isinstance(self, UploadedPhoto):
            return self
        return self._become(
            UploadedPhoto,
            server_filename=server_filename,
            payload=getattr(self, "payload", None),
        )


class _Retryable(PhotoBase):
    payload: bytes

    def start_upload(self) -> "UploadingPhoto":
        return self._become(UploadingPhoto, payload=self.payload)


# ─────────────────────────────────────────────────────────────────────────────
# Variants
# ─────────────────────────────────────────────────────────────────────────────
class PendingPhoto(_Retryable):
    status: Literal["pending"] = "pending"


class UploadingPhoto(PhotoBase):
    status: Literal["uploading"] = "uploading"
    payload: bytes

    def mark_uploaded(self, server_filename: str) -> "UploadedPhoto":
        return self._become(UploadedPhoto, server_filename=server_filename, payload=self.payload)

    def mark_failed(self, message: str) -> "ErrorPhoto":
        return self._become(ErrorPhoto, error=message, payload=self.payload)

    # A crash mid-upload leaves the record here; it can be sent again
    def start_upload(self) -> "UploadingPhoto":
        return self


class UploadedPhoto(PhotoBase):
    status: Literal["uploaded"] = "uploaded"
    server_filename: str
    payload: Optional[bytes] = None
    uploaded_at: Optional[datetime] = None

    @field_validator("uploaded_at")
    @classmethod
    def validate_uploaded_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    def reclaim(self, api_url: str, now: Optional[datetime] = None) -> "UploadedPhoto":
        """Drop the local payload and point ``url`` at the server copy."""
        return self.model_copy(update={
            "payload": None,
            "url": server_url(api_url, self.server_filename),
            "uploaded_at": as_utc(now) or utcnow(),
        })

    def start_upload(self) -> "UploadingPhoto":
        raise InvalidTransition(f"Photo {self.id} is already uploaded as {self.server_filename}")

    @classmethod
    def from_server_file(cls, entry: FileEntry, api_url: str) -> "UploadedPhoto":
        """Synthesize a record for a file only known from the server listing."""
        return cls(
            id=f"{SERVER_ID_PREFIX}{entry.filename}",
            name=entry.filename,
            size=entry.size,
            created_at=entry.uploaded_at,
            server_filename=entry.filename,
            url=f"{api_url}{entry.url}",
            is_from_server=True,
            uploaded_at=entry.uploaded_at,
        )


class ErrorPhoto(_Retryable):
    status: Literal["error"] = "error"
    error: str


PhotoRecord = Annotated[
    Union[PendingPhoto, UploadingPhoto, UploadedPhoto, ErrorPhoto],
    Field(discriminator="status"),
]

record_adapter: TypeAdapter[PhotoRecord] = TypeAdapter(PhotoRecord)
