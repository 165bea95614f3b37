"""Offline-first client: local record store, server API, reconciliation."""

from photodrop.client.api_client import PhotoApiClient
from photodrop.client.models import (
    ErrorPhoto,
    PendingPhoto,
    PhotoRecord,
    PhotoStatus,
    UploadedPhoto,
    UploadingPhoto,
)
from photodrop.client.service import PhotoService, SyncResult
from photodrop.client.store import LocalRecordStore

__all__ = [
    "ErrorPhoto",
    "LocalRecordStore",
    "PendingPhoto",
    "PhotoApiClient",
    "PhotoRecord",
    "PhotoService",
    "PhotoStatus",
    "SyncResult",
    "UploadedPhoto",
    "UploadingPhoto",
]
