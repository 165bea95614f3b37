# service.py - Offline-first photo service
# Keeps the local record store and the upload server's listing in step

import asyncio
import logging
import random
import string
from datetime import datetime, timedelta
from typing import Callable, Optional
from pydantic import BaseModel, Field

from photodrop.client.api_client import PhotoApiClient
from photodrop.client.models import (
    PendingPhoto,
    PhotoRecord,
    PhotoStatus,
    SERVER_ID_PREFIX,
    UploadedPhoto,
    as_utc,
    utcnow,
)
from photodrop.client.store import LocalRecordStore
from photodrop.config import MAX_FILE_SIZE, ClientSettings
from photodrop.errors import (
    InvalidTransition,
    NetworkUnavailable,
    PhotoError,
    PhotoNotFound,
    ServerDeleteFailed,
    UploadFailed,
)
from photodrop.server.models.file import FileEntry
from photodrop.utils.validation import guess_mime_type, validate_image

logger = logging.getLogger(__name__)

ID_ALPHABET = string.ascii_lowercase + string.digits

# ─────────────────────────────────────────────────────────────────────────────
# Result Models
# ─────────────────────────────────────────────────────────────────────────────

class SyncResult(BaseModel):
    online: bool
    server_files: int = 0
    marked_uploaded: int = 0
    reclaimed: int = 0
    reclaimed_kb: int = 0
    added: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.marked_uploaded or self.reclaimed or self.added)


class RetryResult(BaseModel):
    online: bool
    uploaded: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)


class LocalDataStats(BaseModel):
    count: int
    size_kb: int


class CleanupResult(BaseModel):
    cleaned_count: int
    total_size_kb: int


# ─────────────────────────────────────────────────────────────────────────────
# Service
# ─────────────────────────────────────────────────────────────────────────────

class PhotoService:
    """Captured photos, their uploads, and reconciliation with the server.

    Build one at application start and hand it to whatever needs it. All
    state lives in the injected ``LocalRecordStore``; the ``PhotoApiClient``
    is only used for listing, uploading and deleting server files.
    """

    def __init__(
        self,
        store: LocalRecordStore,
        api: PhotoApiClient,
        clock: Callable[[], datetime] = utcnow,
        max_file_size: int = MAX_FILE_SIZE,
    ):
        self.store = store
        self.api = api
        self._clock = clock
        self._max_file_size = max_file_size
        self._sync_lock = asyncio.Lock()
        self._upload_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "PhotoService":
        return cls(
            LocalRecordStore(settings.STORE_PATH),
            PhotoApiClient.from_settings(settings),
            max_file_size=settings.MAX_FILE_SIZE,
        )

    async def aclose(self) -> None:
        await self.api.aclose()

    @property
    def api_url(self) -> str:
        return self.api.api_url

    def _new_id(self) -> str:
        millis = int(self._clock().timestamp() * 1000)
        return f"{millis}{''.join(random.choices(ID_ALPHABET, k=9))}"

    # ─────────────────────────────────────────────────────────────────────────
    # Local records
    # ─────────────────────────────────────────────────────────────────────────

    async def save_photo(
        self,
        name: str,
        data: bytes,
        mime_type: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> PendingPhoto:
        """Validate a captured photo and queue it locally as ``pending``."""
        mime_type = guess_mime_type(name, mime_type)
        validate_image(name, data, mime_type, self._max_file_size)

        record = PendingPhoto(
            id=self._new_id(),
            name=name,
            size=len(data),
            mime_type=mime_type,
            created_at=created_at or self._clock(),
            payload=data,
        )
        await self.store.put(record)
        logger.info("Queued %s as %s (%d bytes)", name, record.id, record.size)
        return record

    async def get_photo(self, photo_id: str) -> PhotoRecord:
        record = await self.store.get(photo_id)
        if record is None:
            raise PhotoNotFound(photo_id)
        return record

    async def get_all_photos(self) -> list[PhotoRecord]:
        """All local records, newest first."""
        records = await self.store.get_all()
        return sorted(records, key=lambda record: record.sort_key, reverse=True)

    async def delete_photo(self, photo_id: str) -> bool:
        """Remove a record locally and, best-effort, its server file.

        Returns whether the server copy was deleted. A failed server delete
        is logged and does not stop the local delete.
        """
        record = await self.get_photo(photo_id)

        server_deleted = False
        if record.server_filename:
            try:
                await self.api.delete_file(record.server_filename)
                server_deleted = True
                logger.info("Deleted %s from the server", record.server_filename)
                # A server_<filename> twin would now point at a missing file
                sibling_id = f"{SERVER_ID_PREFIX}{record.server_filename}"
                if sibling_id != photo_id and await self.store.delete(sibling_id):
                    logger.debug("Removed %s along with %s", sibling_id, photo_id)
            except ServerDeleteFailed as e:
                logger.warning("Could not delete %s from the server: %s", e.filename, e)

        await self.store.delete(photo_id)
        self._upload_locks.pop(photo_id, None)
        return server_deleted

    # ─────────────────────────────────────────────────────────────────────────
    # Reconciliation
    # ─────────────────────────────────────────────────────────────────────────

    async def _reclaim(self, record: UploadedPhoto) -> UploadedPhoto:
        reclaimed = record.reclaim(self.api_url, self._clock())
        await self.store.put(reclaimed)
        logger.info(
            "Reclaimed %d KB of local data for %s, now served from %s",
            record.payload_size_kb, record.name, reclaimed.url
        )
        return reclaimed

    async def sync(self, force_reload: bool = False) -> SyncResult:
        """Merge the server listing into the local store.

        Local records whose file is on the server become ``uploaded`` and
        lose their payload; server files with no local record get a
        synthesized ``server_<filename>`` record. With an unchanged listing a
        second call writes nothing. If the server is unreachable nothing is
        touched and ``online`` is False.
        """
        async with self._sync_lock:
            try:
                server_files = await self.api.fetch_files()
            except NetworkUnavailable as e:
                logger.warning("Sync skipped, working offline: %s", e)
                return SyncResult(online=False)

            result = SyncResult(online=True, server_files=len(server_files))
            server_filenames = {entry.filename for entry in server_files}
            local_records = await self.store.get_all()

            for record in local_records:
                if record.server_filename not in server_filenames:
                    continue
                updated = record.confirm_uploaded(record.server_filename)
                if updated is not record:
                    result.marked_uploaded += 1
                    if not updated.has_payload:
                        await self.store.put(updated)
                if updated.has_payload:
                    result.reclaimed += 1
                    result.reclaimed_kb += updated.payload_size_kb
                    await self._reclaim(updated)

            known = {record.server_filename: record for record in local_records if record.server_filename}
            for entry in server_files:
                existing = known.get(entry.filename)
                if existing is not None and not (force_reload and existing.is_from_server):
                    continue
                await self.store.put(UploadedPhoto.from_server_file(entry, self.api_url))
                result.added += 1

            logger.info(
                "Sync finished: %d on server, %d marked uploaded, %d reclaimed (%d KB), %d added",
                result.server_files, result.marked_uploaded, result.reclaimed,
                result.reclaimed_kb, result.added
            )
            return result

    async def cleanup_duplicates(self, server_files: Optional[list[FileEntry]] = None) -> int:
        """Drop local uploaded records that the server listing already covers.

        Only records with ``is_from_server`` False and status ``uploaded`` are
        candidates. The ``server_<filename>`` record is what remains; if sync
        has not created it yet it is written before the local one goes.
        """
        if server_files is None:
            server_files = await self.api.list_files()
        by_filename = {entry.filename: entry for entry in server_files}

        local_records = await self.store.get_all()
        survivors = {record.server_filename for record in local_records if record.is_from_server}

        removed = 0
        for record in local_records:
            if record.is_from_server or record.status != PhotoStatus.UPLOADED:
                continue
            entry = by_filename.get(record.server_filename)
            if entry is None:
                continue
            if entry.filename not in survivors:
                await self.store.put(UploadedPhoto.from_server_file(entry, self.api_url))
                survivors.add(entry.filename)
            await self.store.delete(record.id)
            self._upload_locks.pop(record.id, None)
            removed += 1
            logger.debug("Removed local duplicate %s (%s)", record.id, record.name)

        if removed:
            logger.info("Removed %d local duplicates", removed)
        return removed

    async def get_all_photos_with_sync(self) -> list[PhotoRecord]:
        """Sync, drop duplicates, then return every local record."""
        result = await self.sync()
        if result.online:
            await self.cleanup_duplicates()
        return await self.get_all_photos()

    # ─────────────────────────────────────────────────────────────────────────
    # Upload
    # ─────────────────────────────────────────────────────────────────────────

    async def is_server_available(self) -> bool:
        return await self.api.probe()

    async def upload(self, photo_id: str) -> UploadedPhoto:
        """Send a pending (or failed) record's payload to the server.

        The record is stored as ``uploading`` before the request goes out.
        On success it becomes ``uploaded`` with the server filename and its
        payload is reclaimed straight away. On failure it becomes ``error``
        with the payload kept, and UploadFailed is raised.
        """
        lock = self._upload_locks.setdefault(photo_id, asyncio.Lock())
        async with lock:
            record = await self.get_photo(photo_id)
            if not record.has_payload:
                raise InvalidTransition(f"Photo {photo_id} has no local data to upload")

            uploading = record.start_upload()
            await self.store.put(uploading)

            try:
                receipt = await self.api.upload(
                    uploading.id,
                    uploading.name,
                    uploading.payload,
                    uploading.mime_type,
                    uploading.created_at.isoformat(),
                )
            except PhotoError as e:
                await self.store.put(uploading.mark_failed(str(e)))
                logger.warning("Upload of %s (%s) failed: %s", uploading.name, photo_id, e)
                if isinstance(e, UploadFailed):
                    raise
                raise UploadFailed(photo_id, str(e), retryable=True) from e

            uploaded = uploading.mark_uploaded(receipt.filename)
            await self.store.put(uploaded)
            logger.info("Uploaded %s as %s", uploaded.name, receipt.filename)
            reclaimed = await self._reclaim(uploaded)
            # Uploaded records never upload again
            self._upload_locks.pop(photo_id, None)
            return reclaimed

    async def retry_pending_uploads(self) -> RetryResult:
        """Upload every ``pending``, ``error`` or stuck ``uploading`` record, one at a time."""
        if not await self.is_server_available():
            logger.info("Server unavailable, leaving queued photos for later")
            return RetryResult(online=False)

        result = RetryResult(online=True)
        for record in await self.get_all_photos():
            if record.status not in (PhotoStatus.PENDING, PhotoStatus.UPLOADING, PhotoStatus.ERROR):
                continue
            try:
                await self.upload(record.id)
                result.uploaded.append(record.id)
            except UploadFailed as e:
                result.failed[record.id] = e.message
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Local storage housekeeping
    # ─────────────────────────────────────────────────────────────────────────

    async def get_local_data_stats(self) -> LocalDataStats:
        holding = [record for record in await self.store.get_all() if record.has_payload]
        return LocalDataStats(
            count=len(holding),
            size_kb=sum(record.payload_size_kb for record in holding)
        )

    async def cleanup_all_uploaded_local_data(self) -> CleanupResult:
        """Reclaim the payload of every uploaded record that still holds one."""
        cleaned_count = 0
        total_size_kb = 0
        for record in await self.store.get_all():
            if not isinstance(record, UploadedPhoto) or not record.has_payload:
                continue
            total_size_kb += record.payload_size_kb
            await self._reclaim(record)
            cleaned_count += 1

        logger.info("Reclaimed local data for %d photos (%d KB)", cleaned_count, total_size_kb)
        return CleanupResult(cleaned_count=cleaned_count, total_size_kb=total_size_kb)

    async def cleanup_old_photos(self, days_old: int = 30) -> int:
        """Forget uploaded records created more than ``days_old`` days ago."""
        cutoff = as_utc(self._clock()) - timedelta(days=days_old)
        removed = 0
        for record in await self.store.get_all():
            if record.status == PhotoStatus.UPLOADED and record.created_at < cutoff:
                await self.store.delete(record.id)
                removed += 1
        return removed
