from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from photodrop.client.models import (
    ErrorPhoto,
    PendingPhoto,
    UploadedPhoto,
    UploadingPhoto,
    record_adapter,
)
from photodrop.errors import InvalidTransition
from photodrop.server.models.file import FileEntry

from conftest import API_URL, FIXED_NOW, JPEG_2KB


def pending(**overrides):
    fields = dict(id="id1", name="a.jpg", size=len(JPEG_2KB), created_at=FIXED_NOW, payload=JPEG_2KB)
    fields.update(overrides)
    return PendingPhoto(**fields)


def test_uploaded_requires_server_filename():
    with pytest.raises(ValidationError):
        UploadedPhoto(id="id1", name="a.jpg")


def test_pending_requires_payload():
    with pytest.raises(ValidationError):
        PendingPhoto(id="id1", name="a.jpg")


def test_records_are_immutable():
    record = pending()
    with pytest.raises(ValidationError):
        record.name = "b.jpg"


def test_successful_upload_lifecycle_keeps_id():
    uploading = pending().start_upload()
    assert isinstance(uploading, UploadingPhoto)
    assert uploading.payload == JPEG_2KB

    uploaded = uploading.mark_uploaded("photo-123.jpg")
    assert uploaded.status == "uploaded"
    assert uploaded.id == "id1"
    assert uploaded.server_filename == "photo-123.jpg"
    assert uploaded.has_payload

    reclaimed = uploaded.reclaim(API_URL, FIXED_NOW)
    assert not reclaimed.has_payload
    assert reclaimed.url == f"{API_URL}/uploads/photo-123.jpg"
    assert reclaimed.uploaded_at == FIXED_NOW
    assert reclaimed.id == "id1"


def test_failed_upload_keeps_payload_and_can_retry():
    failed = pending().start_upload().mark_failed("Connection refused")
    assert isinstance(failed, ErrorPhoto)
    assert failed.error == "Connection refused"
    assert failed.payload == JPEG_2KB

    retried = failed.start_upload()
    assert isinstance(retried, UploadingPhoto)
    assert not hasattr(retried, "error")


def test_uploaded_record_cannot_restart_upload():
    uploaded = pending().start_upload().mark_uploaded("photo-123.jpg")
    with pytest.raises(InvalidTransition):
        uploaded.start_upload()


def test_confirm_uploaded_promotes_and_is_noop_when_already_uploaded():
    record = pending(server_filename="f1.jpg").start_upload()
    confirmed = record.confirm_uploaded("f1.jpg")
    assert isinstance(confirmed, UploadedPhoto)
    assert confirmed.payload == JPEG_2KB
    assert confirmed.confirm_uploaded("f1.jpg") is confirmed


def test_from_server_file():
    entry = FileEntry(filename="f1.jpg", url="/uploads/f1.jpg", size=10, uploaded_at=FIXED_NOW)
    record = UploadedPhoto.from_server_file(entry, API_URL)
    assert record.id == "server_f1.jpg"
    assert record.is_from_server
    assert record.server_filename == "f1.jpg"
    assert record.url == f"{API_URL}/uploads/f1.jpg"
    assert not record.has_payload


def test_json_preserves_variant_and_payload():
    record = pending().start_upload().mark_failed("boom")
    restored = record_adapter.validate_json(record_adapter.dump_json(record))
    assert isinstance(restored, ErrorPhoto)
    assert restored == record


def test_naive_timestamps_are_read_as_utc():
    record = pending(created_at=datetime(2024, 1, 1)).start_upload().mark_uploaded("f1.jpg")
    reclaimed = record.reclaim(API_URL, datetime(2024, 1, 2))

    assert reclaimed.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert reclaimed.uploaded_at.tzinfo is timezone.utc
    assert reclaimed.sort_key > FIXED_NOW - timedelta(days=365)
