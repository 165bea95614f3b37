from photodrop.client.models import PendingPhoto, UploadedPhoto
from photodrop.client.store import LocalRecordStore

from conftest import FIXED_NOW, JPEG_2KB


def make_pending(photo_id="id1"):
    return PendingPhoto(id=photo_id, name="a.jpg", size=len(JPEG_2KB), created_at=FIXED_NOW, payload=JPEG_2KB)


async def test_put_get_delete(tmp_path):
    store = LocalRecordStore(tmp_path)
    record = make_pending()

    await store.put(record)
    assert await store.get("id1") == record

    assert await store.delete("id1") is True
    assert await store.get("id1") is None
    assert await store.delete("id1") is False


async def test_put_overwrites_by_id(tmp_path):
    store = LocalRecordStore(tmp_path)
    record = make_pending()
    await store.put(record)

    uploaded = record.start_upload().mark_uploaded("photo-123.jpg")
    await store.put(uploaded)

    assert await store.get_all() == [uploaded]


async def test_records_survive_a_new_store_instance(tmp_path):
    await LocalRecordStore(tmp_path).put(make_pending())

    reopened = LocalRecordStore(tmp_path)
    restored = await reopened.get("id1")
    assert isinstance(restored, PendingPhoto)
    assert restored.payload == JPEG_2KB


async def test_get_all_on_empty_store(tmp_path):
    assert await LocalRecordStore(tmp_path / "missing").get_all() == []


async def test_ids_with_path_characters(tmp_path):
    store = LocalRecordStore(tmp_path)
    record = UploadedPhoto(id="server_../x.jpg", name="x.jpg", server_filename="x.jpg")

    await store.put(record)

    assert await store.get("server_../x.jpg") == record
    assert list(tmp_path.iterdir()) == [tmp_path / "photos"]


async def test_unreadable_record_is_skipped(tmp_path):
    store = LocalRecordStore(tmp_path)
    await store.put(make_pending())
    (store.path / "broken.json").write_text("{not json")

    records = await store.get_all()

    assert [r.id for r in records] == ["id1"]
