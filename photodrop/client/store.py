# store.py - Durable local record store for the sync client
# One JSON document per record under <STORE_PATH>/photos/, keyed by record id

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote
import aiofiles
import aiofiles.os
import aiofiles.tempfile
from pydantic import ValidationError

from photodrop.client.models import PhotoRecord, record_adapter

logger = logging.getLogger(__name__)

STORE_NAME = "photos"
RECORD_SUFFIX = ".json"


class LocalRecordStore:
    """Key-value store of photo records that survives process restarts.

    ``put``/``get``/``get_all``/``delete`` each touch a single record; there
    are no transactions across calls. Writes go to a temp file in the same
    directory followed by an atomic rename, so a crash never leaves a torn
    record behind.
    """

    def __init__(self, root: Path, store_name: str = STORE_NAME):
        self.path = Path(root) / store_name

    async def open(self) -> None:
        await aiofiles.os.makedirs(self.path, exist_ok=True)

    def _record_path(self, photo_id: str) -> Path:
        # Ids become filenames; quote anything that is not filename-safe
        return self.path / f"{quote(photo_id, safe='')}{RECORD_SUFFIX}"

    async def put(self, record: PhotoRecord) -> None:
        await self.open()
        target = self._record_path(record.id)
        tmp_path = None
        try:
            async with aiofiles.tempfile.NamedTemporaryFile(
                dir=str(self.path),
                delete=False,
                suffix='.tmp'
            ) as tmp:
                tmp_path = Path(tmp.name)
                await tmp.write(record_adapter.dump_json(record))
            await aiofiles.os.replace(str(tmp_path), str(target))
            tmp_path = None
        finally:
            if tmp_path is not None:
                try:
                    await aiofiles.os.unlink(str(tmp_path))
                except FileNotFoundError:
                    pass

    async def get(self, photo_id: str) -> Optional[PhotoRecord]:
        return await self._load(self._record_path(photo_id))

    async def get_all(self) -> list[PhotoRecord]:
        if not await aiofiles.os.path.isdir(self.path):
            return []
        records = []
        for entry in sorted(await aiofiles.os.listdir(self.path)):
            if not entry.endswith(RECORD_SUFFIX):
                continue
            try:
                record = await self._load(self.path / entry)
            except ValidationError as e:
                logger.warning("Skipping unreadable record %s: %s", entry, e)
                continue
            if record is not None:
                records.append(record)
        return records

    async def delete(self, photo_id: str) -> bool:
        try:
            await aiofiles.os.unlink(str(self._record_path(photo_id)))
        except FileNotFoundError:
            return False
        return True

    async def _load(self, path: Path) -> Optional[PhotoRecord]:
        try:
            async with aiofiles.open(path, mode='rb') as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        return record_adapter.validate_json(raw)

