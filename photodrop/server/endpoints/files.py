# files.py
import asyncio
import logging
import mimetypes
import random
import time
from pathlib import Path
from typing import Annotated, Optional
from datetime import datetime, timezone
import aiofiles
import aiofiles.os
import aiofiles.tempfile
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form, Path as PathParam, Request, Response, status
from pydantic import BaseModel

from photodrop.config import ServerSettings
from photodrop.server.models.file import (
    DeleteResponse,
    FileEntry,
    FileListResponse,
    UploadResponse,
    UploadedFile,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

# Chunk size for streaming the spooled upload into the target directory
CHUNK_SIZE = 256 * 1024  # 256KB

# Multipart field carrying the binary; also the stored filename prefix
UPLOAD_FIELD = "photo"

# ─────────────────────────────────────────────────────────────────────────────
# Documentation & Error Helpers
# ─────────────────────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    detail: str

RESP_ERRORS = {
    400: {"model": ErrorResponse, "description": "Bad Request"},
    404: {"model": ErrorResponse, "description": "Not Found"},
    500: {"model": ErrorResponse, "description": "Internal Server Error"},
}


def get_settings(request: Request) -> ServerSettings:
    return request.app.state.settings


SettingsDep = Annotated[ServerSettings, Depends(get_settings)]


def safe_join(base: Path, *parts: str) -> Path:
    """Safely join paths, preventing directory traversal."""
    result = base
    for part in parts:
        result = result / part
    result = result.resolve()
    if result.parent != base.resolve():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filename")
    return result


def generate_filename(originalname: str, content_type: str) -> str:
    """Build a unique stored name: photo-<epoch ms>-<random><ext>."""
    ext = Path(originalname).suffix.lower()
    if not ext:
        ext = mimetypes.guess_extension(content_type) or ""
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{UPLOAD_FIELD}-{unique_suffix}{ext}"


def format_size_limit(limit: int) -> str:
    return f"{limit // (1024 * 1024)}MB"

# ─────────────────────────────────────────────────────────────────────────────
# UPLOAD PHOTO
# ─────────────────────────────────────────────────────────────────────────────

@router.post(
    "/upload",
    response_model=UploadResponse,
    responses=RESP_ERRORS,
    summary="Upload Photo"
)
async def upload_photo(
    settings: SettingsDep,
    photo: Annotated[Optional[UploadFile], File()] = None,
    id: Annotated[Optional[str], Form()] = None,
    name: Annotated[Optional[str], Form()] = None,
    created_at: Annotated[Optional[str], Form(alias="createdAt")] = None,
) -> UploadResponse:
    """Accept a single image under the ``photo`` field and store it.

    The client-side ``id`` is echoed back so the caller can match the
    response to its local record. Files over the size limit and non-image
    MIME types are rejected with 400.
    """
    if photo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file was uploaded")

    content_type = photo.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")

    upload_dir: Path = settings.UPLOAD_DIR
    originalname = photo.filename or name or "upload"
    filename = generate_filename(originalname, content_type)
    file_path = safe_join(upload_dir, filename)

    total_size = 0
    tmp_path = None

    try:
        # Same directory as the target so the final rename stays atomic
        async with aiofiles.tempfile.NamedTemporaryFile(
            dir=str(upload_dir),
            delete=False,
            suffix='.tmp'
        ) as tmp:
            tmp_path = Path(tmp.name)
            while chunk := await photo.read(CHUNK_SIZE):
                total_size += len(chunk)
                if total_size > settings.MAX_FILE_SIZE:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"File too large (max {format_size_limit(settings.MAX_FILE_SIZE)})"
                    )
                await tmp.write(chunk)

        if total_size == 0:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file was uploaded")

        await aiofiles.os.replace(str(tmp_path), str(file_path))
        tmp_path = None

    except HTTPException:
        raise
    except Exception as e:
        logger.error("Upload of %s failed: %s", originalname, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while uploading file"
        )
    finally:
        if tmp_path is not None:
            try:
                await aiofiles.os.unlink(str(tmp_path))
            except FileNotFoundError:
                pass

    if settings.UPLOAD_DELAY_SECONDS > 0:
        await asyncio.sleep(settings.UPLOAD_DELAY_SECONDS)

    logger.info(
        "Stored %s as %s (%d bytes, captured %s)",
        originalname, filename, total_size, created_at or "unknown"
    )

    return UploadResponse(
        file=UploadedFile(
            id=id or str(int(time.time() * 1000)),
            filename=filename,
            originalname=originalname,
            size=total_size,
            mimetype=content_type,
            url=f"/uploads/{filename}",
            uploaded_at=datetime.now(timezone.utc)
        )
    )

# ─────────────────────────────────────────────────────────────────────────────
# LIST FILES
# ─────────────────────────────────────────────────────────────────────────────

def scan_upload_dir(upload_dir: Path, allowed_extensions: list[str]) -> list[FileEntry]:
    """Image files in ``upload_dir``, newest first."""
    allowed = {ext.lower() for ext in allowed_extensions}
    entries = []
    for path in upload_dir.iterdir():
        if not path.is_file() or path.suffix.lower() not in allowed:
            continue
        stat_result = path.stat()
        entries.append(FileEntry(
            filename=path.name,
            url=f"/uploads/{path.name}",
            size=stat_result.st_size,
            uploaded_at=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)
        ))
    entries.sort(key=lambda entry: entry.uploaded_at, reverse=True)
    return entries


@router.get(
    "/files",
    response_model=FileListResponse,
    responses=RESP_ERRORS,
    summary="List Files"
)
async def list_files(settings: SettingsDep) -> FileListResponse:
    try:
        files = await asyncio.to_thread(scan_upload_dir, settings.UPLOAD_DIR, settings.ALLOWED_EXTENSIONS)
    except OSError as e:
        logger.error("Listing %s failed: %s", settings.UPLOAD_DIR, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")
    return FileListResponse(files=files)


@router.head("/files", summary="Probe Server")
async def probe_files() -> Response:
    """Cheap reachability check used by clients before uploading."""
    return Response(status_code=status.HTTP_200_OK)

# ─────────────────────────────────────────────────────────────────────────────
# DELETE FILE
# ─────────────────────────────────────────────────────────────────────────────

@router.delete(
    "/files/{filename}",
    response_model=DeleteResponse,
    responses=RESP_ERRORS,
    summary="Delete File"
)
async def delete_file(
    settings: SettingsDep,
    filename: Annotated[str, PathParam(examples=["photo-1718000000000-123456789.jpg"])]
) -> DeleteResponse:
    """Delete a stored file. Unlike the listing, a missing file is a 404."""
    file_path = safe_join(settings.UPLOAD_DIR, filename)

    try:
        await aiofiles.os.unlink(str(file_path))
    except FileNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except OSError as e:
        logger.error("Deleting %s failed: %s", filename, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error while deleting file"
        )

    logger.info("Deleted %s", filename)
    return DeleteResponse()
