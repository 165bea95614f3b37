# api_client.py - HTTP client for the photodrop upload server
# Wraps listing, upload, delete and the reachability probe

import logging
from typing import Optional
import httpx
from pydantic import ValidationError

from photodrop.config import ClientSettings
from photodrop.errors import NetworkUnavailable, ServerDeleteFailed, UploadFailed
from photodrop.server.models.file import FileEntry, FileListResponse, UploadResponse, UploadedFile

logger = logging.getLogger(__name__)


def build_timeout(settings: ClientSettings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.CONNECT_TIMEOUT,
        read=settings.READ_TIMEOUT,
        write=settings.READ_TIMEOUT,
        pool=settings.CONNECT_TIMEOUT
    )


def error_detail(response: httpx.Response) -> str:
    """Best human-readable reason from an error response."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP error! status: {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or f"HTTP error! status: {response.status_code}")
    return f"HTTP error! status: {response.status_code}"


class PhotoApiClient:
    """Talks to ``/api/files``, ``/api/upload`` and ``/api/files/{filename}``.

    The underlying ``httpx.AsyncClient`` can be injected (tests pass one
    bound to an ASGI or mock transport); otherwise one is created from the
    settings and owned by this object.
    """

    def __init__(self, api_url: str, client: Optional[httpx.AsyncClient] = None, timeout: Optional[httpx.Timeout] = None):
        self.api_url = api_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout or httpx.Timeout(30.0))

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "PhotoApiClient":
        return cls(settings.API_URL, timeout=build_timeout(settings))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PhotoApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ─────────────────────────────────────────────────────────────────────────
    # Listing
    # ─────────────────────────────────────────────────────────────────────────

    async def fetch_files(self) -> list[FileEntry]:
        """Current server listing, newest first. Raises NetworkUnavailable."""
        url = f"{self.api_url}/api/files"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            return FileListResponse.model_validate(response.json()).files
        except httpx.HTTPStatusError as e:
            raise NetworkUnavailable(error_detail(e.response)) from e
        except httpx.HTTPError as e:
            raise NetworkUnavailable(f"Server unreachable at {self.api_url}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise NetworkUnavailable(f"Malformed listing from {url}: {e}") from e

    async def list_files(self) -> list[FileEntry]:
        """Like fetch_files, but an unreachable server yields an empty list."""
        try:
            files = await self.fetch_files()
        except NetworkUnavailable as e:
            logger.warning("Could not load server photos: %s", e)
            return []
        logger.debug("Found %d photos on the server", len(files))
        return files

    async def probe(self) -> bool:
        try:
            response = await self._client.head(f"{self.api_url}/api/files")
        except httpx.HTTPError as e:
            logger.debug("Probe of %s failed: %s", self.api_url, e)
            return False
        return response.is_success

    # ─────────────────────────────────────────────────────────────────────────
    # Upload / Delete
    # ─────────────────────────────────────────────────────────────────────────

    async def upload(self, photo_id: str, name: str, payload: bytes, mime_type: str, created_at: str) -> UploadedFile:
        """Send one photo as multipart form data (field ``photo``)."""
        files = {"photo": (name, payload, mime_type)}
        data = {"id": photo_id, "name": name, "createdAt": created_at}
        try:
            response = await self._client.post(f"{self.api_url}/api/upload", files=files, data=data)
        except httpx.HTTPError as e:
            raise NetworkUnavailable(f"Server unreachable at {self.api_url}: {e}") from e

        if response.is_error:
            # 4xx means the server rejected this file; sending it again won't help
            raise UploadFailed(photo_id, error_detail(response), retryable=response.is_server_error)

        try:
            return UploadResponse.model_validate(response.json()).file
        except (ValueError, ValidationError) as e:
            raise UploadFailed(photo_id, f"Unexpected upload response: {e}") from e

    async def delete_file(self, filename: str) -> None:
        try:
            response = await self._client.delete(f"{self.api_url}/api/files/{filename}")
        except httpx.HTTPError as e:
            raise ServerDeleteFailed(filename, f"Server unreachable at {self.api_url}: {e}") from e
        if response.is_error:
            raise ServerDeleteFailed(filename, error_detail(response), status_code=response.status_code)
