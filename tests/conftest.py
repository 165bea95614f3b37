"""
Shared fixtures: an upload server app on a temp directory and sync clients
wired to it in-process, or to a scripted mock transport.
"""
import json
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from photodrop.client.api_client import PhotoApiClient
from photodrop.client.service import PhotoService
from photodrop.client.store import LocalRecordStore
from photodrop.config import ServerSettings
from photodrop.server.main import create_app

API_URL = "http://testserver"

# Minimal JPEG header padded to 2KB
JPEG_2KB = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * (2048 - 11)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class CountingStore(LocalRecordStore):
    """LocalRecordStore that counts every write (put or delete)."""

    def __init__(self, root):
        super().__init__(root)
        self.writes = 0

    async def put(self, record):
        self.writes += 1
        await super().put(record)

    async def delete(self, photo_id):
        self.writes += 1
        return await super().delete(photo_id)


class FakeServer:
    """Scripted stand-in for the upload server, served via httpx.MockTransport."""

    def __init__(self):
        self.files: list[dict] = []
        self.online = True
        self.upload_status = 200
        self.upload_filename = "photo-123.jpg"
        self.delete_status = 200
        self.requests: list[httpx.Request] = []
        self.on_upload: Optional[Callable] = None

    def add_file(self, filename: str, size: int = 2048, uploaded_at: str = "2024-05-01T10:00:00+00:00"):
        self.files.append({
            "filename": filename,
            "url": f"/uploads/{filename}",
            "size": size,
            "uploadedAt": uploaded_at,
        })

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.online:
            raise httpx.ConnectError("Connection refused", request=request)

        path = request.url.path
        if path == "/api/files" and request.method == "HEAD":
            return httpx.Response(200)
        if path == "/api/files" and request.method == "GET":
            return httpx.Response(200, json={"files": self.files})
        if path == "/api/upload" and request.method == "POST":
            if self.on_upload is not None:
                await self.on_upload(request)
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, json={"detail": "File must be an image"})
            self.add_file(self.upload_filename)
            return httpx.Response(200, json={
                "success": True,
                "file": {
                    "id": "id1",
                    "filename": self.upload_filename,
                    "originalname": "a.jpg",
                    "size": 2048,
                    "mimetype": "image/jpeg",
                    "url": f"/uploads/{self.upload_filename}",
                    "uploadedAt": "2024-06-01T12:00:00+00:00",
                },
                "message": "File uploaded successfully",
            })
        if path.startswith("/api/files/") and request.method == "DELETE":
            if self.delete_status != 200:
                return httpx.Response(self.delete_status, content=json.dumps({"detail": "File not found"}))
            return httpx.Response(200, json={"success": True, "message": "File deleted"})
        return httpx.Response(404, json={"detail": "Not Found"})


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def server_settings(tmp_path):
    return ServerSettings(UPLOAD_DIR=tmp_path / "uploads")


@pytest.fixture
def app(server_settings):
    return create_app(server_settings)


@pytest.fixture
def client(app):
    """FastAPI test client."""
    return TestClient(app)


# ─────────────────────────────────────────────────────────────────────────────
# Sync client
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def store(tmp_path):
    return CountingStore(tmp_path / "store")


@pytest.fixture
async def live_service(app, store):
    """PhotoService talking to the real app in-process."""
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    service = PhotoService(store, PhotoApiClient(API_URL, client=http), clock=lambda: FIXED_NOW)
    yield service
    await http.aclose()


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
async def service(store, fake_server):
    """PhotoService talking to a FakeServer."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_server.handler))
    service = PhotoService(store, PhotoApiClient(API_URL, client=http), clock=lambda: FIXED_NOW)
    yield service
    await http.aclose()
