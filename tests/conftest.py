"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import asyncio
import os
from typing import Optional

import pytest

# Storage base URL; the HTTP client is lazy so nothing is contacted at import
os.environ.setdefault("WEBDAV__URL", "http://webdav.test/dav")

from application.ports.storage import DirectoryEntry, DownloadStream  # noqa: E402
from infrastructure.external.storage.exceptions import NotFoundError, StorageError  # noqa: E402


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeStorage:
    """In-memory StoragePort double with call counters and failure switches."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.listings: dict[str, list[DirectoryEntry]] = {}
        self.put_failures: set[bytes] = set()
        self.get_error: Optional[Exception] = None
        self.list_error: Optional[Exception] = None
        self.put_delay = 0.0
        self.healthy = True
        self.list_calls = 0
        self.get_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def put(self, name: str, data: bytes, content_type: Optional[str] = None) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.put_delay:
                await asyncio.sleep(self.put_delay)
            if data in self.put_failures:
                raise StorageError(f"WebDAV put {name} failed with status 507", 507)
            self.files[name] = data
        finally:
            self.in_flight -= 1

    async def get(self, name: str) -> DownloadStream:
        self.get_calls += 1
        if self.get_error is not None:
            raise self.get_error
        if name not in self.files:
            raise NotFoundError(f"WebDAV get {name} failed with status 404", 404)
        return DownloadStream.from_bytes(self.files[name], chunk_size=4)

    async def list(self, path: str = "") -> list[DirectoryEntry]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        if path not in self.listings:
            raise NotFoundError(f"WebDAV list {path} failed with status 404", 404)
        return list(self.listings[path])

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def make_client(storage):
    from fastapi.testclient import TestClient

    from core.config import Settings
    from main import create_app

    clients = []

    def _make(**overrides) -> TestClient:
        app = create_app(settings=Settings(**overrides), storage=storage)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
