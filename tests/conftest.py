# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for ShopVault tests.

Provides in-memory record/object stores, a mock HTTP layer for external
images and presigned uploads, and test configuration helpers.
"""

import io
import json
import os
import tempfile
import zipfile
from pathlib import Path
from typing import AsyncIterator, Dict, Generator, List, Set, Tuple

import httpx
import pytest
import pytest_asyncio
from ulid import ULID

from shopvault.exceptions import InsertFailure, ObjectNotFoundError
from shopvault.refs import AssetSlot
from shopvault.stores.base import StoredObject, UploadTarget

# Set test environment variables
os.environ["SHOPVAULT_ADMIN_API_KEY"] = "test-api-key-12345"

UPLOAD_HOST = "https://uploads.test"


class InMemoryRecordStore:
    """RecordStore keeping records in a list."""

    def __init__(self, records: List[dict] | None = None, fail_names: Set[str] | None = None):
        self.records: List[dict] = [dict(r) for r in records or []]
        self.fail_names = fail_names or set()
        self.list_calls = 0

    async def insert(self, record: dict) -> dict:
        if record.get("name") in self.fail_names:
            raise InsertFailure(f"validation failed for {record.get('name')}")
        stored = dict(record)
        stored["id"] = str(ULID())
        self.records.append(stored)
        return stored

    async def list_all(self) -> List[dict]:
        self.list_calls += 1
        return [dict(r) for r in self.records]


class FakeObjectStore:
    """ObjectStore with in-memory objects and deterministic upload targets."""

    def __init__(self, objects: Dict[str, StoredObject] | None = None):
        self.objects = objects or {}
        self.reads: List[str] = []
        self.targets: Dict[str, str] = {}  # upload_url -> stable_ref

    async def request_upload_target(self, slot: AssetSlot) -> UploadTarget:
        object_id = str(ULID())
        url = f"{UPLOAD_HOST}/{slot.suffix}/{object_id}"
        stable_ref = f"/objects/shops/{slot.suffix}/{object_id}"
        self.targets[url] = stable_ref
        return UploadTarget(upload_url=url, stable_ref=stable_ref)

    async def read_object(self, ref: str) -> StoredObject:
        self.reads.append(ref)
        if ref not in self.objects:
            raise ObjectNotFoundError(f"Object not found: {ref}")
        return self.objects[ref]

    def url_for(self, stable_ref: str) -> str:
        return next(url for url, ref in self.targets.items() if ref == stable_ref)


class FakeWeb:
    """Handler for httpx.MockTransport serving external images and accepting uploads."""

    def __init__(self):
        self.external: Dict[str, Tuple[bytes, str]] = {}
        self.uploads: Dict[str, bytes] = {}
        self.upload_headers: Dict[str, httpx.Headers] = {}
        self.fail_upload_bodies: Set[bytes] = set()
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if request.method == "GET":
            if url in self.external:
                body, content_type = self.external[url]
                return httpx.Response(200, content=body, headers={"content-type": content_type})
            return httpx.Response(404)

        if request.method == "PUT" and url.startswith(UPLOAD_HOST):
            body = request.content
            if body in self.fail_upload_bodies:
                return httpx.Response(500)
            self.uploads[url] = body
            self.upload_headers[url] = request.headers
            return httpx.Response(200)

        return httpx.Response(405)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path):
    """Create a test configuration."""
    from shopvault.config import VaultConfig

    static_dir = temp_dir / "public"
    static_dir.mkdir()

    return VaultConfig(
        bucket="test-bucket",
        region="us-east-1",
        static_assets_dir=static_dir,
        scratch_root=temp_dir / "scratch",
        max_concurrent_ops=4,
    )


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest_asyncio.fixture
async def http_client(web: FakeWeb) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(web)) as client:
        yield client


@pytest.fixture
def make_state(test_config, object_store, http_client):
    """Build a VaultState around a given record store."""
    from shopvault.core import initialize_state

    def _make(records: InMemoryRecordStore):
        return initialize_state(test_config, records, object_store, http_client=http_client)

    return _make


async def collect_stream(stream) -> bytes:
    """Drain an async byte stream."""
    buffer = io.BytesIO()
    async for chunk in stream:
        buffer.write(chunk)
    return buffer.getvalue()


def open_zip(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


def read_manifest(data: bytes) -> dict:
    with open_zip(data) as zf:
        return json.loads(zf.read("backup-data.json"))


def write_zip(path: Path, entries: Dict[str, bytes]) -> Path:
    """Write a ZIP file with the given entries."""
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path
