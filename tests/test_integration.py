# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Integration tests for ShopVault.

Tests the FastAPI admin endpoints, the bundled record and object stores,
and configuration loading.
"""

from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from conftest import InMemoryRecordStore, collect_stream, read_manifest
from shopvault.backup import full_backup
from shopvault.exceptions import ConfigurationError, InsertFailure, ObjectNotFoundError
from shopvault.refs import AssetSlot
from shopvault.stores.base import StoredObject

AUTH = {"Authorization": "Bearer test-api-key-12345"}
PREFIX = "/api/admin/backup"


class BrokenRecordStore(InMemoryRecordStore):
    async def list_all(self):
        raise RuntimeError("database unavailable")


def build_app(config, state):
    from fastapi import FastAPI
    from shopvault.integrations.fastapi import register_backup_routes

    app = FastAPI()
    register_backup_routes(app, config, state)
    return app


def api_client(app):
    from httpx import ASGITransport, AsyncClient

    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ============================================================================
# FastAPI endpoints
# ============================================================================

@pytest.mark.asyncio
async def test_fastapi_unauthorized_access(test_config, make_state):
    """Test that endpoints require authentication."""
    app = build_app(test_config, make_state(InMemoryRecordStore()))

    async with api_client(app) as client:
        response = await client.get(f"{PREFIX}/stats")
        assert response.status_code == 401

        response = await client.get(
            f"{PREFIX}/stats",
            headers={"Authorization": "Bearer wrong-key"},
        )
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_fastapi_missing_api_key_env(test_config, make_state, monkeypatch):
    monkeypatch.delenv("SHOPVAULT_ADMIN_API_KEY")
    app = build_app(test_config, make_state(InMemoryRecordStore()))

    async with api_client(app) as client:
        response = await client.get(f"{PREFIX}/stats", headers=AUTH)

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_fastapi_data_backup_endpoint(test_config, make_state):
    app = build_app(
        test_config,
        make_state(InMemoryRecordStore([{"id": "1", "name": "Uno", "logo": "fas fa-store"}])),
    )

    async with api_client(app) as client:
        response = await client.get(f"{PREFIX}/data", headers=AUTH)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="directory-data-')
    assert disposition.endswith('.json"')

    payload = response.json()
    assert payload["metadata"]["backupType"] == "data-only"
    assert payload["shops"][0]["name"] == "Uno"


@pytest.mark.asyncio
async def test_fastapi_full_backup_endpoint(test_config, make_state, object_store):
    object_store.objects["/objects/shops/logo/1"] = StoredObject(b"png", "image/png")
    state = make_state(
        InMemoryRecordStore([{"id": "1", "name": "Uno", "logo": "/objects/shops/logo/1"}])
    )
    app = build_app(test_config, state)

    async with api_client(app) as client:
        response = await client.get(f"{PREFIX}/full", headers=AUTH)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert 'filename="directory-backup-' in response.headers["content-disposition"]

    manifest = read_manifest(response.content)
    assert manifest["images"]["logos"] == {"1": "images/logos/1-logo.png"}
    assert state["total_backups"] == 1
    assert list(test_config.scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fastapi_full_backup_store_failure(test_config, make_state):
    """A backup that cannot be produced is reported as a server error."""
    state = make_state(BrokenRecordStore())
    app = build_app(test_config, state)

    async with api_client(app) as client:
        response = await client.get(f"{PREFIX}/full", headers=AUTH)

    assert response.status_code == 500
    assert "Backup creation failed" in response.json()["detail"]
    assert state["last_error"] == "database unavailable"
    assert list(test_config.scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fastapi_stats_and_status_endpoints(test_config, make_state):
    app = build_app(
        test_config,
        make_state(
            InMemoryRecordStore(
                [
                    {"id": "1", "logo": "/objects/a", "mapImageUrl": "https://cdn.test/m.png"},
                    {"id": "2", "logo": "fas fa-store"},
                ]
            )
        ),
    )

    async with api_client(app) as client:
        stats = await client.get(f"{PREFIX}/stats", headers=AUTH)
        await client.get(f"{PREFIX}/data", headers=AUTH)
        status = await client.get(f"{PREFIX}/status", headers=AUTH)

    assert stats.status_code == 200
    assert stats.json() == {
        "record_count": 2,
        "primary_asset_count": 1,
        "secondary_asset_count": 1,
        "estimated_size": "410KB",
    }

    assert status.status_code == 200
    body = status.json()
    assert body["total_backups"] == 1
    assert body["total_restores"] == 0
    assert body["last_backup_at"] is not None


@pytest.mark.asyncio
async def test_fastapi_restore_round_trip(test_config, make_state, object_store):
    object_store.objects["/objects/shops/logo/1"] = StoredObject(b"png", "image/png")
    source = make_state(
        InMemoryRecordStore([{"id": "1", "name": "Uno", "logo": "/objects/shops/logo/1"}])
    )
    archive = await collect_stream(full_backup(test_config, source))

    target = InMemoryRecordStore()
    app = build_app(test_config, make_state(target))

    async with api_client(app) as client:
        response = await client.post(
            f"{PREFIX}/restore",
            headers=AUTH,
            files={"file": ("backup.zip", archive, "application/zip")},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["outcome"]["records_restored"] == 1
    assert body["outcome"]["primary_assets_restored"] == 1
    assert body["outcome"]["errors"] == []
    assert target.records[0]["logo"] != "/objects/shops/logo/1"
    assert list(test_config.scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fastapi_restore_corrupt_archive(test_config, make_state):
    app = build_app(test_config, make_state(InMemoryRecordStore()))

    async with api_client(app) as client:
        response = await client.post(
            f"{PREFIX}/restore",
            headers=AUTH,
            files={"file": ("backup.zip", b"garbage", "application/zip")},
        )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["outcome"]["errors"][0].startswith("Corrupt backup archive")
    assert list(test_config.scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fastapi_restore_rejects_non_zip(test_config, make_state):
    app = build_app(test_config, make_state(InMemoryRecordStore()))

    async with api_client(app) as client:
        response = await client.post(
            f"{PREFIX}/restore",
            headers=AUTH,
            files={"file": ("backup.txt", b"hello", "text/plain")},
        )

    assert response.status_code == 415
    assert list(test_config.scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fastapi_restore_rejects_oversized_upload(test_config, make_state):
    config = test_config.with_updates(max_upload_bytes=64)
    app = build_app(config, make_state(InMemoryRecordStore()))

    async with api_client(app) as client:
        response = await client.post(
            f"{PREFIX}/restore",
            headers=AUTH,
            files={"file": ("backup.zip", b"x" * 1024, "application/zip")},
        )

    assert response.status_code == 413
    assert "too large" in response.json()["detail"]
    assert list(config.scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fastapi_restore_rejects_declared_size_before_reading_body(
    test_config, make_state
):
    """
    An oversized Content-Length is refused before the multipart body is
    parsed: the body here is not valid multipart and is never looked at.
    """
    config = test_config.with_updates(max_upload_bytes=64)
    app = build_app(config, make_state(InMemoryRecordStore()))

    async with api_client(app) as client:
        response = await client.post(
            f"{PREFIX}/restore",
            headers={**AUTH, "Content-Type": "multipart/form-data; boundary=unused"},
            content=b"x" * 1024,
        )

    assert response.status_code == 413
    assert "1024 bytes" in response.json()["detail"]
    assert list(config.scratch_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fastapi_restore_requires_file_field(test_config, make_state):
    app = build_app(test_config, make_state(InMemoryRecordStore()))

    async with api_client(app) as client:
        response = await client.post(
            f"{PREFIX}/restore",
            headers=AUTH,
            data={"note": "no archive attached"},
        )

    assert response.status_code == 400
    assert "file" in response.json()["detail"]


def test_check_declared_length():
    from shopvault.config import VaultConfig
    from shopvault.exceptions import UploadRejected
    from shopvault.integrations.fastapi import check_declared_length

    config = VaultConfig(bucket="test-bucket", max_upload_bytes=100)

    check_declared_length(config, None)
    check_declared_length(config, "100")
    check_declared_length(config, "not-a-number")

    with pytest.raises(UploadRejected) as exc_info:
        check_declared_length(config, "101")
    assert exc_info.value.status_code == 413


@pytest.mark.asyncio
async def test_backup_lifespan(test_config, record_store, object_store):
    """Lifespan registers the routes and closes the HTTP client it created."""
    from fastapi import FastAPI
    from shopvault.integrations.fastapi import backup_lifespan, get_vault_state

    app = FastAPI()
    with pytest.raises(RuntimeError):
        get_vault_state(app)

    async with backup_lifespan(app, test_config, record_store, object_store):
        state = get_vault_state(app)
        assert state["owns_http_client"] is True
        paths = {route.path for route in app.routes}
        assert f"{PREFIX}/full" in paths
        assert f"{PREFIX}/restore" in paths

    assert state["http_client"].is_closed


def test_check_upload():
    from shopvault.config import VaultConfig
    from shopvault.exceptions import UploadRejected
    from shopvault.integrations.fastapi import check_upload

    config = VaultConfig(bucket="test-bucket", max_upload_bytes=100)

    check_upload(config, "application/zip", 100)
    check_upload(config, "application/x-zip-compressed; charset=binary", None)

    with pytest.raises(UploadRejected) as exc_info:
        check_upload(config, "image/png", 10)
    assert exc_info.value.status_code == 415

    with pytest.raises(UploadRejected) as exc_info:
        check_upload(config, "application/zip", 101)
    assert exc_info.value.status_code == 413


# ============================================================================
# SQLite record store
# ============================================================================

@pytest.mark.asyncio
async def test_sqlite_record_store_assigns_new_ids(temp_dir: Path):
    from shopvault.stores import SQLiteRecordStore, init_record_db

    db_path = temp_dir / "shops.db"
    await init_record_db(db_path)
    await init_record_db(db_path)  # idempotent
    store = SQLiteRecordStore(db_path)

    first = await store.insert({"id": "old-id", "name": "Uno", "categories": ["a"]})
    second = await store.insert({"name": "Dos"})

    assert first["id"] != "old-id"
    assert first["id"] != second["id"]

    records = await store.list_all()
    assert [r["name"] for r in records] == ["Uno", "Dos"]
    assert records[0]["categories"] == ["a"]
    assert await store.count() == 2


@pytest.mark.asyncio
async def test_sqlite_record_store_rejects_unserializable(temp_dir: Path):
    from shopvault.stores import SQLiteRecordStore, init_record_db

    db_path = temp_dir / "shops.db"
    await init_record_db(db_path)
    store = SQLiteRecordStore(db_path)

    with pytest.raises(InsertFailure):
        await store.insert({"name": "Bad", "tags": {1, 2}})

    assert await store.count() == 0


# ============================================================================
# S3 object store
# ============================================================================

class FakeBody:
    def __init__(self, data: bytes):
        self.data = data

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def read(self) -> bytes:
        return self.data


class FakeS3Client:
    def __init__(self, objects: dict):
        self.objects = objects
        self.presigned: list = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.presigned.append((operation, Params, ExpiresIn))
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    async def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The key does not exist"}},
                "GetObject",
            )
        body, content_type = self.objects[Key]
        return {"Body": FakeBody(body), "ContentType": content_type}


class FakeSession:
    def __init__(self, client: FakeS3Client):
        self.client = client
        self.created: list = []

    def create_client(self, service, region_name=None, endpoint_url=None):
        self.created.append((service, region_name, endpoint_url))
        return self.client


@pytest.mark.asyncio
async def test_s3_object_store_upload_target(test_config):
    from shopvault.stores import S3ObjectStore

    config = test_config.with_updates(object_prefix="private/")
    client = FakeS3Client({})
    store = S3ObjectStore(config, session=FakeSession(client))

    target = await store.request_upload_target(AssetSlot.SECONDARY)

    operation, params, expires = client.presigned[0]
    assert operation == "put_object"
    assert params["Bucket"] == "test-bucket"
    assert params["Key"].startswith("private/shops/map/")
    assert expires == 900
    assert target.stable_ref == "/objects/" + params["Key"][len("private/"):]
    assert target.upload_url.startswith("https://s3.test/test-bucket/private/shops/map/")
    assert store.key_for_ref(target.stable_ref) == params["Key"]


@pytest.mark.asyncio
async def test_s3_object_store_read_object(test_config):
    from shopvault.stores import S3ObjectStore

    client = FakeS3Client({"shops/logo/abc": (b"png-bytes", "image/png")})
    session = FakeSession(client)
    store = S3ObjectStore(test_config, session=session)

    stored = await store.read_object("/objects/shops/logo/abc")

    assert stored.body == b"png-bytes"
    assert stored.content_type == "image/png"
    assert session.created[0] == ("s3", "us-east-1", None)

    with pytest.raises(ObjectNotFoundError):
        await store.read_object("/objects/shops/logo/missing")


def test_s3_object_store_rejects_foreign_refs(test_config):
    from shopvault.stores import S3ObjectStore

    store = S3ObjectStore(test_config, session=FakeSession(FakeS3Client({})))

    with pytest.raises(ObjectNotFoundError):
        store.key_for_ref("/images/a.png")
    with pytest.raises(ObjectNotFoundError):
        store.key_for_ref("/objects/../secret")


# ============================================================================
# Configuration
# ============================================================================

def test_config_validation():
    """Test configuration validation."""
    from shopvault.config import VaultConfig

    with pytest.raises(ConfigurationError):
        VaultConfig(bucket="AB")

    with pytest.raises(ConfigurationError) as exc_info:
        VaultConfig(bucket="test-bucket", max_concurrent_ops=0, compression_level=11)
    assert len(exc_info.value.details["errors"]) == 2

    with pytest.raises(ConfigurationError):
        VaultConfig(bucket="test-bucket", primary_field="logo", secondary_field="logo")

    with pytest.raises(ConfigurationError):
        VaultConfig(bucket="test-bucket", stored_ref_prefix="objects/")


def test_config_with_updates_is_a_new_instance():
    from shopvault.config import create_config

    config = create_config("test-bucket", static_assets_dir="./client/public")
    updated = config.with_updates(max_concurrent_ops=3)

    assert config.static_assets_dir == Path("./client/public")
    assert config.max_concurrent_ops == 10
    assert updated.max_concurrent_ops == 3
    assert updated.bucket == "test-bucket"


def test_config_from_env(monkeypatch, temp_dir: Path):
    from shopvault.env import create_config_from_env

    monkeypatch.setenv("S3_BUCKET", "shop-images")
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("SHOPVAULT_STATIC_DIR", str(temp_dir / "public"))
    monkeypatch.setenv("SHOPVAULT_MAX_UPLOAD_MB", "5")
    monkeypatch.setenv("SHOPVAULT_MAX_CONCURRENCY", "3")
    monkeypatch.delenv("S3_ENDPOINT_URL", raising=False)

    config = create_config_from_env()

    assert config.bucket == "shop-images"
    assert config.region == "eu-west-1"
    assert config.endpoint_url is None
    assert config.static_assets_dir == temp_dir / "public"
    assert config.max_upload_bytes == 5 * 1024 * 1024
    assert config.max_concurrent_ops == 3


def test_config_from_env_errors(monkeypatch):
    from shopvault.env import create_config_from_env

    monkeypatch.delenv("S3_BUCKET", raising=False)
    with pytest.raises(ConfigurationError, match="S3_BUCKET"):
        create_config_from_env()

    monkeypatch.setenv("S3_BUCKET", "shop-images")
    monkeypatch.setenv("SHOPVAULT_MAX_UPLOAD_MB", "lots")
    with pytest.raises(ConfigurationError, match="SHOPVAULT_MAX_UPLOAD_MB"):
        create_config_from_env()

    monkeypatch.setenv("SHOPVAULT_MAX_UPLOAD_MB", "10")
    monkeypatch.setenv("SHOPVAULT_MAX_CONCURRENCY", "0")
    with pytest.raises(ConfigurationError, match="SHOPVAULT_MAX_CONCURRENCY"):
        create_config_from_env()
