# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault FastAPI Integration - Admin backup endpoints.

This module provides:
- Full backup download (streamed ZIP)
- Data-only backup download (JSON)
- Backup statistics
- Restore from an uploaded archive
- Lifespan management (startup/shutdown)
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path

import aiofiles
import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from ulid import ULID

from shopvault.archive.scratch import remove_file
from shopvault.backup import (
    backup_filename,
    data_only_backup,
    get_backup_stats,
    prepare_full_backup,
    restore_archive,
    stream_full_backup,
)
from shopvault.config import VaultConfig
from shopvault.core import VaultState, get_status, initialize_state, shutdown_state
from shopvault.errors import explain_unsupported_upload_type, explain_upload_too_large
from shopvault.exceptions import SinkFailure, UploadRejected
from shopvault.manifest import BackupKind
from shopvault.stores.base import ObjectStore, RecordStore

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)

ZIP_CONTENT_TYPES = {
    "application/zip",
    "application/x-zip-compressed",
    "application/x-zip",
    "multipart/x-zip",
}

UPLOAD_CHUNK_SIZE = 1024 * 1024


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> bool:
    """
    Verify API key from Authorization header.

    The API key is read from the SHOPVAULT_ADMIN_API_KEY environment variable.
    Requests must include: Authorization: Bearer <api_key>

    Raises:
        HTTPException: If API key is missing or invalid
    """
    api_key = os.getenv("SHOPVAULT_ADMIN_API_KEY")

    if not api_key:
        raise HTTPException(
            status_code=500,
            detail="SHOPVAULT_ADMIN_API_KEY environment variable not set",
        )

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if credentials.credentials != api_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def check_upload(config: VaultConfig, content_type: str | None, size: int | None) -> None:
    """
    Reject uploads that are not ZIP archives or exceed the size ceiling.

    Raises:
        UploadRejected: With status 415 or 413
    """
    base_type = (content_type or "").split(";", 1)[0].strip().lower()
    if base_type not in ZIP_CONTENT_TYPES:
        raise UploadRejected(explain_unsupported_upload_type(content_type), status_code=415)

    if size is not None and size > config.max_upload_bytes:
        raise UploadRejected(
            explain_upload_too_large(size, config.max_upload_bytes),
            status_code=413,
        )


def check_declared_length(config: VaultConfig, content_length: str | None) -> None:
    """
    Reject a request whose declared body size exceeds the size ceiling.

    Raises:
        UploadRejected: With status 413
    """
    if content_length and content_length.isdigit():
        declared = int(content_length)
        if declared > config.max_upload_bytes:
            raise UploadRejected(
                explain_upload_too_large(declared, config.max_upload_bytes),
                status_code=413,
            )


async def spool_upload(config: VaultConfig, upload: UploadFile) -> Path:
    """
    Copy an uploaded archive into the scratch root in chunks.

    Raises:
        UploadRejected: If the body turns out to exceed the size ceiling
    """
    config.scratch_root.mkdir(parents=True, exist_ok=True)
    target = config.scratch_root / f"upload-{ULID()}.zip"
    written = 0

    try:
        async with aiofiles.open(target, "wb") as f:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > config.max_upload_bytes:
                    raise UploadRejected(
                        explain_upload_too_large(written, config.max_upload_bytes),
                        status_code=413,
                    )
                await f.write(chunk)
    except BaseException:
        await remove_file(target)
        raise

    return target


def register_backup_routes(
    app: FastAPI,
    config: VaultConfig,
    state: VaultState,
    prefix: str = "/api/admin/backup",
) -> None:
    """
    Register backup admin endpoints on a FastAPI app.

    All endpoints require Bearer token authentication.

    Args:
        app: FastAPI application
        config: ShopVault configuration
        state: Runtime state
        prefix: URL prefix for endpoints (default: /api/admin/backup)
    """

    @app.get(f"{prefix}/full", dependencies=[Depends(verify_api_key)])
    async def download_full_backup() -> StreamingResponse:
        """
        Download a complete backup (records and images) as a ZIP archive.
        """
        try:
            prepared = await prepare_full_backup(config, state)
        except SinkFailure as e:
            raise HTTPException(status_code=500, detail=e.message)

        logger.info("full_backup_download_started", assets=prepared.asset_count)
        return StreamingResponse(
            stream_full_backup(state, prepared),
            media_type="application/zip",
            headers=_attachment(backup_filename(config, BackupKind.FULL)),
        )

    @app.get(f"{prefix}/data", dependencies=[Depends(verify_api_key)])
    async def download_data_backup() -> Response:
        """
        Download records only, as the manifest JSON.
        """
        try:
            payload = await data_only_backup(config, state)
        except Exception as e:
            logger.error("data_backup_failed", error=str(e))
            raise HTTPException(status_code=500, detail=f"Data backup creation failed: {e}")

        return Response(
            content=payload,
            media_type="application/json",
            headers=_attachment(backup_filename(config, BackupKind.DATA_ONLY)),
        )

    @app.get(f"{prefix}/stats", dependencies=[Depends(verify_api_key)])
    async def backup_statistics() -> dict:
        """
        Estimate what a full backup would contain without fetching images.
        """
        stats = await get_backup_stats(config, state)
        return asdict(stats)

    @app.get(f"{prefix}/status", dependencies=[Depends(verify_api_key)])
    async def backup_status() -> dict:
        """
        Backup and restore activity since startup.
        """
        return get_status(state)

    @app.post(f"{prefix}/restore", dependencies=[Depends(verify_api_key)])
    async def restore_backup(request: Request) -> JSONResponse:
        """
        Restore shops and images from an uploaded full backup archive.

        The declared Content-Length is checked before the multipart body is
        read, so an oversized upload is refused without being received.
        Uploads without a usable Content-Length are still capped while the
        file is spooled.
        """
        try:
            check_declared_length(config, request.headers.get("content-length"))
        except UploadRejected as e:
            logger.warning("restore_upload_rejected", reason=e.message)
            raise HTTPException(status_code=e.status_code, detail=e.message)

        async with request.form(max_files=1) as form:
            upload = form.get("file")
            if upload is None or isinstance(upload, str):
                raise HTTPException(status_code=400, detail="Missing archive file field 'file'")

            try:
                check_upload(config, upload.content_type, upload.size)
                archive_path = await spool_upload(config, upload)
            except UploadRejected as e:
                logger.warning("restore_upload_rejected", reason=e.message)
                raise HTTPException(status_code=e.status_code, detail=e.message)

        result = await restore_archive(config, state, archive_path)
        return JSONResponse(
            status_code=200 if result.success else 400,
            content=asdict(result),
        )


@asynccontextmanager
async def backup_lifespan(
    app: FastAPI,
    config: VaultConfig,
    record_store: RecordStore,
    object_store: ObjectStore,
    prefix: str = "/api/admin/backup",
):
    """
    Lifespan context manager for FastAPI.

    Use it as:

        app = FastAPI(lifespan=lambda app: backup_lifespan(app, config, records, objects))

    Args:
        app: FastAPI application
        config: ShopVault configuration
        record_store: Record store collaborator
        object_store: Object store collaborator
        prefix: URL prefix for admin endpoints
    """
    logger.info("shopvault_lifespan_starting", bucket=config.bucket)

    state = initialize_state(config, record_store, object_store)
    app.state.shopvault_state = state
    app.state.shopvault_config = config

    register_backup_routes(app, config, state, prefix)

    logger.info("shopvault_lifespan_started")

    try:
        yield
    finally:
        logger.info("shopvault_lifespan_stopping")
        await shutdown_state(state)
        logger.info("shopvault_lifespan_stopped")


def get_vault_state(app: FastAPI) -> VaultState:
    """
    Get ShopVault state from a FastAPI app.

    Raises:
        RuntimeError: If ShopVault not initialized
    """
    state = getattr(app.state, "shopvault_state", None)
    if not state:
        raise RuntimeError("ShopVault not initialized. Use backup_lifespan first.")
    return state
