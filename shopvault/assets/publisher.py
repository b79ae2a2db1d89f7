# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Asset Publisher - Re-upload extracted images to the object store.

Every file under images/logos/ and images/maps/ gets a fresh upload target
from the object store and is streamed to it. Each upload produces its own
PublishResult; the partial results are merged once all uploads finish.
"""

import asyncio
import mimetypes
from pathlib import Path
from typing import AsyncIterator, List, Tuple

import aiofiles
import httpx
import structlog

from shopvault.config import VaultConfig
from shopvault.core import PublishResult, VaultState
from shopvault.exceptions import UploadFailure
from shopvault.manifest import IMAGES_DIR
from shopvault.refs import AssetSlot

logger = structlog.get_logger()

CHUNK_SIZE = 64 * 1024


def get_mime_type(filename: str) -> str:
    """
    Get MIME type for a filename based on its extension.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"


def list_extracted_assets(scratch_dir: Path) -> List[Tuple[AssetSlot, str, Path]]:
    """
    Find extracted asset files.

    Returns:
        (slot, archive-relative path, absolute path) tuples, sorted by path
    """
    found: List[Tuple[AssetSlot, str, Path]] = []
    for slot in AssetSlot:
        folder = scratch_dir / IMAGES_DIR / slot.folder
        if not folder.is_dir():
            continue
        for path in sorted(folder.iterdir()):
            if path.is_file():
                found.append((slot, f"{IMAGES_DIR}/{slot.folder}/{path.name}", path))
    return found


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


async def upload_file(state: VaultState, slot: AssetSlot, path: Path) -> str:
    """
    Upload one file to a fresh target.

    Returns:
        The stable reference of the uploaded object

    Raises:
        UploadFailure: If the target cannot be obtained or the upload fails
    """
    target = await state["object_store"].request_upload_target(slot)

    headers = {
        "Content-Type": get_mime_type(path.name),
        "Content-Length": str(path.stat().st_size),
    }
    try:
        response = await state["http_client"].put(
            target.upload_url,
            content=_iter_file(path),
            headers=headers,
        )
    except httpx.HTTPError as e:
        raise UploadFailure(f"Upload request failed: {e}", details={"file": path.name})

    if not response.is_success:
        raise UploadFailure(
            f"Upload rejected with status {response.status_code}",
            details={"file": path.name},
        )

    return target.stable_ref


async def _publish_one(
    state: VaultState,
    semaphore: asyncio.Semaphore,
    slot: AssetSlot,
    archive_path: str,
    path: Path,
) -> PublishResult:
    result = PublishResult()
    async with semaphore:
        try:
            stable_ref = await upload_file(state, slot, path)
        except Exception as e:
            result.errors.append(f"Failed to upload {archive_path}: {e}")
            logger.warning("asset_upload_failed", archive_path=archive_path, error=str(e))
            return result

    result.mapping[archive_path] = stable_ref
    if slot is AssetSlot.PRIMARY:
        result.primary_uploaded += 1
    else:
        result.secondary_uploaded += 1

    logger.debug("asset_uploaded", archive_path=archive_path, stable_ref=stable_ref)
    return result


async def publish_assets(
    config: VaultConfig,
    state: VaultState,
    scratch_dir: Path,
) -> PublishResult:
    """
    Re-upload all extracted assets.

    A failed upload adds one error and does not stop the others.

    Args:
        config: ShopVault configuration
        state: Runtime state (object store and HTTP client)
        scratch_dir: Directory the archive was extracted into

    Returns:
        PublishResult mapping archive paths to new stable references
    """
    assets = list_extracted_assets(scratch_dir)
    semaphore = asyncio.Semaphore(config.max_concurrent_ops)

    partials = await asyncio.gather(
        *(
            _publish_one(state, semaphore, slot, archive_path, path)
            for slot, archive_path, path in assets
        )
    )

    result = PublishResult()
    for partial in partials:
        result.merge(partial)

    logger.info(
        "assets_published",
        found=len(assets),
        uploaded=result.uploaded,
        logos=result.primary_uploaded,
        maps=result.secondary_uploaded,
        failed=len(result.errors),
    )
    return result
