# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Archive Reader - Extract an uploaded archive and parse its manifest.

Extraction copies one entry at a time in fixed-size chunks. Problems with
individual entries (unsafe paths, entries outside the known layout,
unreadable data) are logged and skipped; only an unreadable container or a
missing/invalid manifest is fatal.
"""

import asyncio
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import List

import aiofiles
import structlog

from shopvault.exceptions import CorruptArchive
from shopvault.manifest import (
    IMAGES_DIR,
    MANIFEST_FILENAME,
    README_FILENAME,
    Manifest,
    manifest_from_json,
)
from shopvault.refs import AssetSlot

logger = structlog.get_logger()

CHUNK_SIZE = 64 * 1024

_ROOT_FILES = {MANIFEST_FILENAME, README_FILENAME}
_ASSET_FOLDERS = {slot.folder for slot in AssetSlot}


def _safe_relative_path(name: str) -> PurePosixPath | None:
    """Normalized entry path, or None if it is absolute or climbs out."""
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
        return None
    path = PurePosixPath(normalized)
    if any(part == ".." for part in path.parts):
        return None
    return path


def is_expected_entry(path: PurePosixPath) -> bool:
    """True for the manifest, the README, and files directly under images/<slot>/."""
    parts = path.parts
    if len(parts) == 1:
        return parts[0] in _ROOT_FILES
    return len(parts) == 3 and parts[0] == IMAGES_DIR and parts[1] in _ASSET_FOLDERS


def _extract_entries_sync(archive_path: Path, scratch_dir: Path) -> List[str]:
    skipped: List[str] = []
    resolved_root = scratch_dir.resolve()

    try:
        archive = zipfile.ZipFile(archive_path, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise CorruptArchive(
            f"Uploaded file is not a readable ZIP archive: {e}",
            details={"archive": archive_path.name},
        ) from e

    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue

            relative = _safe_relative_path(info.filename)
            if relative is None:
                logger.warning("archive_entry_unsafe", entry=info.filename)
                skipped.append(info.filename)
                continue

            if not is_expected_entry(relative):
                logger.info("archive_entry_ignored", entry=info.filename)
                skipped.append(info.filename)
                continue

            target = scratch_dir / relative.as_posix()
            try:
                target.resolve().relative_to(resolved_root)
            except ValueError:
                logger.warning("archive_entry_unsafe", entry=info.filename)
                skipped.append(info.filename)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            try:
                with archive.open(info, "r") as source, target.open("wb") as destination:
                    shutil.copyfileobj(source, destination, CHUNK_SIZE)
            except (zipfile.BadZipFile, zlib.error, OSError, EOFError, NotImplementedError) as e:
                target.unlink(missing_ok=True)
                logger.warning(
                    "archive_entry_unreadable",
                    entry=info.filename,
                    error=str(e),
                )
                skipped.append(info.filename)
                continue

            logger.debug("archive_entry_extracted", entry=info.filename, size=info.file_size)

    return skipped


async def extract_archive(archive_path: Path, scratch_dir: Path) -> List[str]:
    """
    Extract an archive into a scratch directory.

    Args:
        archive_path: Path to the uploaded ZIP file
        scratch_dir: Invocation-private directory to extract into

    Returns:
        Names of entries that were skipped

    Raises:
        CorruptArchive: If the file is not a readable ZIP container
    """
    loop = asyncio.get_running_loop()
    skipped = await loop.run_in_executor(
        None, _extract_entries_sync, archive_path, scratch_dir
    )

    logger.info(
        "archive_extracted",
        archive=archive_path.name,
        skipped=len(skipped),
    )
    return skipped


async def parse_manifest(scratch_dir: Path) -> Manifest:
    """
    Read and validate backup-data.json from an extracted archive.

    Raises:
        CorruptArchive: If the manifest is absent or malformed
    """
    manifest_path = scratch_dir / MANIFEST_FILENAME
    if not manifest_path.is_file():
        raise CorruptArchive(
            f"No {MANIFEST_FILENAME} found in backup archive",
            details={"scratch_dir": str(scratch_dir)},
        )

    async with aiofiles.open(manifest_path, "rb") as f:
        raw = await f.read()

    manifest = manifest_from_json(raw)

    logger.info(
        "manifest_parsed",
        version=manifest.metadata.version,
        backup_type=manifest.metadata.backup_type.value,
        shops=len(manifest.shops),
        logos=len(manifest.images.logos),
        maps=len(manifest.images.maps),
    )
    return manifest


def find_missing_assets(manifest: Manifest, scratch_dir: Path) -> List[str]:
    """
    Check every indexed asset path against the extracted files.

    Returns:
        One error string per index entry whose file is not present
    """
    errors: List[str] = []
    for slot in AssetSlot:
        for record_id, archive_path in manifest.images.for_slot(slot).items():
            relative = _safe_relative_path(archive_path)
            if relative is None or not (scratch_dir / relative.as_posix()).is_file():
                errors.append(
                    f"Missing {slot.suffix} image for shop {record_id}: {archive_path}"
                )
    return errors
