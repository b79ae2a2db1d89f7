# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Archive Builder - Stage assets and stream a ZIP archive.

Assets are written to an invocation-private staging directory as soon as
they are fetched, so image bytes never accumulate in memory. Sealing the
archive compresses the staged tree entry by entry onto an unseekable sink
and yields the compressed bytes as they are produced.

Archive layout:
    README.md
    backup-data.json
    images/logos/<id>-logo.<ext>
    images/maps/<id>-map.<ext>
"""

import asyncio
import concurrent.futures
import io
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import AsyncIterator, Iterator, List

import aiofiles
import structlog
from ulid import ULID

from shopvault.archive.scratch import create_scratch_dir, remove_tree_sync
from shopvault.manifest import (
    IMAGES_DIR,
    MANIFEST_FILENAME,
    README_FILENAME,
    Manifest,
    asset_archive_path,
    render_readme,
)
from shopvault.refs import AssetSlot

logger = structlog.get_logger()

# Thread pool for CPU-bound compression
_executor = ThreadPoolExecutor(max_workers=4)

CHUNK_SIZE = 64 * 1024

ARCHIVE_DIRECTORIES = (
    f"{IMAGES_DIR}/",
    f"{IMAGES_DIR}/{AssetSlot.PRIMARY.folder}/",
    f"{IMAGES_DIR}/{AssetSlot.SECONDARY.folder}/",
)


def create_staging_dir(scratch_root: Path) -> Path:
    """Create a private staging directory with the archive's image folders."""
    staging_dir = create_scratch_dir(scratch_root, "backup")
    for slot in AssetSlot:
        (staging_dir / IMAGES_DIR / slot.folder).mkdir(parents=True)
    return staging_dir


async def stage_asset(
    staging_dir: Path,
    slot: AssetSlot,
    record_id: str,
    data: bytes,
    extension: str,
) -> str:
    """
    Write one fetched asset into the staging directory.

    The file is written atomically (write to temp, then rename) so a
    partially written asset is never sealed into the archive.

    Returns:
        The archive-relative path, exactly as it must appear in the manifest
    """
    archive_path = asset_archive_path(slot, record_id, extension)
    target = staging_dir / archive_path
    temp_path = target.with_name(f"{target.name}.{ULID()}.tmp")

    try:
        async with aiofiles.open(temp_path, "wb") as f:
            await f.write(data)
        temp_path.rename(target)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise

    logger.debug("asset_staged", archive_path=archive_path, size=len(data))
    return archive_path


class _ChunkSink(io.RawIOBase):
    """Write-only, unseekable sink that buffers bytes until drained."""

    def __init__(self) -> None:
        super().__init__()
        self._chunks: List[bytes] = []
        self._position = 0

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        self._chunks.append(data)
        self._position += len(data)
        return len(data)

    def tell(self) -> int:
        return self._position

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _directory_entry(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name)
    info.external_attr = (0o40755 << 16) | 0x10
    return info


def indexed_entries(staging_dir: Path, manifest: Manifest) -> List[str]:
    """Archive paths from the manifest index that exist in the staging dir."""
    entries: List[str] = []
    for slot in AssetSlot:
        for record_id, archive_path in sorted(manifest.images.for_slot(slot).items()):
            if (staging_dir / archive_path).is_file():
                entries.append(archive_path)
            else:
                logger.warning(
                    "staged_asset_missing",
                    record_id=record_id,
                    archive_path=archive_path,
                )
    return entries


def _iter_archive_chunks(
    staging_dir: Path,
    manifest: Manifest,
    entries: List[str],
    compression_level: int,
) -> Iterator[bytes]:
    """Synchronously build the archive, yielding compressed bytes as they appear."""
    sink = _ChunkSink()

    with zipfile.ZipFile(
        sink,
        "w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=compression_level,
    ) as zf:
        zf.writestr(README_FILENAME, render_readme(manifest))
        zf.writestr(MANIFEST_FILENAME, manifest.to_json())
        for directory in ARCHIVE_DIRECTORIES:
            zf.writestr(_directory_entry(directory), b"")
        yield sink.drain()

        for archive_path in entries:
            source = staging_dir / archive_path
            force_zip64 = source.stat().st_size >= zipfile.ZIP64_LIMIT
            with source.open("rb") as src, zf.open(
                archive_path, "w", force_zip64=force_zip64
            ) as dest:
                while True:
                    block = src.read(CHUNK_SIZE)
                    if not block:
                        break
                    dest.write(block)
                    yield sink.drain()
            yield sink.drain()

    # Central directory
    yield sink.drain()


def _finish_stream(
    chunks: Iterator[bytes],
    pending: concurrent.futures.Future | None,
    staging_dir: Path,
) -> None:
    if pending is not None:
        concurrent.futures.wait([pending])
    chunks.close()
    remove_tree_sync(staging_dir)


async def stream_archive(
    staging_dir: Path,
    manifest: Manifest,
    compression_level: int = 9,
) -> AsyncIterator[bytes]:
    """
    Seal the staging directory into a ZIP archive, streamed.

    Only files referenced by the manifest's image index are included, so
    the index and the archive's entries always agree. The staging
    directory is removed when the stream finishes or is closed early.

    Args:
        staging_dir: Directory produced by create_staging_dir()
        manifest: Manifest to embed as backup-data.json
        compression_level: zlib level (9 = maximum)

    Yields:
        Compressed archive bytes, in order
    """
    entries = indexed_entries(staging_dir, manifest)
    chunks = _iter_archive_chunks(staging_dir, manifest, entries, compression_level)
    pending: concurrent.futures.Future | None = None
    total_bytes = 0
    completed = False

    try:
        while True:
            pending = _executor.submit(next, chunks, None)
            chunk = await asyncio.wrap_future(pending)
            pending = None
            if chunk is None:
                break
            if chunk:
                total_bytes += len(chunk)
                yield chunk
        completed = True
    finally:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _finish_stream, chunks, pending, staging_dir)
        if completed:
            logger.info(
                "archive_streamed",
                entries=len(entries),
                total_bytes=total_bytes,
            )
        else:
            logger.warning("archive_stream_aborted", bytes_sent=total_bytes)
