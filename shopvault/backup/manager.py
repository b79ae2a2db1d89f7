# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Backup Manager - Full backups, data-only backups and statistics.

A full backup loads every record, fetches both image slots per record
concurrently (bounded by max_concurrent_ops), stages each fetched image to
disk immediately and then streams the sealed archive. A failed fetch only
leaves the record out of the image index.
"""

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import AsyncIterator, List, Tuple

import structlog

from shopvault.archive.builder import create_staging_dir, stage_asset, stream_archive
from shopvault.archive.scratch import remove_tree
from shopvault.assets.fetcher import fetch_asset
from shopvault.config import VaultConfig
from shopvault.core import BackupStats, VaultState
from shopvault.exceptions import SinkFailure
from shopvault.manifest import AssetIndex, BackupKind, Manifest, create_manifest
from shopvault.refs import AssetSlot, record_ref

logger = structlog.get_logger()

# Rough per-item sizes used by get_backup_stats(), in MB
RECORD_WEIGHT_MB = 0.05
PRIMARY_WEIGHT_MB = 0.1
SECONDARY_WEIGHT_MB = 0.2


@dataclass
class PreparedBackup:
    """A staged full backup, ready to be streamed exactly once."""

    staging_dir: Path
    manifest: Manifest
    compression_level: int = 9

    @property
    def asset_count(self) -> int:
        return len(self.manifest.images.logos) + len(self.manifest.images.maps)


async def _fetch_and_stage(
    config: VaultConfig,
    state: VaultState,
    semaphore: asyncio.Semaphore,
    staging_dir: Path,
    record: dict,
    slot: AssetSlot,
) -> Tuple[AssetSlot, str, str] | None:
    record_id = str(record.get(config.record_id_field, ""))
    ref = record_ref(config, record, slot)
    if not record_id or ref is None or not ref.fetchable:
        return None

    async with semaphore:
        fetched = await fetch_asset(config, state, ref)
        if fetched is None:
            return None
        try:
            archive_path = await stage_asset(
                staging_dir, slot, record_id, fetched.data, fetched.extension
            )
        except OSError as e:
            logger.warning(
                "asset_stage_failed",
                record_id=record_id,
                slot=slot.value,
                error=str(e),
            )
            return None

    return (slot, record_id, archive_path)


async def prepare_full_backup(config: VaultConfig, state: VaultState) -> PreparedBackup:
    """
    Fetch and stage all assets and build the manifest.

    Everything that can fail before the first byte is sent happens here,
    so callers can still report an error instead of a truncated download.

    Raises:
        SinkFailure: If records cannot be listed or staging fails
    """
    staging_dir = None
    try:
        staging_dir = create_staging_dir(config.scratch_root)
        records = await state["record_store"].list_all()

        semaphore = asyncio.Semaphore(config.max_concurrent_ops)
        results = await asyncio.gather(
            *(
                _fetch_and_stage(config, state, semaphore, staging_dir, record, slot)
                for record in records
                for slot in AssetSlot
            )
        )
    except Exception as e:
        await remove_tree(staging_dir)
        state["last_error"] = str(e)
        logger.error("full_backup_prepare_failed", error=str(e))
        raise SinkFailure(f"Backup creation failed: {e}") from e

    images = AssetIndex()
    for result in results:
        if result is None:
            continue
        slot, record_id, archive_path = result
        images.for_slot(slot)[record_id] = archive_path

    manifest = create_manifest(records, BackupKind.FULL, images)

    logger.info(
        "full_backup_prepared",
        shops=len(records),
        logos=len(images.logos),
        maps=len(images.maps),
    )
    return PreparedBackup(staging_dir, manifest, config.compression_level)


async def stream_full_backup(
    state: VaultState,
    prepared: PreparedBackup,
) -> AsyncIterator[bytes]:
    """Stream a prepared backup as ZIP bytes. Removes the staging dir when done."""
    async with aclosing(
        stream_archive(prepared.staging_dir, prepared.manifest, prepared.compression_level)
    ) as chunks:
        async for chunk in chunks:
            yield chunk

    state["total_backups"] += 1
    state["last_backup_at"] = datetime.now(UTC)


async def full_backup(config: VaultConfig, state: VaultState) -> AsyncIterator[bytes]:
    """
    Produce a complete backup archive as an async byte stream.

    Example:
        async with aiofiles.open("backup.zip", "wb") as f:
            async for chunk in full_backup(config, state):
                await f.write(chunk)
    """
    prepared = await prepare_full_backup(config, state)
    async with aclosing(stream_full_backup(state, prepared)) as chunks:
        async for chunk in chunks:
            yield chunk


async def data_only_backup(config: VaultConfig, state: VaultState) -> bytes:
    """
    Serialize all records into a manifest without fetching any images.

    Returns:
        Manifest JSON with an empty image index and backupType "data-only"
    """
    records = await state["record_store"].list_all()
    manifest = create_manifest(records, BackupKind.DATA_ONLY)

    state["total_backups"] += 1
    state["last_backup_at"] = datetime.now(UTC)

    logger.info("data_backup_created", shops=len(records))
    return manifest.to_json()


def format_size(size_mb: float) -> str:
    """Render an estimate in MB above 1 MB, otherwise in KB."""
    if size_mb > 1:
        return f"{round(size_mb)}MB"
    return f"{round(size_mb * 1024)}KB"


def count_assets(config: VaultConfig, records: List[dict]) -> Tuple[int, int]:
    """Count records with a fetchable primary and secondary reference."""
    primary = secondary = 0
    for record in records:
        ref = record_ref(config, record, AssetSlot.PRIMARY)
        if ref is not None and ref.fetchable:
            primary += 1
        ref = record_ref(config, record, AssetSlot.SECONDARY)
        if ref is not None and ref.fetchable:
            secondary += 1
    return primary, secondary


async def get_backup_stats(config: VaultConfig, state: VaultState) -> BackupStats:
    """
    Estimate backup contents from stored records only.

    No images are fetched.
    """
    records = await state["record_store"].list_all()
    primary, secondary = count_assets(config, records)

    estimate_mb = (
        len(records) * RECORD_WEIGHT_MB
        + primary * PRIMARY_WEIGHT_MB
        + secondary * SECONDARY_WEIGHT_MB
    )

    return BackupStats(
        record_count=len(records),
        primary_asset_count=primary,
        secondary_asset_count=secondary,
        estimated_size=format_size(estimate_mb),
    )


def backup_filename(config: VaultConfig, kind: BackupKind, now: datetime | None = None) -> str:
    """
    Download filename embedding a timestamp.

    e.g. directory-backup-2026-01-31T12-00-00-000Z.zip
    """
    now = now or datetime.now(UTC)
    stamp = (
        now.astimezone(UTC)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
        .replace(":", "-")
        .replace(".", "-")
    )
    if kind is BackupKind.FULL:
        return f"{config.backup_name_prefix}-backup-{stamp}.zip"
    return f"{config.backup_name_prefix}-data-{stamp}.json"
