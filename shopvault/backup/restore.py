# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Restore Manager - Rebuild records and images from an archive.

A restore extracts the uploaded archive into a private scratch directory,
re-uploads every image, points each record at its new image reference and
inserts it as a new record. Only an unreadable archive or manifest fails
the run; upload and insert failures are collected and the run continues.
The scratch directory and the uploaded file are always removed.
"""

import copy
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List

import structlog
from ulid import ULID

from shopvault.archive.reader import extract_archive, find_missing_assets, parse_manifest
from shopvault.archive.scratch import create_scratch_dir, remove_file, remove_tree
from shopvault.assets.publisher import publish_assets
from shopvault.config import VaultConfig
from shopvault.core import RestoreOutcome, RestoreResult, VaultState
from shopvault.exceptions import CorruptArchive
from shopvault.manifest import Manifest
from shopvault.refs import AssetSlot, slot_field

logger = structlog.get_logger()


def rewrite_asset_refs(
    config: VaultConfig,
    manifest: Manifest,
    mapping: Dict[str, str],
) -> List[Dict[str, Any]]:
    """
    Point records at their re-uploaded images.

    Records whose image was not re-uploaded keep their original reference.

    Returns:
        Rewritten copies of the manifest's records (the manifest is untouched)
    """
    rewritten: List[Dict[str, Any]] = []
    for record in manifest.shops:
        updated = copy.deepcopy(record)
        record_id = str(record.get(config.record_id_field, ""))
        for slot in AssetSlot:
            archive_path = manifest.images.for_slot(slot).get(record_id)
            if archive_path and archive_path in mapping:
                updated[slot_field(config, slot)] = mapping[archive_path]
        rewritten.append(updated)
    return rewritten


def _record_label(config: VaultConfig, record: Dict[str, Any]) -> str:
    return str(
        record.get(config.record_label_field)
        or record.get(config.record_id_field)
        or "<unnamed>"
    )


async def restore_records(
    config: VaultConfig,
    state: VaultState,
    records: List[Dict[str, Any]],
) -> RestoreOutcome:
    """
    Insert records as new entities.

    The original id is stripped; the record store assigns a new one.
    A failed insert adds one error and does not stop the loop.
    """
    outcome = RestoreOutcome()

    for record in records:
        payload = {k: v for k, v in record.items() if k != config.record_id_field}
        try:
            await state["record_store"].insert(payload)
            outcome.records_restored += 1
        except Exception as e:
            label = _record_label(config, record)
            outcome.errors.append(f"Failed to restore shop {label}: {e}")
            logger.error("record_restore_failed", shop=label, error=str(e))

    return outcome


async def restore_manifest(
    config: VaultConfig,
    state: VaultState,
    manifest: Manifest,
    scratch_dir: Path,
) -> RestoreOutcome:
    """Publish the extracted images, then rewrite and insert every record."""
    outcome = RestoreOutcome(errors=find_missing_assets(manifest, scratch_dir))

    published = await publish_assets(config, state, scratch_dir)
    outcome.merge(
        RestoreOutcome(
            primary_assets_restored=published.primary_uploaded,
            secondary_assets_restored=published.secondary_uploaded,
            errors=published.errors,
        )
    )

    records = rewrite_asset_refs(config, manifest, published.mapping)
    outcome.merge(await restore_records(config, state, records))
    return outcome


async def restore_archive(
    config: VaultConfig,
    state: VaultState,
    archive_path: Path,
) -> RestoreResult:
    """
    Restore shops and images from an uploaded backup archive.

    This is the main entry point for restores. The uploaded file at
    archive_path is consumed: it is deleted when the run ends, whether
    it succeeded or not.

    Args:
        config: ShopVault configuration
        state: Runtime state
        archive_path: Path to the uploaded ZIP file

    Returns:
        RestoreResult; success is False only for unreadable archives
    """
    start_time = datetime.now(UTC)
    restore_id = str(ULID())
    scratch_dir = None

    logger.info("restore_started", restore_id=restore_id, archive=archive_path.name)

    try:
        scratch_dir = create_scratch_dir(config.scratch_root, "restore")
        await extract_archive(archive_path, scratch_dir)
        manifest = await parse_manifest(scratch_dir)
        outcome = await restore_manifest(config, state, manifest, scratch_dir)
        success = True
    except CorruptArchive as e:
        outcome = RestoreOutcome(errors=[f"Corrupt backup archive: {e.message}"])
        success = False
        state["last_error"] = e.message
        logger.error("restore_failed", restore_id=restore_id, error=e.message)
    finally:
        await remove_tree(scratch_dir)
        await remove_file(archive_path)

    duration = (datetime.now(UTC) - start_time).total_seconds()

    if success:
        state["total_restores"] += 1
        state["last_restore_at"] = datetime.now(UTC)
        logger.info(
            "restore_completed",
            restore_id=restore_id,
            shops=outcome.records_restored,
            logos=outcome.primary_assets_restored,
            maps=outcome.secondary_assets_restored,
            errors=len(outcome.errors),
            duration=duration,
        )

    return RestoreResult(
        restore_id=restore_id,
        success=success,
        outcome=outcome,
        duration_seconds=duration,
    )
