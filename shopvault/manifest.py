# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Manifest - The self-describing description of a backup.

The manifest is stored as backup-data.json at the root of every archive
and is also the whole payload of a data-only backup. Its JSON shape is a
wire format shared with archives produced by earlier releases:

    {
      "metadata": {"timestamp", "version", "totalShops", "backupType"},
      "shops": [...],
      "images": {"logos": {id: path}, "maps": {id: path}}
    }
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List

import structlog

from shopvault.exceptions import CorruptArchive
from shopvault.refs import AssetSlot

logger = structlog.get_logger()

MANIFEST_FILENAME = "backup-data.json"
README_FILENAME = "README.md"
IMAGES_DIR = "images"
FORMAT_VERSION = "1.0"
SUPPORTED_VERSIONS = {"1.0"}


class BackupKind(str, Enum):
    """Type of backup recorded in the manifest."""

    FULL = "full"
    DATA_ONLY = "data-only"


@dataclass
class BackupMetadata:
    timestamp: str
    version: str
    total_shops: int
    backup_type: BackupKind


@dataclass
class AssetIndex:
    """Archive-relative asset paths keyed by record id, per slot."""

    logos: Dict[str, str] = field(default_factory=dict)
    maps: Dict[str, str] = field(default_factory=dict)

    def for_slot(self, slot: AssetSlot) -> Dict[str, str]:
        return self.logos if slot is AssetSlot.PRIMARY else self.maps

    def is_empty(self) -> bool:
        return not self.logos and not self.maps


@dataclass
class Manifest:
    metadata: BackupMetadata
    shops: List[Dict[str, Any]]
    images: AssetIndex = field(default_factory=AssetIndex)

    def to_dict(self) -> dict:
        return {
            "metadata": {
                "timestamp": self.metadata.timestamp,
                "version": self.metadata.version,
                "totalShops": self.metadata.total_shops,
                "backupType": self.metadata.backup_type.value,
            },
            "shops": self.shops,
            "images": {
                "logos": dict(self.images.logos),
                "maps": dict(self.images.maps),
            },
        }

    def to_json(self) -> bytes:
        """Pretty-printed UTF-8 JSON."""
        return json.dumps(
            self.to_dict(), indent=2, ensure_ascii=False, default=str
        ).encode("utf-8")


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def asset_archive_path(slot: AssetSlot, record_id: str, extension: str) -> str:
    """
    Archive-relative path of a record's asset.

    This is both the entry name written to the archive and the value
    stored in the manifest's image index.
    """
    return f"{IMAGES_DIR}/{slot.folder}/{_safe_name(record_id)}-{slot.suffix}{extension}"


def _safe_name(record_id: str) -> str:
    """
    Replace path separators and other problematic characters with underscores.

    An id that had to be changed gets a short hash of the raw id appended,
    so "a/b" and "a_b" never share a file name.
    """
    raw = str(record_id)
    safe = raw
    for char in ["/", "\\", ":", "*", "?", '"', "<", ">", "|", "\x00"]:
        safe = safe.replace(char, "_")
    if safe in ("", ".", ".."):
        safe = safe.replace(".", "_") or "_"
    if safe != raw:
        digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:8]
        safe = f"{safe}~{digest}"
    return safe


def create_manifest(
    shops: List[Dict[str, Any]],
    kind: BackupKind,
    images: AssetIndex | None = None,
    now: datetime | None = None,
) -> Manifest:
    """Build a manifest for the given records."""
    return Manifest(
        metadata=BackupMetadata(
            timestamp=utc_timestamp(now),
            version=FORMAT_VERSION,
            total_shops=len(shops),
            backup_type=kind,
        ),
        shops=shops,
        images=images or AssetIndex(),
    )


def _parse_index(raw: Any, name: str) -> Dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CorruptArchive(f"Manifest images.{name} must be an object")
    index: Dict[str, str] = {}
    for record_id, path in raw.items():
        if not isinstance(path, str) or not path:
            raise CorruptArchive(
                f"Manifest images.{name} entry for {record_id!r} must be a path string"
            )
        index[str(record_id)] = path
    return index


def manifest_from_dict(payload: Any) -> Manifest:
    """
    Validate and convert a decoded manifest.

    Raises:
        CorruptArchive: If the payload does not have the expected structure
    """
    if not isinstance(payload, dict):
        raise CorruptArchive("Manifest root must be a JSON object")

    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        raise CorruptArchive("Manifest is missing its metadata section")

    shops = payload.get("shops")
    if not isinstance(shops, list) or not all(isinstance(s, dict) for s in shops):
        raise CorruptArchive("Manifest shops must be a list of objects")

    try:
        kind = BackupKind(metadata.get("backupType", BackupKind.FULL.value))
    except ValueError as e:
        raise CorruptArchive(
            f"Unknown backupType: {metadata.get('backupType')!r}"
        ) from e

    version = str(metadata.get("version", ""))
    if version not in SUPPORTED_VERSIONS:
        logger.warning("manifest_version_unknown", version=version)

    total = metadata.get("totalShops", len(shops))
    if not isinstance(total, int) or isinstance(total, bool):
        raise CorruptArchive(f"Manifest totalShops must be an integer, got {total!r}")
    if total != len(shops):
        logger.warning("manifest_count_mismatch", declared=total, actual=len(shops))

    images = payload.get("images") or {}
    if not isinstance(images, dict):
        raise CorruptArchive("Manifest images must be an object")

    return Manifest(
        metadata=BackupMetadata(
            timestamp=str(metadata.get("timestamp", "")),
            version=version,
            total_shops=total,
            backup_type=kind,
        ),
        shops=shops,
        images=AssetIndex(
            logos=_parse_index(images.get("logos"), "logos"),
            maps=_parse_index(images.get("maps"), "maps"),
        ),
    )


def manifest_from_json(raw: bytes | str) -> Manifest:
    """Decode and validate manifest JSON."""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptArchive(f"Failed to parse {MANIFEST_FILENAME}: {e}") from e
    return manifest_from_dict(payload)


def render_readme(manifest: Manifest) -> str:
    """Human-readable instructions stored next to the manifest."""
    return f"""# Shop Directory Backup
Generated: {manifest.metadata.timestamp}
Total Shops: {manifest.metadata.total_shops}
Backup Type: {manifest.metadata.backup_type.value}
Format Version: {manifest.metadata.version}

## Structure:
- {MANIFEST_FILENAME}: Complete shop data with metadata
- {IMAGES_DIR}/logos/: Shop logo images
- {IMAGES_DIR}/maps/: Shop map images
- {README_FILENAME}: This file

## Restoration:
Upload this .zip file unchanged on the admin backup page.
Images are re-uploaded to object storage and linked to the restored shops.
Shops receive new identifiers; the ids in {MANIFEST_FILENAME} are not reused.
"""
