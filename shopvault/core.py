# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Core - Runtime state and result types.

The record store and object store are injected through initialize_state()
and travel with the state dict, so coordinators never reach for module-level
singletons.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, TypedDict

import httpx
import structlog

from shopvault.config import VaultConfig
from shopvault.stores.base import ObjectStore, RecordStore

logger = structlog.get_logger()


@dataclass
class RestoreOutcome:
    """Accumulated result of a restore run. Never reset mid-run."""

    records_restored: int = 0
    primary_assets_restored: int = 0
    secondary_assets_restored: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: "RestoreOutcome") -> "RestoreOutcome":
        """Fold another partial outcome into this one. Returns self."""
        self.records_restored += other.records_restored
        self.primary_assets_restored += other.primary_assets_restored
        self.secondary_assets_restored += other.secondary_assets_restored
        self.errors.extend(other.errors)
        return self


@dataclass
class PublishResult:
    """Result of re-uploading extracted assets."""

    mapping: Dict[str, str] = field(default_factory=dict)
    primary_uploaded: int = 0
    secondary_uploaded: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: "PublishResult") -> "PublishResult":
        self.mapping.update(other.mapping)
        self.primary_uploaded += other.primary_uploaded
        self.secondary_uploaded += other.secondary_uploaded
        self.errors.extend(other.errors)
        return self

    @property
    def uploaded(self) -> int:
        return self.primary_uploaded + self.secondary_uploaded


@dataclass
class RestoreResult:
    """Terminal result of restoring an uploaded archive."""

    restore_id: str  # ULID
    success: bool
    outcome: RestoreOutcome
    duration_seconds: float = 0.0


@dataclass
class BackupStats:
    """Storage-only statistics about what a full backup would contain."""

    record_count: int
    primary_asset_count: int
    secondary_asset_count: int
    estimated_size: str


class VaultState(TypedDict):
    """Runtime state shared by backup and restore operations."""

    record_store: RecordStore
    object_store: ObjectStore
    http_client: httpx.AsyncClient
    owns_http_client: bool
    last_backup_at: datetime | None
    last_restore_at: datetime | None
    total_backups: int
    total_restores: int
    last_error: str | None


def initialize_state(
    config: VaultConfig,
    record_store: RecordStore,
    object_store: ObjectStore,
    http_client: httpx.AsyncClient | None = None,
) -> VaultState:
    """
    Initialize runtime state for backup/restore operations.

    Args:
        config: ShopVault configuration
        record_store: Collaborator providing list_all() and insert()
        object_store: Collaborator providing uploads and stored reads
        http_client: Optional pre-built client (tests inject a mock transport)

    Returns:
        Initialized VaultState dictionary
    """
    config.scratch_root.mkdir(parents=True, exist_ok=True)

    owns_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(
            timeout=config.fetch_timeout_seconds,
            follow_redirects=True,
        )

    return VaultState(
        record_store=record_store,
        object_store=object_store,
        http_client=http_client,
        owns_http_client=owns_client,
        last_backup_at=None,
        last_restore_at=None,
        total_backups=0,
        total_restores=0,
        last_error=None,
    )


async def shutdown_state(state: VaultState) -> None:
    """Cleanup resources."""
    if state["owns_http_client"]:
        try:
            await state["http_client"].aclose()
        except Exception as e:
            logger.warning("http_client_close_failed", error=str(e))

    logger.info("vault_state_shutdown_complete")


def get_status(state: VaultState) -> Dict[str, Any]:
    """Summary of activity since startup."""
    return {
        "total_backups": state["total_backups"],
        "total_restores": state["total_restores"],
        "last_backup_at": (
            state["last_backup_at"].isoformat() if state["last_backup_at"] else None
        ),
        "last_restore_at": (
            state["last_restore_at"].isoformat() if state["last_restore_at"] else None
        ),
        "last_error": state["last_error"],
    }
