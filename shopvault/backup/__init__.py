# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Backup coordination and restore operations.
"""

from shopvault.backup.manager import (
    PreparedBackup,
    backup_filename,
    data_only_backup,
    full_backup,
    get_backup_stats,
    prepare_full_backup,
    stream_full_backup,
)

from shopvault.backup.restore import (
    restore_archive,
    restore_manifest,
    restore_records,
    rewrite_asset_refs,
)

__all__ = [
    # Manager
    "PreparedBackup",
    "backup_filename",
    "data_only_backup",
    "full_backup",
    "get_backup_stats",
    "prepare_full_backup",
    "stream_full_backup",
    # Restore
    "restore_archive",
    "restore_manifest",
    "restore_records",
    "rewrite_asset_refs",
]
