# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault - Backup and restore engine for a shop directory.

Snapshots shop records plus their logo and map images into one portable
ZIP archive, and restores such an archive by re-uploading the images to
object storage and re-linking them to newly created records.
"""

__version__ = "0.1.0"

# Configuration
from shopvault.config import VaultConfig, create_config
from shopvault.env import create_config_from_env

# Runtime state
from shopvault.core import (
    BackupStats,
    RestoreOutcome,
    RestoreResult,
    initialize_state,
    shutdown_state,
)

# Backup and restore entry points
from shopvault.backup import (
    data_only_backup,
    full_backup,
    get_backup_stats,
    restore_archive,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "VaultConfig",
    "create_config",
    "create_config_from_env",
    # State and results
    "initialize_state",
    "shutdown_state",
    "BackupStats",
    "RestoreOutcome",
    "RestoreResult",
    # Operations
    "full_backup",
    "data_only_backup",
    "get_backup_stats",
    "restore_archive",
]
