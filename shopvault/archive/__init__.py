# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive - Build and read portable backup archives.
"""

from shopvault.archive.builder import create_staging_dir, stage_asset, stream_archive
from shopvault.archive.reader import extract_archive, find_missing_assets, parse_manifest

__all__ = [
    # Builder
    "create_staging_dir",
    "stage_asset",
    "stream_archive",
    # Reader
    "extract_archive",
    "find_missing_assets",
    "parse_manifest",
]
