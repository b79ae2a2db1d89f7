# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Assets - Fetch images for backup and publish them on restore.
"""

from shopvault.assets.fetcher import FetchedBytes, fetch_asset
from shopvault.assets.publisher import publish_assets

__all__ = [
    "FetchedBytes",
    "fetch_asset",
    "publish_assets",
]
