# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Stores - Record store and object store collaborators.
"""

from shopvault.stores.base import (
    ObjectStore,
    Record,
    RecordStore,
    StoredObject,
    UploadTarget,
)
from shopvault.stores.s3 import S3ObjectStore
from shopvault.stores.sqlite import SQLiteRecordStore, init_record_db

__all__ = [
    # Interfaces
    "ObjectStore",
    "RecordStore",
    "Record",
    "StoredObject",
    "UploadTarget",
    # Implementations
    "S3ObjectStore",
    "SQLiteRecordStore",
    "init_record_db",
]
