# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault SQLite Record Store - Reference record store.

Shops are stored as JSON documents keyed by a ULID. The store assigns
a fresh id on every insert, which is what restore relies on to avoid
reusing identifiers from a backup.
"""

import json
from datetime import datetime, UTC
from pathlib import Path
from typing import List

import aiosqlite
import structlog
from ulid import ULID

from shopvault.exceptions import InsertFailure
from shopvault.stores.base import Record

logger = structlog.get_logger()


async def init_record_db(db_path: Path) -> None:
    """
    Initialize the record database schema.

    Creates tables if they don't exist. This is idempotent.

    Args:
        db_path: Path to the SQLite database file
    """
    async with aiosqlite.connect(db_path) as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS shops (
                id TEXT PRIMARY KEY,
                document TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_shops_created_at
            ON shops(created_at)
        """)

        await db.commit()

    logger.info("record_db_initialized", db_path=str(db_path))


class SQLiteRecordStore:
    """RecordStore implementation backed by a single SQLite table."""

    def __init__(self, db_path: Path, id_field: str = "id"):
        self.db_path = db_path
        self.id_field = id_field

    async def insert(self, record: Record) -> Record:
        stored = {k: v for k, v in record.items() if k != self.id_field}
        record_id = str(ULID())
        stored[self.id_field] = record_id

        try:
            document = json.dumps(stored)
        except (TypeError, ValueError) as e:
            raise InsertFailure(
                f"Record is not JSON serializable: {e}",
                details={"fields": sorted(record)},
            )

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO shops (id, document, created_at) VALUES (?, ?, ?)",
                (record_id, document, datetime.now(UTC).isoformat()),
            )
            await db.commit()

        return stored

    async def list_all(self) -> List[Record]:
        records: List[Record] = []

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT document FROM shops ORDER BY created_at, id"
            ) as cursor:
                async for row in cursor:
                    records.append(json.loads(row[0]))

        return records

    async def count(self) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM shops") as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0
