# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with ShopVault backup endpoints.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    S3_BUCKET: Bucket holding uploaded shop images
    AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY: S3 credentials
    SHOPVAULT_ADMIN_API_KEY: API key for the admin endpoints
    SHOPVAULT_RECORD_DB: SQLite file with shop records (default: ./shops.db)
"""

import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from pydantic import BaseModel

from shopvault.env import create_config_from_env
from shopvault.integrations.fastapi import backup_lifespan
from shopvault.stores import S3ObjectStore, SQLiteRecordStore, init_record_db

config = create_config_from_env()
record_db_path = Path(os.getenv("SHOPVAULT_RECORD_DB", "./shops.db"))
record_store = SQLiteRecordStore(record_db_path, id_field=config.record_id_field)
object_store = S3ObjectStore(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_record_db(record_db_path)
    async with backup_lifespan(app, config, record_store, object_store):
        yield


app = FastAPI(
    title="Shop Directory",
    description="Example application demonstrating ShopVault backups",
    version="1.0.0",
    lifespan=lifespan,
)


class ShopIn(BaseModel):
    name: str
    description: str = ""
    logo: str = "fas fa-store"
    mapImageUrl: str = ""
    city: str = ""


@app.get("/api/shops")
async def list_shops() -> list:
    return await record_store.list_all()


@app.post("/api/shops")
async def create_shop(shop: ShopIn) -> dict:
    return await record_store.insert(shop.model_dump())


@app.get("/api/shops/count")
async def count_shops() -> dict:
    return {"count": await record_store.count()}
