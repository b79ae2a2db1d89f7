# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault S3 Object Store - aiobotocore-backed image storage.

Stored references have the form "/objects/<entity>", where <entity> is the
object key relative to the configured object prefix. Upload targets are
presigned PUT URLs; the stable reference is derived from the generated key
and returned alongside the URL, never parsed back out of it.
"""

from typing import Any

import structlog
from aiobotocore.session import get_session
from botocore.exceptions import ClientError
from ulid import ULID

from shopvault.config import VaultConfig
from shopvault.exceptions import ObjectNotFoundError, UploadFailure
from shopvault.refs import AssetSlot
from shopvault.stores.base import StoredObject, UploadTarget

logger = structlog.get_logger()

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ObjectStore:
    """ObjectStore implementation on top of an S3 bucket."""

    def __init__(self, config: VaultConfig, session: Any | None = None):
        self.config = config
        self.session = session or get_session()

    def _client(self):
        return self.session.create_client(
            "s3",
            region_name=self.config.region,
            endpoint_url=self.config.endpoint_url,
        )

    def key_for_ref(self, ref: str) -> str:
        """Map a stored reference to its S3 key."""
        prefix = self.config.stored_ref_prefix
        if not ref.startswith(prefix):
            raise ObjectNotFoundError(
                f"Not a stored object reference: {ref}",
                details={"ref": ref},
            )
        entity_id = ref[len(prefix):]
        if not entity_id or ".." in entity_id.split("/"):
            raise ObjectNotFoundError(
                f"Invalid stored object reference: {ref}",
                details={"ref": ref},
            )
        return f"{self.config.object_prefix}{entity_id}"

    async def request_upload_target(self, slot: AssetSlot) -> UploadTarget:
        entity_id = f"shops/{slot.suffix}/{ULID()}"
        key = f"{self.config.object_prefix}{entity_id}"

        try:
            async with self._client() as s3_client:
                url = await s3_client.generate_presigned_url(
                    "put_object",
                    Params={"Bucket": self.config.bucket, "Key": key},
                    ExpiresIn=self.config.upload_url_ttl_seconds,
                )
        except Exception as e:
            raise UploadFailure(
                f"Failed to sign upload URL: {e}",
                details={"key": key},
            )

        logger.debug("upload_target_issued", key=key)
        return UploadTarget(
            upload_url=url,
            stable_ref=f"{self.config.stored_ref_prefix}{entity_id}",
        )

    async def read_object(self, ref: str) -> StoredObject:
        key = self.key_for_ref(ref)

        async with self._client() as s3_client:
            try:
                response = await s3_client.get_object(Bucket=self.config.bucket, Key=key)
            except ClientError as e:
                code = str(e.response.get("Error", {}).get("Code", ""))
                if code in _NOT_FOUND_CODES:
                    raise ObjectNotFoundError(
                        f"Object not found: {ref}",
                        details={"key": key},
                    )
                raise

            async with response["Body"] as stream:
                body = await stream.read()

        return StoredObject(body=body, content_type=response.get("ContentType"))
