# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Collaborator interfaces consumed by the backup/restore engine.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol

from shopvault.refs import AssetSlot

Record = Dict[str, Any]


@dataclass(frozen=True)
class UploadTarget:
    """A writable destination plus the reference it will be served under."""

    upload_url: str
    stable_ref: str


@dataclass(frozen=True)
class StoredObject:
    body: bytes
    content_type: str | None = None


class RecordStore(Protocol):
    """Source and sink of shop records."""

    async def insert(self, record: Record) -> Record:
        """Insert a record, assigning a new identity. Returns the stored record."""
        ...

    async def list_all(self) -> List[Record]:
        ...


class ObjectStore(Protocol):
    """Private object store holding uploaded images."""

    async def request_upload_target(self, slot: AssetSlot) -> UploadTarget:
        """Issue a fresh upload destination for an image in the given slot."""
        ...

    async def read_object(self, ref: str) -> StoredObject:
        """
        Read an object by its stored reference.

        Raises:
            ObjectNotFoundError: If the reference does not resolve
        """
        ...
