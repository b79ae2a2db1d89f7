# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault References - Classification of image references.

A record's image field holds a free-form string. classify_ref() turns it
into a tagged AssetRef exactly once, so fetchers, statistics and restore
logic never re-derive the kind from string prefixes themselves.
"""

from dataclasses import dataclass
from enum import Enum

EXTERNAL_SCHEMES = ("http://", "https://")


class RefKind(str, Enum):
    """Where an image reference resolves to."""

    STORED = "stored"  # Private object store, e.g. /objects/shops/logo/<id>
    EXTERNAL = "external"  # Absolute http(s) URL
    LOCAL = "local"  # Path under the static assets directory
    SYMBOLIC = "symbolic"  # Icon identifier such as "fas fa-store", never fetched


class AssetSlot(str, Enum):
    """The two image slots a record can carry."""

    PRIMARY = "primary"
    SECONDARY = "secondary"

    @property
    def folder(self) -> str:
        """Archive folder name under images/."""
        return "logos" if self is AssetSlot.PRIMARY else "maps"

    @property
    def suffix(self) -> str:
        """Filename suffix, also used as the object store key segment."""
        return "logo" if self is AssetSlot.PRIMARY else "map"


@dataclass(frozen=True)
class AssetRef:
    """A classified image reference."""

    kind: RefKind
    value: str

    @property
    def fetchable(self) -> bool:
        return self.kind is not RefKind.SYMBOLIC


def classify_ref(value: object, stored_prefix: str = "/objects/") -> AssetRef | None:
    """
    Classify a raw reference value.

    Args:
        value: Raw field value from a record
        stored_prefix: Prefix marking object store references

    Returns:
        AssetRef, or None when the record has no reference at all
    """
    if not isinstance(value, str) or not value.strip():
        return None

    if value.startswith(stored_prefix):
        return AssetRef(RefKind.STORED, value)
    if value.lower().startswith(EXTERNAL_SCHEMES):
        return AssetRef(RefKind.EXTERNAL, value)
    if value.startswith("/"):
        return AssetRef(RefKind.LOCAL, value)
    return AssetRef(RefKind.SYMBOLIC, value)


def slot_field(config, slot: AssetSlot) -> str:
    """Record field name holding the reference for a slot."""
    return config.primary_field if slot is AssetSlot.PRIMARY else config.secondary_field


def record_ref(config, record: dict, slot: AssetSlot) -> AssetRef | None:
    """Classify the reference stored in a record's slot."""
    return classify_ref(record.get(slot_field(config, slot)), config.stored_ref_prefix)
