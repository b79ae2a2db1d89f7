# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so that concurrent
backup and restore invocations share one consistent view.
"""

import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List

# 100 MiB ceiling for uploaded archives
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def _validate_bucket_name(bucket: str) -> bool:
    """
    Validate S3 bucket name according to AWS rules.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive periods
    - Not formatted as IP address
    """
    if not bucket or len(bucket) < 3 or len(bucket) > 63:
        return False

    if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", bucket):
        return False

    if ".." in bucket:
        return False

    if re.match(r"^\d+\.\d+\.\d+\.\d+$", bucket):
        return False

    return True


@dataclass(frozen=True)
class VaultConfig:
    """
    Immutable configuration for the backup/restore engine.
    """

    # Required: S3 bucket holding uploaded shop images
    bucket: str

    # AWS region (default: us-east-1)
    region: str = "us-east-1"

    # Custom endpoint for S3-compatible stores (MinIO, GCS interop, ...)
    endpoint_url: str | None = None

    # Key prefix inside the bucket under which stored objects live
    object_prefix: str = ""

    # Reference prefix that marks an image as living in the object store
    stored_ref_prefix: str = "/objects/"

    # Root directory for references like "/images/shop.png"
    static_assets_dir: Path = field(default_factory=lambda: Path("./public"))

    # Parent directory for per-invocation staging and scratch directories
    scratch_root: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))

    # Maximum accepted size of an uploaded archive
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    # Maximum concurrent fetches/uploads within one invocation
    max_concurrent_ops: int = 10

    # Timeout for external image fetches and uploads
    fetch_timeout_seconds: float = 30.0

    # Lifetime of presigned upload URLs
    upload_url_ttl_seconds: int = 900

    # zlib level for archive entries (9 = maximum compression)
    compression_level: int = 9

    # Record field names
    record_id_field: str = "id"
    primary_field: str = "logo"
    secondary_field: str = "mapImageUrl"
    record_label_field: str = "name"

    # Download filename prefix: "<prefix>-backup-<ts>.zip"
    backup_name_prefix: str = "directory"

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not _validate_bucket_name(self.bucket):
            errors.append(f"Invalid bucket name: {self.bucket}")

        if not self.stored_ref_prefix.startswith("/"):
            errors.append(
                f"stored_ref_prefix must start with '/', got {self.stored_ref_prefix!r}"
            )

        if self.max_upload_bytes < 1:
            errors.append(f"max_upload_bytes must be >= 1, got {self.max_upload_bytes}")

        if self.max_concurrent_ops < 1:
            errors.append(f"max_concurrent_ops must be >= 1, got {self.max_concurrent_ops}")

        if self.fetch_timeout_seconds <= 0:
            errors.append(
                f"fetch_timeout_seconds must be > 0, got {self.fetch_timeout_seconds}"
            )

        if not 0 <= self.compression_level <= 9:
            errors.append(f"compression_level must be 0-9, got {self.compression_level}")

        if self.primary_field == self.secondary_field:
            errors.append("primary_field and secondary_field must differ")

        if errors:
            from shopvault.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "VaultConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return VaultConfig(**current)


def create_config(bucket: str, **kwargs: Any) -> VaultConfig:
    """
    Create a validated VaultConfig.

    Path-like options may be given as strings.

    Example:
        config = create_config("shop-images", static_assets_dir="./client/public")
    """
    for key in ("static_assets_dir", "scratch_root"):
        if key in kwargs and kwargs[key] is not None:
            kwargs[key] = Path(kwargs[key])
    return VaultConfig(bucket=bucket, **kwargs)
