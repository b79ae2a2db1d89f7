# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

create_config_from_env() reads a small set of well-known environment
variables and passes them through to create_config().
"""

from __future__ import annotations

import os

from shopvault.config import DEFAULT_MAX_UPLOAD_BYTES, VaultConfig, create_config
from shopvault.errors import (
    explain_invalid_concurrency_env,
    explain_invalid_upload_limit_env,
    explain_missing_bucket_env,
)
from shopvault.exceptions import ConfigurationError


def _parse_upload_limit(value: str | None) -> int:
    if not value:
        return DEFAULT_MAX_UPLOAD_BYTES
    try:
        megabytes = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_upload_limit_env(value)) from exc
    if megabytes < 1:
        raise ConfigurationError(explain_invalid_upload_limit_env(value))
    return megabytes * 1024 * 1024


def _parse_concurrency(value: str | None) -> int:
    if not value:
        return 10
    try:
        ops = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_concurrency_env(value)) from exc
    if ops < 1:
        raise ConfigurationError(explain_invalid_concurrency_env(value))
    return ops


def create_config_from_env() -> VaultConfig:
    """
    Create a VaultConfig from environment variables.

    Required:
        - S3_BUCKET: Bucket holding uploaded shop images

    Optional environment variables:
        - AWS_REGION: AWS region (default: us-east-1)
        - S3_ENDPOINT_URL: Endpoint for S3-compatible stores
        - SHOPVAULT_OBJECT_PREFIX: Key prefix for stored objects
        - SHOPVAULT_STATIC_DIR: Root for local image references (default: ./public)
        - SHOPVAULT_SCRATCH_DIR: Parent of scratch directories (default: system temp)
        - SHOPVAULT_MAX_UPLOAD_MB: Upload ceiling in MB (default: 100)
        - SHOPVAULT_MAX_CONCURRENCY: Concurrent fetches/uploads (default: 10)
    """

    bucket = os.getenv("S3_BUCKET")
    if not bucket:
        raise ConfigurationError(explain_missing_bucket_env())

    kwargs: dict = {
        "region": os.getenv("AWS_REGION", "us-east-1"),
        "endpoint_url": os.getenv("S3_ENDPOINT_URL") or None,
        "object_prefix": os.getenv("SHOPVAULT_OBJECT_PREFIX", ""),
        "max_upload_bytes": _parse_upload_limit(os.getenv("SHOPVAULT_MAX_UPLOAD_MB")),
        "max_concurrent_ops": _parse_concurrency(os.getenv("SHOPVAULT_MAX_CONCURRENCY")),
    }

    static_dir = os.getenv("SHOPVAULT_STATIC_DIR")
    if static_dir:
        kwargs["static_assets_dir"] = static_dir

    scratch_dir = os.getenv("SHOPVAULT_SCRATCH_DIR")
    if scratch_dir:
        kwargs["scratch_root"] = scratch_dir

    return create_config(bucket, **kwargs)
