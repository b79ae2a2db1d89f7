# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for ShopVault.

These helpers centralize wording for common configuration and upload errors
so that all modules present consistent, actionable messages.
"""


def explain_missing_bucket_env() -> str:
    """
    Explain that the S3 bucket environment variable is missing.
    """

    return (
        "S3 bucket is not configured. "
        "Set the S3_BUCKET environment variable or pass bucket=... to create_config()."
    )


def explain_invalid_upload_limit_env(value: str | None) -> str:
    """
    Explain that SHOPVAULT_MAX_UPLOAD_MB is invalid.
    """

    return (
        f"Invalid SHOPVAULT_MAX_UPLOAD_MB value: {value!r}. "
        "It must be a positive integer number of megabytes."
    )


def explain_invalid_concurrency_env(value: str | None) -> str:
    """
    Explain that SHOPVAULT_MAX_CONCURRENCY is invalid.
    """

    return (
        f"Invalid SHOPVAULT_MAX_CONCURRENCY value: {value!r}. "
        "It must be a positive integer."
    )


def explain_upload_too_large(size: int, limit: int) -> str:
    """
    Explain that an uploaded backup archive exceeds the size ceiling.
    """

    return (
        f"Backup archive is too large ({size} bytes). "
        f"The maximum accepted size is {limit} bytes ({limit // (1024 * 1024)} MB)."
    )


def explain_unsupported_upload_type(content_type: str | None) -> str:
    """
    Explain that an uploaded file is not a ZIP archive.
    """

    return (
        f"Unsupported upload content type: {content_type!r}. "
        "Upload the .zip file produced by a full backup."
    )
