# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Exceptions - Custom exceptions for the shopvault package.
"""


class ShopVaultError(Exception):
    """Base exception for all ShopVault errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ShopVaultError):
    """Raised when configuration is invalid."""

    pass


class FetchFailure(ShopVaultError):
    """Raised when a single asset cannot be fetched (never escapes the fetcher)."""

    pass


class CorruptArchive(ShopVaultError):
    """Raised when an archive or its manifest cannot be read. Fatal to a restore."""

    pass


class UploadFailure(ShopVaultError):
    """Raised when a single asset cannot be re-uploaded."""

    pass


class InsertFailure(ShopVaultError):
    """Raised when a single record cannot be inserted."""

    pass


class SinkFailure(ShopVaultError):
    """Raised when a backup cannot be produced for the output stream."""

    pass


class ObjectNotFoundError(ShopVaultError):
    """Raised when an object store reference does not resolve."""

    pass


class UploadRejected(ShopVaultError):
    """Raised when an inbound archive upload is refused before processing."""

    def __init__(self, message: str, status_code: int, details: dict | None = None):
        self.status_code = status_code
        super().__init__(message, details)
