# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
ShopVault Asset Fetcher - Retrieve image bytes for a classified reference.

A fetch never raises: every failure is logged and reported as None, which
callers treat as "this record contributes no asset".
"""

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import aiofiles
import httpx
import structlog

from shopvault.config import VaultConfig
from shopvault.core import VaultState
from shopvault.exceptions import FetchFailure
from shopvault.refs import AssetRef, RefKind

logger = structlog.get_logger()

DEFAULT_EXTENSION = ".jpg"

# Checked in order against the content type, then the reference itself
_EXTENSION_HINTS = (
    ("png", ".png"),
    ("gif", ".gif"),
    ("webp", ".webp"),
    ("svg", ".svg"),
    ("jpeg", ".jpg"),
)


@dataclass(frozen=True)
class FetchedBytes:
    data: bytes
    extension: str


def infer_extension(content_type: str | None, ref: str) -> str:
    """
    Pick a file extension for fetched image data.

    The content type wins; otherwise the reference string is sniffed;
    otherwise the generic image extension is used.
    """
    if content_type:
        lowered = content_type.lower()
        for token, extension in _EXTENSION_HINTS:
            if token in lowered:
                return extension

    lowered_ref = ref.lower()
    for token, extension in _EXTENSION_HINTS:
        if f".{token}" in lowered_ref:
            return extension

    return DEFAULT_EXTENSION


def _local_extension(ref: str) -> str:
    suffix = PurePosixPath(ref.split("?", 1)[0]).suffix.lower()
    return suffix or DEFAULT_EXTENSION


def resolve_local_path(static_dir: Path, ref: str) -> Path:
    """
    Resolve a local reference under the static assets directory.

    Raises:
        FetchFailure: If the reference escapes the static directory
    """
    root = static_dir.resolve()
    candidate = (root / ref.split("?", 1)[0].lstrip("/")).resolve()
    try:
        candidate.relative_to(root)
    except ValueError:
        raise FetchFailure(
            f"Local reference escapes static directory: {ref}",
            details={"ref": ref},
        )
    return candidate


async def _fetch_stored(state: VaultState, ref: AssetRef) -> FetchedBytes:
    stored = await state["object_store"].read_object(ref.value)
    return FetchedBytes(stored.body, infer_extension(stored.content_type, ref.value))


async def _fetch_external(state: VaultState, ref: AssetRef) -> FetchedBytes:
    try:
        response = await state["http_client"].get(ref.value)
    except httpx.HTTPError as e:
        raise FetchFailure(f"Request failed: {e}", details={"ref": ref.value})

    if not response.is_success:
        raise FetchFailure(
            f"Failed to fetch image: {response.status_code} {response.reason_phrase}",
            details={"ref": ref.value},
        )

    return FetchedBytes(
        response.content,
        infer_extension(response.headers.get("content-type"), ref.value),
    )


async def _fetch_local(config: VaultConfig, ref: AssetRef) -> FetchedBytes:
    path = resolve_local_path(config.static_assets_dir, ref.value)
    if not path.is_file():
        raise FetchFailure(f"Local image not found: {path}", details={"ref": ref.value})

    async with aiofiles.open(path, "rb") as f:
        data = await f.read()

    return FetchedBytes(data, _local_extension(ref.value))


async def fetch_asset(
    config: VaultConfig,
    state: VaultState,
    ref: AssetRef | None,
) -> FetchedBytes | None:
    """
    Fetch the bytes behind an image reference.

    Args:
        config: ShopVault configuration
        state: Runtime state (object store and HTTP client)
        ref: Classified reference, or None

    Returns:
        FetchedBytes, or None if there is nothing to fetch or the fetch failed
    """
    if ref is None or not ref.fetchable:
        return None

    try:
        if ref.kind is RefKind.STORED:
            return await _fetch_stored(state, ref)
        if ref.kind is RefKind.EXTERNAL:
            return await _fetch_external(state, ref)
        return await _fetch_local(config, ref)
    except Exception as e:
        logger.warning(
            "asset_fetch_failed",
            ref=ref.value,
            kind=ref.kind.value,
            error=str(e),
        )
        return None
