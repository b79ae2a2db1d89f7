# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Invocation-private scratch directories.

Every backup or restore gets its own ULID-named directory under the
configured scratch root. Removal is idempotent: paths that are already
gone are not an error.
"""

import asyncio
import shutil
from pathlib import Path

import structlog
from ulid import ULID

logger = structlog.get_logger()


def create_scratch_dir(scratch_root: Path, kind: str) -> Path:
    """
    Create a fresh directory such as <scratch_root>/restore-<ULID>.

    Raises FileExistsError rather than reusing a directory.
    """
    scratch_root.mkdir(parents=True, exist_ok=True)
    path = scratch_root / f"{kind}-{ULID()}"
    path.mkdir(exist_ok=False)
    return path


def remove_tree_sync(path: Path | None) -> None:
    if path is None:
        return
    try:
        shutil.rmtree(path)
        logger.debug("scratch_dir_removed", path=str(path))
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("scratch_dir_remove_failed", path=str(path), error=str(e))


def remove_file_sync(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("scratch_file_remove_failed", path=str(path), error=str(e))


async def remove_tree(path: Path | None) -> None:
    """Remove a directory tree without blocking the event loop."""
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, remove_tree_sync, path)


async def remove_file(path: Path | None) -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, remove_file_sync, path)
