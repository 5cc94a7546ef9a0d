"""
Tree walk producing one FileRecord per regular file.

Directories are descended, everything that is not a regular file (symlinks,
sockets, fifos, devices) is skipped silently. The root must be a readable
directory, otherwise EnumerationError is raised before anything is yielded.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import structlog

from config.exceptions import EnumerationError
from dedup.models import FileRecord

logger = structlog.get_logger(__name__)


def walk_tree(root_path: Path) -> Iterator[FileRecord]:
    """
    Yield a FileRecord for every regular file under ``root_path``.

    Args:
        root_path: Directory to enumerate

    Yields:
        FileRecord with path, size and mtime populated, digest empty

    Raises:
        EnumerationError: root is missing, not a directory, or unreadable
    """
    try:
        with os.scandir(root_path) as it:
            root_entries = list(it)
    except OSError as e:
        raise EnumerationError(f"Cannot enumerate {root_path}: {e}") from e

    pending: list[list[os.DirEntry]] = [root_entries]

    while pending:
        for entry in pending.pop():
            try:
                if entry.is_dir(follow_symlinks=False):
                    pending.append(_scan_subdirectory(entry.path))
                    continue
                if not entry.is_file(follow_symlinks=False):
                    continue
                stat = entry.stat(follow_symlinks=False)
            except OSError as e:
                logger.warning(
                    "dedup_entry_stat_failed",
                    file_path=entry.path,
                    error=str(e),
                )
                continue

            yield FileRecord(
                file_path=Path(entry.path),
                size_bytes=stat.st_size,
                mtime_ns=stat.st_mtime_ns,
            )


def _scan_subdirectory(path: str) -> list[os.DirEntry]:
    """List a directory below the root; unreadable ones are logged and skipped."""
    try:
        with os.scandir(path) as it:
            return list(it)
    except OSError as e:
        logger.warning(
            "dedup_directory_unreadable",
            directory=path,
            error=str(e),
        )
        return []
