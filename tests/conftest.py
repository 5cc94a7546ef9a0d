"""
Shared pytest fixtures for the dedup sweeper tests.

Provides:
- repo root on sys.path (tests run without an editable install)
- make_file: build files with controlled content and modification time
- fake_open: make open() fail for selected files inside dedup.digest

The event loop is handled by pytest-asyncio in auto mode (see pyproject.toml).
"""

import builtins
import os
import sys
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import patch

import pytest

# ==========================================
# PYTHONPATH setup
# ==========================================

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


# ==========================================
# Filesystem helpers
# ==========================================


@pytest.fixture
def make_file(tmp_path) -> Callable[..., Path]:
    """
    Create ``tmp_path / relative`` with ``content``.

    ``mtime`` (epoch seconds) is applied to both atime and mtime when given.
    """

    def _make(relative: str, content: bytes, mtime: Optional[float] = None) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make


class FailingReader:
    """File object whose read() fails after open succeeded."""

    def __init__(self, error: OSError):
        self.error = error
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        raise self.error

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


@pytest.fixture
def fake_open():
    """
    Patch open() in dedup.digest for files whose name is in a set.

    Usage:
        with fake_open(open_fails={"a.txt"}, read_fails={"b.txt"}):
            ...
    """
    real_open = builtins.open

    def _factory(open_fails: frozenset = frozenset(), read_fails: frozenset = frozenset()):
        readers: list[FailingReader] = []

        def _open(file, *args, **kwargs):
            name = Path(file).name
            if name in open_fails:
                raise PermissionError(13, "Permission denied", str(file))
            if name in read_fails:
                reader = FailingReader(OSError(5, "Input/output error", str(file)))
                readers.append(reader)
                return reader
            return real_open(file, *args, **kwargs)

        ctx = patch("dedup.digest.open", side_effect=_open, create=True)
        ctx.readers = readers
        return ctx

    return _factory
