"""
Content digest of a single file.

Runs inside the digest thread pool. Never raises for I/O problems: open and
read failures come back as a DigestOutcome with ``error`` and ``stage`` set,
and the caller decides to log and skip.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from dedup.models import DigestOutcome, DigestStage


def compute_digest(
    file_path: Path,
    algorithm: str = "md5",
    chunk_size: int = 65536,
) -> DigestOutcome:
    """
    Stream a file through ``algorithm`` and return its lowercase hex digest.

    Args:
        file_path: File to digest
        algorithm: hashlib algorithm name
        chunk_size: Read size in bytes

    Returns:
        DigestOutcome with digest and bytes_read, or error and stage
    """
    try:
        f = open(file_path, "rb")
    except OSError as e:
        return DigestOutcome(file_path=file_path, error=str(e), stage=DigestStage.open)

    digest = hashlib.new(algorithm)
    bytes_read = 0

    with f:
        try:
            while chunk := f.read(chunk_size):
                digest.update(chunk)
                bytes_read += len(chunk)
        except OSError as e:
            return DigestOutcome(
                file_path=file_path,
                bytes_read=bytes_read,
                error=str(e),
                stage=DigestStage.read,
            )

    return DigestOutcome(
        file_path=file_path,
        digest=digest.hexdigest(),
        bytes_read=bytes_read,
    )
