"""
Pydantic models for the dedup sweeper.

Models:
- ScanConfig: Run configuration (root, mode, pool size, digest algorithm)
- FileRecord: One regular file observed by the tree walk
- DigestOutcome: Result of digesting one file (digest or error)
- DedupGroup: Files sharing one digest, with keeper/delete selection
- DeletionOutcome: Result of acting on one deletion candidate
- ScanStats: Live counters while the pipeline runs
- ScanResult: Final scan result
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_WORKER_COUNT = 128


class DedupAction(str, Enum):
    """Action to take on a file in a dedup group."""

    keep = "keep"
    delete = "delete"


class DigestStage(str, Enum):
    """Step at which digesting a file failed."""

    open = "open"
    read = "read"


class DeletionStatus(str, Enum):
    """Outcome of a single deletion candidate."""

    simulated = "simulated"
    deleted = "deleted"
    failed = "failed"


class ScanConfig(BaseModel):
    """Configuration for a dedup run."""

    root_path: Path = Field(default=Path("."), description="Root directory to scan")
    dry_run: bool = Field(
        default=True,
        description="Only report deletions, never touch the filesystem",
    )
    worker_count: int = Field(
        default=DEFAULT_WORKER_COUNT,
        ge=1,
        description="Number of parallel digest workers",
    )
    verbose: bool = Field(default=False, description="Per-file progress logging")
    hash_algorithm: str = Field(
        default="md5",
        description="hashlib algorithm used as the content digest",
    )
    chunk_size: int = Field(
        default=65536,
        ge=1,
        description="Read size in bytes when streaming a file through the digest",
    )
    use_trash: bool = Field(
        default=False,
        description="Send deleted files to the OS trash instead of unlinking",
    )
    report_path: Optional[Path] = Field(
        default=None,
        description="Write a CSV report of all duplicate groups here",
    )

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        """Reject names hashlib does not know (or that need a digest length)."""
        name = v.strip().lower()
        try:
            hashlib.new(name).hexdigest()
        except (ValueError, TypeError):
            raise ValueError(f"Unsupported hash algorithm '{v}'")
        return name


class FileRecord(BaseModel):
    """
    A regular file seen by the tree walk.

    The digest is empty until a worker fills it in. It is written once, by the
    single worker holding the record, before the record reaches the aggregator.
    """

    file_path: Path
    size_bytes: int
    mtime_ns: int
    digest: str = ""

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.mtime_ns / 1_000_000_000, tz=timezone.utc)


# digest -> records in arrival order
DuplicateIndex = dict[str, list[FileRecord]]


class DigestOutcome(BaseModel):
    """Result of streaming one file through the digest function."""

    file_path: Path
    digest: Optional[str] = None
    bytes_read: int = 0
    error: Optional[str] = None
    stage: Optional[DigestStage] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DedupGroup(BaseModel):
    """Group of files sharing the same digest."""

    group_id: int
    digest: str
    files: list[FileRecord] = Field(default_factory=list)
    keeper: Optional[FileRecord] = None
    to_delete: list[FileRecord] = Field(default_factory=list)

    def action_for(self, record: FileRecord) -> DedupAction:
        """Return keep/delete for a member of this group."""
        if any(entry.file_path == record.file_path for entry in self.to_delete):
            return DedupAction.delete
        return DedupAction.keep


class DeletionOutcome(BaseModel):
    """Result of acting on one deletion candidate."""

    file_path: Path
    digest: str
    group_size: int
    size_bytes: int = 0
    status: DeletionStatus
    error: Optional[str] = None


class ScanStats(BaseModel):
    """Live scan statistics."""

    total_enumerated: int = 0
    total_digested: int = 0
    total_errors: int = 0
    size_mismatches: int = 0
    duplicate_groups: int = 0
    current_directory: str = ""


class ScanResult(BaseModel):
    """Final scan result."""

    scan_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    root_path: Path = Path(".")
    total_scanned: int = 0
    duplicate_groups_count: int = 0
    total_duplicates: int = 0
    space_reclaimable_bytes: int = 0
    space_reclaimable_gb: float = 0.0
    groups: list[DedupGroup] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
