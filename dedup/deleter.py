"""
Action pass for resolved duplicate groups.

Features:
- Simulation mode (default): report intended deletions, never touch files
- Apply mode: unlink, or send2trash when configured
- One DeletionOutcome per candidate; a failed deletion never stops the pass
"""

from __future__ import annotations

import os
from typing import Callable, Optional

import structlog

from dedup.models import DedupGroup, DeletionOutcome, DeletionStatus, FileRecord

logger = structlog.get_logger(__name__)


class DeletionResult:
    """Result of the action pass."""

    def __init__(self, dry_run: bool):
        self.dry_run = dry_run
        self.total_to_delete: int = 0
        self.outcomes: list[DeletionOutcome] = []

    @property
    def simulated(self) -> int:
        return self._count(DeletionStatus.simulated)

    @property
    def deleted(self) -> int:
        return self._count(DeletionStatus.deleted)

    @property
    def errors(self) -> int:
        return self._count(DeletionStatus.failed)

    @property
    def space_reclaimed_bytes(self) -> int:
        return sum(
            outcome.size_bytes
            for outcome in self.outcomes
            if outcome.status == DeletionStatus.deleted
        )

    @property
    def space_reclaimed_gb(self) -> float:
        return round(self.space_reclaimed_bytes / (1024**3), 2)

    def _count(self, status: DeletionStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)


class DuplicateDeleter:
    """
    Delete (or report) every to_delete member of resolved groups.

    The mode is fixed when the deleter is built and read once per pass.
    """

    def __init__(
        self,
        dry_run: bool = True,
        use_trash: bool = False,
        progress_callback: Optional[Callable[[DeletionResult], None]] = None,
    ):
        """
        Initialize deleter.

        Args:
            dry_run: Report only, never touch the filesystem
            use_trash: In apply mode, send files to the OS trash
            progress_callback: Called after each candidate
        """
        self.dry_run = dry_run
        self.use_trash = use_trash
        self.progress_callback = progress_callback

    async def delete_duplicates(self, groups: list[DedupGroup]) -> DeletionResult:
        """
        Act on all files marked for deletion in duplicate groups.

        Args:
            groups: Groups with keeper/to_delete selected

        Returns:
            DeletionResult with one outcome per candidate
        """
        dry_run = self.dry_run
        result = DeletionResult(dry_run=dry_run)

        for group in groups:
            result.total_to_delete += len(group.to_delete)

        logger.info(
            "dedup_deletion_started",
            dry_run=dry_run,
            total_to_delete=result.total_to_delete,
            groups=len(groups),
        )

        for group in groups:
            group_size = len(group.files)

            for record in group.to_delete:
                if dry_run:
                    outcome = self._simulate(record, group_size)
                else:
                    outcome = self._delete(record, group_size)

                result.outcomes.append(outcome)

                if self.progress_callback:
                    self.progress_callback(result)

        logger.info(
            "dedup_deletion_completed",
            dry_run=dry_run,
            simulated=result.simulated,
            deleted=result.deleted,
            errors=result.errors,
            space_reclaimed_gb=result.space_reclaimed_gb,
        )

        return result

    def _simulate(self, record: FileRecord, group_size: int) -> DeletionOutcome:
        logger.info(
            "dedup_delete_candidate",
            digest=record.digest,
            file_path=str(record.file_path),
            dup=group_size,
        )
        return DeletionOutcome(
            file_path=record.file_path,
            digest=record.digest,
            group_size=group_size,
            size_bytes=record.size_bytes,
            status=DeletionStatus.simulated,
        )

    def _delete(self, record: FileRecord, group_size: int) -> DeletionOutcome:
        """Remove one file, converting OSError into a failed outcome."""
        try:
            self._remove(record)
        except OSError as e:
            logger.error(
                "dedup_delete_failed",
                digest=record.digest,
                file_path=str(record.file_path),
                dup=group_size,
                error=str(e),
            )
            return DeletionOutcome(
                file_path=record.file_path,
                digest=record.digest,
                group_size=group_size,
                size_bytes=record.size_bytes,
                status=DeletionStatus.failed,
                error=str(e),
            )

        logger.info(
            "dedup_file_deleted",
            digest=record.digest,
            file_path=str(record.file_path),
            dup=group_size,
        )
        return DeletionOutcome(
            file_path=record.file_path,
            digest=record.digest,
            group_size=group_size,
            size_bytes=record.size_bytes,
            status=DeletionStatus.deleted,
        )

    def _remove(self, record: FileRecord) -> None:
        if self.use_trash:
            import send2trash

            send2trash.send2trash(str(record.file_path))
        else:
            os.remove(record.file_path)
