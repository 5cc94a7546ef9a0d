"""
Resolution rules for duplicate groups.

The oldest file of a group (by modification time) is presumed to be the
original and is kept; every newer copy is a deletion candidate.

Files with identical modification times keep their arrival order from the
aggregator, which depends on worker completion order. Which of two
same-timestamp copies survives is therefore not deterministic across runs.
"""

from __future__ import annotations

import structlog

from dedup.models import DedupGroup, DuplicateIndex

logger = structlog.get_logger(__name__)


class ResolutionEngine:
    """
    Select which file to keep among duplicates.

    Rules:
    1. Sort the group newest first (stable, ties keep arrival order)
    2. The last file (oldest) is the keeper
    3. All others are deleted
    """

    def select_keeper(self, group: DedupGroup) -> DedupGroup:
        """
        Order the group and mark keeper / to_delete.

        Args:
            group: Duplicate group with files in arrival order

        Returns:
            The same DedupGroup, files sorted newest first, keeper and
            to_delete set
        """
        if len(group.files) < 2:
            group.keeper = group.files[0] if group.files else None
            group.to_delete = []
            return group

        # sorted() stays stable with reverse=True
        group.files = sorted(group.files, key=lambda f: f.mtime_ns, reverse=True)
        group.keeper = group.files[-1]
        group.to_delete = list(group.files[:-1])

        logger.debug(
            "dedup_group_resolved",
            digest=group.digest,
            keeper=str(group.keeper.file_path),
            to_delete=len(group.to_delete),
        )

        return group

    def resolve_index(self, index: DuplicateIndex) -> list[DedupGroup]:
        """
        Build and resolve groups straight from a drained duplicate index.

        Buckets holding a single record are not duplicates and are skipped.
        """
        groups = []
        for digest, records in index.items():
            if len(records) < 2:
                continue
            group = DedupGroup(group_id=len(groups) + 1, digest=digest, files=list(records))
            groups.append(self.select_keeper(group))
        return groups
