"""
End-to-end dedup run: scan and resolve -> report -> act.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog

from dedup.deleter import DeletionResult, DuplicateDeleter
from dedup.models import ScanConfig, ScanResult
from dedup.report_generator import ReportGenerator
from dedup.scanner import DedupScanner

logger = structlog.get_logger(__name__)


@dataclass
class RunSummary:
    scan: ScanResult
    deletion: DeletionResult


async def run_dedup(
    config: ScanConfig,
    scanner: Optional[DedupScanner] = None,
) -> RunSummary:
    """
    Run one full sweep.

    EnumerationError from the scan propagates; nothing is resolved or
    deleted in that case.
    """
    scanner = scanner or DedupScanner(config=config)
    scan_result = await scanner.scan()

    if config.report_path is not None:
        ReportGenerator().generate_csv(scan_result, config.report_path)

    deleter = DuplicateDeleter(dry_run=config.dry_run, use_trash=config.use_trash)
    deletion_result = await deleter.delete_duplicates(scan_result.groups)

    logger.info(
        "dedup_run_completed",
        dry_run=config.dry_run,
        total_scanned=scan_result.total_scanned,
        unreadable=len(scan_result.errors),
        duplicate_groups=scan_result.duplicate_groups_count,
        candidates=deletion_result.total_to_delete,
        deleted=deletion_result.deleted,
        failed=deletion_result.errors,
        space_reclaimable_bytes=scan_result.space_reclaimable_bytes,
    )

    return RunSummary(scan=scan_result, deletion=deletion_result)
