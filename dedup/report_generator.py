"""
CSV report generator for dedup results.

Generates CSV report with:
- Header statistics (comments)
- Columns: group_id, digest, file_path, size, modified_at, action
- UTF-8 encoding (accents in filenames)
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import TextIO

import structlog

from dedup.models import DedupAction, ScanResult

logger = structlog.get_logger(__name__)


class ReportGenerator:
    """Generate a CSV report from resolved scan results."""

    CSV_COLUMNS = [
        "group_id",
        "digest",
        "file_path",
        "size_bytes",
        "size_mb",
        "modified_at",
        "action",
    ]

    def generate_csv(self, scan_result: ScanResult, output_path: Path) -> Path:
        """
        Generate CSV report file.

        Args:
            scan_result: Scan result with resolved duplicate groups
            output_path: Where to save the CSV file

        Returns:
            Path to generated CSV file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", newline="", encoding="utf-8") as f:
            self._write(f, scan_result)

        logger.info(
            "dedup_report_generated",
            output_path=str(output_path),
            groups=len(scan_result.groups),
        )

        return output_path

    def generate_csv_string(self, scan_result: ScanResult) -> str:
        """Generate CSV content as string."""
        output = io.StringIO()
        self._write(output, scan_result)
        return output.getvalue()

    def _write(self, f: TextIO, scan_result: ScanResult) -> None:
        self._write_header_stats(f, scan_result)

        writer = csv.DictWriter(f, fieldnames=self.CSV_COLUMNS)
        writer.writeheader()

        for group in scan_result.groups:
            for record in group.files:
                writer.writerow(
                    {
                        "group_id": group.group_id,
                        "digest": record.digest,
                        "file_path": str(record.file_path),
                        "size_bytes": record.size_bytes,
                        "size_mb": round(record.size_bytes / (1024 * 1024), 2),
                        "modified_at": record.modified_at.strftime("%Y-%m-%d %H:%M:%S"),
                        "action": group.action_for(record).value,
                    }
                )

    @staticmethod
    def _write_header_stats(f: TextIO, scan_result: ScanResult) -> None:
        """Write header statistics as CSV comments."""
        total_delete = sum(
            1
            for group in scan_result.groups
            for record in group.files
            if group.action_for(record) == DedupAction.delete
        )

        f.write(f"# Scan Date: {scan_result.scan_date.strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"# Root: {scan_result.root_path}\n")
        f.write(f"# Total Files Scanned: {scan_result.total_scanned:,}\n")
        f.write(f"# Duplicate Groups: {scan_result.duplicate_groups_count:,}\n")
        f.write(
            f"# Total Duplicates: {total_delete} files "
            f"({scan_result.space_reclaimable_gb:.1f} GB)\n"
        )
        f.write(f"# Unreadable Files: {len(scan_result.errors)}\n")
