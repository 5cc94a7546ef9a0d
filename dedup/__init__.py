"""
Dedup sweeper.

Modules:
- walker: tree walk producing FileRecords
- digest: content digest of one file
- scanner: concurrent digest worker pool + aggregator
- resolver: keeper selection (oldest survives)
- deleter: simulation / apply action pass
- report_generator: CSV report
- config_loader: YAML + CLI configuration
- pipeline: end-to-end run
- models: Pydantic data models
"""

from dedup.models import (
    DedupGroup,
    DeletionOutcome,
    DigestOutcome,
    FileRecord,
    ScanConfig,
    ScanResult,
    ScanStats,
)

__all__ = [
    "DedupGroup",
    "DeletionOutcome",
    "DigestOutcome",
    "FileRecord",
    "ScanConfig",
    "ScanResult",
    "ScanStats",
]
