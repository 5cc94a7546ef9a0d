#!/usr/bin/env python3
"""
Remove duplicate files under a directory, keeping the oldest copy.

Usage:
    dedup-sweep -p ~/Pictures                  # Dry run, report only
    dedup-sweep -p ~/Pictures --no-dry         # Really delete duplicates
    dedup-sweep -p . --count 16 --verbose      # Smaller pool, per-file logs
    dedup-sweep --config config/dedup.yaml --report dupes.csv
"""

from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path
from typing import Optional

import structlog

from config.exceptions import ConfigurationError, EnumerationError
from config.logging import configure_logging
from dedup.config_loader import load_scan_config
from dedup.pipeline import run_dedup

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_WALK_FAILED = 1
EXIT_BAD_CONFIG = 2

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _env_log_level() -> str:
    """LOG_LEVEL from the environment, INFO when unset or unknown."""
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    return level if level in LOG_LEVELS else "INFO"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dedup-sweep",
        description="Delete duplicate files (same content digest), keeping the oldest copy.",
    )
    parser.add_argument(
        "-p",
        "--path",
        type=Path,
        default=None,
        help="Directory to deduplicate (default: current directory)",
    )
    parser.add_argument(
        "--dry",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Only print the files that would be removed (default: on)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Number of parallel digest workers (default: 128)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Log every file as it is digested",
    )
    parser.add_argument("--config", type=Path, help="YAML config file with a 'dedup' section")
    parser.add_argument("--algorithm", type=str, help="hashlib digest algorithm (default: md5)")
    parser.add_argument(
        "--trash",
        action="store_true",
        default=None,
        help="Send deleted files to the OS trash instead of unlinking them",
    )
    parser.add_argument("--report", type=Path, help="Write a CSV report of all duplicate groups")
    parser.add_argument(
        "--log-level",
        default=_env_log_level(),
        type=str.upper,
        choices=LOG_LEVELS,
    )
    parser.add_argument(
        "--log-format",
        default=os.getenv("LOG_FORMAT", "console"),
        choices=["json", "console"],
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=args.log_format == "json")

    overrides = {
        "root_path": args.path,
        "dry_run": args.dry,
        "worker_count": args.count,
        "verbose": args.verbose,
        "hash_algorithm": args.algorithm,
        "use_trash": args.trash,
        "report_path": args.report,
    }

    try:
        config = load_scan_config(args.config, overrides)
    except ConfigurationError as e:
        logger.error("dedup_config_invalid", error=str(e))
        return EXIT_BAD_CONFIG

    if config.dry_run:
        logger.info("dedup_dry_run", message="dry run mode, files are not deleted")

    try:
        asyncio.run(run_dedup(config))
    except EnumerationError as e:
        logger.error("dedup_aborted", root_path=str(config.root_path), error=str(e))
        return EXIT_WALK_FAILED

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
