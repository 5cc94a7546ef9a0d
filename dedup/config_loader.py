"""
Loads the run configuration from config/dedup.yaml and command-line overrides.

File values are the base, explicit CLI flags win, pydantic validates the
merged result.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import ValidationError

from config.exceptions import ConfigurationError
from dedup.models import ScanConfig

logger = structlog.get_logger(__name__)

ROOT_KEY = "dedup"


def load_yaml_settings(config_path: Path) -> dict[str, Any]:
    """
    Read the ``dedup`` section of a YAML config file.

    Raises:
        ConfigurationError: file missing, unparsable, or without a dedup key
    """
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict) or ROOT_KEY not in raw:
        raise ConfigurationError(
            f"Invalid config {config_path}: missing '{ROOT_KEY}' root key"
        )

    section = raw[ROOT_KEY] or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Invalid config {config_path}: '{ROOT_KEY}' must be a mapping")

    return section


def load_scan_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> ScanConfig:
    """
    Build a validated ScanConfig.

    Args:
        config_path: Optional YAML file with a ``dedup`` section
        overrides: Explicitly set values (None entries are ignored)

    Returns:
        ScanConfig

    Raises:
        ConfigurationError: unreadable file or invalid values
    """
    settings: dict[str, Any] = {}
    if config_path is not None:
        settings.update(load_yaml_settings(config_path))

    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = value

    try:
        config = ScanConfig(**settings)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug(
        "dedup_config_loaded",
        config_path=str(config_path) if config_path else None,
        root_path=str(config.root_path),
        dry_run=config.dry_run,
        worker_count=config.worker_count,
    )

    return config
