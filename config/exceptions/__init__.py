"""
Dedup sweeper - canonical exception hierarchy.

Only enumeration failures and invalid configuration are raised to the top
level. Per-file problems (open, read, delete) are reported through the
result types in dedup.models and never raised.
"""


class DedupError(Exception):
    """Base exception for the dedup sweeper."""


class EnumerationError(DedupError):
    """Root of the scanned tree could not be enumerated (fatal)."""


class ConfigurationError(DedupError):
    """Configuration file or flags are invalid."""
