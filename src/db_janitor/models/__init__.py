"""
Data models for the database janitor.

This module provides the run configuration and the records passed between
the shrink, export, and cleanup phases.
"""

from .records import (
    ALIAS_PREFIX,
    CleanupReport,
    RenameRecord,
    ShrinkOperation,
    ShrinkReport,
    TableOutcome,
    TableResult,
    alias_for,
)
from .sanitization import RowId, SanitizationConfig

__all__ = [
    "ALIAS_PREFIX",
    "CleanupReport",
    "RenameRecord",
    "RowId",
    "SanitizationConfig",
    "ShrinkOperation",
    "ShrinkReport",
    "TableOutcome",
    "TableResult",
    "alias_for",
]
