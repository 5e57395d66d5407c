"""
DB Janitor - sanitized, size-reduced database snapshots.

This package provides tools for shrinking tables of a live database in
place, exporting the result with sensitive column values replaced, and
restoring the original tables afterwards.
"""

from .config import JanitorConfig
from .db import Database
from .exporter import SqlDumpExporter
from .janitor import DatabaseJanitor
from .manifest import RenameManifest
from .models import RenameRecord, SanitizationConfig, ShrinkOperation, ShrinkReport
from .sanitize import substitute
from .shrinker import SchemaShrinker

__version__ = "0.1.0"

__all__ = [
    "Database",
    "DatabaseJanitor",
    "JanitorConfig",
    "RenameManifest",
    "RenameRecord",
    "SanitizationConfig",
    "SchemaShrinker",
    "ShrinkOperation",
    "ShrinkReport",
    "SqlDumpExporter",
    "substitute",
]
