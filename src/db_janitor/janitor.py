# janitor.py - Sanitized snapshot orchestration

"""
This module defines the entry point for producing a sanitized, size-reduced dump of a live database.

A run is three explicit steps driven by the caller: shrink the configured tables in place,
export the shrunk schema through the substitution policy, then clean up to restore the
original tables. Cleanup is never triggered implicitly, whatever the export outcome.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from .config import JanitorConfig
from .db import Database
from .exporter import STDOUT, SqlDumpExporter
from .manifest import RenameManifest
from .models import RenameRecord, SanitizationConfig, ShrinkReport
from .sanitize import substitute
from .shrinker import SchemaShrinker

logger = logging.getLogger(__name__)


class DatabaseJanitor:
    """
    Main service class for sanitized database snapshots.

    Holds one database connection and one run configuration. The
    connection is never re-pointed mid-run; build a new janitor to target
    a different database.
    """

    def __init__(
        self,
        db: Database,
        config: SanitizationConfig,
        manifest_path: Path | str | None = None,
    ) -> None:
        """
        Initialize the janitor.

        Args:
            db: Connected database to shrink and export
            config: Tables to sanitize, trim, scrub, and exclude
            manifest_path: Optional file recording parked tables until cleanup
        """
        self.db = db
        self.config = config
        self.shrinker = SchemaShrinker(db, config)
        self.manifest = RenameManifest.load(manifest_path) if manifest_path else None
        self._in_flight: list[RenameRecord] = list(self.manifest.records) if self.manifest else []

    @classmethod
    def from_config(cls) -> "DatabaseJanitor":
        """
        Build a janitor from :class:`JanitorConfig`.

        Raises:
            ConfigurationError: If the configuration is invalid
            ConnectionFailedError: If the database cannot be reached
        """
        db = Database.connect(JanitorConfig.get_database_url())
        return cls(
            db,
            JanitorConfig.get_sanitization_config(),
            manifest_path=JanitorConfig.get_manifest_path(),
        )

    def sanitize(self, table: str, column: str, value: object) -> object:
        """Substitution hook bound to this janitor's configuration."""
        return substitute(table, column, value, self.config)

    def shrink(self, report: ShrinkReport | None = None) -> list[RenameRecord]:
        """
        Trim, then scrub, the configured tables.

        Every table renamed aside is recorded in the manifest, even when a
        connection failure aborts the shrink partway.

        Args:
            report: Optional report receiving per-table outcomes

        Returns:
            Records for every table renamed aside; pass them to :meth:`cleanup`
        """
        report = report if report is not None else ShrinkReport()
        start = len(report.records)
        try:
            records = self.shrinker.trim(report) + self.shrinker.scrub(report)
        finally:
            parked = report.records[start:]
            self._in_flight.extend(parked)
            if self.manifest is not None and parked:
                self.manifest.add(parked)
                self.manifest.save()

        logger.info("Shrink finished: %s", report.summary().replace("\n", "; "))
        return records

    def export(self, destination: str | Path = STDOUT) -> str | Path:
        """
        Export the current schema through the substitution policy.

        Excluded tables and every table currently parked under an alias are
        left out of the dump. Parked tables left behind by an earlier run
        are left out as well, since they hold unsanitized copies of tables
        this run knows about.

        Args:
            destination: File path, or "-" for standard output

        Returns:
            The destination written to

        Raises:
            ExportError: If the export fails
        """
        excluded = set(self.config.excluded_tables)
        excluded.update(record.alias for record in self._in_flight)
        excluded.update(record.alias for record in self._leftover_aliases())

        exporter = SqlDumpExporter(self.db, hook=self.sanitize, excluded_tables=excluded)
        return exporter.export(destination)

    def cleanup(self, records: Iterable[RenameRecord], keep_shrunk: bool = False) -> bool:
        """
        Restore parked tables.

        Args:
            records: Records returned by :meth:`shrink` or :meth:`find_orphans`
            keep_shrunk: Keep the shrunk tables and drop the originals instead

        Returns:
            True if every record was cleaned up
        """
        records = list(records)
        report = self.shrinker.cleanup(records, keep_shrunk=keep_shrunk)

        done = set(report.restored)
        self._in_flight = [
            record for record in self._in_flight if record.table not in done
        ]
        if self.manifest is not None:
            self.manifest.discard(report.restored)
            self.manifest.save()

        for table, reason in report.failed.items():
            logger.error("Could not clean up %s: %s", table, reason)
        return report.success

    def _leftover_aliases(self) -> list[RenameRecord]:
        """Orphaned aliases whose base table is live or named in the configuration."""
        configured = set(self.config.trim_tables)
        configured.update(self.config.scrub_tables)
        configured.update(self.config.sanitize_tables)
        live = set(self.db.table_names())

        leftovers = [
            record for record in self.find_orphans()
            if record.table in configured or record.table in live
        ]
        for record in leftovers:
            logger.warning(
                "Leaving %s out of the export: it looks like a parked copy of %s",
                record.alias,
                record.table,
            )
        return leftovers

    def find_orphans(self) -> list[RenameRecord]:
        """Parked tables left in the schema, e.g. by an interrupted run."""
        return self.shrinker.find_orphaned_aliases()

    def pending(self) -> list[RenameRecord]:
        """Records shrunk (or loaded from the manifest) but not yet cleaned up."""
        return list(self._in_flight)

    def close(self) -> None:
        self.db.dispose()
