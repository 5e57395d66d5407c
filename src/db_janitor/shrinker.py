"""
Schema shrinker.

Shrinks tables in the live schema before export by parking each table
under an ``original_`` alias and rebuilding a reduced copy under the real
name. Cleanup later restores the parked originals. Every table is handled
independently: a failure on one table is recorded and the rest continue.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from .db import Database
from .exceptions import CompositePrimaryKeyError
from .models import (
    ALIAS_PREFIX,
    CleanupReport,
    RenameRecord,
    SanitizationConfig,
    ShrinkOperation,
    ShrinkReport,
    TableOutcome,
    alias_for,
)

logger = logging.getLogger(__name__)

# Trim keeps rows at positions 0, N, 2N, ... of the ordered key scan
SAMPLE_INTERVAL = 4


def _reraise_if_disconnected(error: SQLAlchemyError) -> None:
    """Connection-level failures abort the run instead of being recorded per table."""
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        raise error


class SchemaShrinker:
    """
    Trims and scrubs tables of a live database in place.

    The records returned by :meth:`trim` and :meth:`scrub` must be handed
    to :meth:`cleanup` once the export has been written; until then the
    real data lives only under the aliases.
    """

    def __init__(self, db: Database, config: SanitizationConfig) -> None:
        """
        Initialize the shrinker.

        Args:
            db: Database the tables live in
            config: Run configuration naming the tables to shrink
        """
        self.db = db
        self.config = config

    def _park(
        self, table: str, operation: ShrinkOperation, report: ShrinkReport
    ) -> RenameRecord | None:
        """
        Rename ``table`` to its alias.

        Returns:
            The record for the parked table, or None if it was skipped
        """
        alias = alias_for(table)

        if not self.db.has_table(table):
            logger.info("Skipping %s of %s: table not found", operation.value, table)
            report.add(table, operation, TableOutcome.SKIPPED_MISSING)
            return None

        if self.db.has_table(alias):
            message = f"alias {alias} already exists, possibly from an interrupted run"
            logger.warning("Skipping %s of %s: %s", operation.value, table, message)
            report.add(table, operation, TableOutcome.SKIPPED_ALIAS_EXISTS, message)
            return None

        self.db.rename_table(table, alias)
        record = RenameRecord(table=table, alias=alias, operation=operation)
        report.records.append(record)
        logger.debug("Renamed %s to %s", table, alias)
        return record

    def _resolve_key(
        self, record: RenameRecord, report: ShrinkReport
    ) -> str | None:
        """Resolve the primary key of a parked table, recording any failure."""
        try:
            key = self.db.get_primary_key(record.alias)
        except CompositePrimaryKeyError as e:
            logger.warning("Cannot shrink %s: %s", record.table, e)
            report.add(record.table, record.operation, TableOutcome.COMPOSITE_PRIMARY_KEY, str(e))
            return None

        if key is None:
            message = f"no primary key found on {record.alias}"
            logger.warning("Cannot shrink %s: %s", record.table, message)
            report.add(record.table, record.operation, TableOutcome.NO_PRIMARY_KEY, message)
        return key

    def trim(self, report: ShrinkReport | None = None) -> list[RenameRecord]:
        """
        Keep roughly one row in four of every table in ``trim_tables``.

        Sampling follows primary key order: the rows at positions 0, 4, 8, ...
        of an ascending key scan are kept, so repeated runs keep the same rows.

        Pinned rows from ``keep_rows`` are always kept. A table without a
        usable primary key stays parked under its alias with no replacement;
        its record is still returned so cleanup can restore it.

        Args:
            report: Optional report to record per-table outcomes in

        Returns:
            Records for every table renamed aside
        """
        report = report if report is not None else ShrinkReport()
        records: list[RenameRecord] = []

        for table in self.config.trim_tables:
            try:
                record = self._park(table, ShrinkOperation.TRIM, report)
                if record is None:
                    continue
                records.append(record)

                key = self._resolve_key(record, report)
                if key is None:
                    continue

                keep = list(self.config.pinned_rows(table))
                for index, value in enumerate(self.db.column_values(record.alias, key)):
                    if index % SAMPLE_INTERVAL == 0:
                        keep.append(value)

                self.db.create_empty_like(table, record.alias)
                copied = self.db.copy_rows(table, record.alias, key, dict.fromkeys(keep))
                logger.info("Trimmed %s to %d rows", table, copied)
                report.add(table, ShrinkOperation.TRIM, TableOutcome.SHRUNK, f"kept {copied} rows")
            except SQLAlchemyError as e:
                _reraise_if_disconnected(e)
                logger.error("Failed to trim %s: %s", table, e)
                report.add(table, ShrinkOperation.TRIM, TableOutcome.FAILED, str(e))

        return records

    def scrub(self, report: ShrinkReport | None = None) -> list[RenameRecord]:
        """
        Reduce every table in ``scrub_tables`` to its pinned rows.

        Args:
            report: Optional report to record per-table outcomes in

        Returns:
            Records for every table renamed aside
        """
        report = report if report is not None else ShrinkReport()
        records: list[RenameRecord] = []

        for table in self.config.scrub_tables:
            try:
                record = self._park(table, ShrinkOperation.SCRUB, report)
                if record is None:
                    continue
                records.append(record)

                self.db.create_empty_like(table, record.alias)

                pinned = self.config.pinned_rows(table)
                if pinned:
                    key = self._resolve_key(record, report)
                    if key is None:
                        continue
                    copied = self.db.copy_rows(table, record.alias, key, pinned)
                else:
                    copied = 0

                logger.info("Scrubbed %s down to %d rows", table, copied)
                report.add(table, ShrinkOperation.SCRUB, TableOutcome.SHRUNK, f"kept {copied} rows")
            except SQLAlchemyError as e:
                _reraise_if_disconnected(e)
                logger.error("Failed to scrub %s: %s", table, e)
                report.add(table, ShrinkOperation.SCRUB, TableOutcome.FAILED, str(e))

        return records

    def cleanup(
        self, records: Iterable[RenameRecord], keep_shrunk: bool = False
    ) -> CleanupReport:
        """
        Restore parked tables.

        By default the shrunk replacement is dropped and the alias renamed
        back, restoring the exact original table. With ``keep_shrunk`` the
        replacement stays and the alias is dropped instead.

        Nothing is dropped for a record whose alias no longer exists, so
        running cleanup twice reports failures rather than losing data.

        Outside MySQL the shrunk replacement is built with
        ``CREATE TABLE ... AS SELECT`` and carries no primary key or indexes,
        so tables kept with ``keep_shrunk`` lose them there.

        Args:
            records: Records returned by trim, scrub, or orphan scanning
            keep_shrunk: Keep the shrunk tables and discard the originals

        Returns:
            Which tables were restored and which failed
        """
        report = CleanupReport()

        for record in records:
            try:
                if not self.db.has_table(record.alias):
                    message = f"alias {record.alias} not found; nothing restored"
                    logger.error("Cannot clean up %s: %s", record.table, message)
                    report.failed[record.table] = message
                    continue

                if keep_shrunk:
                    if not self.db.has_table(record.table):
                        message = f"no shrunk {record.table} to keep; alias left in place"
                        logger.error("Cannot clean up %s: %s", record.table, message)
                        report.failed[record.table] = message
                        continue
                    self.db.drop_table(record.alias)
                else:
                    if self.db.has_table(record.table):
                        self.db.drop_table(record.table)
                    self.db.rename_table(record.alias, record.table)

                logger.debug("Cleaned up %s", record.table)
                report.restored.append(record.table)
            except SQLAlchemyError as e:
                _reraise_if_disconnected(e)
                logger.error("Failed to clean up %s: %s", record.table, e)
                report.failed[record.table] = str(e)

        return report

    def find_orphaned_aliases(self) -> list[RenameRecord]:
        """
        List parked tables present in the live schema.

        Used to reconcile a run that stopped before cleanup.

        Returns:
            A record for each ``original_`` table, with no operation set
        """
        orphans = []
        for name in self.db.table_names():
            if name.startswith(ALIAS_PREFIX) and len(name) > len(ALIAS_PREFIX):
                orphans.append(RenameRecord(table=name[len(ALIAS_PREFIX):], alias=name))
        return orphans
