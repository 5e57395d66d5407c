"""
SQL dump exporter.

This module streams every non-excluded table of the live schema into a
portable SQL script: structure first, then one INSERT per row. Each value
passes through a transform hook on its way out, which is where the
substitution policy plugs in.
"""

import logging
import sys
from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import TextIO

from sqlalchemy import MetaData, Table, insert, literal, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateTable

from .db import Database
from .exceptions import ExportError

logger = logging.getLogger(__name__)

# (table, column, value) -> value
TransformHook = Callable[[str, str, object], object]

STDOUT = "-"


def _identity(table: str, column: str, value: object) -> object:
    return value


def _literal(value: object):
    """Wrap a Python value so it renders as an inline SQL literal."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return literal_column(f"X'{bytes(value).hex()}'")
    if isinstance(value, (datetime, date, time, timedelta)):
        return literal(str(value))
    return literal(value)


class SqlDumpExporter:
    """
    Writes a SQL dump of a live database.

    No table locks are emitted, and on MySQL foreign key checks are
    disabled for the duration of the load so tables can be replayed in any
    order.
    """

    def __init__(
        self,
        db: Database,
        hook: TransformHook | None = None,
        excluded_tables: Iterable[str] = (),
    ) -> None:
        """
        Initialize the exporter.

        Args:
            db: Database to export
            hook: Called for every column of every row; its result is written
            excluded_tables: Tables left out of the dump entirely
        """
        self.db = db
        self.hook = hook or _identity
        self.excluded_tables = frozenset(excluded_tables)

    def export(self, destination: str | Path = STDOUT) -> str | Path:
        """
        Write the dump.

        Args:
            destination: File path, or "-" for standard output

        Returns:
            The destination written to

        Raises:
            ExportError: If reading the database or writing the dump fails
        """
        try:
            if str(destination) == STDOUT:
                self.write(sys.stdout)
            else:
                with open(destination, "w", encoding="utf-8") as out:
                    self.write(out)
        except (SQLAlchemyError, OSError) as e:
            raise ExportError(f"Export failed: {e}", {"destination": str(destination)}) from e

        logger.info("Wrote dump to %s", "standard output" if str(destination) == STDOUT else destination)
        return destination

    def write(self, out: TextIO) -> None:
        """Write the dump to an open text stream."""
        metadata = MetaData()
        metadata.reflect(
            bind=self.db.engine,
            only=lambda name, _: name not in self.excluded_tables,
        )
        mysql = self.db.dialect_name in ("mysql", "mariadb")

        out.write("-- db-janitor SQL dump\n")
        out.write(f"-- Dialect: {self.db.dialect_name}\n")
        out.write(f"-- Generated: {datetime.now(timezone.utc).isoformat()}\n")
        if mysql:
            out.write("\nSET FOREIGN_KEY_CHECKS=0;\n")

        for table in metadata.sorted_tables:
            if table.name in self.excluded_tables:
                continue
            self._write_table(table, out)

        if mysql:
            out.write("\nSET FOREIGN_KEY_CHECKS=1;\n")

    def _write_table(self, table: Table, out: TextIO) -> None:
        dialect = self.db.engine.dialect
        name = table.name

        out.write(f"\n--\n-- Table structure for table {name}\n--\n\n")
        out.write(f"DROP TABLE IF EXISTS {self.db.quote(name)};\n")
        out.write(f"{str(CreateTable(table).compile(dialect=dialect)).strip()};\n")
        out.write(f"\n--\n-- Dumping data for table {name}\n--\n\n")

        rows = 0
        with self.db.engine.connect() as conn:
            result = conn.execution_options(stream_results=True).execute(select(table))
            for row in result.mappings():
                values = {
                    column: _literal(self.hook(name, column, value))
                    for column, value in row.items()
                }
                statement = insert(table).values(values)
                compiled = statement.compile(dialect=dialect, compile_kwargs={"literal_binds": True})
                out.write(f"{compiled};\n")
                rows += 1

        logger.debug("Dumped %d rows from %s", rows, name)
