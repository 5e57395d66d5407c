"""
Database access for the janitor.

This module provides a thin synchronous wrapper around a SQLAlchemy
engine: the query/execute capability plus the handful of DDL helpers the
schema shrinker needs. Every statement runs in its own transaction, so no
transaction ever spans more than one table.
"""

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import bindparam, create_engine, inspect, text
from sqlalchemy.engine import URL, Engine, Row
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from ..exceptions import CompositePrimaryKeyError, ConnectionFailedError

logger = logging.getLogger(__name__)

# Dialects that understand CREATE TABLE ... LIKE
_LIKE_DIALECTS = {"mysql", "mariadb"}

DEFAULT_BATCH_SIZE = 1000


class Database:
    """
    Synchronous query/execute capability against one live database.

    Use :meth:`connect` to build an instance; it fails loudly when the
    database cannot be reached instead of handing back a broken handle.
    """

    def __init__(self, engine: Engine) -> None:
        """
        Wrap an existing engine.

        Args:
            engine: SQLAlchemy engine bound to the target database
        """
        self.engine = engine

    @classmethod
    def connect(cls, url: str | URL, **engine_kwargs: object) -> "Database":
        """
        Create an engine for ``url`` and verify the database answers.

        Args:
            url: SQLAlchemy database URL
            engine_kwargs: Extra keyword arguments for ``create_engine``

        Returns:
            A connected Database

        Raises:
            ConnectionFailedError: If the engine cannot be created or the
                database does not answer ``SELECT 1``
        """
        try:
            engine = create_engine(url, **engine_kwargs)
        except (SQLAlchemyError, ImportError) as e:
            raise ConnectionFailedError(f"Invalid database configuration: {e}") from e

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            engine.dispose()
            raise ConnectionFailedError(
                f"Failed to connect to database: {e}",
                {"url": engine.url.render_as_string(hide_password=True)},
            ) from e

        logger.debug("Connected to %s", engine.url.render_as_string(hide_password=True))
        return cls(engine)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def quote(self, name: str) -> str:
        """Quote an identifier for the engine's dialect."""
        return self.engine.dialect.identifier_preparer.quote(name)

    @staticmethod
    def _statement(sql: str, params: dict[str, object]) -> TextClause:
        statement = text(sql)
        expanding = [
            bindparam(name, expanding=True)
            for name, value in params.items()
            if isinstance(value, (list, tuple))
        ]
        if expanding:
            statement = statement.bindparams(*expanding)
        return statement

    def query(self, sql: str, **params: object) -> list[Row]:
        """
        Run a query and return all rows.

        List or tuple parameters are expanded, so ``WHERE id IN :ids``
        accepts a sequence.
        """
        with self.engine.connect() as conn:
            return list(conn.execute(self._statement(sql, params), params))

    def execute(self, sql: str, **params: object) -> int:
        """
        Run a statement in its own transaction.

        Returns:
            Number of rows affected, as reported by the driver
        """
        with self.engine.begin() as conn:
            result = conn.execute(self._statement(sql, params), params)
            return result.rowcount

    def has_table(self, name: str) -> bool:
        """Check whether ``name`` exists in the live schema."""
        return inspect(self.engine).has_table(name)

    def table_names(self) -> list[str]:
        """Names of all tables in the live schema."""
        return inspect(self.engine).get_table_names()

    def get_primary_key(self, table: str) -> str | None:
        """
        Resolve the single primary key column of ``table``.

        Args:
            table: Table to introspect

        Returns:
            The primary key column name, or None if none is declared

        Raises:
            CompositePrimaryKeyError: If the key spans several columns
        """
        try:
            constraint = inspect(self.engine).get_pk_constraint(table)
        except NoSuchTableError:
            return None

        columns = list(constraint.get("constrained_columns") or [])
        if not columns:
            return None
        if len(columns) > 1:
            raise CompositePrimaryKeyError(table, columns)
        return columns[0]

    def column_values(self, table: str, column: str) -> list[object]:
        """All values of ``column`` in ``table``, ordered by that column."""
        quoted = self.quote(column)
        rows = self.query(f"SELECT {quoted} FROM {self.quote(table)} ORDER BY {quoted}")
        return [row[0] for row in rows]

    def rename_table(self, old: str, new: str) -> None:
        self.execute(f"ALTER TABLE {self.quote(old)} RENAME TO {self.quote(new)}")

    def drop_table(self, name: str) -> None:
        self.execute(f"DROP TABLE {self.quote(name)}")

    def create_empty_like(self, table: str, source: str) -> None:
        """
        Create ``table`` with the structure of ``source`` and no rows.

        MySQL copies keys and indexes with ``CREATE TABLE ... LIKE``; other
        dialects get the column layout only.
        """
        if self.dialect_name in _LIKE_DIALECTS:
            self.execute(f"CREATE TABLE {self.quote(table)} LIKE {self.quote(source)}")
        else:
            self.execute(
                f"CREATE TABLE {self.quote(table)} AS SELECT * FROM {self.quote(source)} WHERE 1 = 0"
            )

    def copy_rows(
        self,
        target: str,
        source: str,
        key: str,
        values: Iterable[object],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Copy the rows of ``source`` whose ``key`` is in ``values`` into ``target``.

        Args:
            target: Table receiving the rows
            source: Table the rows are read from
            key: Column matched against ``values``
            values: Key values to copy
            batch_size: Maximum number of keys per INSERT

        Returns:
            Number of rows copied
        """
        sql = (
            f"INSERT INTO {self.quote(target)} SELECT * FROM {self.quote(source)} "
            f"WHERE {self.quote(key)} IN :keep"
        )
        copied = 0
        for batch in _batched(list(values), batch_size):
            copied += self.execute(sql, keep=batch)
        return copied

    def dispose(self) -> None:
        """Close all pooled connections."""
        self.engine.dispose()


def _batched(values: Sequence[object], size: int) -> Iterable[list[object]]:
    for start in range(0, len(values), size):
        yield list(values[start:start + size])
