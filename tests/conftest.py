"""
Pytest configuration for DB Janitor tests.
"""

import os
from collections.abc import Callable, Generator

import pytest

from db_janitor.db import Database

JANITOR_ENV_VARS = [
    "JANITOR_DB_URL",
    "JANITOR_DB_USERNAME",
    "JANITOR_DB_PASSWORD",
    "JANITOR_OUTPUT",
    "JANITOR_MANIFEST",
    "JANITOR_LOG_LEVEL",
]


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """
    Remove janitor environment variables for the duration of a test.

    The original values are restored afterward.
    """
    original = {key: os.environ.pop(key, None) for key in JANITOR_ENV_VARS}

    yield

    for key, value in original.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


@pytest.fixture
def db_url(tmp_path) -> str:
    """URL of a fresh file-backed SQLite database."""
    return f"sqlite:///{tmp_path / 'janitor.db'}"


@pytest.fixture
def db(db_url) -> Generator[Database, None, None]:
    """Connected database, disposed after the test."""
    database = Database.connect(db_url)

    yield database

    database.dispose()


@pytest.fixture
def make_table(db) -> Callable[..., None]:
    """
    Create and fill a table.

    Usage: ``make_table("users", "id INTEGER PRIMARY KEY, email TEXT", [(1, "a@x"), ...])``
    """

    def _make(name: str, columns: str, rows: list[tuple] = ()) -> None:
        db.execute(f"CREATE TABLE {name} ({columns})")
        for row in rows:
            placeholders = ", ".join(f":p{i}" for i in range(len(row)))
            db.execute(
                f"INSERT INTO {name} VALUES ({placeholders})",
                **{f"p{i}": value for i, value in enumerate(row)},
            )

    return _make


@pytest.fixture
def rows_of(db) -> Callable[[str], list[tuple]]:
    """Read all rows of a table ordered by its first column."""

    def _rows(table: str) -> list[tuple]:
        return [tuple(row) for row in db.query(f"SELECT * FROM {table} ORDER BY 1")]

    return _rows
