"""
Tests for the SchemaShrinker.

These tests run the rename-swap-restore protocol against a real SQLite
database and check both the shrunk replacement and the parked original.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from db_janitor.models import (
    RenameRecord,
    SanitizationConfig,
    ShrinkOperation,
    ShrinkReport,
    TableOutcome,
)
from db_janitor.shrinker import SchemaShrinker

USERS = [(i, f"user{i}@example.com") for i in range(1, 9)]
SECRETS = [(i, f"token-{i}") for i in range(1, 6)]


@pytest.fixture
def users(make_table) -> None:
    make_table("users", "id INTEGER PRIMARY KEY, email TEXT", USERS)


@pytest.fixture
def secrets(make_table) -> None:
    make_table("secrets", "id INTEGER PRIMARY KEY, token TEXT", SECRETS)


class TestTrim:
    """Tests for trimming tables."""

    def test_keeps_every_fourth_row(self, db, users, rows_of) -> None:
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["users"]))

        records = shrinker.trim()

        assert records == [RenameRecord(table="users", operation=ShrinkOperation.TRIM)]
        assert rows_of("users") == [USERS[0], USERS[4]]
        assert rows_of("original_users") == USERS

    @pytest.mark.parametrize("count, expected", [(1, 1), (3, 1), (4, 1), (5, 2), (9, 3), (13, 4)])
    def test_row_count_is_ceiling_of_quarter(self, db, make_table, rows_of, count, expected) -> None:
        rows = [(i, f"row{i}") for i in range(1, count + 1)]
        make_table("logs", "id INTEGER PRIMARY KEY, line TEXT", rows)

        SchemaShrinker(db, SanitizationConfig(trim_tables=["logs"])).trim()

        kept = rows_of("logs")
        assert len(kept) == expected
        assert set(kept) <= set(rows)

    def test_pinned_rows_are_kept(self, db, users, rows_of) -> None:
        config = SanitizationConfig(trim_tables=["users"], keep_rows={"users": [3, 5, 8]})

        SchemaShrinker(db, config).trim()

        assert [row[0] for row in rows_of("users")] == [1, 3, 5, 8]

    def test_empty_table_yields_empty_replacement(self, db, make_table, rows_of) -> None:
        make_table("users", "id INTEGER PRIMARY KEY, email TEXT")

        report = ShrinkReport()
        SchemaShrinker(db, SanitizationConfig(trim_tables=["users"])).trim(report)

        assert db.has_table("users")
        assert rows_of("users") == []
        assert report.shrunk == ["users"]

    def test_sampling_uses_key_order(self, db, make_table, rows_of) -> None:
        make_table(
            "users",
            "id INTEGER PRIMARY KEY, email TEXT",
            [(40, "d"), (10, "a"), (30, "c"), (20, "b"), (50, "e")],
        )

        SchemaShrinker(db, SanitizationConfig(trim_tables=["users"])).trim()

        assert rows_of("users") == [(10, "a"), (50, "e")]

    def test_missing_table_is_skipped(self, db, users) -> None:
        report = ShrinkReport()
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["ghosts", "users"]))

        records = shrinker.trim(report)

        assert [record.table for record in records] == ["users"]
        assert report.skipped == ["ghosts"]
        assert report.shrunk == ["users"]
        assert report.clean

    def test_no_primary_key_stays_parked(self, db, make_table) -> None:
        make_table("events", "name TEXT, payload TEXT", [("a", "1"), ("b", "2")])
        report = ShrinkReport()

        records = SchemaShrinker(db, SanitizationConfig(trim_tables=["events"])).trim(report)

        assert records == [RenameRecord(table="events", operation=ShrinkOperation.TRIM)]
        assert report.key_failures == ["events"]
        assert report.results[0].outcome is TableOutcome.NO_PRIMARY_KEY
        assert not db.has_table("events")
        assert db.has_table("original_events")

    def test_composite_primary_key_reported(self, db, make_table) -> None:
        make_table("links", "a INTEGER, b INTEGER, PRIMARY KEY (a, b)", [(1, 1), (1, 2)])
        report = ShrinkReport()

        records = SchemaShrinker(db, SanitizationConfig(trim_tables=["links"])).trim(report)

        assert len(records) == 1
        assert report.results[0].outcome is TableOutcome.COMPOSITE_PRIMARY_KEY
        assert "composite" in report.results[0].message

    def test_existing_alias_is_not_overwritten(self, db, users, make_table, rows_of) -> None:
        make_table("original_users", "id INTEGER PRIMARY KEY, email TEXT", [(99, "old")])
        report = ShrinkReport()

        records = SchemaShrinker(db, SanitizationConfig(trim_tables=["users"])).trim(report)

        assert records == []
        assert report.results[0].outcome is TableOutcome.SKIPPED_ALIAS_EXISTS
        assert rows_of("users") == USERS
        assert rows_of("original_users") == [(99, "old")]

    def test_statement_failure_is_recorded_and_run_continues(self, db, users, secrets) -> None:
        config = SanitizationConfig(trim_tables=["users", "secrets"])
        shrinker = SchemaShrinker(db, config)
        original = db.create_empty_like

        def fail_for_users(table: str, source: str) -> None:
            if table == "users":
                raise OperationalError("CREATE TABLE users", {}, Exception("disk full"))
            original(table, source)

        report = ShrinkReport()
        with patch.object(db, "create_empty_like", side_effect=fail_for_users):
            records = shrinker.trim(report)

        # The alias for users exists and is still handed back for cleanup
        assert [record.table for record in records] == ["users", "secrets"]
        assert report.failed == ["users"]
        assert report.shrunk == ["secrets"]

    def test_lost_connection_aborts(self, db, users) -> None:
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["users"]))
        error = OperationalError("SELECT", {}, Exception("gone"), connection_invalidated=True)

        with patch.object(db, "column_values", side_effect=error):
            with pytest.raises(OperationalError):
                shrinker.trim()


class TestScrub:
    """Tests for scrubbing tables."""

    def test_keeps_only_pinned_rows(self, db, secrets, rows_of) -> None:
        config = SanitizationConfig(scrub_tables=["secrets"], keep_rows={"secrets": [2]})

        records = SchemaShrinker(db, config).scrub()

        assert records == [RenameRecord(table="secrets", operation=ShrinkOperation.SCRUB)]
        assert rows_of("secrets") == [(2, "token-2")]
        assert rows_of("original_secrets") == SECRETS

    def test_without_pinned_rows_empties_table(self, db, secrets, rows_of) -> None:
        report = ShrinkReport()

        SchemaShrinker(db, SanitizationConfig(scrub_tables=["secrets"])).scrub(report)

        assert rows_of("secrets") == []
        columns = [row[1] for row in db.query("PRAGMA table_info(secrets)")]
        assert columns == ["id", "token"]
        assert report.shrunk == ["secrets"]

    def test_never_samples(self, db, users, rows_of) -> None:
        config = SanitizationConfig(scrub_tables=["users"], keep_rows={"users": [6]})

        SchemaShrinker(db, config).scrub()

        assert rows_of("users") == [USERS[5]]

    def test_missing_table_is_skipped(self, db) -> None:
        report = ShrinkReport()

        records = SchemaShrinker(db, SanitizationConfig(scrub_tables=["ghosts"])).scrub(report)

        assert records == []
        assert report.skipped == ["ghosts"]

    def test_pinned_rows_without_primary_key(self, db, make_table, rows_of) -> None:
        make_table("events", "name TEXT, payload TEXT", [("a", "1")])
        config = SanitizationConfig(scrub_tables=["events"], keep_rows={"events": ["a"]})
        report = ShrinkReport()

        SchemaShrinker(db, config).scrub(report)

        assert rows_of("events") == []
        assert report.key_failures == ["events"]


class TestCleanup:
    """Tests for restoring parked tables."""

    def test_restores_original(self, db, users, secrets, rows_of) -> None:
        config = SanitizationConfig(trim_tables=["users"], scrub_tables=["secrets"])
        shrinker = SchemaShrinker(db, config)
        records = shrinker.trim() + shrinker.scrub()

        report = shrinker.cleanup(records)

        assert report.success
        assert report.restored == ["users", "secrets"]
        assert rows_of("users") == USERS
        assert rows_of("secrets") == SECRETS
        assert sorted(db.table_names()) == ["secrets", "users"]

    def test_restores_primary_key(self, db, users) -> None:
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["users"]))
        shrinker.cleanup(shrinker.trim())

        assert db.get_primary_key("users") == "id"

    def test_restores_table_left_without_replacement(self, db, make_table, rows_of) -> None:
        make_table("events", "name TEXT, payload TEXT", [("a", "1")])
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["events"]))

        report = shrinker.cleanup(shrinker.trim())

        assert report.success
        assert rows_of("events") == [("a", "1")]
        assert not db.has_table("original_events")

    def test_second_cleanup_reports_failure_without_data_loss(self, db, users, rows_of) -> None:
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["users"]))
        records = shrinker.trim()
        assert shrinker.cleanup(records).success

        report = shrinker.cleanup(records)

        assert not report.success
        assert "users" in report.failed
        assert rows_of("users") == USERS

    def test_keep_shrunk_drops_original(self, db, users, rows_of) -> None:
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["users"]))

        report = shrinker.cleanup(shrinker.trim(), keep_shrunk=True)

        assert report.success
        assert rows_of("users") == [USERS[0], USERS[4]]
        assert not db.has_table("original_users")

    def test_keep_shrunk_outside_mysql_has_no_primary_key(self, db, users) -> None:
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["users"]))

        shrinker.cleanup(shrinker.trim(), keep_shrunk=True)

        assert db.dialect_name == "sqlite"
        assert db.get_primary_key("users") is None

    def test_keep_shrunk_without_replacement_fails(self, db, make_table) -> None:
        make_table("events", "name TEXT")
        shrinker = SchemaShrinker(db, SanitizationConfig(trim_tables=["events"]))

        report = shrinker.cleanup(shrinker.trim(), keep_shrunk=True)

        assert not report.success
        assert db.has_table("original_events")

    def test_failure_on_one_table_does_not_stop_others(self, db, users, secrets, rows_of) -> None:
        config = SanitizationConfig(trim_tables=["users", "secrets"])
        shrinker = SchemaShrinker(db, config)
        records = shrinker.trim()
        original = db.rename_table

        def fail_for_users(old: str, new: str) -> None:
            if new == "users":
                raise OperationalError("ALTER TABLE", {}, Exception("locked"))
            original(old, new)

        with patch.object(db, "rename_table", side_effect=fail_for_users):
            report = shrinker.cleanup(records)

        assert report.restored == ["secrets"]
        assert "users" in report.failed
        assert rows_of("secrets") == SECRETS
        assert db.has_table("original_users")


class TestOrphans:
    """Tests for discovering parked tables."""

    def test_finds_parked_tables(self, db, users, secrets) -> None:
        config = SanitizationConfig(trim_tables=["users"], scrub_tables=["secrets"])
        shrinker = SchemaShrinker(db, config)
        shrinker.trim()
        shrinker.scrub()

        orphans = SchemaShrinker(db, SanitizationConfig()).find_orphaned_aliases()

        assert sorted(orphan.table for orphan in orphans) == ["secrets", "users"]
        assert all(orphan.operation is None for orphan in orphans)

    def test_orphans_can_be_cleaned_up(self, db, users, rows_of) -> None:
        SchemaShrinker(db, SanitizationConfig(trim_tables=["users"])).trim()

        fresh = SchemaShrinker(db, SanitizationConfig())
        report = fresh.cleanup(fresh.find_orphaned_aliases())

        assert report.success
        assert rows_of("users") == USERS

    def test_nothing_parked(self, db, users) -> None:
        assert SchemaShrinker(db, SanitizationConfig()).find_orphaned_aliases() == []
