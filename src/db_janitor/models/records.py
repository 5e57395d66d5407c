"""
Records describing tables moved aside by the schema shrinker.

A ``RenameRecord`` is the only link between a shrink and its cleanup:
losing one before cleanup runs leaves a shrunk table under the original
name and the real data parked under its alias.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

ALIAS_PREFIX = "original_"


def alias_for(table: str) -> str:
    """Return the name a table is parked under while shrunk."""
    return f"{ALIAS_PREFIX}{table}"


class ShrinkOperation(str, Enum):
    """Operation that moved a table aside."""

    TRIM = "trim"
    SCRUB = "scrub"


class TableOutcome(str, Enum):
    """Result of shrinking a single table."""

    SHRUNK = "shrunk"
    SKIPPED_MISSING = "skipped_missing"
    SKIPPED_ALIAS_EXISTS = "skipped_alias_exists"
    NO_PRIMARY_KEY = "no_primary_key"
    COMPOSITE_PRIMARY_KEY = "composite_primary_key"
    FAILED = "failed"


class RenameRecord(BaseModel):
    """A table currently parked under its alias."""

    model_config = ConfigDict(frozen=True)

    table: str
    alias: str
    # None when the alias was discovered in the schema rather than created this run
    operation: ShrinkOperation | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_alias(cls, data: object) -> object:
        if isinstance(data, dict) and not data.get("alias") and data.get("table"):
            data = {**data, "alias": alias_for(data["table"])}
        return data


class TableResult(BaseModel):
    """Outcome of shrinking one table."""

    table: str
    operation: ShrinkOperation
    outcome: TableOutcome
    message: str | None = None


class ShrinkReport(BaseModel):
    """
    Per-table outcomes of a shrink pass.

    Lets the caller see which tables were skipped, which were shrunk, and
    which failed key resolution before deciding to export.
    """

    results: list[TableResult] = Field(default_factory=list)
    records: list[RenameRecord] = Field(default_factory=list)

    def add(
        self,
        table: str,
        operation: ShrinkOperation,
        outcome: TableOutcome,
        message: str | None = None,
    ) -> None:
        self.results.append(
            TableResult(table=table, operation=operation, outcome=outcome, message=message)
        )

    def _tables(self, *outcomes: TableOutcome) -> list[str]:
        return [result.table for result in self.results if result.outcome in outcomes]

    @property
    def shrunk(self) -> list[str]:
        return self._tables(TableOutcome.SHRUNK)

    @property
    def skipped(self) -> list[str]:
        return self._tables(TableOutcome.SKIPPED_MISSING, TableOutcome.SKIPPED_ALIAS_EXISTS)

    @property
    def key_failures(self) -> list[str]:
        return self._tables(TableOutcome.NO_PRIMARY_KEY, TableOutcome.COMPOSITE_PRIMARY_KEY)

    @property
    def failed(self) -> list[str]:
        return self._tables(TableOutcome.FAILED)

    @property
    def clean(self) -> bool:
        """True when every requested table was shrunk or legitimately absent."""
        return not (self.key_failures or self.failed or self._tables(TableOutcome.SKIPPED_ALIAS_EXISTS))

    def summary(self) -> str:
        """One line per non-empty outcome group, for logs and the CLI."""
        lines = []
        for label, tables in (
            ("shrunk", self.shrunk),
            ("skipped", self.skipped),
            ("no usable primary key", self.key_failures),
            ("failed", self.failed),
        ):
            if tables:
                lines.append(f"{label}: {', '.join(tables)}")
        return "\n".join(lines) if lines else "no tables shrunk"


class CleanupReport(BaseModel):
    """Outcome of restoring parked tables."""

    restored: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed
