"""
Per-run sanitization options.

This module provides the explicit configuration object handed to the
substitution policy, the schema shrinker, and the exporter. It is built
once per run and never mutated.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

RowId = int | str


def _unique(values: list[str]) -> tuple[str, ...]:
    """Strip, drop empties, and de-duplicate while keeping order."""
    seen: dict[str, None] = {}
    for value in values:
        name = str(value).strip()
        if name:
            seen.setdefault(name, None)
    return tuple(seen)


class SanitizationConfig(BaseModel):
    """
    Options controlling one sanitized export.

    Attributes:
        sanitize_tables: Table name to the columns whose values are replaced
        keep_rows: Table name to the primary key values always preserved
        trim_tables: Tables shrunk by keeping every fourth row plus pinned rows
        scrub_tables: Tables shrunk to only their pinned rows
        excluded_tables: Tables omitted from the export entirely
    """

    model_config = ConfigDict(frozen=True)

    sanitize_tables: dict[str, frozenset[str]] = Field(default_factory=dict)
    keep_rows: dict[str, tuple[RowId, ...]] = Field(default_factory=dict)
    trim_tables: tuple[str, ...] = ()
    scrub_tables: tuple[str, ...] = ()
    excluded_tables: tuple[str, ...] = ()

    @field_validator("sanitize_tables", mode="before")
    @classmethod
    def _normalize_sanitize_tables(cls, value: object) -> object:
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        normalized: dict[str, list[str]] = {}
        for table, columns in value.items():
            if not str(table).strip():
                raise ValueError("sanitize_tables contains an empty table name")
            if isinstance(columns, str):
                columns = [columns]
            normalized[str(table).strip()] = list(_unique(list(columns or [])))
        return normalized

    @field_validator("keep_rows", mode="before")
    @classmethod
    def _normalize_keep_rows(cls, value: object) -> object:
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        normalized: dict[str, list[object]] = {}
        for table, rows in value.items():
            if not str(table).strip():
                raise ValueError("keep_rows contains an empty table name")
            if isinstance(rows, (int, str)):
                rows = [rows]
            normalized[str(table).strip()] = list(dict.fromkeys(rows or []))
        return normalized

    @field_validator("trim_tables", "scrub_tables", "excluded_tables", mode="before")
    @classmethod
    def _normalize_table_list(cls, value: object) -> object:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple, set, frozenset)):
            return _unique(list(value))
        return value

    def columns_for(self, table: str) -> frozenset[str]:
        """Columns configured for substitution in ``table``."""
        return self.sanitize_tables.get(table, frozenset())

    def pinned_rows(self, table: str) -> tuple[RowId, ...]:
        """Primary key values pinned for ``table``."""
        return self.keep_rows.get(table, ())
