"""
Exceptions raised by the database janitor.

Table-level problems during shrinking and cleanup are recorded in reports
instead of raised; the exceptions here cover failures that stop a run.
"""

from typing import Any


class JanitorError(Exception):
    """Base exception for all janitor errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for reporting."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message


class ConfigurationError(JanitorError):
    """Raised when configuration cannot be loaded or is invalid."""


class ConnectionFailedError(JanitorError):
    """Raised when the database cannot be reached at construction time."""


class ExportError(JanitorError):
    """Raised when the dump exporter fails; fatal for the run."""


class ManifestError(JanitorError):
    """Raised when the rename manifest cannot be read or written."""


class PrimaryKeyError(JanitorError):
    """Raised when a table's primary key cannot be used for shrinking."""

    def __init__(self, table: str, message: str | None = None) -> None:
        super().__init__(message or f"No primary key found for table '{table}'", {"table": table})
        self.table = table


class CompositePrimaryKeyError(PrimaryKeyError):
    """Raised when a table declares a primary key spanning several columns."""

    def __init__(self, table: str, columns: list[str]) -> None:
        super().__init__(
            table,
            f"Table '{table}' has a composite primary key ({', '.join(columns)}); "
            "only single-column keys are supported",
        )
        self.columns = columns
        self.details["columns"] = columns
