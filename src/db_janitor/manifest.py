"""
Durable record of tables parked between shrink and cleanup.

The manifest is a JSON file listing in-flight rename records. It is
written as soon as a shrink finishes and shrinks as cleanup restores
tables, so a crashed run leaves behind exactly what still needs restoring.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ManifestError
from .models import RenameRecord

logger = logging.getLogger(__name__)


class _ManifestFile(BaseModel):
    version: str = "1.0"
    records: list[RenameRecord] = Field(default_factory=list)


class RenameManifest:
    """In-flight rename records persisted to a JSON file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.records: list[RenameRecord] = []

    @classmethod
    def load(cls, path: Path | str) -> "RenameManifest":
        """
        Load a manifest; a missing file yields an empty manifest.

        Raises:
            ManifestError: If the file exists but cannot be parsed
        """
        manifest = cls(path)
        if not manifest.path.exists():
            return manifest

        try:
            payload = _ManifestFile.model_validate_json(manifest.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise ManifestError(f"Cannot read manifest {manifest.path}: {e}") from e

        manifest.records = list(payload.records)
        return manifest

    def save(self) -> None:
        """
        Write the manifest, removing the file once no records remain.

        Raises:
            ManifestError: If the file cannot be written
        """
        try:
            if not self.records:
                self.path.unlink(missing_ok=True)
                return
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = _ManifestFile(records=self.records)
            self.path.write_text(payload.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Cannot write manifest {self.path}: {e}") from e
        logger.debug("Wrote %d records to %s", len(self.records), self.path)

    def add(self, records: list[RenameRecord]) -> None:
        known = {record.alias for record in self.records}
        self.records.extend(record for record in records if record.alias not in known)

    def discard(self, tables: list[str]) -> None:
        restored = set(tables)
        self.records = [record for record in self.records if record.table not in restored]

    def clear(self) -> None:
        self.records = []

    def __len__(self) -> int:
        return len(self.records)
