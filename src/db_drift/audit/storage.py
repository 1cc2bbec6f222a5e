"""Audit history storage.

Defines the ``AuditStorage`` Protocol the orchestrator writes through and
``JsonlAuditStorage``, which appends one JSON object per line to
``comparisons.jsonl`` and ``migrations.jsonl`` under a directory.

Usage:
    from db_drift.audit.storage import JsonlAuditStorage

    storage = JsonlAuditStorage(".db-drift/history")
    await storage.save_comparison(record)
    await storage.save_migration("PROD", "shop", "TABLES", "users",
                                 "different", "SUCCESS")
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel

from db_drift.audit.models import ComparisonRecord, MigrationRecord


class AuditStorage(Protocol):
    """Sink for comparison and migration audit records."""

    async def save_comparison(self, record: ComparisonRecord) -> None:
        """Persist one compared object."""
        ...

    async def save_migration(
        self,
        env: str,
        database: str,
        type: str,
        name: str,
        prior_status: str,
        outcome: str,
        error: str | None = None,
    ) -> None:
        """Persist the outcome of applying one row."""
        ...


class JsonlAuditStorage:
    """Append-only JSON-lines audit files.

    Args:
        directory: Directory holding the ``.jsonl`` files.  Created on
            first write.
    """

    COMPARISONS_FILE = "comparisons.jsonl"
    MIGRATIONS_FILE = "migrations.jsonl"

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def comparisons_path(self) -> Path:
        return self._directory / self.COMPARISONS_FILE

    @property
    def migrations_path(self) -> Path:
        return self._directory / self.MIGRATIONS_FILE

    def _append(self, path: Path, record: BaseModel) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    async def save_comparison(self, record: ComparisonRecord) -> None:
        if record.recorded_at is None:
            record = record.model_copy(update={"recorded_at": self._now()})
        self._append(self.comparisons_path, record)

    async def save_migration(
        self,
        env: str,
        database: str,
        type: str,
        name: str,
        prior_status: str,
        outcome: str,
        error: str | None = None,
    ) -> None:
        record = MigrationRecord(
            env=env,
            database=database,
            type=type,
            name=name,
            prior_status=prior_status,
            outcome=outcome,
            error=error,
            recorded_at=self._now(),
        )
        self._append(self.migrations_path, record)
