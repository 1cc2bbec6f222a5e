"""Audit record models.

One ``ComparisonRecord`` is written per DiffRow a compare produces, and
one ``MigrationRecord`` per row a migrate applies (successfully or not).
Records are append-only; nothing in db-drift reads them back.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ComparisonRecord(BaseModel):
    """A single compared object."""

    src_env: str
    dest_env: str
    database: str
    type: str                                       # plural tag, e.g. TABLES
    name: str
    status: str                                     # DiffRow status
    alter_statements: list[str] = Field(default_factory=list)
    recorded_at: str | None = None


class MigrationRecord(BaseModel):
    """Outcome of applying one row's statements."""

    env: str
    database: str
    type: str
    name: str
    prior_status: str                               # status the row was compared with
    outcome: Literal["SUCCESS", "FAILED"]
    error: str | None = None
    recorded_at: str | None = None
