"""Pydantic models for schema introspection, comparison, and snapshots.

This module contains schema-domain models:
- Object kinds: ObjectType, DiffStatus and the kind-tag helpers
- Structured table models: ColumnSchema, IndexSchema, ConstraintSchema,
  TableSchema
- Diff models: ColumnChange, IndexChange, ConstraintChange, TableDiff,
  ObjectDiff, ComparisonResult
- Externally visible comparison unit: DiffRow
- Offline snapshot document: SchemaSnapshot

Configuration models (ConnectionConfig, ProjectConfig) live in
db_drift.config.models.
"""

from typing import Literal

from pydantic import BaseModel, Field


# ============================================================================
# Object Kinds
# ============================================================================

ObjectType = Literal["TABLE", "VIEW", "PROCEDURE", "FUNCTION", "TRIGGER", "EVENT"]

DiffStatus = Literal["equal", "different", "missing_in_source", "missing_in_target"]

OBJECT_TYPES: tuple[ObjectType, ...] = (
    "TABLE",
    "VIEW",
    "PROCEDURE",
    "FUNCTION",
    "TRIGGER",
    "EVENT",
)

# Non-table kinds, in the order the comparator walks them
ROUTINE_TYPES: tuple[ObjectType, ...] = OBJECT_TYPES[1:]

# Kind tags as they appear in payloads ("tables", "views", ...)
KIND_TAGS: dict[str, ObjectType] = {
    "tables": "TABLE",
    "views": "VIEW",
    "procedures": "PROCEDURE",
    "functions": "FUNCTION",
    "triggers": "TRIGGER",
    "events": "EVENT",
}


def object_type_for_kind(kind: str) -> ObjectType | None:
    """Map a kind tag (``"tables"``, ``"VIEWS"``) to its ObjectType.

    Returns:
        The matching ObjectType, or ``None`` for unrecognized tags.

    Example:
        >>> object_type_for_kind("Procedures")
        'PROCEDURE'
        >>> object_type_for_kind("sequences") is None
        True
    """
    return KIND_TAGS.get(kind.lower())


def plural_tag(object_type: ObjectType) -> str:
    """Plural upper-case tag used in DiffRow.type (``TABLE`` -> ``TABLES``)."""
    return f"{object_type}S"


# ============================================================================
# Structured Table Models
# ============================================================================


class ColumnSchema(BaseModel):
    """Schema for a table column.

    ``definition`` is everything after the quoted column name in canonical
    DDL, e.g. ``varchar(255) NOT NULL DEFAULT ''``.  ``after`` names the
    preceding column (``None`` for the first column) and is not part of
    equality checks.

    Example:
        >>> col = ColumnSchema(name="id", definition="int NOT NULL")
        >>> col.after is None
        True
    """

    name: str
    definition: str
    after: str | None = None


class IndexSchema(BaseModel):
    """Schema for a table index.

    ``definition`` is the full canonical index line, e.g.
    ``UNIQUE KEY `uk_email` (`email`)``.
    """

    name: str
    kind: Literal["PRIMARY", "UNIQUE", "INDEX", "FULLTEXT", "SPATIAL"] = "INDEX"
    definition: str


class ConstraintSchema(BaseModel):
    """Schema for a named table constraint (foreign key or check)."""

    name: str
    constraint_type: Literal["FOREIGN KEY", "CHECK"]
    definition: str


class TableSchema(BaseModel):
    """Schema for a database table.

    Dicts preserve the order elements appear in the canonical DDL.
    """

    name: str
    columns: dict[str, ColumnSchema] = Field(default_factory=dict)
    indexes: dict[str, IndexSchema] = Field(default_factory=dict)
    constraints: dict[str, ConstraintSchema] = Field(default_factory=dict)
    options: str = ""


# ============================================================================
# Diff Models
# ============================================================================


class ColumnChange(BaseModel):
    """A column present on both sides with differing definitions."""

    source: ColumnSchema
    target: ColumnSchema


class IndexChange(BaseModel):
    """An index present on both sides with differing definitions."""

    source: IndexSchema
    target: IndexSchema


class ConstraintChange(BaseModel):
    """A constraint present on both sides with differing definitions."""

    source: ConstraintSchema
    target: ConstraintSchema


class TableDiff(BaseModel):
    """Structural delta turning the destination table into the source shape.

    Added elements carry the source shape; removed elements carry the
    destination shape (needed to pick the right DROP form).

    Example:
        >>> TableDiff(name="users").has_changes
        False
    """

    name: str
    added_columns: list[ColumnSchema] = Field(default_factory=list)
    removed_columns: list[ColumnSchema] = Field(default_factory=list)
    modified_columns: list[ColumnChange] = Field(default_factory=list)
    added_indexes: list[IndexSchema] = Field(default_factory=list)
    removed_indexes: list[IndexSchema] = Field(default_factory=list)
    modified_indexes: list[IndexChange] = Field(default_factory=list)
    added_constraints: list[ConstraintSchema] = Field(default_factory=list)
    removed_constraints: list[ConstraintSchema] = Field(default_factory=list)
    modified_constraints: list[ConstraintChange] = Field(default_factory=list)
    # Option key -> source clause, for options the source sets differently
    changed_options: dict[str, str] = Field(default_factory=dict)
    # Resettable option keys only the destination sets
    removed_options: list[str] = Field(default_factory=list)
    # Destination AUTO_INCREMENT column; its key cannot be dropped on its own
    auto_increment_column: str | None = None

    @property
    def has_changes(self) -> bool:
        """True if any element differs."""
        return bool(
            self.added_columns
            or self.removed_columns
            or self.modified_columns
            or self.added_indexes
            or self.removed_indexes
            or self.modified_indexes
            or self.added_constraints
            or self.removed_constraints
            or self.modified_constraints
            or self.changed_options
            or self.removed_options
        )


class ObjectDiff(BaseModel):
    """Difference for one non-table object.

    ``definition`` is the source text; ``None`` when ``operation`` is DROP.
    """

    type: ObjectType
    name: str
    operation: Literal["CREATE", "DROP", "ALTER"]
    definition: str | None = None


class ComparisonResult(BaseModel):
    """Structured diff between two schemas for one database."""

    tables: dict[str, TableDiff] = Field(default_factory=dict)
    dropped_tables: list[str] = Field(default_factory=list)
    objects: list[ObjectDiff] = Field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        """Counts per kind of difference."""
        counts = {
            "tables_changed": len(self.tables),
            "tables_dropped": len(self.dropped_tables),
            "objects_created": 0,
            "objects_dropped": 0,
            "objects_altered": 0,
        }
        for obj in self.objects:
            key = {
                "CREATE": "objects_created",
                "DROP": "objects_dropped",
                "ALTER": "objects_altered",
            }[obj.operation]
            counts[key] += 1
        return counts


# ============================================================================
# Externally Visible Rows
# ============================================================================


class DiffText(BaseModel):
    """Raw definition text on each side of a DiffRow."""

    source: str | None = None
    target: str | None = None


class DiffRow(BaseModel):
    """One compared object, as returned by the ``compare`` operation.

    ``ddl`` is empty if and only if ``status`` is ``equal``.
    """

    name: str
    status: DiffStatus
    type: str
    ddl: list[str] = Field(default_factory=list)
    diff: DiffText | None = None


# ============================================================================
# Snapshot Document
# ============================================================================


class SchemaSnapshot(BaseModel):
    """Captured schema of one database, read back by the offline driver.

    ``objects`` maps an ObjectType to ``{name: canonical DDL}``.
    """

    database: str = "default"
    captured_at: str | None = None
    objects: dict[ObjectType, dict[str, str]] = Field(default_factory=dict)

    def names(self, object_type: ObjectType) -> list[str]:
        """Names of every captured object of one kind."""
        return list(self.objects.get(object_type, {}))
