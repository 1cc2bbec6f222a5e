"""Schema models, comparison, and DDL synthesis.

Provides the structured schema models, the canonical DDL splitter
(``parse_table_ddl``), schema comparison (``compare_schema``), and DDL
synthesis (``generate_alter_sql``, ``generate_object_sql``).

Only models and DDL helpers are re-exported here; import the comparator,
migrator, and exporter from their modules, since they depend on the
driver protocols.

Usage:
    from db_drift.schema import DiffRow, TableDiff, parse_table_ddl
    from db_drift.schema.comparator import compare_schema
    from db_drift.schema.migrator import generate_alter_sql, generate_object_sql
"""

from db_drift.schema.ddl import parse_table_ddl, quote_identifier, strip_auto_increment
from db_drift.schema.models import (
    ColumnSchema,
    ComparisonResult,
    ConstraintSchema,
    DiffRow,
    DiffText,
    IndexSchema,
    ObjectDiff,
    SchemaSnapshot,
    TableDiff,
    TableSchema,
)

__all__ = [
    "parse_table_ddl",
    "quote_identifier",
    "strip_auto_increment",
    "ColumnSchema",
    "ComparisonResult",
    "ConstraintSchema",
    "DiffRow",
    "DiffText",
    "IndexSchema",
    "ObjectDiff",
    "SchemaSnapshot",
    "TableDiff",
    "TableSchema",
]
