"""DDL synthesis -- turn structured diffs into directly applicable statements.

Statements come back in execution order; callers run them as-is without
reordering.  Each table change is its own ``ALTER TABLE`` statement so a
failure points at exactly one change, except where MySQL needs changes
together: a key over the ``AUTO_INCREMENT`` column is dropped in the same
statement that replaces it, and a column gaining ``AUTO_INCREMENT`` is
added or modified together with its key.

Table statement order:
1. Drop foreign keys (removed or modified)
2. Drop check constraints (removed or modified)
3. Drop indexes (removed or modified)
4. Drop columns
5. Add columns (source position via ``FIRST``/``AFTER``)
6. Modify columns
7. Add indexes (new or modified); a modified primary key, or a key over
   the ``AUTO_INCREMENT`` column, is dropped and re-added here in one
   statement instead of being dropped in step 3
8. Add check constraints
9. Add foreign keys
10. Table options, then partitioning

Usage:
    from db_drift.schema.migrator import generate_alter_sql, generate_object_sql

    for statement in generate_alter_sql(table_diff):
        await driver.query(statement)
"""

import re

from db_drift.schema.ddl import (
    OPTION_RESETS,
    PARTITION_OPTION,
    is_auto_increment,
    leading_key_column,
    quote_identifier,
)
from db_drift.schema.models import (
    ColumnChange,
    ColumnSchema,
    ConstraintSchema,
    IndexSchema,
    ObjectDiff,
    TableDiff,
)

_CREATE_PREFIX_RE = re.compile(r"^\s*CREATE\s+(?!OR\s+REPLACE\b)", re.IGNORECASE)


def generate_drop_table_sql(name: str) -> str:
    """``DROP TABLE IF EXISTS`` for a destination-only table."""
    return f"DROP TABLE IF EXISTS {quote_identifier(name)};"


def _alter(table: str, *clauses: str) -> str:
    return f"ALTER TABLE {table} {', '.join(clauses)};"


def _drop_index(index: IndexSchema) -> str:
    if index.kind == "PRIMARY":
        return "DROP PRIMARY KEY"
    return f"DROP INDEX {quote_identifier(index.name)}"


def _drop_constraint(table: str, constraint: ConstraintSchema) -> str:
    keyword = "FOREIGN KEY" if constraint.constraint_type == "FOREIGN KEY" else "CHECK"
    return _alter(table, f"DROP {keyword} {quote_identifier(constraint.name)}")


def _add_column(column: ColumnSchema) -> str:
    position = (
        " FIRST" if column.after is None else f" AFTER {quote_identifier(column.after)}"
    )
    return f"ADD COLUMN {quote_identifier(column.name)} {column.definition}{position}"


def _modify_column(change: ColumnChange) -> str:
    return f"MODIFY COLUMN {quote_identifier(change.source.name)} {change.source.definition}"


def _take_key(indexes: list[IndexSchema], column: str) -> IndexSchema | None:
    """Remove and return the first index in *indexes* led by *column*."""
    for pos, index in enumerate(indexes):
        if leading_key_column(index.definition) == column:
            return indexes.pop(pos)
    return None


def _options_sql(table: str, diff: TableDiff) -> list[str]:
    clauses = [
        clause for key, clause in diff.changed_options.items() if key != PARTITION_OPTION
    ] + [OPTION_RESETS[key] for key in diff.removed_options if key != PARTITION_OPTION]

    statements = []
    if clauses:
        statements.append(f"ALTER TABLE {table} {' '.join(clauses)};")
    if PARTITION_OPTION in diff.changed_options:
        statements.append(f"ALTER TABLE {table} {diff.changed_options[PARTITION_OPTION]};")
    elif PARTITION_OPTION in diff.removed_options:
        statements.append(f"ALTER TABLE {table} {OPTION_RESETS[PARTITION_OPTION]};")
    return statements


def generate_alter_sql(diff: TableDiff) -> list[str]:
    """Generate ordered ALTER statements for one changed table.

    Args:
        diff: Table delta from ``diff_tables``/``compare_schema``.

    Returns:
        Statements transforming the destination table into the source
        shape.  Empty only if the diff has no changes.

    Example:
        >>> from db_drift.schema.models import ColumnSchema
        >>> generate_alter_sql(TableDiff(
        ...     name="users",
        ...     added_columns=[ColumnSchema(name="email", definition="text", after="id")],
        ... ))
        ['ALTER TABLE `users` ADD COLUMN `email` text AFTER `id`;']
    """
    table = quote_identifier(diff.name)
    statements: list[str] = []

    dropped_constraints = diff.removed_constraints + [
        change.target for change in diff.modified_constraints
    ]
    added_constraints = diff.added_constraints + [
        change.source for change in diff.modified_constraints
    ]
    # Consumed as they are folded into earlier statements
    added_indexes = diff.added_indexes + [change.source for change in diff.modified_indexes]
    removed_columns = list(diff.removed_columns)
    modified_columns = list(diff.modified_columns)
    auto_column = diff.auto_increment_column

    # Dependent objects go first: FKs can pin indexes and columns
    for constraint in dropped_constraints:
        if constraint.constraint_type == "FOREIGN KEY":
            statements.append(_drop_constraint(table, constraint))
    for constraint in dropped_constraints:
        if constraint.constraint_type == "CHECK":
            statements.append(_drop_constraint(table, constraint))

    # Drop+add pairs run with the index adds, once new columns exist
    paired: list[str] = []
    dropped_indexes = [(index, None) for index in diff.removed_indexes] + [
        (change.target, change.source) for change in diff.modified_indexes
    ]
    for index, replacement in dropped_indexes:
        drop = _drop_index(index)
        pinned = auto_column is not None and leading_key_column(index.definition) == auto_column

        if replacement is not None and (pinned or index.kind == "PRIMARY"):
            added_indexes.remove(replacement)
            paired.append(_alter(table, drop, f"ADD {replacement.definition}"))
            continue
        if not pinned:
            statements.append(_alter(table, drop))
            continue

        key = _take_key(added_indexes, auto_column)
        dropped_column = next((c for c in removed_columns if c.name == auto_column), None)
        changed_column = next(
            (c for c in modified_columns if c.source.name == auto_column), None
        )
        if key is not None:
            paired.append(_alter(table, drop, f"ADD {key.definition}"))
        elif dropped_column is not None:
            removed_columns.remove(dropped_column)
            statements.append(
                _alter(table, drop, f"DROP COLUMN {quote_identifier(auto_column)}")
            )
        elif changed_column is not None:
            modified_columns.remove(changed_column)
            statements.append(_alter(table, _modify_column(changed_column), drop))
        else:
            statements.append(_alter(table, drop))

    for column in removed_columns:
        statements.append(_alter(table, f"DROP COLUMN {quote_identifier(column.name)}"))

    for column in diff.added_columns:
        clauses = [_add_column(column)]
        if is_auto_increment(column.definition):
            key = _take_key(added_indexes, column.name)
            if key is not None:
                clauses.append(f"ADD {key.definition}")
        statements.append(_alter(table, *clauses))

    for change in modified_columns:
        clauses = [_modify_column(change)]
        if is_auto_increment(change.source.definition) and not is_auto_increment(
            change.target.definition
        ):
            key = _take_key(added_indexes, change.source.name)
            if key is not None:
                clauses.append(f"ADD {key.definition}")
        statements.append(_alter(table, *clauses))

    statements.extend(paired)
    for index in added_indexes:
        statements.append(_alter(table, f"ADD {index.definition}"))

    for constraint in added_constraints:
        if constraint.constraint_type == "CHECK":
            statements.append(_alter(table, f"ADD {constraint.definition}"))
    for constraint in added_constraints:
        if constraint.constraint_type == "FOREIGN KEY":
            statements.append(_alter(table, f"ADD {constraint.definition}"))

    statements.extend(_options_sql(table, diff))

    return statements


def generate_object_sql(obj: ObjectDiff) -> list[str]:
    """Generate statements for one non-table object difference.

    - ``CREATE``: the source definition
    - ``DROP``: ``DROP <TYPE> IF EXISTS``
    - ``ALTER``: ``CREATE OR REPLACE`` for views; drop-then-create for
      routines, triggers, and events (MySQL has no replace form for them)

    Raises:
        ValueError: If a CREATE/ALTER diff carries no definition.

    Example:
        >>> generate_object_sql(ObjectDiff(type="VIEW", name="v", operation="DROP"))
        ['DROP VIEW IF EXISTS `v`;']
    """
    drop = f"DROP {obj.type} IF EXISTS {quote_identifier(obj.name)};"

    if obj.operation == "DROP":
        return [drop]

    if obj.definition is None:
        raise ValueError(f"{obj.operation} {obj.type} {obj.name!r} has no definition")

    if obj.operation == "CREATE":
        return [obj.definition]

    if obj.type == "VIEW":
        return [_CREATE_PREFIX_RE.sub("CREATE OR REPLACE ", obj.definition, count=1)]
    return [drop, obj.definition]
