"""Schema comparison between two introspected databases.

Aligns tables, columns, indexes, constraints, and non-table objects by
exact name and classifies each as added, removed, or modified.  Table
options are aligned per option; a destination-only option counts only when
it can be reset to its default.  No rename
detection and no text normalization beyond what introspection guarantees:
definitions are compared byte-for-byte.

Usage:
    from db_drift.schema.comparator import compare_schema

    result = await compare_schema(src_intro, dest_intro, "shop")
    result.tables          # {"users": TableDiff(...)} -- changed tables only
    result.dropped_tables  # ["legacy"] -- destination-only tables
    result.objects         # [ObjectDiff(type="VIEW", name="v", operation="CREATE")]
"""

from collections.abc import Mapping
from typing import TypeVar

from pydantic import BaseModel

from db_drift.drivers.base import Introspection, list_objects
from db_drift.schema.ddl import OPTION_RESETS, is_auto_increment, parse_table_options
from db_drift.schema.models import (
    ColumnChange,
    ComparisonResult,
    ConstraintChange,
    IndexChange,
    ObjectDiff,
    ROUTINE_TYPES,
    TableDiff,
    TableSchema,
)

_Element = TypeVar("_Element", bound=BaseModel)


def _align(
    source: Mapping[str, _Element],
    target: Mapping[str, _Element],
) -> tuple[list[_Element], list[_Element], list[tuple[_Element, _Element]]]:
    """Align two name-keyed element maps by ``definition``.

    Returns:
        ``(added, removed, modified)`` -- added in source order, removed in
        target order, modified as ``(source, target)`` pairs.
    """
    added = [elem for name, elem in source.items() if name not in target]
    removed = [elem for name, elem in target.items() if name not in source]
    modified = [
        (elem, target[name])
        for name, elem in source.items()
        if name in target and elem.definition != target[name].definition
    ]
    return added, removed, modified


def diff_tables(source: TableSchema, target: TableSchema) -> TableDiff:
    """Compute the delta turning *target* into the shape of *source*.

    Pure logic -- no I/O.

    Examples:
        >>> from db_drift.schema.models import ColumnSchema
        >>> src = TableSchema(name="t", columns={
        ...     "id": ColumnSchema(name="id", definition="int NOT NULL"),
        ...     "email": ColumnSchema(name="email", definition="text", after="id"),
        ... })
        >>> dst = TableSchema(name="t", columns={
        ...     "id": ColumnSchema(name="id", definition="int NOT NULL"),
        ... })
        >>> [c.name for c in diff_tables(src, dst).added_columns]
        ['email']
    """
    diff = TableDiff(name=source.name)

    added, removed, modified = _align(source.columns, target.columns)
    diff.added_columns = added
    diff.removed_columns = removed
    diff.modified_columns = [ColumnChange(source=s, target=t) for s, t in modified]

    added, removed, modified = _align(source.indexes, target.indexes)
    diff.added_indexes = added
    diff.removed_indexes = removed
    diff.modified_indexes = [IndexChange(source=s, target=t) for s, t in modified]

    added, removed, modified = _align(source.constraints, target.constraints)
    diff.added_constraints = added
    diff.removed_constraints = removed
    diff.modified_constraints = [
        ConstraintChange(source=s, target=t) for s, t in modified
    ]

    src_options = parse_table_options(source.options)
    dest_options = parse_table_options(target.options)
    diff.changed_options = {
        key: clause
        for key, clause in src_options.items()
        if dest_options.get(key) != clause
    }
    diff.removed_options = [
        key for key in dest_options if key not in src_options and key in OPTION_RESETS
    ]

    diff.auto_increment_column = next(
        (col.name for col in target.columns.values() if is_auto_increment(col.definition)),
        None,
    )

    return diff


async def compare_schema(
    source: Introspection,
    destination: Introspection,
    database: str,
    dest_database: str | None = None,
) -> ComparisonResult:
    """Compare two schemas and return the structured diff.

    Args:
        source: Introspection of the environment changes flow from.
        destination: Introspection of the environment to reconcile.
        database: Source database name.
        dest_database: Destination database name when it differs from
            the source (e.g. ``app_dev`` vs ``app_prod``).  Defaults to
            *database*.

    Returns:
        ``ComparisonResult`` with:

        - ``tables``: tables present on both sides with at least one
          difference (absence here means "no diff", not "exists on both")
        - ``dropped_tables``: tables present only in the destination
        - ``objects``: ``ObjectDiff`` for every non-table object that is
          one-sided or whose definition text differs
    """
    dest_database = dest_database or database
    result = ComparisonResult()

    src_tables = set(await source.list_tables(database))
    dest_tables = set(await destination.list_tables(dest_database))

    for name in sorted(src_tables & dest_tables):
        table_diff = diff_tables(
            await source.get_table_schema(database, name),
            await destination.get_table_schema(dest_database, name),
        )
        if table_diff.has_changes:
            result.tables[name] = table_diff

    result.dropped_tables = sorted(dest_tables - src_tables)

    for object_type in ROUTINE_TYPES:
        src_names = set(await list_objects(source, object_type, database))
        dest_names = set(await list_objects(destination, object_type, dest_database))

        for name in sorted(src_names | dest_names):
            if name not in dest_names:
                result.objects.append(
                    ObjectDiff(
                        type=object_type,
                        name=name,
                        operation="CREATE",
                        definition=await source.get_object_ddl(database, object_type, name),
                    )
                )
            elif name not in src_names:
                result.objects.append(
                    ObjectDiff(type=object_type, name=name, operation="DROP")
                )
            else:
                src_ddl = await source.get_object_ddl(database, object_type, name)
                dest_ddl = await destination.get_object_ddl(
                    dest_database, object_type, name
                )
                if src_ddl != dest_ddl:
                    result.objects.append(
                        ObjectDiff(
                            type=object_type,
                            name=name,
                            operation="ALTER",
                            definition=src_ddl,
                        )
                    )

    return result
