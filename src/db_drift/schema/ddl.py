"""Canonical MySQL DDL helpers.

MySQL renders ``SHOW CREATE TABLE`` output in a fixed layout: one column,
index, or constraint per indented line, then a closing line carrying the
table options.  ``parse_table_ddl`` splits that layout into a
``TableSchema``.  It is a line splitter for canonical output, not a
general SQL parser -- hand-written DDL is not supported.

Usage:
    from db_drift.schema.ddl import parse_table_ddl, quote_identifier

    table = parse_table_ddl(ddl_text)
    table.columns["email"].definition
    # "varchar(255) NOT NULL"
"""

import re

from db_drift.schema.models import (
    ColumnSchema,
    ConstraintSchema,
    IndexSchema,
    TableSchema,
)

_IDENT = r"`((?:[^`]|``)+)`"

_CREATE_RE = re.compile(rf"^CREATE\s+(?:TEMPORARY\s+)?TABLE\s+{_IDENT}\s*\($")
_COLUMN_RE = re.compile(rf"^{_IDENT}\s+(.+)$")
_PRIMARY_RE = re.compile(r"^PRIMARY KEY\b")
_NAMED_INDEX_RE = re.compile(rf"^(UNIQUE|FULLTEXT|SPATIAL)\s+(?:KEY|INDEX)\s+{_IDENT}")
_PLAIN_INDEX_RE = re.compile(rf"^(?:KEY|INDEX)\s+{_IDENT}")
_CONSTRAINT_RE = re.compile(rf"^CONSTRAINT\s+{_IDENT}\s+(FOREIGN KEY|CHECK)\b")

# Volatile counter MySQL appends to the table options
_AUTO_INCREMENT_RE = re.compile(r"\s+AUTO_INCREMENT=\d+")

_AUTO_INCREMENT_COLUMN_RE = re.compile(r"\bAUTO_INCREMENT\b", re.IGNORECASE)
_LEADING_KEY_COLUMN_RE = re.compile(rf"\(\s*{_IDENT}")

_PARTITION_RE = re.compile(r"(?:/\*!\d+\s+)?PARTITION\s+BY\b", re.IGNORECASE)
_OPTION_RE = re.compile(
    r"(?P<key>[A-Z_]+(?:\s+[A-Z_]+)*)\s*=\s*(?P<value>'(?:[^'\\]|''|\\.)*'|\S+)",
    re.IGNORECASE,
)
_OPTION_KEY_ALIASES = {
    "DEFAULT CHARSET": "CHARSET",
    "CHARACTER SET": "CHARSET",
    "DEFAULT CHARACTER SET": "CHARSET",
    "DEFAULT COLLATE": "COLLATE",
}

PARTITION_OPTION = "PARTITION"

# Clauses that return a destination-only table option to its default, so
# SHOW CREATE TABLE stops rendering it.  Options missing here (ENGINE,
# CHARSET, ...) cannot be unset and are only reconciled when the source
# declares them.
OPTION_RESETS: dict[str, str] = {
    "COMMENT": "COMMENT=''",
    "ROW_FORMAT": "ROW_FORMAT=DEFAULT",
    "KEY_BLOCK_SIZE": "KEY_BLOCK_SIZE=0",
    "STATS_PERSISTENT": "STATS_PERSISTENT=DEFAULT",
    "STATS_AUTO_RECALC": "STATS_AUTO_RECALC=DEFAULT",
    "STATS_SAMPLE_PAGES": "STATS_SAMPLE_PAGES=DEFAULT",
    "PACK_KEYS": "PACK_KEYS=DEFAULT",
    "CHECKSUM": "CHECKSUM=0",
    "DELAY_KEY_WRITE": "DELAY_KEY_WRITE=0",
    "MIN_ROWS": "MIN_ROWS=0",
    "MAX_ROWS": "MAX_ROWS=0",
    PARTITION_OPTION: "REMOVE PARTITIONING",
}


def quote_identifier(name: str) -> str:
    """Quote a MySQL identifier with backticks.

    Example:
        >>> quote_identifier("order`items")
        '`order``items`'
    """
    return "`" + name.replace("`", "``") + "`"


def _unquote(name: str) -> str:
    return name.replace("``", "`")


def strip_auto_increment(ddl: str) -> str:
    """Remove the ``AUTO_INCREMENT=n`` table option from canonical DDL.

    Column-level ``AUTO_INCREMENT`` attributes (no ``=``) are kept.
    """
    return _AUTO_INCREMENT_RE.sub("", ddl)


def is_auto_increment(column_definition: str) -> bool:
    """True if a column definition carries the ``AUTO_INCREMENT`` attribute."""
    return bool(_AUTO_INCREMENT_COLUMN_RE.search(column_definition))


def leading_key_column(index_definition: str) -> str | None:
    """First column of an index line, e.g. ``id`` for ``PRIMARY KEY (`id`)``."""
    match = _LEADING_KEY_COLUMN_RE.search(index_definition)
    return _unquote(match.group(1)) if match else None


def parse_table_options(options: str) -> dict[str, str]:
    """Split a table-options tail into clauses keyed by option name.

    Keys are upper-cased with ``DEFAULT`` prefixes folded (``DEFAULT
    CHARSET`` -> ``CHARSET``).  The partition clause, versioned comment
    included, is kept whole under ``PARTITION``.  Tokens that are not
    ``KEY=value`` pairs are keyed by their own text.

    Example:
        >>> parse_table_options("ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COMMENT='a b'")
        {'ENGINE': 'ENGINE=InnoDB', 'CHARSET': 'DEFAULT CHARSET=utf8mb4', 'COMMENT': "COMMENT='a b'"}
    """
    clauses: dict[str, str] = {}
    pos = 0
    while True:
        while pos < len(options) and options[pos].isspace():
            pos += 1
        if pos >= len(options):
            break

        if _PARTITION_RE.match(options, pos):
            clauses[PARTITION_OPTION] = options[pos:].strip()
            break

        match = _OPTION_RE.match(options, pos)
        if match:
            key = " ".join(match.group("key").upper().split())
            clauses[_OPTION_KEY_ALIASES.get(key, key)] = match.group(0)
            pos = match.end()
            continue

        end = pos
        while end < len(options) and not options[end].isspace():
            end += 1
        token = options[pos:end]
        clauses[token.upper()] = token
        pos = end

    return clauses


def parse_table_ddl(ddl: str) -> TableSchema:
    """Split canonical ``CREATE TABLE`` text into a ``TableSchema``.

    Args:
        ddl: Canonical DDL as returned by ``SHOW CREATE TABLE``.

    Returns:
        ``TableSchema`` with columns, indexes, and constraints in DDL order
        and the table options tail (``AUTO_INCREMENT=n`` removed).

    Raises:
        ValueError: If the text does not follow the canonical layout.

    Example:
        >>> t = parse_table_ddl(
        ...     "CREATE TABLE `t` (\\n"
        ...     "  `id` int NOT NULL,\\n"
        ...     "  PRIMARY KEY (`id`)\\n"
        ...     ") ENGINE=InnoDB"
        ... )
        >>> list(t.columns), list(t.indexes), t.options
        (['id'], ['PRIMARY'], 'ENGINE=InnoDB')
    """
    lines = ddl.strip().splitlines()
    if not lines:
        raise ValueError("Empty table DDL")

    header = _CREATE_RE.match(lines[0].strip())
    if not header:
        raise ValueError(f"Not a canonical CREATE TABLE header: {lines[0]!r}")

    table = TableSchema(name=_unquote(header.group(1)))

    # Closing line is the first unindented line starting with ")"
    close_idx = None
    for idx in range(1, len(lines)):
        if lines[idx].startswith(")"):
            close_idx = idx
            break
    if close_idx is None:
        raise ValueError(f"Unterminated CREATE TABLE for {table.name!r}")

    previous_column: str | None = None
    for raw in lines[1:close_idx]:
        line = raw.strip().rstrip(",")
        if not line:
            continue

        match = _COLUMN_RE.match(line)
        if match:
            name = _unquote(match.group(1))
            table.columns[name] = ColumnSchema(
                name=name,
                definition=match.group(2),
                after=previous_column,
            )
            previous_column = name
            continue

        if _PRIMARY_RE.match(line):
            table.indexes["PRIMARY"] = IndexSchema(
                name="PRIMARY", kind="PRIMARY", definition=line
            )
            continue

        match = _NAMED_INDEX_RE.match(line)
        if match:
            name = _unquote(match.group(2))
            table.indexes[name] = IndexSchema(
                name=name, kind=match.group(1), definition=line
            )
            continue

        match = _PLAIN_INDEX_RE.match(line)
        if match:
            name = _unquote(match.group(1))
            table.indexes[name] = IndexSchema(
                name=name, kind="INDEX", definition=line
            )
            continue

        match = _CONSTRAINT_RE.match(line)
        if match:
            name = _unquote(match.group(1))
            table.constraints[name] = ConstraintSchema(
                name=name,
                constraint_type=match.group(2),
                definition=line,
            )
            continue

        raise ValueError(
            f"Unrecognized line in CREATE TABLE {table.name!r}: {line!r}"
        )

    # Options tail: rest of the closing line plus any partition lines
    tail = [lines[close_idx][1:].strip()] + [
        line.strip() for line in lines[close_idx + 1:]
    ]
    table.options = strip_auto_increment(
        " ".join(part for part in tail if part)
    ).strip()

    return table
