"""Offline snapshot driver.

``DumpDriver`` serves introspection from a ``SchemaSnapshot`` JSON file
captured earlier by the exporter.  It performs no network I/O, which makes
it usable for disconnected comparisons (e.g. comparing a production
snapshot against a local database).

Snapshots are read-only: ``query()`` always raises
``StatementExecutionError``.

Usage:
    from db_drift.config.models import ConnectionConfig
    from db_drift.drivers.dump import DumpDriver

    driver = DumpDriver(ConnectionConfig(host="file", path="prod.json"))
    await driver.connect()
    tables = await driver.get_introspection().list_tables("shop")
    await driver.disconnect()
"""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from db_drift.config.models import ConnectionConfig
from db_drift.drivers.base import DriverCapability
from db_drift.errors import DatabaseConnectionError, StatementExecutionError
from db_drift.schema.ddl import parse_table_ddl
from db_drift.schema.models import ObjectType, SchemaSnapshot, TableSchema


class DumpDriver:
    """Driver over a captured ``SchemaSnapshot``.

    The snapshot is located by ``config.path``, falling back to
    ``config.database`` (so ``{"host": "file", "database": "prod.json"}``
    works).  A snapshot may also be injected directly, which is how tests
    build in-memory schemas.

    Args:
        config: Connection settings naming the snapshot file.
        snapshot: Optional pre-loaded snapshot; skips file loading.
    """

    driver_type = "dump"
    capabilities: frozenset[DriverCapability] = frozenset()

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        snapshot: SchemaSnapshot | None = None,
    ) -> None:
        self._config = config or ConnectionConfig(host="file")
        self._preloaded = snapshot
        self._snapshot: SchemaSnapshot | None = None

    @property
    def snapshot_path(self) -> Path:
        return Path(self._config.path or self._config.database)

    async def connect(self) -> None:
        """Load the snapshot.

        Raises:
            DatabaseConnectionError: If the file is missing or malformed.
        """
        if self._preloaded is not None:
            self._snapshot = self._preloaded
            return

        path = self.snapshot_path
        if not path.exists():
            raise DatabaseConnectionError(f"Snapshot file not found: {path}")
        try:
            self._snapshot = SchemaSnapshot.model_validate(json.loads(path.read_text()))
        except (json.JSONDecodeError, ValidationError) as e:
            raise DatabaseConnectionError(f"Invalid snapshot file {path}: {e}") from e

    async def disconnect(self) -> None:
        self._snapshot = None

    async def query(self, statement: str) -> Any:
        raise StatementExecutionError(
            "Offline snapshot connections are read-only", statement=statement
        )

    def get_introspection(self) -> "SnapshotIntrospection":
        if self._snapshot is None:
            raise DatabaseConnectionError("Driver not connected. Call connect() first.")
        return SnapshotIntrospection(self._snapshot)

    def supports(self, capability: DriverCapability) -> bool:
        return capability in self.capabilities


class SnapshotIntrospection:
    """Introspection over an in-memory ``SchemaSnapshot``.

    A snapshot captures a single database, so the *database* argument is
    accepted for protocol compatibility and otherwise ignored.
    """

    def __init__(self, snapshot: SchemaSnapshot) -> None:
        self._snapshot = snapshot

    async def list_tables(self, database: str) -> list[str]:
        return self._snapshot.names("TABLE")

    async def list_views(self, database: str) -> list[str]:
        return self._snapshot.names("VIEW")

    async def list_procedures(self, database: str) -> list[str]:
        return self._snapshot.names("PROCEDURE")

    async def list_functions(self, database: str) -> list[str]:
        return self._snapshot.names("FUNCTION")

    async def list_triggers(self, database: str) -> list[str]:
        return self._snapshot.names("TRIGGER")

    async def list_events(self, database: str) -> list[str]:
        return self._snapshot.names("EVENT")

    def _lookup(self, object_type: ObjectType, name: str) -> str:
        try:
            return self._snapshot.objects[object_type][name]
        except KeyError:
            raise KeyError(f"{object_type} {name!r} not found in snapshot") from None

    async def get_table_ddl(self, database: str, name: str) -> str:
        return self._lookup("TABLE", name)

    async def get_table_schema(self, database: str, name: str) -> TableSchema:
        return parse_table_ddl(self._lookup("TABLE", name))

    async def get_object_ddl(
        self, database: str, object_type: ObjectType, name: str
    ) -> str:
        return self._lookup(object_type, name)
