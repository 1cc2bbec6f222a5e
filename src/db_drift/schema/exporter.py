"""Schema export -- capture an environment as a ``SchemaSnapshot``.

The snapshot is the document the offline ``DumpDriver`` reads, so an
exported environment can later be compared without network access.
Definitions pass through the connection store's domain normalization
before they are written.

Usage:
    from db_drift.schema.exporter import SchemaExporter

    exporter = SchemaExporter(store, DriverFactory())
    snapshot = await exporter.export_schema("PROD", output_path="prod.json")
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

from db_drift.config.store import ConnectionStore
from db_drift.drivers.base import list_objects
from db_drift.factory import DriverFactory
from db_drift.schema.models import OBJECT_TYPES, SchemaSnapshot

logger = logging.getLogger(__name__)


class SchemaExporter:
    """Exports environments from a ``ConnectionStore``.

    Args:
        store: Connection store (also owns the normalization rule).
        factory: Driver factory used to open the environment.
    """

    def __init__(self, store: ConnectionStore, factory: DriverFactory) -> None:
        self._store = store
        self._factory = factory

    async def export_schema(
        self,
        env: str,
        name: str | None = None,
        output_path: str | Path | None = None,
    ) -> SchemaSnapshot:
        """Capture every object (or only objects called *name*) of *env*.

        Args:
            env: Environment name.
            name: Optional object name filter.
            output_path: When given, the snapshot JSON is also written here.

        Returns:
            The captured ``SchemaSnapshot``.

        Raises:
            ConfigurationError: If *env* is not configured.
            DatabaseConnectionError: If the environment is unreachable.
        """
        entry = self._store.get_connection(env)
        database = entry.config.database
        driver = self._factory.create(entry.type, entry.config)

        snapshot = SchemaSnapshot(
            database=database,
            captured_at=datetime.now(timezone.utc).isoformat(),
        )

        await driver.connect()
        try:
            intro = driver.get_introspection()
            for object_type in OBJECT_TYPES:
                names = await list_objects(intro, object_type, database)
                if name is not None:
                    names = [n for n in names if n == name]
                captured: dict[str, str] = {}
                for object_name in sorted(names):
                    if object_type == "TABLE":
                        ddl = await intro.get_table_ddl(database, object_name)
                    else:
                        ddl = await intro.get_object_ddl(database, object_type, object_name)
                    captured[object_name] = self._store.normalize(ddl)
                if captured:
                    snapshot.objects[object_type] = captured
        finally:
            await driver.disconnect()

        logger.info(
            "Exported %s: %d objects",
            env,
            sum(len(v) for v in snapshot.objects.values()),
        )

        if output_path is not None:
            path = Path(output_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(snapshot.model_dump_json(indent=2))

        return snapshot
