"""Process-wide collaborators handed to the orchestrator.

``build_context()`` is called once at process start (the CLI does this in
``main``); the resulting ``DriftContext`` is passed by reference to every
call site instead of being looked up globally.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from db_drift.audit.storage import AuditStorage, JsonlAuditStorage
from db_drift.config.legacy import import_legacy_config
from db_drift.config.loader import load_project_config
from db_drift.config.store import ConnectionStore
from db_drift.errors import ConfigurationError
from db_drift.factory import DriverFactory
from db_drift.schema.exporter import SchemaExporter

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DIR = Path(".db-drift") / "history"


@dataclass
class DriftContext:
    """Config, storage, driver factory and exporter for one process.

    The exporter is derived from ``config`` and ``factory`` so snapshots go
    through the same drivers and normalization rule as every operation.
    """

    config: ConnectionStore
    storage: AuditStorage
    factory: DriverFactory = field(default_factory=DriverFactory)
    exporter: SchemaExporter = field(init=False)

    def __post_init__(self) -> None:
        self.exporter = SchemaExporter(self.config, self.factory)


def build_context(
    config_path: Path | None = None,
    history_dir: Path | None = None,
    require_config: bool = False,
    legacy_path: Path | None = None,
) -> DriftContext:
    """Build the context from ``db-drift.toml`` (if any).

    Args:
        config_path: Project file.  Defaults to ``db-drift.toml`` in cwd.
        history_dir: Audit directory.  Defaults to ``.db-drift/history``.
        require_config: Raise instead of starting with an empty store when
            the project file is missing.
        legacy_path: Optional JSON file in the older ``ENVIRONMENTS``
            shape; its environments are added on top of the project file.

    Raises:
        FileNotFoundError: If ``require_config`` and the file is missing,
            or if *legacy_path* does not exist.
        ConfigurationError: If the file exists but is invalid.
    """
    try:
        store = ConnectionStore.from_project(load_project_config(config_path))
    except FileNotFoundError:
        if require_config:
            raise
        logger.debug("No project config found, starting with an empty store")
        store = ConnectionStore()

    if legacy_path is not None:
        try:
            legacy = json.loads(Path(legacy_path).read_text())
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid legacy config {legacy_path}: {e}") from e
        imported = import_legacy_config(store, legacy)
        logger.info("Imported legacy environments: %s", ", ".join(imported) or "(none)")

    return DriftContext(
        config=store,
        storage=JsonlAuditStorage(history_dir or DEFAULT_HISTORY_DIR),
    )
