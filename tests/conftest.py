"""Shared fixtures: canonical DDL samples and an in-memory orchestration harness.

The harness wires an ``Orchestrator`` to ``DumpDriver`` instances built from
in-memory ``SchemaSnapshot`` objects (keyed by database name), so compare,
migrate, and probe flows run without a MySQL server.
"""

from typing import Any
from unittest.mock import AsyncMock

import pytest

from db_drift.config.models import ConnectionConfig
from db_drift.config.store import ConnectionStore
from db_drift.drivers.dump import DumpDriver
from db_drift.errors import StatementExecutionError
from db_drift.factory import DriverFactory
from db_drift.orchestration.context import DriftContext
from db_drift.orchestration.orchestrator import Orchestrator
from db_drift.schema.models import SchemaSnapshot

# ---------------------------------------------------------------------------
# Canonical SHOW CREATE TABLE samples
# ---------------------------------------------------------------------------

USERS_DDL = """CREATE TABLE `users` (
  `id` int NOT NULL AUTO_INCREMENT,
  `email` varchar(255) NOT NULL,
  `name` varchar(100) DEFAULT NULL,
  PRIMARY KEY (`id`),
  UNIQUE KEY `uq_users_email` (`email`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"""

USERS_OLD_DDL = """CREATE TABLE `users` (
  `id` int NOT NULL AUTO_INCREMENT,
  `email` varchar(191) NOT NULL,
  PRIMARY KEY (`id`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"""

ORDERS_DDL = """CREATE TABLE `orders` (
  `id` int NOT NULL AUTO_INCREMENT,
  `user_id` int NOT NULL,
  `total` decimal(10,2) NOT NULL DEFAULT '0.00',
  PRIMARY KEY (`id`),
  KEY `idx_orders_user` (`user_id`),
  CONSTRAINT `fk_orders_user` FOREIGN KEY (`user_id`) REFERENCES `users` (`id`),
  CONSTRAINT `chk_orders_total` CHECK ((`total` >= 0))
) ENGINE=InnoDB AUTO_INCREMENT=42 DEFAULT CHARSET=utf8mb4"""

LEGACY_DDL = """CREATE TABLE `legacy` (
  `id` int NOT NULL,
  PRIMARY KEY (`id`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"""

ACTIVE_USERS_VIEW = (
    "CREATE ALGORITHM=UNDEFINED DEFINER=`app`@`%` SQL SECURITY DEFINER "
    "VIEW `v_active_users` AS select `users`.`id` AS `id` from `users`"
)


@pytest.fixture
def ddl() -> dict[str, str]:
    """Canonical DDL samples keyed by short name."""
    return {
        "users": USERS_DDL,
        "users_old": USERS_OLD_DDL,
        "orders": ORDERS_DDL,
        "legacy": LEGACY_DDL,
        "v_active_users": ACTIVE_USERS_VIEW,
    }


# ---------------------------------------------------------------------------
# In-memory drivers
# ---------------------------------------------------------------------------


class RecordingDumpDriver(DumpDriver):
    """Snapshot driver that accepts statements and counts lifecycle calls."""

    driver_type = "memory"

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        snapshot: SchemaSnapshot | None = None,
        fail_statements: set[str] | None = None,
    ) -> None:
        super().__init__(config, snapshot)
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.statements: list[str] = []
        self._fail_statements = fail_statements if fail_statements is not None else set()

    async def connect(self) -> None:
        self.connect_calls += 1
        await super().connect()

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        await super().disconnect()

    async def query(self, statement: str) -> Any:
        self.statements.append(statement)
        if statement in self._fail_statements:
            raise StatementExecutionError("boom", statement=statement)
        return 0


class DriftHarness:
    """Orchestrator over in-memory snapshots.

    Environments ``DEV`` (``shop_dev``) and ``PROD`` (``shop_prod``) are
    configured; a database without a registered snapshot is unreachable.
    """

    def __init__(self) -> None:
        self.snapshots: dict[str, SchemaSnapshot] = {}
        self.drivers: list[RecordingDumpDriver] = []
        self.fail_statements: set[str] = set()
        self.storage = AsyncMock()

        store = ConnectionStore(order=["DEV", "PROD"])
        store.set_connection("DEV", {"database": "shop_dev"})
        store.set_connection("PROD", {"database": "shop_prod"})

        self.context = DriftContext(
            config=store,
            storage=self.storage,
            factory=DriverFactory(builders={"mysql": self._build}),
        )
        self.orchestrator = Orchestrator(self.context)

    def _build(self, config: ConnectionConfig) -> RecordingDumpDriver:
        driver = RecordingDumpDriver(
            config,
            snapshot=self.snapshots.get(config.database),
            fail_statements=self.fail_statements,
        )
        self.drivers.append(driver)
        return driver

    def add_schema(self, database: str, **objects: dict[str, str]) -> SchemaSnapshot:
        """Register a snapshot, e.g. ``add_schema("shop_dev", TABLE={...})``."""
        snapshot = SchemaSnapshot(database=database, objects=objects)
        self.snapshots[database] = snapshot
        return snapshot


@pytest.fixture
def harness() -> DriftHarness:
    return DriftHarness()
