"""Live MySQL driver.

Provides ``MySQLDriver``, an async implementation of the ``Driver``
protocol using SQLAlchemy's async engine with the ``aiomysql`` driver, and
``MySQLIntrospection``, which reads ``information_schema`` for object
names and ``SHOW CREATE ...`` for canonical definitions.

Usage:
    from db_drift.config.models import ConnectionConfig
    from db_drift.drivers.mysql import MySQLDriver

    driver = MySQLDriver(ConnectionConfig(host="localhost", database="shop"))
    await driver.connect()
    try:
        tables = await driver.get_introspection().list_tables("shop")
    finally:
        await driver.disconnect()
"""

import logging
from typing import Any

from sqlalchemy import URL, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from db_drift.config.models import ConnectionConfig
from db_drift.drivers.base import DriverCapability, UserSetupParams
from db_drift.errors import DatabaseConnectionError, StatementExecutionError
from db_drift.schema.ddl import parse_table_ddl, quote_identifier, strip_auto_increment
from db_drift.schema.models import ObjectType, TableSchema

logger = logging.getLogger(__name__)


def create_async_engine_unpooled(config: ConnectionConfig, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine for one MySQL endpoint.

    Default engine settings:

    - ``poolclass=NullPool``: every driver owns its connection; nothing is
      shared across operations.
    - ``isolation_level="AUTOCOMMIT"``: DDL and grants apply immediately.
    - ``connect_timeout=10`` seconds.

    Args:
        config: Normalized connection settings.
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine``.

    Returns:
        Configured ``AsyncEngine``.
    """
    url = URL.create(
        "mysql+aiomysql",
        username=config.user,
        password=config.password or None,
        host=config.host,
        port=config.port,
        database=None if config.database == "default" else config.database,
        query={"charset": "utf8mb4"},
    )

    defaults: dict[str, Any] = {
        "poolclass": NullPool,
        "isolation_level": "AUTOCOMMIT",
        "connect_args": {"connect_timeout": 10},
        "echo": False,
    }
    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}

    return create_async_engine(url, **merged)


def _quote_string(value: str) -> str:
    """Quote a MySQL string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


# Result column holding the definition for each SHOW CREATE variant
_SHOW_CREATE: dict[ObjectType, tuple[str, str]] = {
    "VIEW": ("SHOW CREATE VIEW", "Create View"),
    "PROCEDURE": ("SHOW CREATE PROCEDURE", "Create Procedure"),
    "FUNCTION": ("SHOW CREATE FUNCTION", "Create Function"),
    "TRIGGER": ("SHOW CREATE TRIGGER", "SQL Original Statement"),
    "EVENT": ("SHOW CREATE EVENT", "Create Event"),
}

# Privileges granted to every restricted user (schema read)
_READ_PRIVILEGES = ["SELECT", "SHOW VIEW"]

# Additional privileges when the profile declares ``write_alter``
_WRITE_ALTER_PRIVILEGES = [
    "CREATE",
    "ALTER",
    "DROP",
    "INDEX",
    "REFERENCES",
    "CREATE VIEW",
    "CREATE ROUTINE",
    "ALTER ROUTINE",
    "TRIGGER",
    "EVENT",
]


class MySQLDriver:
    """Async MySQL implementation of the ``Driver`` protocol.

    One driver holds one connection from ``connect()`` until
    ``disconnect()``.  The engine uses ``NullPool`` so disposing it closes
    the socket immediately.

    Args:
        config: Normalized connection settings.
        **engine_kwargs: Additional keyword arguments forwarded to
            ``create_async_engine_unpooled``.
    """

    driver_type = "mysql"
    capabilities = frozenset({DriverCapability.USER_SETUP_SCRIPT})

    def __init__(self, config: ConnectionConfig, **engine_kwargs: Any) -> None:
        self._config = config
        self._engine_kwargs = engine_kwargs
        self._engine: AsyncEngine | None = None
        self._conn: AsyncConnection | None = None

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection.

        Raises:
            DatabaseConnectionError: If the endpoint cannot be reached.
        """
        if self._conn is not None:
            return
        logger.debug("Connecting to MySQL %s", self._config.safe_dict())
        self._engine = create_async_engine_unpooled(self._config, **self._engine_kwargs)
        try:
            self._conn = await self._engine.connect()
        except (SQLAlchemyError, OSError) as e:
            await self._engine.dispose()
            self._engine = None
            raise DatabaseConnectionError(
                f"Failed to connect to {self._config.host}:{self._config.port}: {e}"
            ) from e

    async def disconnect(self) -> None:
        """Close the connection and dispose of the engine.

        Raises:
            DatabaseConnectionError: If closing the connection fails.
        """
        conn, engine = self._conn, self._engine
        self._conn = None
        self._engine = None
        try:
            if conn is not None:
                await conn.close()
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(f"Failed to disconnect: {e}") from e
        finally:
            if engine is not None:
                await engine.dispose()

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _require_conn(self) -> AsyncConnection:
        if self._conn is None:
            raise DatabaseConnectionError("Driver not connected. Call connect() first.")
        return self._conn

    async def query(self, statement: str) -> Any:
        """Execute one raw statement.

        The statement is passed to the DBAPI untouched (no bind-parameter
        or percent-sign interpretation), so definitions containing ``:`` or
        ``%`` run as written.

        Returns:
            List of row dicts for statements that return rows, otherwise
            the affected row count.

        Raises:
            StatementExecutionError: If the statement fails.
        """
        conn = self._require_conn()
        try:
            result = await conn.exec_driver_sql(
                statement, execution_options={"no_parameters": True}
            )
        except SQLAlchemyError as e:
            orig = getattr(e, "orig", None) or e
            raise StatementExecutionError(str(orig), statement=statement) from e
        if result.returns_rows:
            return [dict(row) for row in result.mappings().all()]
        return result.rowcount

    async def fetch(self, sql: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run a parameterized read query and return row dicts."""
        conn = self._require_conn()
        try:
            result = await conn.execute(text(sql), params or {})
        except SQLAlchemyError as e:
            orig = getattr(e, "orig", None) or e
            raise StatementExecutionError(str(orig), statement=sql) from e
        return [dict(row) for row in result.mappings().all()]

    def get_introspection(self) -> "MySQLIntrospection":
        return MySQLIntrospection(self)

    def supports(self, capability: DriverCapability) -> bool:
        return capability in self.capabilities

    # ------------------------------------------------------------------
    # Optional capabilities
    # ------------------------------------------------------------------

    async def generate_user_setup_script(self, params: UserSetupParams) -> str:
        """Render CREATE USER / GRANT statements for a restricted user.

        Read privileges are always granted on the target database; DDL
        privileges are added only when ``permissions.write_alter`` is set.
        No connection is needed.

        Example:
            script = await driver.generate_user_setup_script(
                UserSetupParams(username="drift", password="pw", database="shop")
            )
        """
        account = f"{_quote_string(params.username)}@{_quote_string(params.host)}"
        target = f"{quote_identifier(params.database)}.*"

        privileges = list(_READ_PRIVILEGES)
        if params.permissions.write_alter:
            privileges.extend(_WRITE_ALTER_PRIVILEGES)

        lines = [
            f"CREATE USER IF NOT EXISTS {account} "
            f"IDENTIFIED BY {_quote_string(params.password)};",
            f"GRANT {', '.join(privileges)} ON {target} TO {account};",
            "FLUSH PRIVILEGES;",
        ]
        return "\n".join(lines)


class MySQLIntrospection:
    """Introspects a MySQL schema through a connected ``MySQLDriver``.

    Names come from ``information_schema``; definitions come from
    ``SHOW CREATE ...`` so the text is exactly what MySQL would render.
    """

    def __init__(self, driver: MySQLDriver) -> None:
        self._driver = driver

    async def _names(self, sql: str, database: str) -> list[str]:
        rows = await self._driver.fetch(sql, {"db": database})
        return [row["name"] for row in rows]

    async def list_tables(self, database: str) -> list[str]:
        return await self._names(
            """
            SELECT TABLE_NAME AS name
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = :db
              AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
            """,
            database,
        )

    async def list_views(self, database: str) -> list[str]:
        return await self._names(
            """
            SELECT TABLE_NAME AS name
            FROM information_schema.VIEWS
            WHERE TABLE_SCHEMA = :db
            ORDER BY TABLE_NAME
            """,
            database,
        )

    async def list_procedures(self, database: str) -> list[str]:
        return await self._names(
            """
            SELECT ROUTINE_NAME AS name
            FROM information_schema.ROUTINES
            WHERE ROUTINE_SCHEMA = :db
              AND ROUTINE_TYPE = 'PROCEDURE'
            ORDER BY ROUTINE_NAME
            """,
            database,
        )

    async def list_functions(self, database: str) -> list[str]:
        return await self._names(
            """
            SELECT ROUTINE_NAME AS name
            FROM information_schema.ROUTINES
            WHERE ROUTINE_SCHEMA = :db
              AND ROUTINE_TYPE = 'FUNCTION'
            ORDER BY ROUTINE_NAME
            """,
            database,
        )

    async def list_triggers(self, database: str) -> list[str]:
        return await self._names(
            """
            SELECT TRIGGER_NAME AS name
            FROM information_schema.TRIGGERS
            WHERE TRIGGER_SCHEMA = :db
            ORDER BY TRIGGER_NAME
            """,
            database,
        )

    async def list_events(self, database: str) -> list[str]:
        return await self._names(
            """
            SELECT EVENT_NAME AS name
            FROM information_schema.EVENTS
            WHERE EVENT_SCHEMA = :db
            ORDER BY EVENT_NAME
            """,
            database,
        )

    async def get_table_ddl(self, database: str, name: str) -> str:
        """Canonical CREATE TABLE text with ``AUTO_INCREMENT=n`` removed."""
        rows = await self._driver.query(
            f"SHOW CREATE TABLE {quote_identifier(database)}.{quote_identifier(name)}"
        )
        return strip_auto_increment(rows[0]["Create Table"])

    async def get_table_schema(self, database: str, name: str) -> TableSchema:
        return parse_table_ddl(await self.get_table_ddl(database, name))

    async def get_object_ddl(
        self, database: str, object_type: ObjectType, name: str
    ) -> str:
        """Canonical definition text for a view, routine, trigger, or event.

        Raises:
            ValueError: If *object_type* is ``TABLE`` or unknown.
            StatementExecutionError: If the definition is not visible to
                the connected user.
        """
        if object_type not in _SHOW_CREATE:
            raise ValueError(f"No object definition for type {object_type!r}")
        statement, column = _SHOW_CREATE[object_type]
        sql = f"{statement} {quote_identifier(database)}.{quote_identifier(name)}"
        rows = await self._driver.query(sql)
        definition = rows[0].get(column) if rows else None
        if definition is None:
            raise StatementExecutionError(
                f"Definition of {object_type} {name!r} is not visible "
                f"to user {self._driver.config.user!r}",
                statement=sql,
            )
        return definition
