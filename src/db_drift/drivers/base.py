"""Driver and introspection protocol definitions.

Defines the ``Driver`` Protocol that every connection variant implements
and the ``Introspection`` Protocol a driver hands out for read-only schema
access.  All I/O methods are ``async def``.

Optional capabilities are declared up front in ``Driver.capabilities`` and
queried with ``supports()`` instead of probing for method existence.

Usage:
    from db_drift.drivers.base import Driver, DriverCapability

    async def list_tables(driver: Driver, database: str) -> list[str]:
        await driver.connect()
        try:
            return await driver.get_introspection().list_tables(database)
        finally:
            await driver.disconnect()
"""

from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from db_drift.schema.models import ObjectType, TableSchema


class DriverCapability(str, Enum):
    """Optional capabilities a driver may declare."""

    USER_SETUP_SCRIPT = "user setup generation"


class PermissionProfile(BaseModel):
    """Declared permission set for a restricted user.

    Accepts the camelCase payload key (``writeAlter``) as well as the
    Python name.
    """

    model_config = ConfigDict(populate_by_name=True)

    write_alter: bool = Field(default=False, alias="writeAlter")


class UserSetupParams(BaseModel):
    """Input for ``Driver.generate_user_setup_script``."""

    username: str
    password: str = ""
    database: str
    host: str = "%"
    permissions: PermissionProfile = Field(default_factory=PermissionProfile)


class Introspection(Protocol):
    """Read-only schema access bound to one driver connection.

    For an unchanged schema, repeated calls return byte-identical text.
    List methods have set semantics -- callers must not rely on order.
    """

    async def list_tables(self, database: str) -> list[str]:
        """Names of base tables in *database*."""
        ...

    async def list_views(self, database: str) -> list[str]:
        """Names of views in *database*."""
        ...

    async def list_procedures(self, database: str) -> list[str]:
        """Names of stored procedures in *database*."""
        ...

    async def list_functions(self, database: str) -> list[str]:
        """Names of stored functions in *database*."""
        ...

    async def list_triggers(self, database: str) -> list[str]:
        """Names of triggers in *database*."""
        ...

    async def list_events(self, database: str) -> list[str]:
        """Names of scheduled events in *database*."""
        ...

    async def get_table_ddl(self, database: str, name: str) -> str:
        """Canonical ``CREATE TABLE`` text for one table."""
        ...

    async def get_table_schema(self, database: str, name: str) -> TableSchema:
        """Structured columns/indexes/constraints for one table."""
        ...

    async def get_object_ddl(
        self, database: str, object_type: ObjectType, name: str
    ) -> str:
        """Canonical definition text for one non-table object."""
        ...


class Driver(Protocol):
    """Capability object bound to one connection.

    ``connect()``/``disconnect()`` form a scoped resource: callers must
    disconnect on every exit path.  ``disconnect()`` on a driver that is
    not connected is a no-op.
    """

    driver_type: str
    capabilities: frozenset[DriverCapability]

    async def connect(self) -> None:
        """Open the connection.

        Raises:
            DatabaseConnectionError: If the endpoint cannot be reached.
        """
        ...

    async def disconnect(self) -> None:
        """Release the connection."""
        ...

    async def query(self, statement: str) -> Any:
        """Execute one raw statement and return its native result.

        Raises:
            StatementExecutionError: If the statement fails.
        """
        ...

    def get_introspection(self) -> Introspection:
        """Introspection bound to this connection."""
        ...

    def supports(self, capability: DriverCapability) -> bool:
        """True if the driver declares *capability*."""
        ...


class SupportsUserSetupScript(Driver, Protocol):
    """Driver declaring ``DriverCapability.USER_SETUP_SCRIPT``."""

    async def generate_user_setup_script(self, params: UserSetupParams) -> str:
        """Render the statements that create a restricted user."""
        ...


async def list_objects(
    introspection: Introspection, object_type: ObjectType, database: str
) -> list[str]:
    """Dispatch to the ``list_*`` method for *object_type*."""
    listers = {
        "TABLE": introspection.list_tables,
        "VIEW": introspection.list_views,
        "PROCEDURE": introspection.list_procedures,
        "FUNCTION": introspection.list_functions,
        "TRIGGER": introspection.list_triggers,
        "EVENT": introspection.list_events,
    }
    return await listers[object_type](database)
