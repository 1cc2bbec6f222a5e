"""Operation dispatch over drivers, comparator, migrator and storage.

``Orchestrator.execute(operation, payload)`` is the single entry point.
Each operation validates its payload into a request model, opens the
drivers it needs from the factory, and disconnects them on every exit
path.

Compare classification for TABLES runs four passes in precedence order:

1. ``different`` -- tables with a structural diff (ddl = ALTER statements)
2. ``missing_in_source`` -- destination-only tables (ddl = DROP TABLE)
3. ``missing_in_target`` -- source-only tables (ddl = source CREATE TABLE)
4. ``equal`` -- present on both sides and not claimed above (ddl = [])

Non-table kinds map comparator operations (DROP/CREATE/ALTER) to the same
statuses, then enumerate names on both sides for ``equal`` rows.  EVENT is
not enumerated: identical events produce no row.

Error asymmetry: ``migrate`` recovers statement failures per row into its
result, while ``setup-restricted-user`` stops at the first failing
statement and raises it.

Usage:
    from db_drift.orchestration import Orchestrator, build_context

    orchestrator = Orchestrator(build_context())
    rows = await orchestrator.execute(
        "compare", {"srcEnv": "DEV", "destEnv": "PROD", "type": "tables"}
    )
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar, cast

from pydantic import BaseModel, ValidationError

from db_drift.audit.models import ComparisonRecord
from db_drift.config.models import ConnectionConfig
from db_drift.drivers.base import (
    Driver,
    DriverCapability,
    Introspection,
    SupportsUserSetupScript,
    UserSetupParams,
    list_objects,
)
from db_drift.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    DriftError,
    DriverCapabilityError,
    StatementExecutionError,
    UnknownOperationError,
)
from db_drift.factory import OFFLINE_TYPE
from db_drift.orchestration.context import DriftContext
from db_drift.orchestration.prober import PermissionProbeResult, probe_permissions
from db_drift.orchestration.requests import (
    CompareRequest,
    ConnectionTestResult,
    ExportRequest,
    FailedMigrationRow,
    GenerateUserSetupScriptRequest,
    GetSchemaObjectsRequest,
    MigrateRequest,
    MigrateResult,
    ProbeRestrictedUserRequest,
    SetupRestrictedUserRequest,
    SetupResult,
    TestConnectionRequest,
)
from db_drift.schema.comparator import compare_schema
from db_drift.schema.migrator import (
    generate_alter_sql,
    generate_drop_table_sql,
    generate_object_sql,
)
from db_drift.schema.models import (
    ComparisonResult,
    DiffRow,
    DiffStatus,
    DiffText,
    ObjectType,
    object_type_for_kind,
    plural_tag,
)

logger = logging.getLogger(__name__)

# Non-table kinds that get an equality enumeration pass (EVENT has none)
EQUALITY_ENUMERATED_TYPES: frozenset[ObjectType] = frozenset(
    {"VIEW", "PROCEDURE", "FUNCTION", "TRIGGER"}
)

DEFAULT_RESTRICTED_USER = "drift_user"

_OBJECT_STATUS: dict[str, DiffStatus] = {
    "DROP": "missing_in_source",
    "CREATE": "missing_in_target",
    "ALTER": "different",
}

_Request = TypeVar("_Request", bound=BaseModel)

Handler = Callable[[Mapping[str, Any]], Awaitable[Any]]


class Orchestrator:
    """Dispatches named operations against a ``DriftContext``.

    Args:
        context: Config, storage, factory and exporter for this process.
    """

    def __init__(self, context: DriftContext) -> None:
        self._context = context
        self._handlers: dict[str, Handler] = {
            "getSchemaObjects": self._get_schema_objects,
            "export": self._export,
            "compare": self._compare,
            "migrate": self._migrate,
            "test-connection": self._test_connection,
            "setup-restricted-user": self._setup_restricted_user,
            "generate-user-setup-script": self._generate_user_setup_script,
            "probe-restricted-user": self._probe_restricted_user,
        }

    @property
    def operations(self) -> list[str]:
        return list(self._handlers)

    async def execute(self, operation: str, payload: Mapping[str, Any] | None = None) -> Any:
        """Run *operation* with *payload*.

        Inline ``sourceConfig``/``targetConfig`` (keyed by ``srcEnv``/
        ``destEnv``) and ``domainNormalization`` are written into the
        config store before the operation runs.

        Raises:
            UnknownOperationError: If *operation* is not recognized.  Raised
                before the payload is touched.
            ConfigurationError: If the payload is missing required fields.
            DatabaseConnectionError: If a required connection fails.
        """
        handler = self._handlers.get(operation)
        if handler is None:
            raise UnknownOperationError(operation)

        payload = dict(payload or {})
        self._apply_inline_config(payload)
        logger.debug("Executing %s", operation)
        return await handler(payload)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_inline_config(self, payload: Mapping[str, Any]) -> None:
        store = self._context.config
        for config_key, env_key in (("sourceConfig", "srcEnv"), ("targetConfig", "destEnv")):
            material = payload.get(config_key)
            env = payload.get(env_key)
            if not material or not env:
                continue
            if not isinstance(material, Mapping):
                raise ConfigurationError(f"'{config_key}' must be an object")
            store.set_connection(env, material, material.get("type"))

        rule = payload.get("domainNormalization")
        if rule:
            if not isinstance(rule, Mapping) or not rule.get("pattern"):
                raise ConfigurationError(
                    "'domainNormalization' must be an object with a 'pattern'"
                )
            store.set_domain_normalization(rule["pattern"], rule.get("replacement", ""))

    @staticmethod
    def _parse(model: type[_Request], payload: Mapping[str, Any], operation: str) -> _Request:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid payload for '{operation}': {e}") from e

    def _driver_for(self, connection: Mapping[str, Any]) -> tuple[Driver, ConnectionConfig]:
        """Build an unconnected driver from inline connection material."""
        try:
            config = ConnectionConfig.model_validate(dict(connection))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid connection: {e}") from e
        return self._context.factory.create(connection.get("type"), config), config

    def _driver_for_env(self, env: str) -> tuple[Driver, ConnectionConfig]:
        entry = self._context.config.get_connection(env)
        return self._context.factory.create(entry.type, entry.config), entry.config

    @staticmethod
    async def _release(*drivers: Driver) -> None:
        """Disconnect every driver, then re-raise the first failure."""
        errors: list[DatabaseConnectionError] = []
        for driver in drivers:
            try:
                await driver.disconnect()
            except DatabaseConnectionError as e:
                logger.warning("Disconnect failed for %s driver: %s", driver.driver_type, e)
                errors.append(e)
        if errors:
            raise errors[0]

    # ------------------------------------------------------------------
    # getSchemaObjects / export
    # ------------------------------------------------------------------

    async def _get_schema_objects(self, payload: Mapping[str, Any]) -> list[str]:
        request = self._parse(GetSchemaObjectsRequest, payload, "getSchemaObjects")
        driver, config = self._driver_for(request.connection)
        object_type = object_type_for_kind(request.type)

        try:
            await driver.connect()
            if object_type is None:
                logger.debug("Unrecognized kind %r, returning no names", request.type)
                return []
            return await list_objects(driver.get_introspection(), object_type, config.database)
        finally:
            await self._release(driver)

    async def _export(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        request = self._parse(ExportRequest, payload, "export")
        snapshot = await self._context.exporter.export_schema(
            request.env, name=request.name, output_path=request.output
        )
        return snapshot.model_dump()

    # ------------------------------------------------------------------
    # compare
    # ------------------------------------------------------------------

    async def _compare(self, payload: Mapping[str, Any]) -> list[DiffRow]:
        request = self._parse(CompareRequest, payload, "compare")
        object_type = object_type_for_kind(request.type)
        if object_type is None:
            raise ConfigurationError(f"Unknown object kind: {request.type!r}")

        src_driver, src_config = self._driver_for_env(request.src_env)
        dest_driver, dest_config = self._driver_for_env(request.dest_env)

        try:
            outcomes = await asyncio.gather(
                src_driver.connect(), dest_driver.connect(), return_exceptions=True
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

            src_intro = src_driver.get_introspection()
            dest_intro = dest_driver.get_introspection()
            database = src_config.database
            dest_database = dest_config.database

            diff = await compare_schema(src_intro, dest_intro, database, dest_database)
            logger.info(
                "Compared %s -> %s (%s): %s",
                request.src_env,
                request.dest_env,
                object_type,
                diff.summary,
            )

            if object_type == "TABLE":
                rows = await self._classify_tables(
                    diff, src_intro, dest_intro, database, dest_database
                )
            else:
                rows = await self._classify_objects(
                    object_type, diff, src_intro, dest_intro, database, dest_database
                )
        finally:
            await self._release(src_driver, dest_driver)

        for row in rows:
            await self._context.storage.save_comparison(
                ComparisonRecord(
                    src_env=request.src_env,
                    dest_env=request.dest_env,
                    database=database,
                    type=row.type,
                    name=row.name,
                    status=row.status,
                    alter_statements=row.ddl,
                )
            )
        return rows

    async def _classify_tables(
        self,
        diff: ComparisonResult,
        src_intro: Introspection,
        dest_intro: Introspection,
        database: str,
        dest_database: str,
    ) -> list[DiffRow]:
        tag = plural_tag("TABLE")
        rows: list[DiffRow] = []
        assigned: set[str] = set()

        src_names = set(await src_intro.list_tables(database))
        dest_names = set(await dest_intro.list_tables(dest_database))

        for name, table_diff in diff.tables.items():
            assigned.add(name)
            rows.append(
                DiffRow(
                    name=name,
                    status="different",
                    type=tag,
                    ddl=generate_alter_sql(table_diff),
                    diff=DiffText(
                        source=await src_intro.get_table_ddl(database, name),
                        target=await dest_intro.get_table_ddl(dest_database, name),
                    ),
                )
            )

        for name in diff.dropped_tables:
            if name in assigned:
                continue
            assigned.add(name)
            rows.append(
                DiffRow(
                    name=name,
                    status="missing_in_source",
                    type=tag,
                    ddl=[generate_drop_table_sql(name)],
                    diff=DiffText(
                        target=await dest_intro.get_table_ddl(dest_database, name)
                    ),
                )
            )

        for name in sorted(src_names - dest_names - assigned):
            assigned.add(name)
            source_ddl = await src_intro.get_table_ddl(database, name)
            rows.append(
                DiffRow(
                    name=name,
                    status="missing_in_target",
                    type=tag,
                    ddl=[source_ddl],
                    diff=DiffText(source=source_ddl),
                )
            )

        for name in sorted((src_names & dest_names) - assigned):
            assigned.add(name)
            rows.append(
                DiffRow(
                    name=name,
                    status="equal",
                    type=tag,
                    diff=DiffText(
                        source=await src_intro.get_table_ddl(database, name),
                        target=await dest_intro.get_table_ddl(dest_database, name),
                    ),
                )
            )

        return rows

    async def _classify_objects(
        self,
        object_type: ObjectType,
        diff: ComparisonResult,
        src_intro: Introspection,
        dest_intro: Introspection,
        database: str,
        dest_database: str,
    ) -> list[DiffRow]:
        tag = plural_tag(object_type)
        rows: list[DiffRow] = []
        processed: set[str] = set()

        for obj in diff.objects:
            if obj.type != object_type or obj.name in processed:
                continue
            processed.add(obj.name)
            target = None
            if obj.operation != "CREATE":
                target = await dest_intro.get_object_ddl(dest_database, object_type, obj.name)
            rows.append(
                DiffRow(
                    name=obj.name,
                    status=_OBJECT_STATUS[obj.operation],
                    type=tag,
                    ddl=generate_object_sql(obj),
                    diff=DiffText(source=obj.definition, target=target),
                )
            )

        if object_type not in EQUALITY_ENUMERATED_TYPES:
            return rows

        src_names = set(await list_objects(src_intro, object_type, database))
        dest_names = set(await list_objects(dest_intro, object_type, dest_database))
        for name in sorted((src_names & dest_names) - processed):
            processed.add(name)
            rows.append(
                DiffRow(
                    name=name,
                    status="equal",
                    type=tag,
                    diff=DiffText(
                        source=await src_intro.get_object_ddl(database, object_type, name),
                        target=await dest_intro.get_object_ddl(
                            dest_database, object_type, name
                        ),
                    ),
                )
            )

        return rows

    # ------------------------------------------------------------------
    # migrate
    # ------------------------------------------------------------------

    async def _migrate(self, payload: Mapping[str, Any]) -> MigrateResult:
        request = self._parse(MigrateRequest, payload, "migrate")
        driver, config = self._driver_for_env(request.dest_env)
        storage = self._context.storage
        result = MigrateResult()

        try:
            await driver.connect()
            for row in request.objects:
                try:
                    for statement in row.statements():
                        await driver.query(statement)
                except StatementExecutionError as e:
                    logger.warning("Migration of %s %s failed: %s", row.type, row.name, e)
                    result.failed.append(
                        FailedMigrationRow.model_validate({**row.model_dump(), "error": str(e)})
                    )
                    await storage.save_migration(
                        request.dest_env, config.database, row.type, row.name,
                        row.status, "FAILED", str(e),
                    )
                    continue

                result.successful.append(row)
                await storage.save_migration(
                    request.dest_env, config.database, row.type, row.name,
                    row.status, "SUCCESS",
                )
        finally:
            await self._release(driver)

        logger.info(
            "Migrated %s: %d succeeded, %d failed",
            request.dest_env,
            len(result.successful),
            len(result.failed),
        )
        return result

    # ------------------------------------------------------------------
    # Connection and restricted-user operations
    # ------------------------------------------------------------------

    async def _test_connection(self, payload: Mapping[str, Any]) -> ConnectionTestResult:
        if "connection" not in payload:
            payload = {"connection": payload}
        request = self._parse(TestConnectionRequest, payload, "test-connection")

        try:
            driver, _ = self._driver_for(request.connection)
            try:
                await driver.connect()
                if driver.driver_type != OFFLINE_TYPE:
                    await driver.query("SELECT 1")
            finally:
                await self._release(driver)
        except DriftError as e:
            return ConnectionTestResult(success=False, message=str(e))
        return ConnectionTestResult(success=True, message="Connection successful")

    async def _setup_restricted_user(self, payload: Mapping[str, Any]) -> SetupResult:
        request = self._parse(SetupRestrictedUserRequest, payload, "setup-restricted-user")
        driver, _ = self._driver_for(request.admin_connection)

        try:
            await driver.connect()
            for statement in request.statements():
                try:
                    await driver.query(statement)
                except StatementExecutionError as e:
                    raise StatementExecutionError(
                        f"Failed to execute statement: {statement}. Error: {e}",
                        statement=statement,
                    ) from e
        finally:
            await self._release(driver)
        return SetupResult(success=True)

    async def _generate_user_setup_script(self, payload: Mapping[str, Any]) -> str:
        request = self._parse(
            GenerateUserSetupScriptRequest, payload, "generate-user-setup-script"
        )
        driver, config = self._driver_for(request.admin_connection)
        capability = DriverCapability.USER_SETUP_SCRIPT
        if not driver.supports(capability):
            raise DriverCapabilityError(driver.driver_type, capability.value)

        params = UserSetupParams(
            username=request.restricted_user.username or DEFAULT_RESTRICTED_USER,
            password=request.restricted_user.password or "",
            database=config.database,
            permissions=request.permissions,
        )
        return await cast(SupportsUserSetupScript, driver).generate_user_setup_script(params)

    async def _probe_restricted_user(self, payload: Mapping[str, Any]) -> PermissionProbeResult:
        request = self._parse(ProbeRestrictedUserRequest, payload, "probe-restricted-user")
        driver, config = self._driver_for(request.connection)
        return await probe_permissions(driver, config.database, request.permissions)
