"""Restricted-user permission probing.

Checks a credential against its declared permission profile with three
layered checks:

1. Base connectivity -- failure marks every check ``fail`` and stops
2. Schema read -- list tables; failure does not stop the sandbox check
3. Sandbox DDL -- create and drop a uniquely named table

The sandbox verdict compares what the credential *can* do with what it is
*declared* to do, so an unexpectedly privileged user fails just like an
under-privileged one.

Usage:
    from db_drift.orchestration.prober import probe_permissions

    result = await probe_permissions(driver, "shop", PermissionProfile())
    result.model_dump(by_alias=True)
    # {"baseConn": "pass", "schemaRead": "pass", "sandboxTest": "pass"}
"""

import logging
import secrets
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from db_drift.drivers.base import Driver, PermissionProfile
from db_drift.errors import DatabaseConnectionError, DriftError, StatementExecutionError
from db_drift.schema.ddl import quote_identifier

logger = logging.getLogger(__name__)

ProbeOutcome = Literal["pass", "fail"]

PROBE_TABLE_PREFIX = "_drift_probe_"


class PermissionProbeResult(BaseModel):
    """Outcome of the three probe checks."""

    model_config = ConfigDict(populate_by_name=True)

    base_conn: ProbeOutcome = Field(default="fail", alias="baseConn")
    schema_read: ProbeOutcome = Field(default="fail", alias="schemaRead")
    sandbox_test: ProbeOutcome = Field(default="fail", alias="sandboxTest")


def probe_table_name() -> str:
    """Random sandbox table name, unique per call."""
    return f"{PROBE_TABLE_PREFIX}{secrets.token_hex(8)}"


def sandbox_verdict(probe_succeeded: bool, write_alter: bool) -> ProbeOutcome:
    """Compare actual DDL capability against the declared profile.

    Examples:
        >>> sandbox_verdict(True, True), sandbox_verdict(False, False)
        ('pass', 'pass')
        >>> sandbox_verdict(True, False), sandbox_verdict(False, True)
        ('fail', 'fail')
    """
    return "pass" if probe_succeeded == write_alter else "fail"


async def probe_permissions(
    driver: Driver,
    database: str,
    permissions: PermissionProfile,
) -> PermissionProbeResult:
    """Run the layered checks and release *driver* exactly once.

    Args:
        driver: Unconnected driver for the credential under test.
        database: Database whose tables the schema-read check lists.
        permissions: Declared permission profile.

    Returns:
        ``PermissionProbeResult``.  Never raises for a failed check.
    """
    result = PermissionProbeResult()
    try:
        try:
            await driver.connect()
        except DatabaseConnectionError as e:
            logger.warning("Probe connection failed: %s", e)
            return result
        result.base_conn = "pass"

        try:
            await driver.get_introspection().list_tables(database)
            result.schema_read = "pass"
        except DriftError as e:
            logger.info("Probe schema read failed: %s", e)

        table = quote_identifier(probe_table_name())
        try:
            await driver.query(f"CREATE TABLE {table} (id INT)")
        except StatementExecutionError as e:
            logger.info("Probe sandbox create refused: %s", e)
            probe_succeeded = False
        else:
            try:
                await driver.query(f"DROP TABLE {table}")
                probe_succeeded = True
            except StatementExecutionError as e:
                logger.warning("Probe table %s could not be dropped: %s", table, e)
                probe_succeeded = False

        result.sandbox_test = sandbox_verdict(probe_succeeded, permissions.write_alter)
        return result
    finally:
        await driver.disconnect()
