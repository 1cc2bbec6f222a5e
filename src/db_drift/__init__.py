"""db-drift: Schema drift detection and reconciliation between database environments.

Compares tables, views, routines, triggers, and events across environments
(DEV -> STAGE -> PROD), classifies every object as equal, different, or
one-sided, and synthesizes the DDL that reconciles the destination.

Usage:
    from db_drift import Orchestrator, build_context

    orchestrator = Orchestrator(build_context())
    rows = await orchestrator.execute(
        "compare", {"srcEnv": "STAGE", "destEnv": "PROD", "type": "tables"}
    )
"""

__version__ = "0.1.0"

# Errors
from db_drift.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    DriftError,
    DriverCapabilityError,
    StatementExecutionError,
    UnknownOperationError,
)

# Config
from db_drift.config import ConnectionConfig, ConnectionStore, load_project_config

# Drivers
from db_drift.drivers import Driver, DriverCapability, DumpDriver, MySQLDriver
from db_drift.factory import DriverFactory

# Schema
from db_drift.schema.comparator import compare_schema
from db_drift.schema.migrator import generate_alter_sql, generate_object_sql
from db_drift.schema.models import ComparisonResult, DiffRow, SchemaSnapshot

# Orchestration
from db_drift.orchestration import (
    DriftContext,
    Orchestrator,
    PermissionProbeResult,
    build_context,
)

__all__ = [
    # Errors
    "DriftError",
    "DatabaseConnectionError",
    "UnknownOperationError",
    "DriverCapabilityError",
    "ConfigurationError",
    "StatementExecutionError",
    # Config
    "ConnectionConfig",
    "ConnectionStore",
    "load_project_config",
    # Drivers
    "Driver",
    "DriverCapability",
    "DriverFactory",
    "DumpDriver",
    "MySQLDriver",
    # Schema
    "compare_schema",
    "generate_alter_sql",
    "generate_object_sql",
    "ComparisonResult",
    "DiffRow",
    "SchemaSnapshot",
    # Orchestration
    "Orchestrator",
    "DriftContext",
    "build_context",
    "PermissionProbeResult",
]
