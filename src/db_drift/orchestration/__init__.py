"""Operation orchestration: dispatch, request models, and permission probing.

Usage:
    from db_drift.orchestration import Orchestrator, build_context

    orchestrator = Orchestrator(build_context())
    await orchestrator.execute("test-connection", {"connection": {...}})
"""

from db_drift.orchestration.context import DriftContext, build_context
from db_drift.orchestration.orchestrator import EQUALITY_ENUMERATED_TYPES, Orchestrator
from db_drift.orchestration.prober import (
    PermissionProbeResult,
    probe_permissions,
    sandbox_verdict,
)
from db_drift.orchestration.requests import (
    ConnectionTestResult,
    FailedMigrationRow,
    MigrateResult,
    MigrationRow,
    SetupResult,
)

__all__ = [
    "Orchestrator",
    "DriftContext",
    "build_context",
    "EQUALITY_ENUMERATED_TYPES",
    "PermissionProbeResult",
    "probe_permissions",
    "sandbox_verdict",
    "ConnectionTestResult",
    "FailedMigrationRow",
    "MigrateResult",
    "MigrationRow",
    "SetupResult",
]
