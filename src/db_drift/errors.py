"""Exception taxonomy for db-drift.

Structural failures (bad config, unknown operation, unreachable connection,
missing driver capability) are raised to the caller.  Per-object statement
failures during ``migrate`` are recovered into the result instead.

Usage:
    from db_drift.errors import ConfigurationError, StatementExecutionError
"""

from __future__ import annotations


class DriftError(Exception):
    """Base exception for db-drift errors."""

    pass


class DatabaseConnectionError(DriftError):
    """Connecting to or disconnecting from a database failed."""

    pass


class UnknownOperationError(DriftError):
    """The orchestrator was asked for an operation it does not know."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Unknown operation: {operation!r}")


class DriverCapabilityError(DriftError):
    """The selected driver lacks an optional capability."""

    def __init__(self, driver_type: str, capability: str) -> None:
        self.driver_type = driver_type
        self.capability = capability
        super().__init__(
            f"Driver for {driver_type} does not support {capability}."
        )


class ConfigurationError(DriftError):
    """A required payload field or connection setting is missing or invalid."""

    pass


class StatementExecutionError(DriftError):
    """A single SQL statement failed.

    Attributes:
        statement: The statement text that failed.
    """

    def __init__(self, message: str, statement: str | None = None) -> None:
        self.statement = statement
        super().__init__(message)
