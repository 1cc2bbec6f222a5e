"""Database drivers package.

Provides the ``Driver`` and ``Introspection`` Protocols, the live
``MySQLDriver``, and the offline ``DumpDriver`` over captured snapshots.

Usage:
    from db_drift.drivers import Driver, MySQLDriver, DumpDriver
"""

from db_drift.drivers.base import (
    Driver,
    DriverCapability,
    Introspection,
    PermissionProfile,
    SupportsUserSetupScript,
    UserSetupParams,
    list_objects,
)
from db_drift.drivers.dump import DumpDriver, SnapshotIntrospection
from db_drift.drivers.mysql import MySQLDriver, MySQLIntrospection

__all__ = [
    "Driver",
    "DriverCapability",
    "Introspection",
    "PermissionProfile",
    "SupportsUserSetupScript",
    "UserSetupParams",
    "list_objects",
    "DumpDriver",
    "SnapshotIntrospection",
    "MySQLDriver",
    "MySQLIntrospection",
]
