"""Audit history: record models and storage backends.

Usage:
    from db_drift.audit import AuditStorage, JsonlAuditStorage, ComparisonRecord
"""

from db_drift.audit.models import ComparisonRecord, MigrationRecord
from db_drift.audit.storage import AuditStorage, JsonlAuditStorage

__all__ = [
    "AuditStorage",
    "JsonlAuditStorage",
    "ComparisonRecord",
    "MigrationRecord",
]
