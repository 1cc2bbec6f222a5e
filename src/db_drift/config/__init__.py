"""Configuration management: connection store, TOML loading, and models.

Usage:
    >>> from db_drift.config import ConnectionStore, load_project_config
"""

from db_drift.config.legacy import import_legacy_config
from db_drift.config.loader import load_project_config, write_project_template
from db_drift.config.models import (
    ConnectionConfig,
    ConnectionEntry,
    DomainNormalization,
    EnvironmentProfile,
    ProjectConfig,
)
from db_drift.config.store import ConnectionStore

__all__ = [
    "ConnectionStore",
    "load_project_config",
    "write_project_template",
    "import_legacy_config",
    "ConnectionConfig",
    "ConnectionEntry",
    "DomainNormalization",
    "EnvironmentProfile",
    "ProjectConfig",
]
