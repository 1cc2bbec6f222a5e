"""Translation layer for the older configuration shape.

Older projects kept connections in a flat upper-case mapping::

    {
        "ENVIRONMENTS": {
            "DEV": {"DB_HOST": "localhost", "DB_PORT": 3306,
                    "DB_NAME": "app_dev", "DB_USER": "root", "DB_PASS": ""},
        }
    }

``import_legacy_config`` replays each environment through the store's
regular ``set_connection`` contract, so nothing of this shape reaches
the orchestrator.
"""

from collections.abc import Mapping
from typing import Any

from db_drift.config.store import ConnectionStore

_KEY_MAP = {
    "DB_HOST": "host",
    "DB_PORT": "port",
    "DB_NAME": "database",
    "DB_USER": "user",
    "DB_PASS": "password",
    "DB_PATH": "path",
}


def translate_legacy_destination(destination: Mapping[str, Any]) -> dict[str, Any]:
    """Map one legacy destination onto ``ConnectionConfig`` field names.

    Already-modern keys (``host``, ``database``...) pass through so mixed
    files keep working.

    Example:
        >>> translate_legacy_destination({"DB_HOST": "db", "DB_NAME": "app"})
        {'host': 'db', 'database': 'app'}
    """
    translated: dict[str, Any] = {}
    for key, value in destination.items():
        if key == "DB_TYPE":
            continue
        translated[_KEY_MAP.get(key, key)] = value
    return translated


def import_legacy_config(store: ConnectionStore, legacy: Mapping[str, Any]) -> list[str]:
    """Register every legacy environment in *store*.

    Args:
        store: Target connection store.
        legacy: Mapping with an ``ENVIRONMENTS`` table.

    Returns:
        Names of the environments imported.
    """
    imported: list[str] = []
    for env, destination in (legacy.get("ENVIRONMENTS") or {}).items():
        if not destination:
            continue
        conn_type = destination.get("DB_TYPE") or destination.get("type") or "mysql"
        store.set_connection(env, translate_legacy_destination(destination), conn_type)
        imported.append(env)
    return imported
