"""Driver factory.

Builds one fresh ``Driver`` per call from a connection-type tag and a
normalized ``ConnectionConfig``.  Connections are never pooled or cached
across calls -- every operation owns the drivers it creates.

Selection rule:
1. Type tag ``dump`` or host ``file``: offline ``DumpDriver``
2. Otherwise the registered live driver for the tag (default ``mysql``)

Usage:
    from db_drift.factory import DriverFactory

    factory = DriverFactory()
    driver = factory.create("mysql", {"host": "localhost", "database": "shop"})
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from db_drift.config.models import ConnectionConfig
from db_drift.drivers.base import Driver
from db_drift.drivers.dump import DumpDriver
from db_drift.drivers.mysql import MySQLDriver
from db_drift.errors import ConfigurationError

logger = logging.getLogger(__name__)

OFFLINE_TYPE = "dump"
FILE_HOST = "file"

DriverBuilder = Callable[[ConnectionConfig], Driver]


def resolve_driver_type(conn_type: str | None, config: ConnectionConfig) -> str:
    """Pick the driver tag for a connection.

    Examples:
        >>> resolve_driver_type("mysql", ConnectionConfig(host="file"))
        'dump'
        >>> resolve_driver_type(None, ConnectionConfig(host="db"))
        'mysql'
    """
    if conn_type == OFFLINE_TYPE or config.host == FILE_HOST:
        return OFFLINE_TYPE
    return (conn_type or "mysql").lower()


class DriverFactory:
    """Constructs drivers by type tag.

    Args:
        builders: Optional mapping of type tag to driver constructor.
            Defaults to the live MySQL driver (``mysql``/``mariadb``) and the
            offline snapshot driver (``dump``).
    """

    def __init__(self, builders: Mapping[str, DriverBuilder] | None = None) -> None:
        self._builders: dict[str, DriverBuilder] = dict(
            builders
            or {
                "mysql": MySQLDriver,
                "mariadb": MySQLDriver,
                OFFLINE_TYPE: DumpDriver,
            }
        )

    @property
    def types(self) -> list[str]:
        return sorted(self._builders)

    def create(
        self,
        conn_type: str | None,
        config: ConnectionConfig | Mapping[str, Any],
    ) -> Driver:
        """Build a new driver.

        Args:
            conn_type: Declared connection type tag.
            config: Normalized config, or a raw mapping to normalize.

        Returns:
            A driver that has not been connected yet.

        Raises:
            ConfigurationError: If no driver is registered for the tag.
        """
        if not isinstance(config, ConnectionConfig):
            config = ConnectionConfig.model_validate(dict(config))

        driver_type = resolve_driver_type(conn_type, config)
        builder = self._builders.get(driver_type)
        if builder is None:
            raise ConfigurationError(
                f"No driver for connection type {driver_type!r}. "
                f"Available: {', '.join(self.types)}"
            )

        logger.debug("Creating %s driver for %s", driver_type, config.safe_dict())
        return builder(config)
