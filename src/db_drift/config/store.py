"""In-memory connection store (the config collaborator).

Holds one ``ConnectionEntry`` per environment plus the optional domain
normalization rule.  The orchestrator reads connections through
``get_connection`` and writes payload-supplied connections through
``set_connection``; it never inspects the normalization rule itself.

Usage:
    from db_drift.config.store import ConnectionStore

    store = ConnectionStore()
    store.set_connection("DEV", {"host": "localhost", "database": "shop_dev"})
    entry = store.get_connection("DEV")
    entry.type, entry.config.database
    # ("mysql", "shop_dev")
"""

import logging
import re
from collections.abc import Mapping
from typing import Any

from db_drift.config.models import (
    ConnectionConfig,
    ConnectionEntry,
    DomainNormalization,
    ProjectConfig,
)
from db_drift.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ConnectionStore:
    """Environment name to connection mapping.

    Args:
        connections: Initial entries keyed by environment name.
        order: Declared promotion order (advisory only).
        normalization: Optional regex rewrite for exported definitions.
    """

    def __init__(
        self,
        connections: Mapping[str, ConnectionEntry] | None = None,
        order: list[str] | None = None,
        normalization: DomainNormalization | None = None,
    ) -> None:
        self._connections: dict[str, ConnectionEntry] = dict(connections or {})
        self._order: list[str] = list(order or [])
        self._normalization = normalization

    @classmethod
    def from_project(cls, project: ProjectConfig) -> "ConnectionStore":
        """Build a store from a loaded db-drift.toml."""
        return cls(
            connections={
                name: profile.to_entry()
                for name, profile in project.environments.items()
            },
            order=project.order,
            normalization=project.normalization,
        )

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    @property
    def environments(self) -> list[str]:
        """Configured environment names (promotion order first)."""
        ordered = [env for env in self._order if env in self._connections]
        return ordered + sorted(set(self._connections) - set(ordered))

    @property
    def order(self) -> list[str]:
        return list(self._order)

    def get_connection(self, env: str) -> ConnectionEntry:
        """Return the connection for *env*.

        Raises:
            ConfigurationError: If *env* is not configured.
        """
        if env not in self._connections:
            available = ", ".join(self.environments) or "(none)"
            raise ConfigurationError(
                f"Environment '{env}' is not configured. Available: {available}"
            )
        return self._connections[env]

    def set_connection(
        self,
        env: str,
        config: ConnectionConfig | Mapping[str, Any],
        conn_type: str | None = None,
    ) -> None:
        """Create or replace the connection for *env*.

        Args:
            env: Environment name.
            config: Normalized config or a raw payload mapping.
            conn_type: Driver-type tag.  Falls back to ``config["type"]``
                for mappings, then ``mysql``.
        """
        if not isinstance(config, ConnectionConfig):
            raw = dict(config)
            conn_type = conn_type or raw.get("type")
            config = ConnectionConfig.model_validate(raw)

        entry = ConnectionEntry(type=conn_type or "mysql", config=config)
        self._connections[env] = entry
        logger.debug("Set connection %s (%s): %s", env, entry.type, config.safe_dict())

    def previous_environment(self, env: str) -> str | None:
        """Environment preceding *env* in the promotion order, if any.

        Example:
            >>> ConnectionStore(order=["DEV", "STAGE"]).previous_environment("STAGE")
            'DEV'
        """
        if env not in self._order:
            return None
        idx = self._order.index(env)
        return self._order[idx - 1] if idx > 0 else None

    # ------------------------------------------------------------------
    # Domain normalization
    # ------------------------------------------------------------------

    def set_domain_normalization(
        self, pattern: str | re.Pattern[str], replacement: str
    ) -> None:
        """Register the regex rewrite applied by ``normalize``."""
        if isinstance(pattern, re.Pattern):
            pattern = pattern.pattern
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid normalization pattern {pattern!r}: {e}") from e
        self._normalization = DomainNormalization(pattern=pattern, replacement=replacement)

    @property
    def normalization(self) -> DomainNormalization | None:
        return self._normalization

    def normalize(self, text: str) -> str:
        """Apply the registered rewrite to *text* (identity when unset)."""
        if self._normalization is None:
            return text
        return self._normalization.apply(text)
