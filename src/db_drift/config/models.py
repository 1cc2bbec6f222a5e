"""Pydantic models for connection configuration."""

import os
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Connection Models
# ============================================================================


class ConnectionConfig(BaseModel):
    """Normalized connection settings handed to the driver factory.

    Accepts the loose payload shape (``username``, ``name``) as well as
    the normalized field names.  Missing or empty values fall back to the
    defaults.

    Example:
        >>> cfg = ConnectionConfig.model_validate(
        ...     {"host": "db", "name": "shop", "username": "deploy"}
        ... )
        >>> cfg.database, cfg.user, cfg.port
        ('shop', 'deploy', 3306)
    """

    model_config = ConfigDict(extra="ignore")

    host: str = "localhost"
    port: int = 3306
    database: str = "default"
    user: str = "root"
    password: str = ""
    path: str | None = None  # snapshot file for offline connections

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = {k: v for k, v in data.items() if v is not None}
        if not data.get("database"):
            data["database"] = data.get("name") or "default"
        if not data.get("user") and data.get("username"):
            data["user"] = data["username"]
        return data

    def safe_dict(self) -> dict[str, Any]:
        """Dump for logging with the password redacted."""
        dumped = self.model_dump()
        if dumped.get("password"):
            dumped["password"] = "***REDACTED***"
        return dumped


class ConnectionEntry(BaseModel):
    """Driver-type tag plus normalized config, as stored per environment."""

    type: str = "mysql"
    config: ConnectionConfig = Field(default_factory=ConnectionConfig)


class DomainNormalization(BaseModel):
    """Regex rewrite applied to exported definitions.

    Used to neutralize environment-specific hosts (e.g. ``DEFINER`` domains)
    before snapshots of different environments are compared.

    Example:
        >>> DomainNormalization(
        ...     pattern=r"dev\\.example\\.com", replacement="prod.example.com"
        ... ).apply("`app`@`dev.example.com`")
        '`app`@`prod.example.com`'
    """

    pattern: str
    replacement: str = ""

    def apply(self, text: str) -> str:
        """Return *text* with every match of ``pattern`` replaced."""
        return re.sub(self.pattern, self.replacement, text)


# ============================================================================
# Project File Models
# ============================================================================


class EnvironmentProfile(BaseModel):
    """One ``[environments.<NAME>]`` table from db-drift.toml."""

    type: str = "mysql"
    host: str = "localhost"
    port: int = 3306
    database: str = "default"
    username: str = "root"
    password: str = ""
    password_env: str | None = None  # env var that overrides ``password``
    path: str | None = None
    description: str = ""

    def to_entry(self) -> ConnectionEntry:
        """Resolve into a ``ConnectionEntry`` (password env var applied)."""
        password = self.password
        if self.password_env and os.environ.get(self.password_env):
            password = os.environ[self.password_env]
        return ConnectionEntry(
            type=self.type,
            config=ConnectionConfig(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.username,
                password=password,
                path=self.path,
            ),
        )


class ProjectConfig(BaseModel):
    """Complete project configuration from db-drift.toml.

    ``order`` is the declared promotion order.  It is advisory metadata
    and is not enforced by any operation.
    """

    order: list[str] = Field(default_factory=list)
    environments: dict[str, EnvironmentProfile] = Field(default_factory=dict)
    normalization: DomainNormalization | None = None
