"""Request and response models for orchestrator operations.

Payloads arrive with camelCase keys (``srcEnv``, ``adminConnection``);
each operation validates its payload into one of these models before any
I/O so a missing field fails fast with ``ConfigurationError``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from db_drift.drivers.base import PermissionProfile


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============================================================================
# Requests
# ============================================================================


class GetSchemaObjectsRequest(_Request):
    connection: dict[str, Any]
    type: str


class ExportRequest(_Request):
    env: str
    name: str | None = None
    output: str | None = None  # optional snapshot file to write


class CompareRequest(_Request):
    src_env: str = Field(alias="srcEnv")
    dest_env: str = Field(alias="destEnv")
    type: str = "tables"


class MigrationRow(_Request):
    """A previously computed DiffRow handed back for application.

    Extra keys (``diff`` etc.) are kept so failed rows round-trip intact.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    type: str = "TABLES"
    status: str = ""
    ddl: list[str] | str = Field(default_factory=list)

    def statements(self) -> list[str]:
        """Statements to run, in order."""
        if isinstance(self.ddl, str):
            return [self.ddl] if self.ddl else []
        return list(self.ddl)


class MigrateRequest(_Request):
    src_env: str | None = Field(default=None, alias="srcEnv")
    dest_env: str = Field(alias="destEnv")
    objects: list[MigrationRow]


class TestConnectionRequest(_Request):
    connection: dict[str, Any]


class SetupRestrictedUserRequest(_Request):
    admin_connection: dict[str, Any] = Field(alias="adminConnection")
    script: str | list[str]

    def statements(self) -> list[str]:
        """Script split into non-empty statements."""
        if isinstance(self.script, list):
            raw = self.script
        else:
            raw = split_sql_script(self.script)
        return [stmt.strip() for stmt in raw if stmt and stmt.strip()]


def split_sql_script(script: str) -> list[str]:
    """Split *script* on ``;`` outside quoted strings and identifiers.

    Backslash escapes inside ``'...'`` and ``"..."`` are honored; doubled
    quotes need no special case since they close and reopen the literal.

    Example:
        >>> split_sql_script("CREATE USER 'u' IDENTIFIED BY 'p;w'; FLUSH PRIVILEGES;")
        ["CREATE USER 'u' IDENTIFIED BY 'p;w'", ' FLUSH PRIVILEGES', '']
    """
    statements: list[str] = []
    current: list[str] = []
    quote: str | None = None
    escaped = False

    for char in script:
        if quote is not None:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\" and quote != "`":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char == ";":
            statements.append("".join(current))
            current = []
            continue
        if char in ("'", '"', "`"):
            quote = char
        current.append(char)

    statements.append("".join(current))
    return statements


class RestrictedUser(_Request):
    username: str | None = None
    password: str | None = None


class GenerateUserSetupScriptRequest(_Request):
    admin_connection: dict[str, Any] = Field(alias="adminConnection")
    restricted_user: RestrictedUser = Field(alias="restrictedUser")
    permissions: PermissionProfile


class ProbeRestrictedUserRequest(_Request):
    connection: dict[str, Any]
    permissions: PermissionProfile = Field(default_factory=PermissionProfile)


# ============================================================================
# Results
# ============================================================================


class FailedMigrationRow(MigrationRow):
    error: str


class MigrateResult(BaseModel):
    success: bool = True
    successful: list[MigrationRow] = Field(default_factory=list)
    failed: list[FailedMigrationRow] = Field(default_factory=list)


class ConnectionTestResult(BaseModel):
    success: bool
    message: str


class SetupResult(BaseModel):
    success: bool = True
