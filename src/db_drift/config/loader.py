"""Project configuration loading from TOML.

Reads ``db-drift.toml`` into a ``ProjectConfig`` and writes the starter
file used by ``db-drift init``.
"""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_drift.config.models import ProjectConfig
from db_drift.errors import ConfigurationError

DEFAULT_CONFIG_NAME = "db-drift.toml"

PROJECT_TEMPLATE = """\
# db-drift project configuration

# Environment order (promotion flow, advisory only)
order = ["DEV", "STAGE", "PROD"]

[environments.DEV]
host = "localhost"
port = 3306
database = "my_app_dev"
username = "root"
password = ""

[environments.STAGE]
host = "stage-db.example.com"
port = 3306
database = "my_app_stage"
username = "admin"
password_env = "STAGE_DB_PASSWORD"

[environments.PROD]
host = "prod-db.example.com"
port = 3306
database = "my_app_prod"
username = "deploy"
password_env = "PROD_DB_PASSWORD"

# Optional: rewrite environment-specific domains in exported definitions
# [normalization]
# pattern = "dev\\\\.example\\\\.com"
# replacement = "prod.example.com"
"""


def load_project_config(config_path: Path | None = None) -> ProjectConfig:
    """Load project configuration from a TOML file.

    Args:
        config_path: Path to the config file.  Defaults to
            ``db-drift.toml`` in the current working directory.

    Returns:
        ``ProjectConfig`` with all environments.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigurationError: If the file is not valid TOML or has an
            invalid shape.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if not config_path.exists():
        raise FileNotFoundError(
            f"Project config not found: {config_path}\n"
            f"Run 'db-drift init' to create one."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
        return ProjectConfig.model_validate(data)
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        raise ConfigurationError(f"Invalid config {config_path}: {e}") from e


def write_project_template(config_path: Path) -> bool:
    """Write the starter config unless the file already exists.

    Returns:
        ``True`` if the file was written, ``False`` if it already existed.
    """
    if config_path.exists():
        return False
    config_path.write_text(PROJECT_TEMPLATE)
    return True
