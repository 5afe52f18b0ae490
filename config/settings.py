"""Configuration for schema-runner.

Settings come from, lowest to highest precedence: model defaults, an
optional YAML file, ``SCHEMA_RUNNER_*`` environment variables and finally
command line flags (applied by the CLI through :func:`apply_overrides`).
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ENV_PREFIX = "SCHEMA_RUNNER_"

# Environment variable suffix -> (section, field)
ENV_FIELDS = {
    "BACKEND": ("connection", "backend"),
    "SERVER": ("connection", "host"),
    "PORT": ("connection", "port"),
    "DATABASE": ("connection", "database"),
    "USERNAME": ("connection", "username"),
    "PASSWORD": ("connection", "password"),
    "DIR": (None, "script_dir"),
    "LOG_LEVEL": (None, "log_level"),
}


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


class ConnectionSettings(BaseModel):
    """Target database connection."""

    backend: Literal["postgres", "sqlite"] = "postgres"
    host: str = "localhost"
    port: int = 5432
    database: str = "postgres"  # file path for the sqlite backend
    username: str = "postgres"
    password: SecretStr = SecretStr("")
    command_timeout: int = Field(default=300, gt=0)  # seconds
    connect_timeout: int = Field(default=15, gt=0)  # seconds

    def describe(self) -> str:
        """Connection target without credentials, for display."""
        if self.backend == "sqlite":
            return f"sqlite:{self.database}"
        return f"{self.username}@{self.host}:{self.port}/{self.database}"


class LogTableSettings(BaseModel):
    """Location of the script execution log table."""

    name: str = "sysdbscriptlog"
    schema_name: str = "public"  # ignored by the sqlite backend

    @field_validator("name", "schema_name")
    @classmethod
    def _plain_identifier(cls, value: str) -> str:
        if not _IDENTIFIER.match(value):
            raise ValueError(f"not a plain SQL identifier: {value!r}")
        return value


class RunnerConfig(BaseModel):
    """Top level configuration."""

    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    log_table: LogTableSettings = Field(default_factory=LogTableSettings)
    script_dir: Optional[str] = None
    script_pattern: str = "*.sql"
    status_when_listing: bool = False
    atomic: bool = False
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value!r}")
        return level


def _read_yaml(path: Path) -> dict:
    """Read a YAML mapping from disk.

    Raises:
        ConfigError: If the file is missing, unparsable or not a mapping.
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict:
    overrides: dict[str, Any] = {}
    for suffix, (section, field) in ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is None or value == "":
            continue
        if section is None:
            overrides[field] = value
        else:
            overrides.setdefault(section, {})[field] = value
    return overrides


def _merge(base: dict, updates: Mapping[str, Any]) -> dict:
    """Recursively merge ``updates`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RunnerConfig:
    """Build the configuration from a YAML file and the environment.

    Args:
        path: Optional YAML file.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        The validated RunnerConfig.

    Raises:
        ConfigError: If a source is unreadable or a value is invalid.
    """
    data: dict = {}
    if path is not None:
        data = _read_yaml(Path(path).expanduser())
        logger.debug(f"Loaded configuration from {path}")

    env = os.environ if environ is None else environ
    data = _merge(data, _env_overrides(env))

    try:
        return RunnerConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def apply_overrides(config: RunnerConfig, **overrides: Any) -> RunnerConfig:
    """Return a copy of ``config`` with non-None overrides applied.

    Keys that name a ConnectionSettings field go to ``connection``,
    everything else to the top level.

    Raises:
        ConfigError: If an override is invalid.
    """
    data = config.model_dump()
    data["connection"]["password"] = config.connection.password.get_secret_value()
    connection_fields = set(ConnectionSettings.model_fields)

    for key, value in overrides.items():
        if value is None:
            continue
        if key in connection_fields:
            data["connection"][key] = value
        elif key in data:
            data[key] = value
        else:
            raise ConfigError(f"Unknown configuration key: {key}")

    try:
        return RunnerConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
