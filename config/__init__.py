"""schema-runner - Configuration Module.

Pydantic settings models loaded from YAML, the environment and the
command line.
"""

from .settings import (
    ConfigError,
    ConnectionSettings,
    LogTableSettings,
    RunnerConfig,
    apply_overrides,
    load_config,
)

__all__ = [
    "ConfigError",
    "ConnectionSettings",
    "LogTableSettings",
    "RunnerConfig",
    "apply_overrides",
    "load_config",
]
