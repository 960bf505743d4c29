"""mailcompose configuration package.

What:
  Provide a cohesive import surface for configuration loading, validation, and
  the runtime settings handed to compose sessions.

Why:
  Centralising the exports shields callers from the internal layout and keeps
  every path to a settings object going through schema validation.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config: Resolve
    ``config.yaml`` and expose a cached runtime configuration object.
  - ComposeSettings: Runtime objects derived from the configuration.
  - RuntimeConfig / ValidationError: Pydantic model and error type.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    parse_runtime_config,
    reset_runtime_config,
)
from .schema import RuntimeConfig, ValidationError
from .settings import ComposeSettings

__all__ = [
    "ConfigLoadError",
    "RuntimeConfigError",
    "get_runtime_config",
    "load_runtime_config",
    "parse_runtime_config",
    "reset_runtime_config",
    "ComposeSettings",
    "RuntimeConfig",
    "ValidationError",
]
