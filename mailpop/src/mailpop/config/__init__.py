"""mailpop configuration package.

What:
  Provide the import surface for configuration loading and the Pydantic
  schema used by the CLI and by :meth:`mailpop.pop3.Pop3Config.from_runtime`.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config: Resolve
    ``config.yaml`` and expose a cached runtime configuration object.
  - ConfigLoadError / RuntimeConfigError: Loader failures.
  - RuntimeConfig / Pop3Settings / LoggingSettings / SslOptions: Schema models.

Invariants:
  - Callers go through the schema types; raw YAML never reaches the engine.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import LoggingSettings, Pop3Settings, RuntimeConfig, SslOptions, ValidationError

__all__ = [
    "get_runtime_config",
    "load_runtime_config",
    "reset_runtime_config",
    "ConfigLoadError",
    "RuntimeConfigError",
    "RuntimeConfig",
    "Pop3Settings",
    "LoggingSettings",
    "SslOptions",
    "ValidationError",
]
