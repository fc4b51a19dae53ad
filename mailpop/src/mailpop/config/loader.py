"""Strict loader for the mailpop runtime configuration.

What:
  Locate, parse, validate and cache ``config.yaml``, which names the POP3
  server, the account credentials, the login method and logging defaults.

Why:
  Configuration lives outside the package and is edited by hand. Centralising
  parsing guarantees consistent validation and error messages, and lets
  secrets come from the environment instead of the file.

How:
  Resolve candidate paths from an explicit argument, the
  ``MAILPOP_CONFIG_PATH`` environment variable and well-known defaults. Parse
  YAML with ``yaml.safe_load``, apply the ``MAILPOP_PASSWORD`` override, and
  validate through :class:`~mailpop.config.schema.RuntimeConfig`.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :class:`ConfigLoadError`,
  :class:`RuntimeConfigError`.

Invariants:
  - Nothing leaves this module without passing strict Pydantic validation.
  - The cache honours explicit reload requests and path precedence.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from .schema import RuntimeConfig


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be located, read or validated."""


_CONFIG_ENV = "MAILPOP_CONFIG_PATH"
_PASSWORD_ENV = "MAILPOP_PASSWORD"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("mailpop.yaml"),
    Path("~/.config/mailpop/config.yaml"),
    Path("/etc/mailpop/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    What:
      Produce the ordered, deduplicated list of paths to inspect.

    How:
      Explicit argument first, then ``MAILPOP_CONFIG_PATH``, then the
      defaults, each with ``~`` expanded.
    """

    seen: set[Path] = set()
    candidates = []
    if path is not None:
        candidates.append(path)
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(_DEFAULT_LOCATIONS)
    for candidate in candidates:
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_config_payload(text: str, source: Path) -> dict[str, Any]:
    """Parse ``config.yaml`` text into a mapping.

    Raises:
      RuntimeConfigError: If the YAML is invalid or not a mapping.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    return payload


def _apply_env_overrides(payload: dict[str, Any]) -> None:
    """Let ``MAILPOP_PASSWORD`` supply the secret kept out of the file."""

    password = os.environ.get(_PASSWORD_ENV)
    if password:
        pop3 = payload.setdefault("pop3", {})
        if isinstance(pop3, dict):
            pop3["password"] = password


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    """Load and validate ``config.yaml`` from a specific path.

    What:
      Read the file at ``path`` and convert it into a validated
      :class:`RuntimeConfig`.

    Why:
      Keeps :func:`load_runtime_config` focused on discovery while this
      helper owns IO and schema validation.

    How:
      Read, parse, apply environment overrides, validate. Filesystem and
      validation failures become :class:`RuntimeConfigError` with the path in
      the message.

    Raises:
      RuntimeConfigError: If the file cannot be read or fails validation.
    """

    try:
        text = path.read_text()
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    payload = _parse_config_payload(text, path)
    _apply_env_overrides(payload)
    try:
        return RuntimeConfig.model_validate(payload)
    except _PydanticValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration in {path}: {exc}") from exc


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Locate ``config.yaml`` using the precedence chain, parse it, and return
      a validated :class:`RuntimeConfig`.

    Why:
      The CLI and library callers share one configuration; caching avoids
      re-reading it for every command while ``reload`` allows refreshes.

    How:
      Consult the cache unless ``reload`` is set or a different explicit path
      is requested, then try candidates in order and cache the first hit.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: When ``True`` bypass the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If no usable configuration file is found.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    raise RuntimeConfigError(
        f"Unable to locate config.yaml (searched: {', '.join(searched) or '<none>'})"
    )


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
