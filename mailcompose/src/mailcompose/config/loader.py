"""Strict loaders for the mailcompose configuration document.

What:
  Locate, parse, validate, and cache the runtime configuration
  (``config.yaml``).

Why:
  Configuration lives outside the application bundle and can be malformed.
  Centralising the parsing logic enforces consistent validation so that the
  compose engine can trust the resulting models.

How:
  Resolve candidate file locations based on explicit parameters, the
  ``MAILCOMPOSE_CONFIG_PATH`` environment variable, and defaults. Parse YAML
  payloads with PyYAML's ``safe_load`` and validate them using the Pydantic
  models of :mod:`mailcompose.config.schema`.

Interfaces:
  - :func:`load_runtime_config` / :func:`get_runtime_config` /
    :func:`reset_runtime_config`: Manage ``config.yaml`` discovery and caching.
  - :func:`parse_runtime_config`: Validate YAML text without touching the cache.

Invariants:
  - All external payloads pass strict Pydantic validation before they are
    returned to callers.
  - The runtime configuration cache respects explicit reload requests and the
    precedence order of candidate paths.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

import yaml

from .schema import RuntimeConfig, ValidationError


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures."""


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be located, read or validated."""


_CONFIG_ENV = "MAILCOMPOSE_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("~/.config/mailcompose/config.yaml"),
    Path("/etc/mailcompose/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order.

    What:
      Produce the ordered list of paths that should be inspected for
      ``config.yaml``.

    How:
      Accumulate deduplicated :class:`~pathlib.Path` objects by checking the
      explicit argument, the ``MAILCOMPOSE_CONFIG_PATH`` environment variable,
      and the default locations. Paths are expanded to handle ``~``.

    Args:
      path: Explicit path requested by the caller, or ``None``.

    Yields:
      Candidate paths ordered from most specific to least specific.
    """

    seen: set[Path] = set()
    if path is not None:
        candidate = path.expanduser()
        seen.add(candidate)
        yield candidate
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate
    for default in _DEFAULT_LOCATIONS:
        candidate = default.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_config_payload(text: str, source: str) -> dict[str, Any]:
    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError("config.yaml must contain a mapping at the top-level")
    return payload


def parse_runtime_config(text: str, *, source: str = "<string>") -> RuntimeConfig:
    """Validate YAML ``text`` into a :class:`RuntimeConfig`.

    Raises:
      RuntimeConfigError: If the text is not YAML or violates the schema.
    """

    payload = _parse_config_payload(text, source)
    try:
        return RuntimeConfig.model_validate(payload)
    except ValidationError as exc:
        raise RuntimeConfigError(f"Invalid config.yaml ({source}): {exc}") from exc


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    """Load and validate ``config.yaml`` from a specific path.

    What:
      Read the file at ``path`` and convert it into a validated
      :class:`RuntimeConfig` model.

    Why:
      Splitting the functionality keeps :func:`load_runtime_config` focused on
      path discovery while this helper handles IO and schema validation.

    Raises:
      RuntimeConfigError: If the file cannot be read or fails validation.
    """

    try:
        text = path.read_text()
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    return parse_runtime_config(text, source=str(path))


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Locate ``config.yaml`` using the configured precedence chain, parse it,
      and return a validated :class:`RuntimeConfig` instance.

    Why:
      Sessions, the CLI and the store backend all need runtime settings;
      caching avoids repeated disk IO while ``reload`` enables deterministic
      refreshes during tests.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: When ``True`` forces a fresh load bypassing the cache.

    Returns:
      The validated runtime configuration.

    Raises:
      RuntimeConfigError: If no suitable configuration file can be located or
      validated.
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

    listing = ", ".join(searched) if searched else "<none>"
    raise RuntimeConfigError(f"Unable to locate config.yaml (searched: {listing})")


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Clear the runtime configuration cache."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
