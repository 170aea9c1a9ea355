"""Configuration management with XDG paths, atomic writes, and env overrides.

This module handles all persistent configuration for clientcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.clientcache/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_cache_dir`.
* **Cache config** -- A single :class:`~clientcache.models.CacheConfig`
  JSON file. Managed via :func:`load_config` and :func:`save_config`.
* **Environment overrides** -- ``CLIENTCACHE_DIR``, ``CLIENTCACHE_BACKEND``,
  ``CLIENTCACHE_PRUNE_INTERVAL`` and ``CLIENTCACHE_DISABLED`` take
  precedence over the config file.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`), shared with the file storage backend.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from clientcache.exceptions import ConfigError
from clientcache.models import CacheConfig

_APP_NAME = "clientcache"
_CONFIG_FILENAME = "config.json"
_CACHE_SUBDIR = "GenericCache"

_ENV_DIR = "CLIENTCACHE_DIR"
_ENV_BACKEND = "CLIENTCACHE_BACKEND"
_ENV_PRUNE_INTERVAL = "CLIENTCACHE_PRUNE_INTERVAL"
_ENV_DISABLED = "CLIENTCACHE_DISABLED"
_TRUTHY = {"1", "true", "yes", "on"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/clientcache/`` (default
    ``~/.config/clientcache/``). On macOS/Windows: ``~/.clientcache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Cached data can be safely deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/clientcache/`` (default
    ``~/.cache/clientcache/``). On macOS/Windows: ``~/.clientcache/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_cache_root(config: CacheConfig) -> Path:
    """Return the effective cache root for *config*.

    An explicit ``config.directory`` wins (``~`` is expanded); otherwise the
    root is ``<cache dir>/GenericCache``.
    """
    if config.directory is not None:
        return config.directory.expanduser()
    return get_cache_dir() / _CACHE_SUBDIR


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up and the error re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def _config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def _env_overrides() -> dict[str, Any]:
    """Collect config overrides from the environment."""
    overrides: dict[str, Any] = {}
    directory = os.environ.get(_ENV_DIR, "")
    if directory:
        overrides["directory"] = directory
    backend = os.environ.get(_ENV_BACKEND, "")
    if backend:
        overrides["backend"] = backend
    interval = os.environ.get(_ENV_PRUNE_INTERVAL, "")
    if interval:
        try:
            overrides["prune_interval_seconds"] = float(interval)
        except ValueError as exc:
            raise ConfigError(
                f"Invalid {_ENV_PRUNE_INTERVAL} value '{interval}': expected seconds"
            ) from exc
    disabled = os.environ.get(_ENV_DISABLED, "")
    if disabled:
        overrides["enabled"] = disabled.strip().lower() not in _TRUTHY
    return overrides


def load_config(path: Optional[Path] = None) -> CacheConfig:
    """Load the cache configuration and apply environment overrides.

    Precedence (high to low):
        1. Environment variables (``CLIENTCACHE_*``)
        2. Config file (*path*, or ``config.json`` in :func:`get_config_dir`)
        3. Defaults

    Args:
        path: Optional explicit config file. When omitted the XDG config
            location is used.

    Returns:
        The resolved :class:`~clientcache.models.CacheConfig`.

    Raises:
        ConfigError: If the file exists but contains invalid JSON, or the
            merged values fail Pydantic validation.
    """
    path = path if path is not None else _config_path()
    data: dict[str, Any] = {}
    if path.is_file():
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ConfigError(f"Invalid cache config at {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Invalid cache config at {path}: expected a JSON object")
        data.update(loaded)

    data.update(_env_overrides())
    try:
        return CacheConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid cache config: {exc}") from exc


def save_config(config: CacheConfig, path: Optional[Path] = None) -> None:
    """Persist the cache configuration atomically to disk.

    Args:
        config: The configuration to save.
        path: Optional explicit destination; defaults to the XDG location.
    """
    data = config.model_dump(mode="json")
    atomic_write(path if path is not None else _config_path(), json.dumps(data, indent=2) + "\n")
