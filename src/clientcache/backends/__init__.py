"""Pluggable persistence for clientcache.

The cache logic only talks to :class:`StorageBackend`; the concrete
backends decide how records land on disk:

* :class:`FileBackend` (``"file"``) -- one JSON file per namespace plus a
  ``cachemanifest`` file under the cache root.
* :class:`DiskcacheBackend` (``"diskcache"``) -- a single
  :class:`diskcache.Cache` directory.

Use :func:`create_backend` to build one from a
:class:`~clientcache.models.CacheConfig` backend name.
"""

from __future__ import annotations

from pathlib import Path

from clientcache.backends.base import StorageBackend
from clientcache.backends.disk import DiskcacheBackend
from clientcache.backends.file import FileBackend
from clientcache.exceptions import ConfigError

_BACKENDS: dict[str, type[StorageBackend]] = {
    "file": FileBackend,
    "diskcache": DiskcacheBackend,
}


def create_backend(name: str, root: str | Path) -> StorageBackend:
    """Instantiate the backend registered under *name* rooted at *root*.

    Raises:
        ConfigError: If *name* is not a known backend.
    """
    try:
        backend_cls = _BACKENDS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown cache backend '{name}'. Available: {sorted(_BACKENDS)}"
        ) from None
    return backend_cls(root)  # type: ignore[call-arg]


__all__ = ["StorageBackend", "FileBackend", "DiskcacheBackend", "create_backend"]
