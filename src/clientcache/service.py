"""Process-level cache handle.

:class:`CacheService` wires a storage backend, the
:class:`~clientcache.manifest.Manifest`, the
:class:`~clientcache.store.CacheStore`, and the
:class:`~clientcache.scheduler.PruneScheduler` together from a
:class:`~clientcache.models.CacheConfig`. Build one at application startup
with :func:`create_cache_service`, hand it to every feature that caches
lookups, and :meth:`~CacheService.close` it on shutdown.

Example::

    cache = create_cache_service()
    try:
        blob = cache.get_data("resolverX", "track:42")
        if blob is None:
            blob = resolve_track(42)
            cache.put_data("resolverX", timedelta(hours=1), "track:42", blob)
    finally:
        cache.close()
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from clientcache.backends import StorageBackend, create_backend
from clientcache.config import load_config, resolve_cache_root
from clientcache.exceptions import StorageError
from clientcache.manifest import Manifest
from clientcache.models import CacheConfig, SweepReport
from clientcache.scheduler import PruneScheduler
from clientcache.store import TTL, CacheStore

logger = logging.getLogger(__name__)

MaxAge = Union[TTL, datetime]


class CacheService:
    """Explicit handle over one cache root.

    When ``config.enabled`` is false, or the backend cannot be opened, the
    service runs disabled: every read is a miss, every write a no-op, and
    no files or threads are created.

    Args:
        config: Cache settings. Defaults to :class:`CacheConfig` defaults.
        backend: Optional pre-built backend, overriding ``config.backend``
            and ``config.directory``.
        clock: Time source in epoch seconds, shared by the store and the
            scheduler.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        backend: Optional[StorageBackend] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config if config is not None else CacheConfig()
        self._backend: Optional[StorageBackend] = None
        self._store: Optional[CacheStore] = None
        self._scheduler: Optional[PruneScheduler] = None
        self._directory: Optional[Path] = None

        if not self._config.enabled:
            return
        if backend is None:
            try:
                self._directory = resolve_cache_root(self._config)
                backend = create_backend(self._config.backend, self._directory)
            except (StorageError, OSError) as exc:
                logger.warning("Cache storage unavailable, running without a cache: %s", exc)
                return
        self._backend = backend
        manifest = Manifest(backend)
        self._store = CacheStore(backend, manifest, clock=clock)
        self._scheduler = PruneScheduler(
            self._store, manifest, interval=self._config.prune_interval_seconds
        )

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> Optional[CacheStore]:
        return self._store

    @property
    def scheduler(self) -> Optional[PruneScheduler]:
        return self._scheduler

    def start(self) -> None:
        """Start the background prune scheduler."""
        if self._scheduler is not None:
            self._scheduler.start()

    def close(self) -> None:
        """Stop the scheduler and release the backend. Safe to call more than once."""
        if self._scheduler is not None:
            self._scheduler.stop()
        if self._backend is not None:
            self._backend.close()
            self._backend = None

    def __enter__(self) -> CacheService:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Caller API ---

    def get_data(self, namespace: str, key: str) -> Optional[bytes]:
        """Return the cached bytes for *key* in *namespace*, or ``None`` on a miss."""
        if self._store is None:
            return None
        return self._store.get(namespace, key)

    def put_data(self, namespace: str, max_age: MaxAge, key: str, value: bytes) -> None:
        """Cache *value* under *key* in *namespace*.

        Args:
            namespace: Caller's client identifier.
            max_age: How long the value stays valid: a
                :class:`~datetime.timedelta` or a number of seconds is a
                duration from now; a :class:`~datetime.datetime` is an
                absolute deadline.
            key: Key within the namespace.
            value: Already-serialised payload.
        """
        if self._store is None:
            return
        if isinstance(max_age, datetime):
            self._store.put_until(namespace, key, value, max_age)
        else:
            self._store.put(namespace, key, value, max_age)

    def delete_data(self, namespace: str, key: str) -> bool:
        """Remove *key* from *namespace*. Returns whether an entry was removed."""
        if self._store is None:
            return False
        return self._store.delete(namespace, key)

    # --- Manifest / maintenance ---

    def add_client(self, namespace: str) -> None:
        if self._store is not None:
            self._store.manifest.add(namespace)

    def remove_client(self, namespace: str) -> None:
        if self._store is not None:
            self._store.manifest.remove(namespace)

    def clients(self) -> list[str]:
        if self._store is None:
            return []
        return self._store.manifest.list()

    def prune(self) -> Optional[SweepReport]:
        """Run one sweep synchronously. ``None`` if disabled or a sweep is already running."""
        if self._scheduler is None:
            return None
        return self._scheduler.run_once()

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled`` (bool), and when enabled:
            ``directory``, ``backend``, ``prune_interval_seconds``,
            ``clients`` (number of registered namespaces), and
            ``scheduler`` (its state).
        """
        if self._store is None or self._scheduler is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "directory": str(self._directory) if self._directory is not None else None,
            "backend": self._backend.name if self._backend is not None else None,
            "prune_interval_seconds": self._scheduler.interval,
            "clients": len(self.clients()),
            "scheduler": self._scheduler.state.value,
        }


def create_cache_service(
    config: Optional[CacheConfig] = None,
    *,
    start: bool = True,
) -> CacheService:
    """Build a :class:`CacheService`, loading config from disk/env when not given.

    Args:
        config: Explicit settings; when ``None``, :func:`load_config` is used.
        start: Start the background prune scheduler before returning.

    Raises:
        ConfigError: If the on-disk or environment configuration is invalid.
    """
    if config is None:
        config = load_config()
    service = CacheService(config)
    if start:
        service.start()
    return service
