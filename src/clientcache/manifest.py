"""Durable registry of cache namespaces.

The manifest records which namespaces (client identifiers) currently hold,
or recently held, persisted entries. It is what the
:class:`~clientcache.scheduler.PruneScheduler` walks on every sweep.

Storage failures never escape: a missing or corrupt manifest reads as
empty, and a failed write is logged and dropped.
"""

from __future__ import annotations

import logging
import threading

from clientcache.backends import StorageBackend
from clientcache.exceptions import StorageError

logger = logging.getLogger(__name__)


class Manifest:
    """Registry of namespace identifiers backed by a :class:`StorageBackend`.

    :meth:`add` and :meth:`remove` are idempotent and atomic with respect to
    each other: each holds the manifest lock across its whole
    read-modify-write.

    Args:
        backend: Where the manifest record is persisted.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        self._lock = threading.Lock()

    def add(self, namespace: str) -> None:
        """Register *namespace*. No-op if it is already present."""
        with self._lock:
            clients = self._load()
            if namespace in clients:
                return
            logger.info("Adding cache client '%s'", namespace)
            clients.append(namespace)
            self._save(clients)

    def remove(self, namespace: str) -> None:
        """Unregister *namespace*. No-op if it is absent."""
        with self._lock:
            clients = self._load()
            if namespace not in clients:
                return
            logger.info("Removing cache client '%s'", namespace)
            clients.remove(namespace)
            self._save(clients)

    def list(self) -> list[str]:
        """Return a snapshot of the registered namespaces.

        The returned list is a copy; later mutations of the manifest are
        not reflected in it.
        """
        with self._lock:
            return self._load()

    def __contains__(self, namespace: object) -> bool:
        return namespace in self.list()

    def _load(self) -> list[str]:
        try:
            return self._backend.load_manifest()
        except StorageError as exc:
            logger.warning("Cache manifest unreadable, treating as empty: %s", exc)
            return []

    def _save(self, clients: list[str]) -> None:
        try:
            self._backend.save_manifest(clients)
        except StorageError as exc:
            logger.warning("Failed to persist cache manifest: %s", exc)
