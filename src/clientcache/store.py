"""Per-namespace key/value storage with lazy expiry on read.

:class:`CacheStore` is the read/write path of the cache. Every namespace
(client identifier) owns one persisted ``key -> entry`` mapping that is
loaded, modified, and saved as a unit under that namespace's lock, so
concurrent writers to one namespace never lose each other's updates while
different namespaces never contend.

Expiry is lazy: :meth:`CacheStore.get` never returns an entry whose
deadline has passed, and deletes it from the persisted mapping when it
sees one. Bulk reclamation is left to
:class:`~clientcache.scheduler.PruneScheduler`, which calls
:meth:`CacheStore.sweep`.

The store is fail-open. Storage errors are logged and degrade to a cache
miss or a skipped write; nothing is raised to callers.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from pydantic import ValidationError

from clientcache.backends import StorageBackend
from clientcache.exceptions import StorageError
from clientcache.manifest import Manifest
from clientcache.models import CacheEntry, SweepResult

logger = logging.getLogger(__name__)

TTL = Union[int, float, timedelta]
Deadline = Union[int, float, datetime]


def ttl_seconds(ttl: TTL) -> float:
    """Normalise a TTL given as seconds or a :class:`~datetime.timedelta`."""
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


def deadline_timestamp(expires_at: Deadline) -> float:
    """Normalise an absolute deadline to epoch seconds.

    Naive datetimes are interpreted as UTC.
    """
    if isinstance(expires_at, datetime):
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at.timestamp()
    return float(expires_at)


class CacheStore:
    """Namespaced, persisted key/value store with per-entry deadlines.

    Args:
        backend: Persistence for the namespace mappings.
        manifest: Registry that every successful write registers its
            namespace into before returning.
        clock: Returns the current time in epoch seconds. Injected so tests
            can move time forward without sleeping.

    Example::

        store = CacheStore(FileBackend(root), Manifest(backend))
        store.put("resolverX", "track:42", b"...", ttl=3600)
        store.get("resolverX", "track:42")
    """

    def __init__(
        self,
        backend: StorageBackend,
        manifest: Manifest,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._manifest = manifest
        self._clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    def now(self) -> float:
        """Return the current time according to the store clock."""
        return self._clock()

    def get(self, namespace: str, key: str) -> Optional[bytes]:
        """Return the value stored under *key* in *namespace*, or ``None``.

        A stale entry (``expires_at <= now``) is deleted from the namespace's
        persisted mapping and reported as a miss.
        """
        if not namespace or not key:
            logger.debug("Cache get with empty namespace or key, treating as miss")
            return None

        with self._lock_for(namespace):
            entries = self._load(namespace)
            entry = entries.get(key)
            if entry is None:
                return None
            if entry.is_stale(self._clock()):
                del entries[key]
                self._save(namespace, entries)
                logger.debug("Removed stale entry: %s %s", namespace, key)
                return None
            return entry.value

    def put(self, namespace: str, key: str, value: bytes, ttl: TTL) -> None:
        """Store *value* under *key* for *ttl* (seconds or a timedelta).

        The deadline is fixed once, here. A zero or negative TTL is accepted
        and makes the entry stale on its next read.
        """
        try:
            seconds = ttl_seconds(ttl)
        except (TypeError, ValueError):
            logger.debug("Cache put with invalid TTL %r ignored", ttl)
            return
        self.put_until(namespace, key, value, self._clock() + seconds)

    def put_until(self, namespace: str, key: str, value: bytes, expires_at: Deadline) -> None:
        """Store *value* under *key* until the absolute deadline *expires_at*.

        The namespace is registered in the manifest before this returns. A
        deadline that is not a finite number, or a value that is not bytes, is
        caller misuse and the write is ignored.
        """
        if not namespace or not key:
            logger.debug("Cache put with empty namespace or key ignored")
            return

        try:
            deadline = deadline_timestamp(expires_at)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.debug("Cache put with invalid deadline %r ignored", expires_at)
            return
        if not math.isfinite(deadline):
            logger.debug("Cache put with non-finite deadline %r ignored", deadline)
            return
        try:
            entry = CacheEntry(key=key, value=value, expires_at=deadline)
        except ValidationError as exc:
            logger.debug("Cache put with invalid value ignored: %s", exc)
            return

        with self._lock_for(namespace):
            entries = self._load(namespace)
            entries[key] = entry
            if self._save(namespace, entries):
                self._manifest.add(namespace)

    def delete(self, namespace: str, key: str) -> bool:
        """Remove *key* from *namespace*. Returns whether an entry was removed."""
        if not namespace or not key:
            return False

        with self._lock_for(namespace):
            entries = self._load(namespace)
            if entries.pop(key, None) is None:
                return False
            return self._save(namespace, entries)

    def entries(self, namespace: str) -> dict[str, CacheEntry]:
        """Return a snapshot of every stored entry in *namespace*, stale ones included."""
        with self._lock_for(namespace):
            return self._load(namespace)

    def sweep(self, namespace: str, now: Optional[float] = None) -> SweepResult:
        """Drop every stale entry in *namespace*; drop the namespace itself if it ends up empty.

        The whole pass runs under the namespace lock. A ``put`` that lands
        before the lock is taken keeps the namespace alive; one that lands
        after re-registers it in the manifest.

        Args:
            namespace: The namespace to sweep.
            now: Reference time; defaults to the store clock.
        """
        if now is None:
            now = self._clock()

        with self._lock_for(namespace):
            entries = self._load(namespace)
            stale = [key for key, entry in entries.items() if entry.is_stale(now)]
            for key in stale:
                del entries[key]
                logger.debug("Removed stale entry: %s %s", namespace, key)

            if entries:
                if stale:
                    self._save(namespace, entries)
                return SweepResult(namespace=namespace, removed=len(stale), remaining=len(entries))

            try:
                self._backend.delete_namespace(namespace)
            except StorageError as exc:
                logger.warning("Failed to remove storage for cache client '%s': %s", namespace, exc)
            self._manifest.remove(namespace)
            return SweepResult(namespace=namespace, removed=len(stale), dropped=True)

    def _lock_for(self, namespace: str) -> threading.Lock:
        # Never evicted: a caller may still hold or be waiting on an old lock.
        with self._locks_guard:
            lock = self._locks.get(namespace)
            if lock is None:
                lock = self._locks[namespace] = threading.Lock()
            return lock

    def _load(self, namespace: str) -> dict[str, CacheEntry]:
        try:
            return self._backend.load_namespace(namespace)
        except StorageError as exc:
            logger.warning("Cache client '%s' unreadable, treating as empty: %s", namespace, exc)
            return {}

    def _save(self, namespace: str, entries: dict[str, CacheEntry]) -> bool:
        try:
            self._backend.save_namespace(namespace, entries)
        except StorageError as exc:
            logger.warning("Failed to persist cache client '%s': %s", namespace, exc)
            return False
        return True
