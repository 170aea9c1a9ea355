"""Storage backend built on :mod:`diskcache`.

Keeps every record in a single :class:`diskcache.Cache` directory at the
cache root. The manifest lives under the key ``cachemanifest`` and each
namespace under ``ns:<namespace>``, so namespace identifiers never need to
be valid file names. Records are stored without a diskcache expiry; TTLs
are handled by the cache layers like for every other backend.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import diskcache

from clientcache.backends.base import (
    MANIFEST_NAME,
    StorageBackend,
    decode_entries,
    encode_entries,
    normalize_manifest,
)
from clientcache.exceptions import StorageError
from clientcache.models import CacheEntry

_NAMESPACE_PREFIX = "ns:"
_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class DiskcacheBackend(StorageBackend):
    """Persist the manifest and namespace mappings in one diskcache directory.

    Args:
        root: Directory for the underlying :class:`diskcache.Cache`.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        try:
            self._cache = diskcache.Cache(str(self._root))
        except _ERRORS as exc:
            raise StorageError(f"Cannot open diskcache at {self._root}: {exc}", str(self._root)) from exc

    @property
    def name(self) -> str:
        return "diskcache"

    @property
    def root(self) -> Path:
        return self._root

    def load_namespace(self, namespace: str) -> dict[str, CacheEntry]:
        key = _NAMESPACE_PREFIX + namespace
        raw = self._get(key)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise StorageError(f"Namespace record {key!r} is not a mapping", key)
        return decode_entries(namespace, raw)

    def save_namespace(self, namespace: str, entries: dict[str, CacheEntry]) -> None:
        self._set(_NAMESPACE_PREFIX + namespace, encode_entries(entries))

    def delete_namespace(self, namespace: str) -> None:
        key = _NAMESPACE_PREFIX + namespace
        try:
            self._cache.delete(key)
        except _ERRORS as exc:
            raise StorageError(f"Cannot delete {key!r}: {exc}", key) from exc

    def load_manifest(self) -> list[str]:
        raw = self._get(MANIFEST_NAME)
        if raw is None:
            return []
        try:
            return normalize_manifest(MANIFEST_NAME, raw)
        except ValueError as exc:
            raise StorageError(f"Invalid manifest: {exc}", MANIFEST_NAME) from exc

    def save_manifest(self, namespaces: list[str]) -> None:
        self._set(MANIFEST_NAME, {"clients": list(namespaces)})

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()

    def _get(self, key: str) -> object | None:
        try:
            return self._cache.get(key)
        except _ERRORS as exc:
            raise StorageError(f"Cannot read {key!r}: {exc}", key) from exc
        except Exception as exc:
            # unpickling a damaged value can raise almost anything
            raise StorageError(f"Corrupt record {key!r}: {exc}", key) from exc

    def _set(self, key: str, value: object) -> None:
        try:
            self._cache.set(key, value)
        except _ERRORS as exc:
            raise StorageError(f"Cannot write {key!r}: {exc}", key) from exc
