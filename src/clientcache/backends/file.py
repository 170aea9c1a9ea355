"""JSON-file storage backend.

Lays the cache out as plain files under a cache root::

    <cache_root>/cachemanifest     {"clients": ["resolverX", ...]}
    <cache_root>/<namespace>       {"<key>": {"expires_at": ..., "value": "<base64>"}}

Namespace identifiers are percent-encoded into file names, so any string is
a safe file name that stays inside the root and never collides with the
manifest or with the ``.<name>.*.tmp`` files left by an interrupted write.
Every write goes through :func:`~clientcache.config.atomic_write`.
"""

from __future__ import annotations

import json
from pathlib import Path
from urllib.parse import quote

from clientcache.backends.base import (
    MANIFEST_NAME,
    StorageBackend,
    decode_entries,
    encode_entries,
    normalize_manifest,
)
from clientcache.config import atomic_write
from clientcache.exceptions import StorageError
from clientcache.models import CacheEntry


def namespace_filename(namespace: str) -> str:
    """Map a namespace identifier to a file name inside the cache root.

    Example::

        >>> namespace_filename("resolverX")
        'resolverX'
        >>> namespace_filename("a/b")
        'a%2Fb'
        >>> namespace_filename("cachemanifest")
        '%63achemanifest'
    """
    encoded = quote(namespace, safe="")
    if encoded.startswith(".") or encoded == MANIFEST_NAME:
        encoded = f"%{ord(encoded[0]):02X}{encoded[1:]}"
    return encoded


class FileBackend(StorageBackend):
    """Persist each namespace and the manifest as one JSON file each.

    Args:
        root: The cache root directory. Created lazily on first write.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def name(self) -> str:
        return "file"

    @property
    def root(self) -> Path:
        return self._root

    def namespace_path(self, namespace: str) -> Path:
        return self._root / namespace_filename(namespace)

    @property
    def manifest_path(self) -> Path:
        return self._root / MANIFEST_NAME

    def load_namespace(self, namespace: str) -> dict[str, CacheEntry]:
        path = self.namespace_path(namespace)
        raw = self._read_json(path)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise StorageError(f"Namespace record at {path} is not a JSON object", str(path))
        return decode_entries(namespace, raw)

    def save_namespace(self, namespace: str, entries: dict[str, CacheEntry]) -> None:
        path = self.namespace_path(namespace)
        self._write_json(path, encode_entries(entries))

    def delete_namespace(self, namespace: str) -> None:
        path = self.namespace_path(namespace)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot remove {path}: {exc}", str(path)) from exc

    def load_manifest(self) -> list[str]:
        path = self.manifest_path
        raw = self._read_json(path)
        if raw is None:
            return []
        try:
            return normalize_manifest(str(path), raw)
        except ValueError as exc:
            raise StorageError(f"Invalid manifest: {exc}", str(path)) from exc

    def save_manifest(self, namespaces: list[str]) -> None:
        self._write_json(self.manifest_path, {"clients": list(namespaces)})

    def _read_json(self, path: Path) -> object | None:
        """Read and parse *path*; ``None`` if it does not exist."""
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read {path}: {exc}", str(path)) from exc
        try:
            return json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StorageError(f"Corrupt record at {path}: {exc}", str(path)) from exc

    def _write_json(self, path: Path, data: object) -> None:
        try:
            atomic_write(path, json.dumps(data, separators=(",", ":")) + "\n")
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc}", str(path)) from exc
