"""Abstract storage backend for clientcache.

A backend persists two kinds of records under a cache root:

* the **manifest** -- the list of namespace identifiers known to hold
  entries, and
* one **namespace store** per namespace -- the full ``key -> entry`` mapping,
  always loaded and saved as a unit.

The cache layers (:class:`~clientcache.manifest.Manifest` and
:class:`~clientcache.store.CacheStore`) own locking, staleness, and the
fail-open policy. Backends only move bytes: they raise
:class:`~clientcache.exceptions.StorageError` on any read, decode, or write
failure and never interpret cached values.

Records are exchanged with the concrete backends in a shared JSON-friendly
shape produced by :func:`encode_entries` and read back by
:func:`decode_entries`::

    {"<key>": {"expires_at": 1718000000.0, "value": "<base64>"}}
"""

from __future__ import annotations

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Any

from clientcache.models import CacheEntry

logger = logging.getLogger(__name__)

MANIFEST_NAME = "cachemanifest"


class StorageBackend(ABC):
    """Base class for all clientcache storage backends.

    Subclasses must implement every abstract method. Implementations need
    not be safe for concurrent access to the *same* record; callers
    serialise access per namespace and for the manifest.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend identifier used in stats and log output."""
        ...

    @abstractmethod
    def load_namespace(self, namespace: str) -> dict[str, CacheEntry]:
        """Load the full entry mapping of *namespace*.

        Returns:
            The mapping, or an empty dict if the namespace has no stored
            record.

        Raises:
            StorageError: If the record exists but cannot be read or decoded.
        """
        ...

    @abstractmethod
    def save_namespace(self, namespace: str, entries: dict[str, CacheEntry]) -> None:
        """Persist the full entry mapping of *namespace*, replacing any previous record.

        Raises:
            StorageError: If the record cannot be written.
        """
        ...

    @abstractmethod
    def delete_namespace(self, namespace: str) -> None:
        """Remove the stored record of *namespace*. A missing record is a no-op.

        Raises:
            StorageError: If the record exists but cannot be removed.
        """
        ...

    @abstractmethod
    def load_manifest(self) -> list[str]:
        """Load the list of registered namespaces.

        Returns:
            The namespaces, or an empty list if no manifest is stored.

        Raises:
            StorageError: If the manifest exists but cannot be read or decoded.
        """
        ...

    @abstractmethod
    def save_manifest(self, namespaces: list[str]) -> None:
        """Persist the list of registered namespaces.

        Raises:
            StorageError: If the manifest cannot be written.
        """
        ...

    def close(self) -> None:
        """Release any resources held by the backend. Default is a no-op."""


def encode_entries(entries: dict[str, CacheEntry]) -> dict[str, dict[str, Any]]:
    """Convert an entry mapping into its JSON-friendly stored form."""
    return {
        key: {
            "expires_at": entry.expires_at,
            "value": base64.b64encode(entry.value).decode("ascii"),
        }
        for key, entry in entries.items()
    }


def decode_entries(namespace: str, raw: dict[str, Any]) -> dict[str, CacheEntry]:
    """Convert a stored mapping back into :class:`CacheEntry` objects.

    A record that cannot be decoded does not abort the load. It becomes a
    tombstone that expires at ``0`` so it reads as a miss, is evicted on
    the next access, and is reclaimed by the next sweep.
    """
    entries: dict[str, CacheEntry] = {}
    for key, record in raw.items():
        try:
            entries[key] = CacheEntry(
                key=key,
                value=base64.b64decode(record["value"], validate=True),
                expires_at=float(record["expires_at"]),
            )
        except (KeyError, TypeError, ValueError, binascii.Error) as exc:
            logger.warning(
                "Dropping undecodable cache record %s/%s: %s", namespace, key, exc
            )
            entries[key] = CacheEntry(key=key, value=b"", expires_at=0.0)
    return entries


def normalize_manifest(location: str, raw: Any) -> list[str]:
    """Validate a stored manifest payload and return its namespaces in order, deduplicated.

    Raises:
        ValueError: If *raw* is not a ``{"clients": [...]}`` object.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("clients"), list):
        raise ValueError(f"{location}: expected an object with a 'clients' list")
    seen: list[str] = []
    for client in raw["clients"]:
        if isinstance(client, str) and client and client not in seen:
            seen.append(client)
    return seen
