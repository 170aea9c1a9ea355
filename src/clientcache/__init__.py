"""clientcache -- a namespaced, disk-persisted TTL cache for expensive lookups.

Features of a host application (link resolvers, metadata lookups, ...)
memoize opaque byte values under a string key inside their own namespace
("client"). Entries carry an absolute expiry deadline; expired entries are
never returned, are evicted lazily on read, and are reclaimed by a
periodic background sweep that also forgets namespaces left empty.

Typical usage::

    from datetime import timedelta
    from clientcache import create_cache_service

    cache = create_cache_service()
    cache.put_data("resolverX", timedelta(minutes=5), "track:42", b"...")
    cache.get_data("resolverX", "track:42")
    cache.close()

The cache is fail-open: storage errors are logged and surface as misses.

Modules:
    service: :class:`CacheService` handle and factory.
    store: Per-namespace read/write path with lazy expiry.
    manifest: Durable registry of namespaces.
    scheduler: Background prune sweep.
    backends: Pluggable persistence (JSON files, diskcache).
    config: XDG paths, config file, environment overrides.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy.
"""

from clientcache.models import CacheConfig, CacheEntry
from clientcache.service import CacheService, create_cache_service

__version__ = "0.1.0"

__all__ = ["CacheConfig", "CacheEntry", "CacheService", "create_cache_service"]
