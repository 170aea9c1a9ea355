"""Exception hierarchy for clientcache.

All exceptions inherit from :class:`ClientCacheError`. Cache operations are
fail-open: :class:`StorageError` is raised by storage backends and caught
inside :class:`~clientcache.manifest.Manifest` and
:class:`~clientcache.store.CacheStore`, where it is logged and turned into
a cache miss or a no-op. Only :class:`ConfigError` ever reaches callers,
and only from explicit configuration loading.

Subclass hierarchy::

    ClientCacheError
    +-- StorageError
    +-- ConfigError
"""


class ClientCacheError(Exception):
    """Base exception for all clientcache errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        super().__init__(message)


class StorageError(ClientCacheError):
    """Raised by a storage backend when a record cannot be read, decoded, or written.

    Args:
        message: Human-readable error description.
        location: Optional identifier of the failing record (a file path
            or backend key), kept for log output.
    """

    def __init__(self, message: str, location: str | None = None):
        super().__init__(message)
        self.location = location


class ConfigError(ClientCacheError):
    """Raised for configuration problems (invalid JSON, bad values, unknown backend)."""
