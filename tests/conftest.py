"""Shared test fixtures for clientcache.

Provides a controllable clock, storage backends rooted in ``tmp_path``,
and a manifest/store pair built on top of them. Tests that need both
backends use the ``any_backend`` fixture, which is parametrised over every
registered backend.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from clientcache.backends import DiskcacheBackend, FileBackend, StorageBackend
from clientcache.manifest import Manifest
from clientcache.store import CacheStore


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "GenericCache"


@pytest.fixture
def file_backend(cache_root: Path) -> FileBackend:
    return FileBackend(cache_root)


@pytest.fixture
def disk_backend(cache_root: Path) -> Iterator[DiskcacheBackend]:
    backend = DiskcacheBackend(cache_root)
    yield backend
    backend.close()


@pytest.fixture(params=["file", "diskcache"])
def any_backend(request: pytest.FixtureRequest, cache_root: Path) -> Iterator[StorageBackend]:
    """Each registered backend in turn."""
    backend: StorageBackend
    if request.param == "file":
        backend = FileBackend(cache_root)
    else:
        backend = DiskcacheBackend(cache_root)
    yield backend
    backend.close()


@pytest.fixture
def manifest(any_backend: StorageBackend) -> Manifest:
    return Manifest(any_backend)


@pytest.fixture
def store(any_backend: StorageBackend, manifest: Manifest, clock: FakeClock) -> CacheStore:
    return CacheStore(any_backend, manifest, clock=clock)
