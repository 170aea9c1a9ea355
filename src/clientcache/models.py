"""Canonical Pydantic models shared across all clientcache modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config
directory: :class:`CacheConfig`.

**Cache models** -- produced and consumed by the cache layers:
:class:`CacheEntry`, :class:`SchedulerState`, :class:`SweepResult`, and
:class:`SweepReport`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


# --- Config ---


class CacheConfig(BaseModel):
    """Cache settings persisted at ``~/.config/clientcache/config.json``.

    Loaded by :func:`~clientcache.config.load_config`, which also applies
    environment overrides on top of the file.

    Example::

        CacheConfig(directory=Path("/tmp/cache"), prune_interval_seconds=60)
    """

    enabled: bool = Field(default=True, description="Enable the cache")
    directory: Optional[Path] = Field(
        default=None,
        description="Cache root; defaults to <cache dir>/GenericCache",
    )
    backend: Literal["file", "diskcache"] = Field(
        default="file",
        description="Storage backend used to persist namespaces and the manifest",
    )
    prune_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between background prune sweeps",
    )


# --- Cache entries ---


class CacheEntry(BaseModel):
    """A single cached value in one namespace.

    The cache never interprets :attr:`value`; callers own its encoding.

    Attributes:
        key: The caller-supplied key within the namespace.
        value: Opaque, already-serialised payload.
        expires_at: Absolute expiry deadline in epoch seconds.
    """

    key: str
    value: bytes
    expires_at: float

    def is_stale(self, now: float) -> bool:
        """Return ``True`` if the entry has expired as of *now*."""
        return self.expires_at <= now


# --- Pruning ---


class SchedulerState(str, enum.Enum):
    """Lifecycle state of a :class:`~clientcache.scheduler.PruneScheduler`."""

    STOPPED = "stopped"
    RUNNING = "running"


class SweepResult(BaseModel):
    """Outcome of sweeping a single namespace."""

    namespace: str
    removed: int = 0
    remaining: int = 0
    dropped: bool = Field(
        default=False,
        description="The namespace was empty and was removed from the manifest",
    )


class SweepReport(BaseModel):
    """Outcome of one full sweep over every namespace in the manifest."""

    started_at: float
    results: list[SweepResult] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def removed_entries(self) -> int:
        return sum(r.removed for r in self.results)

    @property
    def dropped_namespaces(self) -> list[str]:
        return [r.namespace for r in self.results if r.dropped]
