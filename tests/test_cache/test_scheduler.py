"""Tests for the background prune scheduler."""

from __future__ import annotations

import threading
import time

import pytest

from clientcache.manifest import Manifest
from clientcache.models import SchedulerState
from clientcache.scheduler import DEFAULT_INTERVAL_SECONDS, PruneScheduler
from clientcache.store import CacheStore


@pytest.fixture
def scheduler(store: CacheStore, manifest: Manifest):
    s = PruneScheduler(store, manifest, interval=0.05)
    yield s
    s.stop(timeout=5)


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# ------------------------------------------------------------------ #
# Sweeping
# ------------------------------------------------------------------ #


class TestRunOnce:
    def test_mixed_namespace_keeps_valid_entries(
        self, scheduler: PruneScheduler, store: CacheStore, manifest: Manifest, clock
    ) -> None:
        store.put("resolverX", "a", b"v1", ttl=60)
        store.put("resolverX", "b", b"v2", ttl=0.01)
        clock.advance(0.02)

        assert store.get("resolverX", "a") == b"v1"
        assert store.get("resolverX", "b") is None
        report = scheduler.run_once()

        assert report is not None
        assert report.dropped_namespaces == []
        assert "resolverX" in manifest
        assert list(store.entries("resolverX")) == ["a"]

    def test_expired_namespace_is_dropped(
        self, scheduler: PruneScheduler, store: CacheStore, manifest: Manifest, clock
    ) -> None:
        store.put("resolverX", "track:42", b"blob", ttl=1.0)
        store.put("meta", "album:1", b"blob", ttl=600)
        clock.advance(1.1)

        report = scheduler.run_once()

        assert report is not None
        assert report.removed_entries == 1
        assert report.dropped_namespaces == ["resolverX"]
        assert manifest.list() == ["meta"]

    def test_empty_manifest(self, scheduler: PruneScheduler) -> None:
        report = scheduler.run_once()
        assert report is not None
        assert report.results == []

    def test_running_twice_is_harmless(
        self, scheduler: PruneScheduler, store: CacheStore, manifest: Manifest, clock
    ) -> None:
        store.put("resolverX", "a", b"v", ttl=1)
        store.put("resolverX", "b", b"v", ttl=600)
        clock.advance(2)

        scheduler.run_once()
        second = scheduler.run_once()

        assert second is not None
        assert second.removed_entries == 0
        assert list(store.entries("resolverX")) == ["b"]
        assert manifest.list() == ["resolverX"]

    def test_overlapping_sweep_is_skipped(self, scheduler: PruneScheduler) -> None:
        scheduler._sweep_lock.acquire()
        try:
            assert scheduler.run_once() is None
        finally:
            scheduler._sweep_lock.release()
        assert scheduler.run_once() is not None

    def test_stop_flag_checked_between_namespaces(
        self, scheduler: PruneScheduler, store: CacheStore, clock
    ) -> None:
        store.put("a", "k", b"v", ttl=1)
        store.put("b", "k", b"v", ttl=1)
        clock.advance(2)
        stop = threading.Event()
        stop.set()

        report = scheduler._sweep(stop)

        assert report is not None
        assert report.cancelled is True
        assert report.results == []

    def test_failure_in_one_namespace_does_not_abort_sweep(
        self,
        scheduler: PruneScheduler,
        store: CacheStore,
        manifest: Manifest,
        clock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        store.put("broken", "k", b"v", ttl=1)
        store.put("fine", "k", b"v", ttl=1)
        clock.advance(2)
        real_sweep = store.sweep

        def sweep(namespace, now=None):
            if namespace == "broken":
                raise RuntimeError("boom")
            return real_sweep(namespace, now)

        monkeypatch.setattr(store, "sweep", sweep)

        report = scheduler.run_once()

        assert report is not None
        assert [r.namespace for r in report.results] == ["fine"]
        assert manifest.list() == ["broken"]


# ------------------------------------------------------------------ #
# Lifecycle
# ------------------------------------------------------------------ #


class TestLifecycle:
    def test_default_interval(self, store: CacheStore, manifest: Manifest) -> None:
        s = PruneScheduler(store, manifest)
        assert s.interval == DEFAULT_INTERVAL_SECONDS == 300.0

    @pytest.mark.parametrize("interval", [0, -5])
    def test_invalid_interval(self, store: CacheStore, manifest: Manifest, interval: float) -> None:
        with pytest.raises(ValueError):
            PruneScheduler(store, manifest, interval=interval)

    def test_starts_stopped(self, scheduler: PruneScheduler) -> None:
        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler.is_running is False

    def test_start_and_stop(self, scheduler: PruneScheduler) -> None:
        scheduler.start()
        assert scheduler.state is SchedulerState.RUNNING
        thread = scheduler._thread
        assert thread is not None and thread.daemon

        scheduler.stop(timeout=5)

        assert scheduler.state is SchedulerState.STOPPED
        assert not thread.is_alive()

    def test_start_is_idempotent(self, scheduler: PruneScheduler) -> None:
        scheduler.start()
        thread = scheduler._thread
        scheduler.start()
        assert scheduler._thread is thread

    def test_stop_is_idempotent(self, scheduler: PruneScheduler) -> None:
        scheduler.stop()
        scheduler.start()
        scheduler.stop(timeout=5)
        scheduler.stop(timeout=5)
        assert scheduler.state is SchedulerState.STOPPED

    def test_restart(self, scheduler: PruneScheduler) -> None:
        scheduler.start()
        scheduler.stop(timeout=5)
        scheduler.start()
        assert scheduler.is_running
        assert scheduler._thread is not None and scheduler._thread.is_alive()

    def test_timer_prunes_in_background(
        self, scheduler: PruneScheduler, store: CacheStore, manifest: Manifest, clock
    ) -> None:
        store.put("resolverX", "track:42", b"blob", ttl=1.0)
        clock.advance(1.1)

        scheduler.start()

        assert _wait_for(lambda: "resolverX" not in manifest)

    def test_no_ticks_after_stop(
        self, scheduler: PruneScheduler, store: CacheStore, manifest: Manifest, clock
    ) -> None:
        scheduler.start()
        scheduler.stop(timeout=5)

        store.put("resolverX", "k", b"v", ttl=1)
        clock.advance(2)
        time.sleep(0.2)

        assert "resolverX" in manifest
