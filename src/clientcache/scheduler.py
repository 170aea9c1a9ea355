"""Periodic background sweep over every cached namespace.

:class:`PruneScheduler` bounds how long stale data stays on disk. On each
tick it snapshots the :class:`~clientcache.manifest.Manifest` and calls
:meth:`~clientcache.store.CacheStore.sweep` for every namespace in the
snapshot, which removes stale entries and unregisters namespaces that end
up empty.

The timer is a daemon thread waiting on a :class:`threading.Event`, so
:meth:`PruneScheduler.stop` cancels future ticks immediately. A sweep in
progress is never interrupted mid-write; it checks the stop flag between
namespaces and returns early.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from clientcache.manifest import Manifest
from clientcache.models import SchedulerState, SweepReport
from clientcache.store import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 300.0


class PruneScheduler:
    """Run :meth:`run_once` every *interval* seconds on a background thread.

    Sweeps never overlap: if a sweep is already running when another one is
    requested (a timer tick racing a manual :meth:`run_once`), the new one
    is skipped.

    Args:
        store: The store whose namespaces are swept.
        manifest: The registry listing the namespaces to sweep.
        interval: Seconds between sweeps.
    """

    def __init__(
        self,
        store: CacheStore,
        manifest: Manifest,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Prune interval must be positive, got {interval}")
        self._store = store
        self._manifest = manifest
        self._interval = interval
        self._state = SchedulerState.STOPPED
        self._state_lock = threading.Lock()
        self._sweep_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    def start(self) -> None:
        """Start the background timer. No-op if already running."""
        with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                return
            # A fresh event per run so a restarted scheduler is not born stopped.
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                daemon=True,
                name="clientcache-prune",
            )
            self._state = SchedulerState.RUNNING
            self._thread.start()
        logger.info("Cache prune scheduler started (interval %ss)", self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel future ticks and wait for the timer thread to exit.

        An in-flight sweep finishes the namespace it is working on and then
        returns. No-op if already stopped.

        Args:
            timeout: Maximum seconds to wait for the thread; ``None`` waits
                until it exits.
        """
        with self._state_lock:
            if self._state is SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPED
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Cache prune scheduler stopped")

    def run_once(self) -> Optional[SweepReport]:
        """Sweep every namespace in the manifest now, on the calling thread.

        Returns:
            The sweep report, or ``None`` if another sweep was already in
            progress and this one was skipped.
        """
        return self._sweep(None)

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval):
            try:
                self._sweep(stop_event)
            except Exception:
                logger.exception("Cache prune sweep failed")

    def _sweep(self, stop_event: Optional[threading.Event]) -> Optional[SweepReport]:
        if not self._sweep_lock.acquire(blocking=False):
            logger.debug("Cache prune sweep already in progress, skipping tick")
            return None
        try:
            logger.debug("Pruning cache")
            report = SweepReport(started_at=self._store.now())
            for namespace in self._manifest.list():
                if stop_event is not None and stop_event.is_set():
                    report.cancelled = True
                    break
                try:
                    report.results.append(self._store.sweep(namespace))
                except Exception:
                    logger.exception("Failed to sweep cache client '%s'", namespace)
            logger.info(
                "Cache prune swept %d client(s): %d stale entries removed, %d client(s) dropped",
                len(report.results),
                report.removed_entries,
                len(report.dropped_namespaces),
            )
            return report
        finally:
            self._sweep_lock.release()
