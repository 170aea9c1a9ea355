"""Tests for the namespace manifest."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from clientcache.backends import FileBackend, StorageBackend
from clientcache.exceptions import StorageError
from clientcache.manifest import Manifest


class TestAddRemove:
    def test_empty_by_default(self, manifest: Manifest) -> None:
        assert manifest.list() == []

    def test_add(self, manifest: Manifest) -> None:
        manifest.add("resolverX")
        assert manifest.list() == ["resolverX"]
        assert "resolverX" in manifest

    def test_add_is_idempotent(self, manifest: Manifest) -> None:
        manifest.add("resolverX")
        manifest.add("resolverX")
        manifest.add("resolverX")
        assert manifest.list() == ["resolverX"]

    def test_remove(self, manifest: Manifest) -> None:
        manifest.add("a")
        manifest.add("b")
        manifest.remove("a")
        assert manifest.list() == ["b"]
        assert "a" not in manifest

    def test_remove_is_idempotent(self, manifest: Manifest) -> None:
        manifest.add("a")
        manifest.remove("a")
        manifest.remove("a")
        assert manifest.list() == []

    def test_remove_absent_no_error(self, manifest: Manifest) -> None:
        manifest.remove("never-added")
        assert manifest.list() == []

    def test_persisted(self, any_backend: StorageBackend) -> None:
        Manifest(any_backend).add("resolverX")
        assert Manifest(any_backend).list() == ["resolverX"]

    def test_list_is_a_snapshot(self, manifest: Manifest) -> None:
        manifest.add("a")
        snapshot = manifest.list()
        manifest.add("b")
        snapshot.append("c")
        assert snapshot == ["a", "c"]
        assert sorted(manifest.list()) == ["a", "b"]


class TestConcurrency:
    def test_concurrent_adds_do_not_duplicate(self, manifest: Manifest) -> None:
        names = [f"client-{i % 5}" for i in range(40)]
        barrier = threading.Barrier(len(names))

        def worker(name: str) -> None:
            barrier.wait()
            manifest.add(name)

        threads = [threading.Thread(target=worker, args=(n,)) for n in names]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(manifest.list()) == [f"client-{i}" for i in range(5)]


class TestFailOpen:
    def test_corrupt_manifest_reads_as_empty(self, tmp_path: Path) -> None:
        (tmp_path / "cachemanifest").write_text("{{{{", encoding="utf-8")
        manifest = Manifest(FileBackend(tmp_path))
        assert manifest.list() == []

    def test_add_over_corrupt_manifest_rewrites_it(self, tmp_path: Path) -> None:
        (tmp_path / "cachemanifest").write_text("{{{{", encoding="utf-8")
        manifest = Manifest(FileBackend(tmp_path))
        manifest.add("resolverX")
        assert manifest.list() == ["resolverX"]

    def test_write_failure_is_swallowed(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        backend = FileBackend(tmp_path)

        def fail(namespaces: list[str]) -> None:
            raise StorageError("disk full")

        monkeypatch.setattr(backend, "save_manifest", fail)
        manifest = Manifest(backend)

        manifest.add("resolverX")

        assert manifest.list() == []
        assert "Failed to persist cache manifest" in caplog.text
