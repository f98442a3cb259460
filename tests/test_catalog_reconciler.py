# -*- coding: utf-8 -*-
"""
Tests for taskcatalog.catalog.reconciler — CatalogReconciler.

Created
-------
2026-10-19
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from taskcatalog.catalog.models import (
    Catalog, CatalogSpec, CatalogStatus, Condition, ObjectKey, ObjectMeta,
    SyncInfo,
)
from taskcatalog.catalog.reconciler import CatalogReconciler
from taskcatalog.catalog.store import ObjectStore
from taskcatalog.core.config import SyncConfig
from taskcatalog.core.errors import (
    ConflictError, FetchError, NotFoundError, StoreError,
)

HEAD = "5d3c1f0e9b8a7d6c5b4a39281706f5e4d3c2b1a0"
NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
KEY = ObjectKey("default", "tekton")


def _make_catalog(**status_kwargs):
    return Catalog(
        metadata=ObjectMeta(name="tekton", resource_version=4),
        spec=CatalogSpec(url="https://github.com/tektoncd/catalog", revision="main"),
        status=CatalogStatus(**status_kwargs),
    )


@pytest.fixture
def mirror(tmp_path):
    m = MagicMock()
    m.path = tmp_path
    m.head.return_value = HEAD
    return m


@pytest.fixture
def mirrors(mirror):
    cache = MagicMock()
    cache.fetch.return_value = mirror
    return cache


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.get.return_value = _make_catalog()
    return store


@pytest.fixture
def reconciler(mock_store, mirrors):
    return CatalogReconciler(mock_store, mirrors, clock=lambda: NOW)


def _submitted(store):
    assert store.update.call_count == 1
    return store.update.call_args[0][0]


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------

class TestSync:
    def test_first_sync_publishes_inventory(
        self, reconciler, mock_store, mirrors, write_manifest,
    ):
        write_manifest("tasks", "golang-build", "0.1")
        write_manifest("tasks", "golang-build", "0.2")
        write_manifest("clustertasks", "kaniko", "0.1", kind="ClusterTask")

        result = reconciler.reconcile(KEY)

        mirrors.fetch.assert_called_once_with(
            "https://github.com/tektoncd/catalog", "main"
        )
        submitted = _submitted(mock_store)
        assert result is submitted
        status = submitted.status
        assert status.condition == Condition.success()
        assert status.tasks == {"golang-build": ["0.1", "0.2"]}
        assert status.cluster_tasks == {"kaniko": ["0.1"]}
        assert status.last_sync == SyncInfo(NOW, HEAD)

    def test_last_sync_records_head_not_requested_revision(
        self, reconciler, mock_store,
    ):
        reconciler.reconcile(KEY)
        revision = _submitted(mock_store).status.last_sync.revision
        assert revision == HEAD
        assert revision != "main"

    def test_absent_cluster_tasks_dir(self, reconciler, mock_store, write_manifest):
        write_manifest("tasks", "git-clone", "0.1")

        reconciler.reconcile(KEY)
        status = _submitted(mock_store).status
        assert status.condition == Condition.success()
        assert status.cluster_tasks == {}

    def test_invalid_versions_filtered(self, reconciler, mock_store, write_manifest):
        write_manifest("tasks", "golang-build", "0.1", content="kind: Task\n")
        write_manifest("tasks", "golang-build", "0.2")

        reconciler.reconcile(KEY)
        assert _submitted(mock_store).status.tasks == {"golang-build": ["0.2"]}

    def test_context_path(self, reconciler, mock_store, tmp_path, write_manifest):
        mock_store.get.return_value.spec.context_path = "/catalog/"
        write_manifest("tasks", "buildah", "0.1", root=tmp_path / "catalog")
        write_manifest("tasks", "ignored", "0.1")

        reconciler.reconcile(KEY)
        assert _submitted(mock_store).status.tasks == {"buildah": ["0.1"]}

    def test_context_path_cannot_escape_mirror(self, reconciler, mock_store):
        mock_store.get.return_value.spec.context_path = "../elsewhere"

        reconciler.reconcile(KEY)
        status = _submitted(mock_store).status
        assert status.condition.is_error
        assert "contextPath" in status.condition.details

    def test_read_snapshot_not_mutated(self, reconciler, mock_store, write_manifest):
        write_manifest("tasks", "git-clone", "0.1")
        original = mock_store.get.return_value

        reconciler.reconcile(KEY)
        assert _submitted(mock_store) is not original
        assert original.status == CatalogStatus()


# ---------------------------------------------------------------------------
# short-circuit
# ---------------------------------------------------------------------------

class TestShortCircuit:
    def test_unchanged_head_after_success_is_noop(self, reconciler, mock_store):
        mock_store.get.return_value = _make_catalog(
            last_sync=SyncInfo(NOW, HEAD),
            condition=Condition.success(),
            tasks={"git-clone": ["0.1"]},
        )
        assert reconciler.reconcile(KEY) is None
        mock_store.update.assert_not_called()

    def test_unchanged_head_after_error_resyncs(self, reconciler, mock_store):
        mock_store.get.return_value = _make_catalog(
            last_sync=SyncInfo(NOW, HEAD),
            condition=Condition.error("failed to scan tasks"),
        )
        reconciler.reconcile(KEY)
        assert _submitted(mock_store).status.condition == Condition.success()

    def test_new_head_resyncs(self, reconciler, mock_store):
        mock_store.get.return_value = _make_catalog(
            last_sync=SyncInfo(NOW, "0" * 40),
            condition=Condition.success(),
        )
        reconciler.reconcile(KEY)
        assert _submitted(mock_store).status.last_sync.revision == HEAD

    def test_unobserved_spec_generation_resyncs(self, reconciler, mock_store):
        catalog = _make_catalog(
            last_sync=SyncInfo(NOW, HEAD),
            condition=Condition.success(),
            observed_generation=1,
        )
        catalog.metadata.generation = 2
        mock_store.get.return_value = catalog

        reconciler.reconcile(KEY)
        assert _submitted(mock_store).status.observed_generation == 2


# ---------------------------------------------------------------------------
# failures
# ---------------------------------------------------------------------------

class TestFailures:
    def test_fetch_failure_keeps_inventory(self, reconciler, mock_store, mirrors):
        earlier = datetime(2026, 9, 1, tzinfo=timezone.utc)
        mock_store.get.return_value = _make_catalog(
            last_sync=SyncInfo(earlier, "abc123"),
            condition=Condition.success(),
            tasks={"git-clone": ["0.1"]},
        )
        mock_store.get.return_value.metadata.generation = 3
        mirrors.fetch.side_effect = FetchError(
            "https://github.com/tektoncd/catalog", "main",
            cause=RuntimeError("could not resolve host"),
        )

        reconciler.reconcile(KEY)
        status = _submitted(mock_store).status
        assert status.condition.is_error
        assert "could not resolve host" in status.condition.details
        assert status.last_sync == SyncInfo(NOW, "abc123")
        assert status.tasks == {"git-clone": ["0.1"]}
        assert status.observed_generation == 3

    def test_head_failure_is_a_fetch_failure(self, reconciler, mock_store, mirror):
        mirror.head.side_effect = FetchError("u", "main")
        reconciler.reconcile(KEY)
        assert _submitted(mock_store).status.condition.is_error

    def test_partial_success_visible(
        self, reconciler, mock_store, tmp_path, write_manifest,
    ):
        write_manifest("tasks", "golang-build", "0.1")
        (tmp_path / "clustertasks").write_text("not a directory")

        reconciler.reconcile(KEY)
        status = _submitted(mock_store).status
        assert status.condition.is_error
        assert "clustertasks" in status.condition.details
        assert status.tasks == {"golang-build": ["0.1"]}
        assert status.last_sync.revision == HEAD

    def test_deleted_catalog_is_noop(self, reconciler, mock_store, mirrors):
        mock_store.get.side_effect = NotFoundError("Catalog", KEY)

        assert reconciler.reconcile(KEY) is None
        mirrors.fetch.assert_not_called()
        mock_store.update.assert_not_called()

    def test_read_error_propagates(self, reconciler, mock_store, mirrors):
        mock_store.get.side_effect = StoreError("database is locked")
        with pytest.raises(StoreError):
            reconciler.reconcile(KEY)
        mirrors.fetch.assert_not_called()

    def test_conflict_discarded(self, reconciler, mock_store):
        mock_store.update.side_effect = ConflictError("Catalog", KEY, 4, 5)
        assert reconciler.reconcile(KEY) is None
        assert mock_store.update.call_count == 1


# ---------------------------------------------------------------------------
# with a real store
# ---------------------------------------------------------------------------

class TestWithStore:
    def test_second_pass_writes_nothing(self, tmp_path, mirrors, write_manifest):
        write_manifest("tasks", "git-clone", "0.1")
        with ObjectStore(db_path=":memory:") as store:
            store.create(_make_catalog())
            events = []
            store.subscribe(lambda kind, key: events.append(key))
            config = SyncConfig(cache_root=tmp_path / "mirrors")
            reconciler = CatalogReconciler.from_config(store, config, mirrors=mirrors)

            assert reconciler.reconcile(KEY) is not None
            assert reconciler.reconcile(KEY) is None

            assert events == [KEY]
            stored = store.get(Catalog, KEY)
            assert stored.status.tasks == {"git-clone": ["0.1"]}
            assert stored.metadata.resource_version == 2
