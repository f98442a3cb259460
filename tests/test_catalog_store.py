# -*- coding: utf-8 -*-
"""
Tests for taskcatalog.catalog.store — ObjectStore SQLite store.

Created
-------
2026-10-19
"""

import json
import sqlite3

import pytest

from taskcatalog.catalog.models import (
    Catalog, CatalogInstall, CatalogInstallSpec, CatalogSpec, Condition,
    ObjectKey, ObjectMeta,
)
from taskcatalog.catalog.store import ObjectStore
from taskcatalog.core.errors import ConflictError, NotFoundError, StoreError


@pytest.fixture
def store(tmp_path):
    """Create a temporary object store."""
    db_path = tmp_path / "test_store.db"
    st = ObjectStore(db_path=db_path)
    yield st
    st.close()


@pytest.fixture
def sample_catalog():
    return Catalog(
        metadata=ObjectMeta(name="tekton", namespace="ci"),
        spec=CatalogSpec(url="https://github.com/tektoncd/catalog"),
    )


KEY = ObjectKey("ci", "tekton")


class TestObjectStoreBasic:

    def test_create_and_get(self, store, sample_catalog):
        store.create(sample_catalog)
        assert sample_catalog.metadata.resource_version == 1

        loaded = store.get(Catalog, KEY)
        assert loaded.spec.url == "https://github.com/tektoncd/catalog"
        assert loaded.metadata.resource_version == 1

    def test_get_nonexistent_raises(self, store):
        with pytest.raises(NotFoundError):
            store.get(Catalog, KEY)

    def test_create_duplicate_raises(self, store, sample_catalog):
        store.create(sample_catalog)
        with pytest.raises(StoreError):
            store.create(Catalog(
                metadata=ObjectMeta(name="tekton", namespace="ci"),
                spec=CatalogSpec(url="https://example.com/other"),
            ))

    def test_kinds_are_separate(self, store, sample_catalog):
        store.create(sample_catalog)
        with pytest.raises(NotFoundError):
            store.get(CatalogInstall, KEY)

    def test_get_returns_fresh_snapshot(self, store, sample_catalog):
        store.create(sample_catalog)
        first = store.get(Catalog, KEY)
        first.spec.url = "mutated"
        assert store.get(Catalog, KEY).spec.url != "mutated"

    def test_delete(self, store, sample_catalog):
        store.create(sample_catalog)
        assert store.delete(Catalog, KEY) is True
        assert store.delete(Catalog, KEY) is False
        with pytest.raises(NotFoundError):
            store.get(Catalog, KEY)

    def test_in_memory(self, sample_catalog):
        with ObjectStore(db_path=":memory:") as st:
            st.create(sample_catalog)
            assert st.get(Catalog, KEY).metadata.name == "tekton"
            assert st.schema_version == 2


class TestObjectStoreUpdate:

    def test_update_bumps_version(self, store, sample_catalog):
        store.create(sample_catalog)
        current = store.get(Catalog, KEY)
        updated = current.copy()
        updated.status.condition = Condition.success()

        assert store.update(updated) == 2
        assert updated.metadata.resource_version == 2
        assert store.get(Catalog, KEY).status.condition == Condition.success()

    def test_stale_update_conflicts(self, store, sample_catalog):
        store.create(sample_catalog)
        first = store.get(Catalog, KEY)
        second = store.get(Catalog, KEY)

        store.update(first)
        second.status.condition = Condition.error("late")
        with pytest.raises(ConflictError) as exc_info:
            store.update(second)
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert store.get(Catalog, KEY).status.condition == Condition.unknown()

    def test_update_deleted_object(self, store, sample_catalog):
        store.create(sample_catalog)
        current = store.get(Catalog, KEY)
        store.delete(Catalog, KEY)
        with pytest.raises(NotFoundError):
            store.update(current)


    def test_status_write_keeps_generation(self, store, sample_catalog):
        store.create(sample_catalog)
        assert sample_catalog.metadata.generation == 1

        updated = store.get(Catalog, KEY)
        updated.status.condition = Condition.error("unreachable")
        store.update(updated)
        assert updated.metadata.generation == 1
        assert store.get(Catalog, KEY).metadata.generation == 1

    def test_spec_change_bumps_generation(self, store, sample_catalog):
        store.create(sample_catalog)
        updated = store.get(Catalog, KEY)
        updated.spec.revision = "v0.2"
        store.update(updated)

        loaded = store.get(Catalog, KEY)
        assert loaded.metadata.generation == 2
        assert loaded.metadata.resource_version == 2


class TestObjectStoreListing:

    def test_list_by_namespace(self, store, sample_catalog):
        store.create(sample_catalog)
        store.create(Catalog(
            metadata=ObjectMeta(name="community", namespace="other"),
            spec=CatalogSpec(url="https://example.com/c"),
        ))
        assert len(store.list(Catalog)) == 2
        names = [c.metadata.name for c in store.list(Catalog, "ci")]
        assert names == ["tekton"]

    def test_list_empty(self, store):
        assert store.list(CatalogInstall) == []


class TestObjectStoreWatch:

    def test_listeners_notified(self, store, sample_catalog):
        events = []
        store.subscribe(lambda kind, key: events.append((kind, key)))

        store.create(sample_catalog)
        store.update(store.get(Catalog, KEY))
        store.delete(Catalog, KEY)
        store.delete(Catalog, KEY)

        assert events == [("Catalog", KEY)] * 3

    def test_rejected_update_not_notified(self, store, sample_catalog):
        store.create(sample_catalog)
        stale = store.get(Catalog, KEY)
        store.update(store.get(Catalog, KEY))

        events = []
        store.subscribe(lambda kind, key: events.append(kind))
        with pytest.raises(ConflictError):
            store.update(stale)
        assert events == []


class TestObjectStoreContextManager:

    def test_context_manager(self, tmp_path):
        db_path = tmp_path / "ctx_test.db"
        with ObjectStore(db_path=db_path) as st:
            st.create(CatalogInstall(
                metadata=ObjectMeta(name="install"),
                spec=CatalogInstallSpec(catalog_ref="tekton", tasks=["git-clone"]),
            ))
        # Connection should be closed, but we can open a new one
        with ObjectStore(db_path=db_path) as st:
            loaded = st.get(CatalogInstall, ObjectKey("default", "install"))
            assert loaded.spec.tasks == ["git-clone"]


class TestObjectStoreMigrations:

    def test_version_1_database_upgraded(self, tmp_path):
        db_path = tmp_path / "old.db"
        conn = sqlite3.connect(str(db_path))
        conn.executescript("""
            CREATE TABLE objects (
                kind TEXT NOT NULL,
                namespace TEXT NOT NULL,
                name TEXT NOT NULL,
                resource_version INTEGER NOT NULL,
                body TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now')),
                PRIMARY KEY (kind, namespace, name)
            );
            CREATE TABLE schema_version (version INTEGER NOT NULL);
            INSERT INTO schema_version (version) VALUES (1);
        """)
        body = Catalog(
            metadata=ObjectMeta(name="tekton", namespace="ci"),
            spec=CatalogSpec(url="https://github.com/tektoncd/catalog"),
        ).to_dict()
        conn.execute(
            "INSERT INTO objects (kind, namespace, name, resource_version, body) "
            "VALUES (?, ?, ?, ?, ?)",
            ("Catalog", "ci", "tekton", 7, json.dumps(body)),
        )
        conn.commit()
        conn.close()

        with ObjectStore(db_path=db_path) as st:
            assert st.schema_version == 2
            loaded = st.get(Catalog, KEY)
            assert loaded.metadata.resource_version == 7
            assert loaded.metadata.generation == 1
