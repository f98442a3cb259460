# -*- coding: utf-8 -*-
"""
Object Store - SQLite-backed declarative object store.

Provides the ObjectStore class holding Catalog and CatalogInstall
objects as JSON documents with an integer resource version used for
optimistic concurrency. Every committed change is announced to
subscribers, which is what drives reconciliation.

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-10-19

Modified
--------
2026-10-19
"""

# Standard library
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Callable, List, Optional, Type, TypeVar

# taskcatalog internal
from taskcatalog.catalog.models import OBJECT_TYPES, ObjectKey, StoredObject
from taskcatalog.core.config import resolve_store_path
from taskcatalog.core.errors import ConflictError, NotFoundError, StoreError

logger = logging.getLogger(__name__)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS objects (
    kind TEXT NOT NULL,
    namespace TEXT NOT NULL,
    name TEXT NOT NULL,
    resource_version INTEGER NOT NULL,
    generation INTEGER NOT NULL DEFAULT 1,
    body TEXT NOT NULL,

    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),

    PRIMARY KEY (kind, namespace, name)
);
"""

_SCHEMA_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);
"""

_CURRENT_SCHEMA_VERSION = 2


def _add_generation_column(conn: sqlite3.Connection) -> None:
    # Version 1 stores predate spec generations; start them at 1.
    conn.execute(
        "ALTER TABLE objects ADD COLUMN generation INTEGER NOT NULL DEFAULT 1"
    )


# Migration functions: (target_version, callable)
_MIGRATIONS: List[tuple] = [
    (2, _add_generation_column),
]

T = TypeVar('T', bound=StoredObject)

Listener = Callable[[str, ObjectKey], None]


class ObjectStore:
    """SQLite-backed store for Catalog and CatalogInstall objects.

    Parameters
    ----------
    db_path : Optional[Path]
        Path to the SQLite database file, or ``':memory:'``. If None,
        resolved via the store path priority chain
        (env var > config > default).
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        if db_path is None:
            db_path = resolve_store_path()

        if str(db_path) == ':memory:':
            self._db_path = None
            target = ':memory:'
        else:
            self._db_path = Path(db_path)
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self._db_path)

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()
        self._run_migrations()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.executescript(_SCHEMA_VERSION_SQL)
        self._conn.commit()

        # Set initial schema version if not present
        row = self._conn.execute(
            "SELECT version FROM schema_version"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (_CURRENT_SCHEMA_VERSION,),
            )
            self._conn.commit()

    def _run_migrations(self) -> None:
        """Run any pending schema migrations."""
        row = self._conn.execute(
            "SELECT version FROM schema_version"
        ).fetchone()
        current = row['version'] if row else 0

        for target_version, migrate_fn in _MIGRATIONS:
            if target_version > current:
                logger.info(
                    "Running migration to schema version %d", target_version
                )
                migrate_fn(self._conn)
                self._conn.execute(
                    "UPDATE schema_version SET version = ?",
                    (target_version,),
                )
                self._conn.commit()
                current = target_version

    @property
    def schema_version(self) -> int:
        """Current schema version."""
        with self._lock:
            row = self._conn.execute(
                "SELECT version FROM schema_version"
            ).fetchone()
        return row['version'] if row else 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> 'ObjectStore':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def subscribe(self, listener: Listener) -> None:
        """Register a callback invoked as ``listener(kind, key)`` after
        every committed create, update or delete."""
        self._listeners.append(listener)

    def _notify(self, kind: str, key: ObjectKey) -> None:
        for listener in list(self._listeners):
            listener(kind, key)

    def create(self, obj: T) -> T:
        """Store a new object.

        The object's resource version is set to the stored token.

        Raises
        ------
        StoreError
            If an object with the same kind and key already exists.
        """
        key = obj.key
        with self._lock:
            obj.metadata.resource_version = 1
            obj.metadata.generation = 1
            try:
                self._conn.execute(
                    """INSERT INTO objects
                    (kind, namespace, name, resource_version, generation, body)
                    VALUES (?, ?, ?, ?, ?, ?)""",
                    (obj.KIND, key.namespace, key.name, 1, 1,
                     json.dumps(obj.to_dict())),
                )
            except sqlite3.IntegrityError as e:
                obj.metadata.resource_version = 0
                obj.metadata.generation = 0
                raise StoreError(f"{obj.KIND} {key} already exists") from e
            self._conn.commit()
        logger.debug("Created %s %s", obj.KIND, key)
        self._notify(obj.KIND, key)
        return obj

    def get(self, cls: Type[T], key: ObjectKey) -> T:
        """Read an object.

        Parameters
        ----------
        cls : Type[T]
            Model class, e.g. Catalog.
        key : ObjectKey

        Returns
        -------
        T
            A fresh deserialized snapshot.

        Raises
        ------
        NotFoundError
            If no such object exists.
        StoreError
            If the stored document cannot be read.
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT resource_version, generation, body FROM objects "
                "WHERE kind = ? AND namespace = ? AND name = ?",
                (cls.KIND, key.namespace, key.name),
            ).fetchone()
        if row is None:
            raise NotFoundError(cls.KIND, key)
        return self._row_to_object(cls, row)

    def list(self, cls: Type[T], namespace: Optional[str] = None) -> List[T]:
        """List objects of one kind, optionally in one namespace."""
        with self._lock:
            if namespace is None:
                rows = self._conn.execute(
                    "SELECT resource_version, generation, body FROM objects "
                    "WHERE kind = ? ORDER BY namespace, name",
                    (cls.KIND,),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT resource_version, generation, body FROM objects "
                    "WHERE kind = ? AND namespace = ? ORDER BY name",
                    (cls.KIND, namespace),
                ).fetchall()
        return [self._row_to_object(cls, r) for r in rows]

    def update(self, obj: StoredObject) -> int:
        """Replace a stored object if its resource version is current.

        The spec generation is bumped when the spec differs from the
        stored one; status-only writes keep it.

        Parameters
        ----------
        obj : StoredObject
            Modified copy of a previously read object.

        Returns
        -------
        int
            The new resource version, also stamped on ``obj``.

        Raises
        ------
        NotFoundError
            If the object no longer exists.
        ConflictError
            If the object changed since ``obj`` was read.
        """
        key = obj.key
        expected = obj.metadata.resource_version
        with self._lock:
            row = self._conn.execute(
                "SELECT resource_version, generation, body FROM objects "
                "WHERE kind = ? AND namespace = ? AND name = ?",
                (obj.KIND, key.namespace, key.name),
            ).fetchone()
            if row is None:
                raise NotFoundError(obj.KIND, key)
            if row['resource_version'] != expected:
                raise ConflictError(
                    obj.KIND, key, expected, row['resource_version']
                )

            new_version = expected + 1
            generation = row['generation']
            if json.loads(row['body']).get('spec') != obj.to_dict()['spec']:
                generation += 1
            obj.metadata.resource_version = new_version
            obj.metadata.generation = generation
            self._conn.execute(
                """UPDATE objects
                SET resource_version = ?, generation = ?, body = ?,
                    updated_at = datetime('now')
                WHERE kind = ? AND namespace = ? AND name = ?""",
                (new_version, generation, json.dumps(obj.to_dict()),
                 obj.KIND, key.namespace, key.name),
            )
            self._conn.commit()
        logger.debug("Updated %s %s to version %d", obj.KIND, key, new_version)
        self._notify(obj.KIND, key)
        return new_version

    def delete(self, cls: Type[StoredObject], key: ObjectKey) -> bool:
        """Delete an object.

        Returns
        -------
        bool
            True if an object was removed.
        """
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM objects "
                "WHERE kind = ? AND namespace = ? AND name = ?",
                (cls.KIND, key.namespace, key.name),
            )
            self._conn.commit()
        removed = cursor.rowcount > 0
        if removed:
            self._notify(cls.KIND, key)
        return removed

    @staticmethod
    def _row_to_object(cls: Type[T], row: sqlite3.Row) -> T:
        """Convert a database row to a model instance."""
        try:
            obj = OBJECT_TYPES[cls.KIND].from_dict(json.loads(row['body']))
        except (ValueError, KeyError, TypeError) as e:
            raise StoreError(f"corrupt {cls.KIND} document: {e}") from e
        obj.metadata.resource_version = row['resource_version']
        obj.metadata.generation = row['generation']
        return obj
