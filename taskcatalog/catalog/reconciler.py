# -*- coding: utf-8 -*-
"""
Catalog Sync Reconciler - Publish a Catalog's discovered inventory.

One pass reads the Catalog, fetches its mirror, skips the pass if the
mirror head was already synced successfully for the current spec
generation, scans the task and cluster-task directories and submits a
freshly composed status on a copy of the object read. Status is always
replaced whole; a status update that loses an optimistic-concurrency
race is discarded and picked up by the next change notification.

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
import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# taskcatalog internal
from taskcatalog.catalog.models import (
    Catalog, CatalogStatus, Condition, ObjectKey, SyncInfo,
)
from taskcatalog.catalog.store import ObjectStore
from taskcatalog.core.config import SyncConfig
from taskcatalog.core.errors import (
    ConflictError, FetchError, NotFoundError, ScanError, StoreError,
)
from taskcatalog.core.mirror import MirrorCache
from taskcatalog.core.scanner import scan
from taskcatalog.core.validate import ResourceKind, get_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogReconciler:
    """Reconciles Catalog objects against their git repositories.

    Parameters
    ----------
    store : ObjectStore
        Declarative object store holding Catalog objects.
    mirrors : MirrorCache
        Mirror cache used to fetch repositories.
    tasks_dir : str
        Task directory name under the scan root. Default 'tasks'.
    cluster_tasks_dir : str
        ClusterTask directory name. Default 'clustertasks'.
    clock : Optional[Callable[[], datetime]]
        Source of ``lastSync.time``. Defaults to UTC now.
    """

    def __init__(
        self,
        store: ObjectStore,
        mirrors: MirrorCache,
        tasks_dir: str = "tasks",
        cluster_tasks_dir: str = "clustertasks",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._mirrors = mirrors
        self._tasks_dir = tasks_dir
        self._cluster_tasks_dir = cluster_tasks_dir
        self._clock = clock or _utcnow

    @classmethod
    def from_config(
        cls,
        store: ObjectStore,
        config: SyncConfig,
        mirrors: Optional[MirrorCache] = None,
    ) -> 'CatalogReconciler':
        """Build a reconciler from a :class:`SyncConfig`."""
        return cls(
            store=store,
            mirrors=mirrors or MirrorCache.from_config(config),
            tasks_dir=config.tasks_dir,
            cluster_tasks_dir=config.cluster_tasks_dir,
        )

    def reconcile(self, key: ObjectKey) -> Optional[Catalog]:
        """Run one sync pass for a Catalog.

        Parameters
        ----------
        key : ObjectKey
            Identity of the Catalog that changed.

        Returns
        -------
        Optional[Catalog]
            The submitted object, or None if nothing was written (object
            deleted, mirror unchanged since a successful sync, or the
            update was rejected).

        Raises
        ------
        StoreError
            If the Catalog cannot be read for a reason other than absence.
        """
        try:
            catalog = self._store.get(Catalog, key)
        except NotFoundError:
            logger.info("Catalog %s not found, nothing to reconcile", key)
            return None

        spec = catalog.spec
        generation = catalog.metadata.generation
        try:
            mirror = self._mirrors.fetch(spec.url, spec.revision)
            head = mirror.head()
        except FetchError as e:
            logger.error("Fetch failed for catalog %s: %s", key, e)
            return self._submit(self._fetch_failed(catalog, str(e)))

        previous = catalog.status
        if (previous.condition.is_success
                and previous.last_sync.revision == head
                and previous.observed_generation == generation):
            logger.debug("Catalog %s already synced at %s", key, head)
            return None

        updated = catalog.copy()
        updated.status = self.compose_status(mirror.path, spec.context_path, head)
        updated.status.observed_generation = generation
        return self._submit(updated)

    def compose_status(
        self,
        mirror_root: Path,
        context_path: str,
        head: str,
    ) -> CatalogStatus:
        """Scan a mirror and build a complete status for it.

        Each kind is scanned independently; a kind that fails to scan
        turns the condition into an error while the other kind's
        inventory is still published.
        """
        status = CatalogStatus(last_sync=SyncInfo(self._clock(), head))

        context = PurePosixPath(context_path.strip().strip('/') or '.')
        if context.is_absolute() or '..' in context.parts:
            status.condition = Condition.error(
                f"invalid contextPath {context_path!r}"
            )
            return status
        root = Path(mirror_root) / context

        failures: List[str] = []
        try:
            status.tasks = scan(
                root, self._tasks_dir, get_validator(ResourceKind.TASK)
            )
        except ScanError as e:
            logger.error("Task scan failed in %s: %s", root, e)
            failures.append(str(e))
        try:
            status.cluster_tasks = scan(
                root, self._cluster_tasks_dir,
                get_validator(ResourceKind.CLUSTER_TASK),
            )
        except ScanError as e:
            logger.error("ClusterTask scan failed in %s: %s", root, e)
            failures.append(str(e))

        if failures:
            status.condition = Condition.error("; ".join(failures))
        else:
            status.condition = Condition.success()
        return status

    def _fetch_failed(self, catalog: Catalog, details: str) -> Catalog:
        # Inventory and last synced revision are carried over untouched.
        updated = catalog.copy()
        previous = updated.status
        updated.status = CatalogStatus(
            last_sync=SyncInfo(self._clock(), previous.last_sync.revision),
            condition=Condition.error(details),
            tasks=previous.tasks,
            cluster_tasks=previous.cluster_tasks,
            observed_generation=catalog.metadata.generation,
        )
        return updated

    def _submit(self, updated: Catalog) -> Optional[Catalog]:
        key = updated.key
        try:
            self._store.update(updated)
        except ConflictError as e:
            logger.warning("Discarding stale status for catalog %s: %s", key, e)
            return None
        except StoreError as e:
            logger.error("Error updating status of catalog %s: %s", key, e)
            return None

        logger.info(
            "Catalog %s synced at %s: %s (%d tasks, %d clustertasks)",
            key, updated.status.last_sync.revision or '<none>',
            updated.status.condition.code.value,
            len(updated.status.tasks), len(updated.status.cluster_tasks),
        )
        return updated
