# -*- coding: utf-8 -*-
"""
ReconcilePool - Thread pool dispatching reconciliation passes.

Runs one pass per object-change notification on a managed thread pool.
Passes for different objects run concurrently; passes for the same
object never overlap. A notification that arrives while the object's
pass is running is coalesced into a single follow-up pass.

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
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

# taskcatalog internal
from taskcatalog.catalog.models import (
    OBJECT_TYPES, Catalog, CatalogInstall, ObjectKey,
)
from taskcatalog.catalog.store import ObjectStore
from taskcatalog.core.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)

ReconcileFn = Callable[[ObjectKey], Any]
_Item = Tuple[str, ObjectKey]


class ReconcilePool:
    """Manages a pool of worker threads running reconcile passes.

    Parameters
    ----------
    max_workers : int
        Maximum number of concurrent passes. Default 4.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self._reconcilers: Dict[str, ReconcileFn] = {}
        self._lock = threading.Lock()
        self._running: Set[_Item] = set()
        self._pending: Set[_Item] = set()
        self._futures: List[Future] = []

    def register(self, kind: str, reconcile: ReconcileFn) -> None:
        """Route notifications for a kind to a reconcile callable.

        Parameters
        ----------
        kind : str
            Object kind, e.g. 'Catalog'.
        reconcile : ReconcileFn
            Called with the ObjectKey of the changed object.
        """
        self._reconcilers[kind] = reconcile

    def enqueue(self, kind: str, key: ObjectKey) -> Optional[Future]:
        """Schedule a pass for an object.

        Returns
        -------
        Optional[Future]
            Future of the newly started pass, or None if the notification
            was coalesced into a running pass or no reconciler handles
            the kind.
        """
        if kind not in self._reconcilers:
            logger.debug("No reconciler registered for %s", kind)
            return None

        item = (kind, key)
        with self._lock:
            if item in self._running:
                self._pending.add(item)
                return None
            self._running.add(item)
            future = self._executor.submit(self._run, item)
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(future)
        return future

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait until every scheduled pass has finished.

        Returns
        -------
        bool
            True if the pool drained, False on timeout.
        """
        while True:
            with self._lock:
                futures = [f for f in self._futures if not f.done()]
                if not futures and not self._running:
                    return True
            _, not_done = wait(futures, timeout=timeout)
            if not_done:
                return False

    def shutdown(self, wait: bool = True) -> None:
        """Shut down the thread pool.

        Parameters
        ----------
        wait : bool
            If True, wait for running passes to complete.
        """
        self._executor.shutdown(wait=wait)

    def _run(self, item: _Item) -> None:
        kind, key = item
        reconcile = self._reconcilers[kind]
        while True:
            try:
                reconcile(key)
            except Exception:
                logger.exception("Reconcile of %s %s failed", kind, key)
            with self._lock:
                if item in self._pending:
                    self._pending.discard(item)
                    continue
                self._running.discard(item)
                return


def _needs_pass(store: ObjectStore, kind: str, key: ObjectKey) -> bool:
    """Whether a change notification should schedule the object itself.

    Writes that leave the spec generation already observed by the status
    are the reconcilers' own status updates.
    """
    cls = OBJECT_TYPES.get(kind)
    if cls is None:
        return True
    try:
        obj = store.get(cls, key)
    except NotFoundError:
        return True
    except StoreError as e:
        logger.warning("Could not read %s %s after change: %s", kind, key, e)
        return True
    return obj.status.observed_generation != obj.metadata.generation


def connect(store: ObjectStore, pool: ReconcilePool) -> None:
    """Feed store change notifications into a pool.

    An object is scheduled when its spec generation has not been observed
    yet, or when it was deleted. Status-only writes do not schedule the
    object again, so a failed pass is retried on the next spec change.

    Any Catalog change also schedules every CatalogInstall in the same
    namespace that references it, since their resolution depends on the
    catalog's inventory.
    """

    def on_change(kind: str, key: ObjectKey) -> None:
        if _needs_pass(store, kind, key):
            pool.enqueue(kind, key)
        else:
            logger.debug("Ignoring status update of %s %s", kind, key)
        if kind != Catalog.KIND:
            return
        for install in store.list(CatalogInstall, key.namespace):
            if install.spec.catalog_ref == key.name:
                pool.enqueue(CatalogInstall.KIND, install.key)

    store.subscribe(on_change)
