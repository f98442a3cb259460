# -*- coding: utf-8 -*-
"""
Install Resolver - Resolve CatalogInstall requests against a catalog.

Looks up the referenced Catalog and checks each requested task name
against its published inventory, tasks first and then cluster tasks.
The outcome is written back as the CatalogInstall status. Applying the
resolved resources into a runtime is not done here.

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
from typing import List, Optional

# taskcatalog internal
from taskcatalog.catalog.models import (
    Catalog, CatalogInstall, CatalogInstallStatus, CatalogStatus, Condition,
    ObjectKey, TaskResolution,
)
from taskcatalog.catalog.store import ObjectStore
from taskcatalog.core.errors import (
    ConflictError, NotFoundError, ResolutionError, StoreError,
)

logger = logging.getLogger(__name__)


def resolve_tasks(
    inventory: CatalogStatus,
    names: List[str],
) -> List[TaskResolution]:
    """Resolve task names against a catalog's published inventory.

    Parameters
    ----------
    inventory : CatalogStatus
        Status of the referenced catalog.
    names : List[str]
        Requested task names, in request order.

    Returns
    -------
    List[TaskResolution]
        One result per requested name. Names with no versions in either
        inventory are unresolved.
    """
    results: List[TaskResolution] = []
    for name in names:
        if inventory.tasks.get(name):
            results.append(
                TaskResolution(name, 'task', list(inventory.tasks[name]))
            )
        elif inventory.cluster_tasks.get(name):
            results.append(TaskResolution(
                name, 'clustertask', list(inventory.cluster_tasks[name])
            ))
        else:
            results.append(TaskResolution(name))
    return results


class InstallResolver:
    """Reconciles CatalogInstall objects.

    Parameters
    ----------
    store : ObjectStore
        Declarative object store holding Catalog and CatalogInstall
        objects.
    """

    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    def reconcile(self, key: ObjectKey) -> Optional[CatalogInstall]:
        """Run one resolution pass for a CatalogInstall.

        Parameters
        ----------
        key : ObjectKey
            Identity of the CatalogInstall that changed.

        Returns
        -------
        Optional[CatalogInstall]
            The submitted object, or None if nothing was written.

        Raises
        ------
        StoreError
            If the CatalogInstall cannot be read for a reason other
            than absence.
        """
        try:
            install = self._store.get(CatalogInstall, key)
        except NotFoundError:
            logger.info("CatalogInstall %s not found, nothing to reconcile", key)
            return None

        try:
            status = self.resolve(install)
        except ResolutionError as e:
            logger.error("Resolution failed for %s: %s", key, e)
            status = CatalogInstallStatus(condition=Condition.error(str(e)))
        status.observed_generation = install.metadata.generation

        if status == install.status:
            logger.debug("CatalogInstall %s status unchanged", key)
            return None

        updated = install.copy()
        updated.status = status
        try:
            self._store.update(updated)
        except ConflictError as e:
            logger.warning("Discarding stale status for install %s: %s", key, e)
            return None
        except StoreError as e:
            logger.error("Error setting install %s status: %s", key, e)
            return None

        logger.info(
            "CatalogInstall %s: %s", key, status.condition.code.value
        )
        return updated

    def resolve(self, install: CatalogInstall) -> CatalogInstallStatus:
        """Compose the status for an install request.

        Raises
        ------
        ResolutionError
            If the referenced catalog cannot be read.
        """
        ref = install.spec.catalog_ref
        names = install.spec.tasks
        logger.info("Resolving tasks %s from catalog %r", names, ref)
        if not ref:
            raise ResolutionError("catalogRef is empty")
        catalog_key = ObjectKey(install.metadata.namespace, ref)
        try:
            catalog = self._store.get(Catalog, catalog_key)
        except NotFoundError as e:
            raise ResolutionError(f"catalog {ref!r} not found") from e
        except StoreError as e:
            raise ResolutionError(f"reading catalog {ref!r} failed: {e}") from e

        if not names:
            return CatalogInstallStatus(condition=Condition.success())

        results = resolve_tasks(catalog.status, names)
        unresolved = [r.name for r in results if not r.resolved]
        if unresolved:
            condition = Condition.error(
                f"tasks not found in catalog {ref!r}: {', '.join(unresolved)}"
            )
        else:
            condition = Condition.success()
        return CatalogInstallStatus(condition=condition, tasks=results)
