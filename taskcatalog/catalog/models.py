# -*- coding: utf-8 -*-
"""
Catalog Models - Data models for Catalog and CatalogInstall objects.

Defines the declarative objects exchanged with the object store, their
specs and statuses, and the tri-state sync condition. Objects are
serialized to camelCase documents; statuses are always replaced whole.

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
import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

API_VERSION = "catalog.tekton.dev/v1alpha1"
DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True, order=True)
class ObjectKey:
    """Namespaced identity of a stored object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class ObjectMeta:
    """Object metadata.

    Parameters
    ----------
    name : str
        Object name, unique per kind and namespace.
    namespace : str
        Object namespace.
    resource_version : int
        Optimistic-concurrency token assigned by the store. 0 means the
        object has not been stored yet.
    generation : int
        Spec revision counter assigned by the store. Bumped only when the
        spec changes, never by status writes.
    """

    name: str
    namespace: str = DEFAULT_NAMESPACE
    resource_version: int = 0
    generation: int = 0

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'namespace': self.namespace,
            'resourceVersion': str(self.resource_version),
            'generation': self.generation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ObjectMeta':
        return cls(
            name=data['name'],
            namespace=data.get('namespace') or DEFAULT_NAMESPACE,
            resource_version=int(data.get('resourceVersion') or 0),
            generation=int(data.get('generation') or 0),
        )


class ConditionCode(Enum):
    """Outcome of the most recent sync or resolution attempt."""

    UNKNOWN = "unknown"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Condition:
    """Tri-state condition; only the error variant carries details.

    Use :meth:`unknown`, :meth:`success` and :meth:`error` rather than
    the constructor.
    """

    code: ConditionCode = ConditionCode.UNKNOWN
    details: str = ""

    def __post_init__(self) -> None:
        if self.details and self.code is not ConditionCode.ERROR:
            raise ValueError(
                f"only error conditions carry details, got {self.code.value!r}"
            )

    @classmethod
    def unknown(cls) -> 'Condition':
        return cls(ConditionCode.UNKNOWN)

    @classmethod
    def success(cls) -> 'Condition':
        return cls(ConditionCode.SUCCESS)

    @classmethod
    def error(cls, details: str) -> 'Condition':
        return cls(ConditionCode.ERROR, details)

    @property
    def is_success(self) -> bool:
        return self.code is ConditionCode.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.code is ConditionCode.ERROR

    def to_dict(self) -> dict:
        d: dict = {'code': self.code.value}
        if self.details:
            d['details'] = self.details
        return d

    @classmethod
    def from_dict(cls, data: Union[dict, str, None]) -> 'Condition':
        # Older documents store the bare code string.
        if not data:
            return cls.unknown()
        if isinstance(data, str):
            return cls(ConditionCode(data))
        code = ConditionCode(data.get('code', 'unknown'))
        details = data.get('details', '') if code is ConditionCode.ERROR else ''
        return cls(code, details)


def _inventory_to_list(inventory: Dict[str, List[str]]) -> List[dict]:
    return [
        {'name': name, 'versions': list(versions)}
        for name, versions in sorted(inventory.items())
    ]


def _inventory_from_list(items: Optional[List[dict]]) -> Dict[str, List[str]]:
    return {
        item['name']: list(item.get('versions') or [])
        for item in items or []
    }


@dataclass
class SyncInfo:
    """When a status was computed and the mirror head it was computed at."""

    time: Optional[datetime] = None
    revision: str = ""

    def to_dict(self) -> dict:
        d: dict = {}
        if self.time is not None:
            d['time'] = self.time.isoformat()
        if self.revision:
            d['revision'] = self.revision
        return d

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'SyncInfo':
        data = data or {}
        time = data.get('time')
        return cls(
            time=datetime.fromisoformat(time) if time else None,
            revision=data.get('revision', ''),
        )


@dataclass
class CatalogSpec:
    """Desired state of a Catalog.

    Parameters
    ----------
    url : str
        Repository location.
    revision : str
        Branch, tag or commit. Empty selects the default branch.
    context_path : str
        Subdirectory of the repository to scan from.
    """

    url: str
    revision: str = ""
    context_path: str = ""

    def to_dict(self) -> dict:
        d: dict = {'url': self.url}
        if self.revision:
            d['revision'] = self.revision
        if self.context_path:
            d['contextPath'] = self.context_path
        return d

    @classmethod
    def from_dict(cls, data: dict) -> 'CatalogSpec':
        return cls(
            url=data.get('url', ''),
            revision=data.get('revision', ''),
            context_path=data.get('contextPath', ''),
        )


@dataclass
class CatalogStatus:
    """Observed state of a Catalog, owned by the sync reconciler.

    ``observed_generation`` is the spec generation the status was
    computed from.
    """

    last_sync: SyncInfo = field(default_factory=SyncInfo)
    condition: Condition = field(default_factory=Condition.unknown)
    tasks: Dict[str, List[str]] = field(default_factory=dict)
    cluster_tasks: Dict[str, List[str]] = field(default_factory=dict)
    observed_generation: int = 0

    def to_dict(self) -> dict:
        return {
            'lastSync': self.last_sync.to_dict(),
            'condition': self.condition.to_dict(),
            'tasks': _inventory_to_list(self.tasks),
            'clustertasks': _inventory_to_list(self.cluster_tasks),
            'observedGeneration': self.observed_generation,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'CatalogStatus':
        data = data or {}
        return cls(
            last_sync=SyncInfo.from_dict(data.get('lastSync')),
            condition=Condition.from_dict(data.get('condition')),
            tasks=_inventory_from_list(data.get('tasks')),
            cluster_tasks=_inventory_from_list(data.get('clustertasks')),
            observed_generation=int(data.get('observedGeneration') or 0),
        )


class StoredObject:
    """Common behaviour of objects kept in the object store."""

    KIND = ""

    metadata: ObjectMeta

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.metadata.namespace, self.metadata.name)

    def copy(self):
        """Deep copy, for copy-then-modify-then-submit updates."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        raise NotImplementedError

    def _envelope(self, spec: dict, status: dict) -> dict:
        return {
            'apiVersion': API_VERSION,
            'kind': self.KIND,
            'metadata': self.metadata.to_dict(),
            'spec': spec,
            'status': status,
        }


@dataclass
class Catalog(StoredObject):
    """A declared reference to a git repository of versioned tasks."""

    KIND = "Catalog"

    metadata: ObjectMeta
    spec: CatalogSpec
    status: CatalogStatus = field(default_factory=CatalogStatus)

    def to_dict(self) -> dict:
        return self._envelope(self.spec.to_dict(), self.status.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> 'Catalog':
        return cls(
            metadata=ObjectMeta.from_dict(data['metadata']),
            spec=CatalogSpec.from_dict(data.get('spec') or {}),
            status=CatalogStatus.from_dict(data.get('status')),
        )


@dataclass
class TaskResolution:
    """Resolution result for one requested task.

    Parameters
    ----------
    name : str
        Requested task name.
    kind : str
        'task' or 'clustertask' when found, empty otherwise.
    versions : List[str]
        Available versions; empty when unresolved.
    """

    name: str
    kind: str = ""
    versions: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return bool(self.versions)

    def to_dict(self) -> dict:
        d: dict = {'name': self.name, 'resolved': self.resolved}
        if self.kind:
            d['kind'] = self.kind
        if self.versions:
            d['versions'] = list(self.versions)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> 'TaskResolution':
        return cls(
            name=data['name'],
            kind=data.get('kind', ''),
            versions=list(data.get('versions') or []),
        )


@dataclass
class CatalogInstallSpec:
    """Desired state of a CatalogInstall.

    Parameters
    ----------
    catalog_ref : str
        Name of a Catalog in the same namespace.
    tasks : List[str]
        Task names to resolve.
    """

    catalog_ref: str
    tasks: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'catalogRef': self.catalog_ref,
            'tasks': [{'name': t} for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CatalogInstallSpec':
        tasks = []
        for item in data.get('tasks') or []:
            tasks.append(item['name'] if isinstance(item, dict) else str(item))
        return cls(catalog_ref=data.get('catalogRef', ''), tasks=tasks)


@dataclass
class CatalogInstallStatus:
    """Observed state of a CatalogInstall, owned by the install resolver.

    ``observed_generation`` is the spec generation the status was
    computed from.
    """

    condition: Condition = field(default_factory=Condition.unknown)
    tasks: List[TaskResolution] = field(default_factory=list)
    observed_generation: int = 0

    def to_dict(self) -> dict:
        return {
            'condition': self.condition.to_dict(),
            'tasks': [t.to_dict() for t in self.tasks],
            'observedGeneration': self.observed_generation,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'CatalogInstallStatus':
        data = data or {}
        return cls(
            condition=Condition.from_dict(data.get('condition')),
            tasks=[TaskResolution.from_dict(t) for t in data.get('tasks') or []],
            observed_generation=int(data.get('observedGeneration') or 0),
        )


@dataclass
class CatalogInstall(StoredObject):
    """A request to resolve a subset of a catalog's tasks."""

    KIND = "CatalogInstall"

    metadata: ObjectMeta
    spec: CatalogInstallSpec
    status: CatalogInstallStatus = field(default_factory=CatalogInstallStatus)

    def to_dict(self) -> dict:
        return self._envelope(self.spec.to_dict(), self.status.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> 'CatalogInstall':
        return cls(
            metadata=ObjectMeta.from_dict(data['metadata']),
            spec=CatalogInstallSpec.from_dict(data.get('spec') or {}),
            status=CatalogInstallStatus.from_dict(data.get('status')),
        )


OBJECT_TYPES: Dict[str, Type[Any]] = {
    Catalog.KIND: Catalog,
    CatalogInstall.KIND: CatalogInstall,
}


def object_from_dict(data: dict) -> Any:
    """Deserialize a document into the model class named by its kind.

    Raises
    ------
    ValueError
        If the kind is not a known object type.
    """
    kind = data.get('kind')
    if kind not in OBJECT_TYPES:
        raise ValueError(f"unknown object kind {kind!r}")
    return OBJECT_TYPES[kind].from_dict(data)
