# -*- coding: utf-8 -*-
"""
Errors - Exception taxonomy for catalog synchronization and install
resolution.

Fetch and scan errors become a user-visible ``error`` condition on the
Catalog status. Validation errors only ever exclude a single manifest
version from the inventory. Store errors come from the declarative
object store adapter.

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
from typing import Optional


class TaskCatalogError(Exception):
    """Base class for all taskcatalog errors."""


class FetchError(TaskCatalogError):
    """The mirror for a URL and revision could not be fetched.

    Parameters
    ----------
    url : str
        Repository location.
    revision : str
        Requested revision.
    cause : Optional[BaseException]
        Underlying error (git failure, OS error).
    output : str
        Combined git output, if the transport produced any.
    """

    def __init__(
        self,
        url: str,
        revision: str,
        cause: Optional[BaseException] = None,
        output: str = "",
    ) -> None:
        self.url = url
        self.revision = revision
        self.cause = cause
        self.output = output
        message = f"failed to fetch {url}@{revision}"
        if cause is not None:
            message += f": {cause}"
        if output.strip():
            message += f" ({output.strip()})"
        super().__init__(message)


class ScanError(TaskCatalogError):
    """Enumerating a resource-kind directory failed.

    A missing kind directory is not a ScanError.
    """

    def __init__(self, kind_dir: str, cause: BaseException) -> None:
        self.kind_dir = kind_dir
        self.cause = cause
        super().__init__(f"failed to scan {kind_dir}: {cause}")


class ValidationError(TaskCatalogError):
    """A single manifest failed to parse or validate."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class ResolutionError(TaskCatalogError):
    """A CatalogInstall could not be resolved against its catalog."""


class StoreError(TaskCatalogError):
    """The object store rejected or failed an operation."""


class NotFoundError(StoreError):
    """The requested object does not exist."""

    def __init__(self, kind: str, key: object) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class ConflictError(StoreError):
    """An update lost an optimistic-concurrency race."""

    def __init__(self, kind: str, key: object, expected: int, actual: int) -> None:
        self.kind = kind
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{kind} {key} was modified: submitted resource version "
            f"{expected}, current is {actual}"
        )
