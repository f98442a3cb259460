# -*- coding: utf-8 -*-
"""
Resource Scanner - Discover versioned manifests in a catalog mirror.

Resources are laid out as::

    <root>/<kind_dir>/<name>/<version>/<name>.yaml

Each first-level directory under ``<kind_dir>`` is a candidate resource
name, and each version directory holding a manifest that passes
validation contributes one version to the inventory.

Dependencies
------------
packaging

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
import glob
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Tuple

# Third-party
from packaging.version import InvalidVersion, Version

# taskcatalog internal
from taskcatalog.core.errors import ScanError, ValidationError

logger = logging.getLogger(__name__)

Inventory = Dict[str, List[str]]


def _version_key(version: str) -> Tuple[int, object, str]:
    # PEP 440 versions first in release order, anything else after, by text.
    try:
        return (0, Version(version), version)
    except InvalidVersion:
        return (1, version, version)


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Deduplicate and order version strings.

    Parameters
    ----------
    versions : Iterable[str]

    Returns
    -------
    List[str]
        Versions in ascending release order. Strings that are not valid
        versions sort after all valid ones, lexicographically.
    """
    return sorted(set(versions), key=_version_key)


def scan(
    root: Path,
    kind_dir: str,
    validate: Callable[[Path], None],
) -> Inventory:
    """Enumerate valid versions of every resource under a kind directory.

    Parameters
    ----------
    root : Path
        Scan root (mirror working copy or a context path inside it).
    kind_dir : str
        Resource-kind directory name, e.g. 'tasks'.
    validate : Callable[[Path], None]
        Manifest validator; raises ValidationError for invalid manifests.

    Returns
    -------
    Inventory
        Mapping of resource name to sorted versions. Resources with no
        valid version are omitted. A missing kind directory yields an
        empty mapping.

    Raises
    ------
    ScanError
        If the kind directory exists but cannot be enumerated.
    """
    kind_path = Path(root) / kind_dir
    logger.info("Looking for %s in %s", kind_dir, root)

    try:
        entries = sorted(kind_path.iterdir())
    except FileNotFoundError:
        logger.info("No %s directory in %s", kind_dir, root)
        return {}
    except OSError as e:
        raise ScanError(kind_dir, e) from e

    inventory: Inventory = {}
    for entry in entries:
        try:
            if not entry.is_dir():
                continue
            versions = _resource_versions(entry, validate)
        except OSError as e:
            raise ScanError(kind_dir, e) from e
        if versions:
            inventory[entry.name] = versions

    logger.info("Found %d resources in %s", len(inventory), kind_dir)
    return inventory


def _resource_versions(
    resource_dir: Path,
    validate: Callable[[Path], None],
) -> List[str]:
    name = resource_dir.name
    pattern = f"*/{glob.escape(name)}.yaml"
    versions: List[str] = []
    for manifest in sorted(resource_dir.glob(pattern)):
        logger.debug("Found manifest %s", manifest)
        try:
            validate(manifest)
        except ValidationError as e:
            logger.warning("Validation failed, skipping %s: %s", manifest, e)
            continue
        versions.append(manifest.parent.name)
    return sort_versions(versions)
