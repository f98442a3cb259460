# -*- coding: utf-8 -*-
"""
taskcatalog CLI - Headless catalog synchronization.

Usage::

    python -m taskcatalog apply catalogs.yaml
    python -m taskcatalog sync my-catalog
    python -m taskcatalog install my-install -n team-a
    python -m taskcatalog get catalog my-catalog
    python -m taskcatalog run

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

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from taskcatalog.catalog.install import InstallResolver
from taskcatalog.catalog.models import (
    DEFAULT_NAMESPACE, OBJECT_TYPES, Catalog, CatalogInstall, ObjectKey,
    object_from_dict,
)
from taskcatalog.catalog.pool import ReconcilePool, connect
from taskcatalog.catalog.reconciler import CatalogReconciler
from taskcatalog.catalog.store import ObjectStore
from taskcatalog.core.config import SyncConfig, load_config, resolve_store_path
from taskcatalog.core.errors import NotFoundError, StoreError

_KINDS = {kind.lower(): cls for kind, cls in OBJECT_TYPES.items()}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskcatalog",
        description="taskcatalog: sync git task catalogs and resolve installs.",
    )
    parser.add_argument(
        "--store",
        type=Path,
        default=None,
        help="Path to the object store database.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a JSON configuration file.",
    )
    parser.add_argument(
        "-n", "--namespace",
        default=DEFAULT_NAMESPACE,
        help="Namespace of the objects to act on.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    apply_p = sub.add_parser("apply", help="Create or update objects from YAML.")
    apply_p.add_argument("file", type=Path, help="Multi-document YAML file.")

    sync_p = sub.add_parser("sync", help="Run one sync pass for a Catalog.")
    sync_p.add_argument("name")

    install_p = sub.add_parser(
        "install", help="Resolve one CatalogInstall against its catalog."
    )
    install_p.add_argument("name")

    get_p = sub.add_parser("get", help="Print a stored object as YAML.")
    get_p.add_argument("kind", choices=sorted(_KINDS))
    get_p.add_argument("name")

    sub.add_parser(
        "run",
        help="Reconcile every stored object until the work queue drains.",
    )
    return parser


def _print_object(obj) -> None:
    print(yaml.safe_dump(obj.to_dict(), sort_keys=False), end="")


def _apply(store: ObjectStore, path: Path, namespace: str) -> int:
    with open(path, 'r', encoding='utf-8') as f:
        documents = [d for d in yaml.safe_load_all(f) if d]

    for doc in documents:
        doc.setdefault('metadata', {}).setdefault('namespace', namespace)
        obj = object_from_dict(doc)
        kind = obj.KIND.lower()
        try:
            current = store.get(type(obj), obj.key)
        except NotFoundError:
            store.create(obj)
            print(f"{kind}/{obj.metadata.name} created")
            continue
        updated = current.copy()
        updated.spec = obj.spec
        store.update(updated)
        print(f"{kind}/{obj.metadata.name} configured")
    return 0


def _run(store: ObjectStore, config: SyncConfig) -> int:
    pool = ReconcilePool(max_workers=config.max_workers)
    pool.register(
        Catalog.KIND, CatalogReconciler.from_config(store, config).reconcile
    )
    pool.register(CatalogInstall.KIND, InstallResolver(store).reconcile)
    connect(store, pool)

    try:
        for cls in (Catalog, CatalogInstall):
            for obj in store.list(cls):
                pool.enqueue(cls.KIND, obj.key)
        pool.join()
    finally:
        pool.shutdown(wait=True)

    failed = False
    for cls in (Catalog, CatalogInstall):
        for obj in store.list(cls):
            condition = obj.status.condition
            line = f"{cls.KIND.lower()}/{obj.key}: {condition.code.value}"
            if condition.details:
                line += f" ({condition.details})"
            print(line)
            failed = failed or condition.is_error
    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args.config)
    store_path = args.store or resolve_store_path(config)

    with ObjectStore(db_path=store_path) as store:
        try:
            if args.command == "run":
                return _run(store, config)
            if args.command == "apply":
                if not args.file.exists():
                    print(f"Error: file not found: {args.file}", file=sys.stderr)
                    return 1
                return _apply(store, args.file, args.namespace)

            key = ObjectKey(args.namespace, args.name)
            if args.command == "sync":
                CatalogReconciler.from_config(store, config).reconcile(key)
                cls = _KINDS["catalog"]
            elif args.command == "install":
                InstallResolver(store).reconcile(key)
                cls = _KINDS["cataloginstall"]
            else:
                cls = _KINDS[args.kind]

            obj = store.get(cls, key)
        except (StoreError, ValueError, KeyError, yaml.YAMLError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    _print_object(obj)
    if args.command in ("sync", "install") and obj.status.condition.is_error:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
