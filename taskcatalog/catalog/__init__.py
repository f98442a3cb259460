# -*- coding: utf-8 -*-
"""
Catalog Module - Declarative objects and their reconcilers.

Provides the Catalog and CatalogInstall models, a SQLite-backed object
store with optimistic concurrency, the catalog sync reconciler, the
install resolver and a thread pool that dispatches reconcile passes on
store change notifications.

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
