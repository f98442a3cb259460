# -*- coding: utf-8 -*-
"""
taskcatalog - Git-backed task catalog synchronization.

Mirrors catalog repositories declared as Catalog objects, publishes the
versioned task inventory they contain, and resolves CatalogInstall
requests against that inventory.

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

__version__ = "0.1.0"
