# -*- coding: utf-8 -*-
"""
Core Module - Object-store independent synchronization logic.

Contains configuration, the error taxonomy, the git mirror cache, the
resource scanner and the per-kind manifest validators.

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
