# -*- coding: utf-8 -*-
"""
Configuration Module - Configurable defaults for catalog synchronization.

Provides a SyncConfig dataclass with default values for the mirror cache
location, git transport options, resource-kind directory names and
worker counts. Loads from ~/.taskcatalog/config.json if it exists,
otherwise uses sensible defaults.

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
import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".taskcatalog"
_CONFIG_FILE = CONFIG_DIR / "config.json"

STORE_PATH_ENV = "TASKCATALOG_STORE_PATH"


@dataclass
class SyncConfig:
    """Global synchronization configuration with defaults.

    Attributes
    ----------
    cache_root : Path
        Root directory under which mirrors are created.
    default_revision : str
        Revision used when a Catalog does not name one. ``HEAD`` is the
        remote's default branch.
    fetch_depth : int
        Depth of the initial shallow fetch.
    ssl_verify : bool
        Value written to ``http.sslVerify`` in each new mirror.
    git_executable : str
        Git binary to invoke.
    tasks_dir : str
        Directory holding Task manifests, relative to the scan root.
    cluster_tasks_dir : str
        Directory holding ClusterTask manifests.
    refetch_existing : bool
        If True, existing mirrors are refreshed from the remote on every
        pass instead of being reused as-is.
    max_workers : int
        Maximum concurrent reconciliation passes.
    store_path : Optional[str]
        Object store database location. See
        :func:`resolve_store_path`.
    """

    cache_root: Path = field(default_factory=lambda: CONFIG_DIR / "mirrors")
    default_revision: str = "HEAD"
    fetch_depth: int = 1
    ssl_verify: bool = True
    git_executable: str = "git"
    tasks_dir: str = "tasks"
    cluster_tasks_dir: str = "clustertasks"
    refetch_existing: bool = False
    max_workers: int = 4
    store_path: Optional[str] = None

    def __post_init__(self) -> None:
        self.cache_root = Path(self.cache_root).expanduser()

    def save(self, path: Optional[Path] = None) -> None:
        """Save config to JSON file."""
        path = path or _CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        data = asdict(self)
        data['cache_root'] = str(self.cache_root)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)


def load_config(path: Optional[Path] = None) -> SyncConfig:
    """Load configuration from file, or return defaults.

    Parameters
    ----------
    path : Optional[Path]
        Config file path. Defaults to ~/.taskcatalog/config.json.

    Returns
    -------
    SyncConfig
        Loaded or default configuration.
    """
    path = path or _CONFIG_FILE
    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return SyncConfig(**{
                k: v for k, v in data.items()
                if k in SyncConfig.__dataclass_fields__
            })
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to load config from %s: %s", path, e)

    return SyncConfig()


def resolve_store_path(config: Optional[SyncConfig] = None) -> Path:
    """Resolve the object store database path.

    Priority:
    1. ``TASKCATALOG_STORE_PATH`` environment variable
    2. ``store_path`` of the configuration
    3. ``~/.taskcatalog/store.db`` (default)

    Parameters
    ----------
    config : Optional[SyncConfig]
        Configuration to consult. Loaded from the default file if None.

    Returns
    -------
    Path
        Resolved path to the store database file.
    """
    env_path = os.environ.get(STORE_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()

    config = config or load_config()
    if config.store_path:
        return Path(config.store_path).expanduser()
    return CONFIG_DIR / "store.db"
