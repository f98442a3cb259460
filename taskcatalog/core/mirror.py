# -*- coding: utf-8 -*-
"""
Git Mirror - Local working copies of catalog repositories.

Maintains one working copy per (URL, revision) pair under a cache root.
The first fetch for a key initializes a repository, shallow-fetches the
requested revision and hard-resets onto it. Later fetches for the same
key reuse the directory as-is unless a refresh is forced.

Mirrors are never deleted here. Fetches addressing the same key are
serialized within one process by a per-path lock; there is no
cross-process coordination.

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
import os
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

# taskcatalog internal
from taskcatalog.core.config import SyncConfig
from taskcatalog.core.errors import FetchError, TaskCatalogError


class GitCommandError(TaskCatalogError):
    """A git invocation exited non-zero or could not be started."""

    def __init__(self, args: List[str], returncode: int, output: str) -> None:
        self.command = list(args)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"git {' '.join(args)} exited with status {returncode}"
        )


class GitRunner:
    """Runs git subcommands in an explicit working directory.

    Parameters
    ----------
    executable : str
        Git binary. Default 'git'.
    """

    def __init__(self, executable: str = "git") -> None:
        self._executable = executable

    def __call__(self, args: List[str], cwd: Path) -> str:
        """Run ``git <args>`` in ``cwd`` and return combined output.

        Raises
        ------
        GitCommandError
            If git exits non-zero or cannot be executed.
        """
        env = dict(os.environ)
        # Never block a pass on an interactive credential prompt.
        env['GIT_TERMINAL_PROMPT'] = '0'
        cmd = [self._executable] + list(args)
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise GitCommandError(args, -1, str(e)) from e

        if result.returncode != 0:
            logger.error(
                "git error (args=%s, cwd=%s): %s",
                args, cwd, result.stdout.strip(),
            )
            raise GitCommandError(args, result.returncode, result.stdout)
        return result.stdout


GitTransport = Callable[[List[str], Path], str]


def split_url(url: str) -> Tuple[str, str]:
    """Split a repository URL into (host, path).

    Handles ``scheme://[user@]host[:port]/path`` as well as scp-like
    ``user@host:path`` locations.

    Raises
    ------
    ValueError
        If the URL has no usable path or contains ``..`` segments.
    """
    parts = urlsplit(url)
    if parts.scheme and parts.netloc or parts.scheme == 'file':
        host = parts.netloc.rpartition('@')[2]
        path = parts.path
    elif ':' in url and not parts.scheme:
        host, _, path = url.partition(':')
        host = host.rpartition('@')[2]
    else:
        host, path = '', url

    segments = [s for s in path.split('/') if s]
    if not segments:
        raise ValueError(f"repository URL has no path: {url!r}")
    if '..' in segments:
        raise ValueError(f"repository URL must not contain '..': {url!r}")
    return host, '/'.join(segments)


class Mirror:
    """Handle on one local working copy.

    Parameters
    ----------
    path : Path
        Working copy directory.
    url : str
        Remote repository location.
    revision : str
        Requested (possibly symbolic) revision.
    runner : GitTransport
        Git transport used to resolve the head.
    """

    def __init__(
        self,
        path: Path,
        url: str,
        revision: str,
        runner: GitTransport,
    ) -> None:
        self.path = Path(path)
        self.url = url
        self.revision = revision
        self._runner = runner
        self._head: Optional[str] = None

    def head(self) -> str:
        """Commit identifier of the working tree, cached per handle.

        Raises
        ------
        FetchError
            If the head cannot be resolved.
        """
        if self._head is None:
            try:
                output = self._runner(['rev-parse', 'HEAD'], self.path)
            except GitCommandError as e:
                raise FetchError(
                    self.url, self.revision, cause=e, output=e.output
                ) from e
            self._head = output.strip()
        return self._head

    def __repr__(self) -> str:
        return (
            f"Mirror(url={self.url!r}, revision={self.revision!r}, "
            f"path={str(self.path)!r})"
        )


class MirrorCache:
    """Keyed store of mirrors under a cache root.

    Parameters
    ----------
    cache_root : Path
        Directory under which mirrors are created.
    runner : Optional[GitTransport]
        Git transport. Defaults to :class:`GitRunner`.
    depth : int
        Depth of the shallow fetch. Default 1.
    ssl_verify : bool
        Value for ``http.sslVerify`` in new mirrors.
    default_revision : str
        Revision used when none is requested. Default 'HEAD'.
    refetch_existing : bool
        If True, every fetch refreshes an existing mirror.
    """

    def __init__(
        self,
        cache_root: Path,
        runner: Optional[GitTransport] = None,
        depth: int = 1,
        ssl_verify: bool = True,
        default_revision: str = "HEAD",
        refetch_existing: bool = False,
    ) -> None:
        self.cache_root = Path(cache_root)
        self._runner: GitTransport = runner or GitRunner()
        self._depth = depth
        self._ssl_verify = ssl_verify
        self._default_revision = default_revision
        self._refetch_existing = refetch_existing
        self._locks: Dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        runner: Optional[GitTransport] = None,
    ) -> 'MirrorCache':
        """Build a cache from a :class:`SyncConfig`."""
        return cls(
            cache_root=config.cache_root,
            runner=runner or GitRunner(config.git_executable),
            depth=config.fetch_depth,
            ssl_verify=config.ssl_verify,
            default_revision=config.default_revision,
            refetch_existing=config.refetch_existing,
        )

    def normalize(self, url: str, revision: str = "") -> Tuple[str, str]:
        """Trim whitespace and apply the default revision."""
        url = (url or "").strip()
        revision = (revision or "").strip() or self._default_revision
        return url, revision

    def clone_path(self, url: str, revision: str = "") -> Path:
        """Deterministic mirror location for a URL and revision.

        Layout is ``<cache_root>/<host>/<repo path>@<revision>``.

        Raises
        ------
        ValueError
            If the URL or revision cannot be mapped to a path.
        """
        url, revision = self.normalize(url, revision)
        if not url:
            raise ValueError("repository URL is empty")
        if '..' in revision.split('/'):
            raise ValueError(f"revision must not contain '..': {revision!r}")
        host, path = split_url(url)
        return self.cache_root / host / f"{path}@{revision}"

    def fetch(self, url: str, revision: str = "", force: bool = False) -> Mirror:
        """Fetch revision of url into its mirror, or reuse the mirror.

        Parameters
        ----------
        url : str
            Repository location.
        revision : str
            Branch, tag or commit. Empty selects the default revision.
        force : bool
            Refresh an existing mirror from the remote.

        Returns
        -------
        Mirror
            Handle on the working copy.

        Raises
        ------
        FetchError
            On invalid URLs, filesystem errors and git failures. A mirror
            that failed to initialize is removed.
        """
        url, revision = self.normalize(url, revision)
        try:
            path = self.clone_path(url, revision)
        except ValueError as e:
            raise FetchError(url, revision, cause=e) from e

        with self._lock_for(path):
            if path.exists():
                if not path.is_dir():
                    raise FetchError(
                        url, revision,
                        cause=NotADirectoryError(f"{path} is not a directory"),
                    )
                if force or self._refetch_existing:
                    self._refresh(path, url, revision)
                else:
                    logger.debug("Reusing mirror at %s", path)
            else:
                self._create(path, url, revision)

        return Mirror(path, url, revision, self._runner)

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.Lock()
                self._locks[path] = lock
            return lock

    def _create(self, path: Path, url: str, revision: str) -> None:
        logger.info("Cloning %s@%s to %s", url, revision, path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._runner(['init', str(path)], path.parent)
            self._runner(['remote', 'add', 'origin', url], path)
            self._runner(
                ['config', 'http.sslVerify', str(self._ssl_verify).lower()],
                path,
            )
            self._fetch_revision(path, revision)
        except GitCommandError as e:
            shutil.rmtree(path, ignore_errors=True)
            raise FetchError(url, revision, cause=e, output=e.output) from e
        except OSError as e:
            shutil.rmtree(path, ignore_errors=True)
            raise FetchError(url, revision, cause=e) from e
        logger.info("Successfully cloned %s@%s", url, revision)

    def _refresh(self, path: Path, url: str, revision: str) -> None:
        logger.info("Refreshing mirror %s@%s at %s", url, revision, path)
        try:
            self._fetch_revision(path, revision)
        except GitCommandError as e:
            raise FetchError(url, revision, cause=e, output=e.output) from e

    def _fetch_revision(self, path: Path, revision: str) -> None:
        """Shallow fetch + hard reset, falling back to full fetch + checkout.

        Git servers disagree on which revision specifiers a shallow fetch
        accepts, so a rejected shallow fetch is retried in full.
        """
        try:
            self._runner(
                ['fetch', '--recurse-submodules=yes',
                 f'--depth={self._depth}', 'origin', revision],
                path,
            )
        except GitCommandError as e:
            logger.info(
                "Shallow fetch of %s failed, falling back to full fetch: %s",
                revision, e,
            )
            try:
                self._runner(
                    ['fetch', '--recurse-submodules=yes', '--tags', 'origin'],
                    path,
                )
            except GitCommandError as full_err:
                logger.warning("Full fetch of origin failed: %s", full_err)
            self._runner(
                ['checkout', '--detach', self._checkout_target(path, revision)],
                path,
            )
            return

        self._runner(['reset', '--hard', 'FETCH_HEAD'], path)

    def _checkout_target(self, path: Path, revision: str) -> str:
        # A local branch left by an earlier checkout would shadow the
        # freshly fetched remote branch of the same name.
        try:
            self._runner(
                ['rev-parse', '--verify', '--quiet',
                 f'refs/remotes/origin/{revision}'],
                path,
            )
        except GitCommandError:
            logger.debug("%s is not a remote branch, checking out as-is", revision)
            return revision
        return f'origin/{revision}'


def fetch(
    url: str,
    revision: str,
    cache_root: Path,
    force: bool = False,
) -> Mirror:
    """Fetch or reuse the mirror of url at revision under cache_root.

    Convenience wrapper around a throwaway :class:`MirrorCache`; use a
    shared cache instance when fetches may run concurrently.
    """
    return MirrorCache(cache_root).fetch(url, revision, force=force)
