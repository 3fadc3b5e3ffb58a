"""Branch store: the narrow source-control contract used to land changes.

`DulwichBranchStore` implements it over a local git repository. All git work
is synchronous dulwich calls pushed onto a worker thread.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

import structlog
from dulwich.errors import NotTreeError
from dulwich.index import commit_tree
from dulwich.object_store import iter_tree_contents, tree_lookup_path
from dulwich.objects import Blob, Commit
from dulwich.repo import Repo

from fleet_drift.configuration.common_config import get_app_settings

logger = structlog.get_logger(__name__)

_FILE_MODE = 0o100644


class BranchStore(Protocol):
    async def head(self, branch: str) -> Optional[str]:
        """Commit id at the tip of `branch`, or None when it does not exist."""

    async def read_files(self, commit: str, paths: Iterable[str]) -> dict[str, Optional[str]]:
        """Contents of `paths` at `commit`; None for paths absent there."""

    async def commit(self, parent: str, files: Mapping[str, Optional[str]], message: str) -> str:
        """Create a commit on top of `parent` with `files` written (None deletes)."""

    async def set_branch(self, branch: str, commit: str, expected: Optional[str]) -> bool:
        """Point `branch` at `commit` if it is currently at `expected` (None: must not exist)."""

    async def delete_branch(self, branch: str) -> bool:
        ...


def _ref(branch: str) -> bytes:
    return f"refs/heads/{branch}".encode("utf-8")


class DulwichBranchStore:
    """Branch store over a local (bare or non-bare) git repository."""

    def __init__(self, repo_path: Path, author: Optional[str] = None):
        self._repo = Repo(str(repo_path))
        self._identity = (author or get_app_settings().rebase.COMMIT_AUTHOR).encode("utf-8")

    async def head(self, branch: str) -> Optional[str]:
        return await asyncio.to_thread(self._head, branch)

    async def read_files(self, commit: str, paths: Iterable[str]) -> dict[str, Optional[str]]:
        return await asyncio.to_thread(self._read_files, commit, list(paths))

    async def commit(self, parent: str, files: Mapping[str, Optional[str]], message: str) -> str:
        return await asyncio.to_thread(self._commit, parent, dict(files), message)

    async def set_branch(self, branch: str, commit: str, expected: Optional[str]) -> bool:
        return await asyncio.to_thread(self._set_branch, branch, commit, expected)

    async def delete_branch(self, branch: str) -> bool:
        return await asyncio.to_thread(self._delete_branch, branch)

    def _head(self, branch: str) -> Optional[str]:
        try:
            return self._repo.refs[_ref(branch)].decode("ascii")
        except KeyError:
            return None

    def _tree_of(self, commit: str) -> bytes:
        return self._repo[commit.encode("ascii")].tree

    def _read_files(self, commit: str, paths: list[str]) -> dict[str, Optional[str]]:
        tree_id = self._tree_of(commit)
        out: dict[str, Optional[str]] = {}
        for path in paths:
            try:
                _mode, sha = tree_lookup_path(self._repo.object_store.__getitem__, tree_id, path.encode("utf-8"))
            except (KeyError, NotTreeError):
                out[path] = None
                continue
            out[path] = self._repo.object_store[sha].data.decode("utf-8", errors="replace")
        return out

    def _commit(self, parent: str, files: dict[str, Optional[str]], message: str) -> str:
        store = self._repo.object_store
        entries = {
            entry.path: (entry.sha, entry.mode)
            for entry in iter_tree_contents(store, self._tree_of(parent))
        }
        for path, content in files.items():
            key = path.encode("utf-8")
            if content is None:
                entries.pop(key, None)
                continue
            blob = Blob.from_string(content.encode("utf-8"))
            store.add_object(blob)
            mode = entries.get(key, (None, _FILE_MODE))[1]
            entries[key] = (blob.id, mode)

        tree_id = commit_tree(store, [(p, sha, mode) for p, (sha, mode) in sorted(entries.items())])

        now = int(time.time())
        c = Commit()
        c.tree = tree_id
        c.parents = [parent.encode("ascii")]
        c.author = c.committer = self._identity
        c.author_time = c.commit_time = now
        c.author_timezone = c.commit_timezone = 0
        c.encoding = b"UTF-8"
        c.message = message.encode("utf-8")
        store.add_object(c)
        commit_id = c.id.decode("ascii")
        logger.debug("branch_store.commit", parent=parent, commit=commit_id, paths=sorted(files))
        return commit_id

    def _set_branch(self, branch: str, commit: str, expected: Optional[str]) -> bool:
        ref = _ref(branch)
        new = commit.encode("ascii")
        if expected is None:
            return bool(self._repo.refs.add_if_new(ref, new))
        return bool(self._repo.refs.set_if_equals(ref, expected.encode("ascii"), new))

    def _delete_branch(self, branch: str) -> bool:
        return bool(self._repo.refs.remove_if_equals(_ref(branch), None))
