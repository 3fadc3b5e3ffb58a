"""Read-only repository snapshots.

A snapshot is an immutable view of a repository's text files at one point in
time. Aspects query it through async accessors; convergence produces new
snapshots via `with_file` instead of mutating anything in place.
"""

from __future__ import annotations

import asyncio
import stat
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import structlog
from dulwich.object_store import iter_tree_contents
from dulwich.repo import Repo

logger = structlog.get_logger(__name__)

# Larger files are never manifests or descriptors; skip them when loading.
MAX_SNAPSHOT_FILE_BYTES = 1024 * 1024


@dataclass(frozen=True)
class RepoRef:
    owner: str
    repo: str
    branch: str | None = None
    sha: str | None = None
    host_url: str = "https://github.com"

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def blob_url(self, path: str) -> str:
        """Web link to `path` at this ref (commit sha preferred over branch)."""

        rev = self.sha or self.branch or "HEAD"
        return f"{self.host_url.rstrip('/')}/{self.owner}/{self.repo}/blob/{rev}/{path}"


@dataclass(frozen=True)
class RepoSnapshot:
    id: RepoRef
    files: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    async def has_file(self, path: str) -> bool:
        return path in self.files

    async def get_content(self, path: str) -> str | None:
        """Return the file text, or None when the file does not exist."""

        return self.files.get(path)

    def paths(self) -> list[str]:
        return sorted(self.files)

    def with_file(self, path: str, content: str) -> "RepoSnapshot":
        updated = dict(self.files)
        updated[path] = content
        return RepoSnapshot(id=self.id, files=updated)

    def changed_paths(self, other: "RepoSnapshot") -> list[str]:
        """Paths whose content differs between this snapshot and `other`."""

        keys = set(self.files) | set(other.files)
        return sorted(p for p in keys if self.files.get(p) != other.files.get(p))

    @classmethod
    def of(cls, owner: str, repo: str, files: Mapping[str, str], **ref) -> "RepoSnapshot":
        return cls(id=RepoRef(owner=owner, repo=repo, **ref), files=files)


def _read_commit_tree(repo_root: Path, commit: str | None) -> tuple[str, dict[str, str]]:
    files: dict[str, str] = {}
    with Repo(str(repo_root)) as repo:
        commit_id = commit.encode("ascii") if commit else repo.head()
        store = repo.object_store
        for entry in iter_tree_contents(store, repo[commit_id].tree):
            rel = entry.path.decode("utf-8", errors="replace")
            # Symlinks and submodules carry no file content of their own.
            if not stat.S_ISREG(entry.mode):
                continue
            data = store[entry.sha].data
            if len(data) > MAX_SNAPSHOT_FILE_BYTES:
                logger.debug("snapshot.skip_large_file", path=rel)
                continue
            if b"\x00" in data[:8192]:
                continue
            files[rel] = data.decode("utf-8", errors="replace")
    return commit_id.decode("ascii"), files


async def load_snapshot(repo_root: Path, ref: RepoRef) -> RepoSnapshot:
    """Load the text files committed at `ref.sha` (HEAD when unset) into a snapshot.

    The snapshot is the committed tree; untracked and ignored working-tree
    files never appear in it.
    """

    commit, files = await asyncio.to_thread(_read_commit_tree, repo_root, ref.sha)
    if ref.sha is None:
        ref = replace(ref, sha=commit)
    logger.info("snapshot.loaded", repo=ref.slug, commit=commit, file_count=len(files))
    return RepoSnapshot(id=ref, files=files)
