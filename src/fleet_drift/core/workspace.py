"""Workspace layout helpers.

Repositories are materialized under a per-owner workspace directory. The
parent directory for an owner/repo/url/ref is deterministic; each checkout
inside it is unique, so concurrent requests for the same repository never
share a working tree.
"""

from __future__ import annotations

import hashlib
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path


_SAFE_SEGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


def _stable_key(value: str) -> str:
    """Return a stable directory-safe key.

    Prefer a readable safe segment; otherwise fall back to a short sha256 prefix.
    """

    if _SAFE_SEGMENT_RE.match(value):
        return value
    h = hashlib.sha256(value.encode("utf-8", errors="replace")).hexdigest()
    return f"sha256-{h[:16]}"


@dataclass(frozen=True)
class Workspace:
    """Workspace layout rooted at a deterministic base directory."""

    root: Path

    def owner_dir(self, owner: str) -> Path:
        return self.root / _stable_key(owner)

    def git_repo_dir(self, owner: str, repo: str, git_url: str, ref: str | None) -> Path:
        key = _stable_key(f"{git_url}\n{ref or ''}")
        return self.owner_dir(owner) / _stable_key(repo) / key

    def checkout_dir(self, owner: str, repo: str, git_url: str, ref: str | None) -> Path:
        """Create and return a fresh directory for one checkout of the repository."""

        parent = self.git_repo_dir(owner, repo, git_url, ref)
        parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="checkout-", dir=parent))
