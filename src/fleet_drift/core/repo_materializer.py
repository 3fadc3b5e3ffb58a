"""Deterministic git materialization.

Clone + optional ref checkout with dulwich into a workspace path.
"""

from __future__ import annotations

import io
import os
import shutil
import stat
import time
from dataclasses import dataclass
from pathlib import Path

import structlog
from dulwich import porcelain
from dulwich.repo import Repo

logger = structlog.get_logger(__name__)


class RepoMaterializationError(RuntimeError):
    """Raised when a repository cannot be cloned or checked out."""


@dataclass(frozen=True)
class GitMaterializationResult:
    repo_root: Path
    head_commit: str | None


def materialize_git(
    *,
    git_url: str,
    ref: str | None,
    dest_dir: Path,
) -> GitMaterializationResult:
    """Clone a git repo into `dest_dir` and optionally checkout `ref`."""

    # Deterministic: ensure the output directory is empty.
    if dest_dir.exists():
        remove_tree(dest_dir)
    dest_dir.parent.mkdir(parents=True, exist_ok=True)

    err = io.BytesIO()
    try:
        porcelain.clone(git_url, target=str(dest_dir), checkout=True, errstream=err)
        if ref:
            # Branch name, tag, or commit-ish. `force=True` keeps re-runs stable.
            porcelain.checkout(str(dest_dir), ref, force=True)
    except Exception as e:
        logger.error(
            "Repository materialization failed",
            ref=ref,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise RepoMaterializationError(f"could not materialize repository at ref {ref or 'HEAD'}: {e}") from e

    head_commit: str | None = None
    with Repo(str(dest_dir)) as repo:
        try:
            head_commit = repo.head().decode("ascii", errors="replace")
        except KeyError:
            # Empty repositories have no HEAD commit.
            head_commit = None

    logger.info("Repository materialized", ref=ref, head_commit=head_commit, repo_root=str(dest_dir))
    return GitMaterializationResult(repo_root=dest_dir, head_commit=head_commit)


def remove_tree(path: Path, *, attempts: int = 30, delay_sec: float = 0.1) -> None:
    """Robust rmtree for Windows file-lock flakiness."""

    last_err: Exception | None = None

    def _onerror(func, p, exc_info):
        os.chmod(p, stat.S_IWRITE)
        func(p)

    for _ in range(attempts):
        try:
            shutil.rmtree(path, onerror=_onerror)
            return
        except OSError as e:
            last_err = e
            time.sleep(delay_sec)
    if last_err:
        raise last_err
