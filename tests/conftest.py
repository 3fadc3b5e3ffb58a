from pathlib import Path

import dulwich.porcelain as porcelain
import pytest

AUTHOR = b"Test <test@example.com>"


def _commit_files(repo_dir: Path, files: dict[str, str], message: bytes = b"commit") -> str:
    for rel, content in files.items():
        path = repo_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    porcelain.add(str(repo_dir), paths=[str(repo_dir / rel) for rel in files])
    sha = porcelain.commit(str(repo_dir), message=message, author=AUTHOR, committer=AUTHOR)
    return sha.decode("ascii") if isinstance(sha, (bytes, bytearray)) else str(sha)


@pytest.fixture
def commit_files():
    """Write files into a local repo and commit them; returns the commit id."""
    return _commit_files


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    repo_dir = tmp_path / "src_repo"
    porcelain.init(str(repo_dir))
    return repo_dir
