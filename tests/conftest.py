"""Shared fixtures."""

import os
from pathlib import Path
from typing import Dict, List, Optional

import git
import pytest

from staticreader.exceptions import InvalidReferenceError
from staticreader.incremental.vcs import VcsClient


class FakeVcsClient(VcsClient):
    """In-memory repository: revision -> paths changed since it."""

    def __init__(
        self,
        base: Path,
        head: str = "head000",
        changes: Optional[Dict[str, List[str]]] = None,
    ):
        self.base = Path(base)
        self.head = head
        self.changes = changes or {}
        self.calls: List[str] = []

    def base_dir(self) -> Path:
        return self.base

    def current_revision(self) -> str:
        return self.head

    def changes_since(self, revision: str) -> List[str]:
        self.calls.append(revision)
        if revision not in self.changes:
            raise InvalidReferenceError(revision)
        return list(self.changes[revision])


def write_files(root: Path, names: List[str], mtime: Optional[float] = None) -> List[Path]:
    """Create files whose content is their stem, optionally with a fixed mtime."""
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(Path(name).stem + "\n", encoding="utf-8")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        paths.append(path)
    return paths


@pytest.fixture
def test_repo(tmp_path):
    """Create a Git repository with an `input/` directory and two commits.

    The first commit adds file1..3.txt, the second modifies file2.txt.
    Yields (repo_path, first_commit_sha).
    """
    repo_path = tmp_path / "repo"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path)

    # Configure git
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    write_files(repo_path, ["input/file1.txt", "input/file2.txt", "input/file3.txt", "README.md"])
    repo.index.add(["input/file1.txt", "input/file2.txt", "input/file3.txt", "README.md"])
    first = repo.index.commit("Initial commit")

    (repo_path / "input" / "file2.txt").write_text("file2 changed\n", encoding="utf-8")
    repo.index.add(["input/file2.txt"])
    repo.index.commit("Update file2")

    yield repo_path, first.hexsha
    repo.close()


@pytest.fixture
def make_files():
    """Factory creating files below a root, see `write_files`."""
    return write_files


@pytest.fixture
def fake_vcs(tmp_path):
    """Fake repository rooted at tmp_path; `base` marker changed file2.txt."""
    return FakeVcsClient(tmp_path, head="head111", changes={"base": ["file2.txt"]})
