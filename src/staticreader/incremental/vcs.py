"""Version control access for the git strategy."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union

import git
import structlog

from staticreader.exceptions import GitEnvironmentError, InvalidReferenceError

logger = structlog.get_logger(__name__)


class VcsClient(ABC):
    """The three repository queries the git strategy needs."""

    @abstractmethod
    def base_dir(self) -> Path:
        """Root of the working tree."""

    @abstractmethod
    def current_revision(self) -> str:
        """Revision id of HEAD."""

    @abstractmethod
    def changes_since(self, revision: str) -> List[str]:
        """Paths changed between `revision` and HEAD, relative to `base_dir()`.

        Raises:
            InvalidReferenceError: If `revision` does not resolve
        """


class GitClient(VcsClient):
    """VcsClient backed by GitPython.

    The repository is opened at construction, so an unusable environment
    fails before any filtering happens.
    """

    def __init__(self, path: Union[str, Path] = "."):
        """Open the repository containing `path`.

        Args:
            path: Any directory inside the working tree

        Raises:
            GitEnvironmentError: If git is missing or `path` is not in a repository
        """
        try:
            git.Git().version_info
        except git.GitCommandNotFound as e:
            raise GitEnvironmentError("Incremental build: Git is not installed.") from e

        try:
            self.repo = git.Repo(path, search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise GitEnvironmentError(
                f"Incremental build: Not a git repository: {path}"
            ) from e

        if self.repo.working_tree_dir is None:
            raise GitEnvironmentError(
                f"Incremental build: Bare repositories are not supported: {path}"
            )

    def base_dir(self) -> Path:
        return Path(self.repo.working_tree_dir)

    def current_revision(self) -> str:
        try:
            return self.repo.head.commit.hexsha
        except ValueError as e:
            raise GitEnvironmentError(
                "Incremental build: The repository has no commits yet."
            ) from e

    def changes_since(self, revision: str) -> List[str]:
        """Run `git diff --name-only <revision>..HEAD`.

        Args:
            revision: Marker recorded by a previous run

        Returns:
            Changed paths relative to the repository root, forward slashes

        Raises:
            InvalidReferenceError: If git cannot resolve `revision`
        """
        if not revision or revision.startswith("-"):
            raise InvalidReferenceError(revision)

        try:
            output = self.repo.git.diff("--name-only", "-z", f"{revision}..HEAD", "--")
        except git.GitCommandError as e:
            detail = (e.stderr or "").strip()
            raise InvalidReferenceError(revision, detail) from e

        changes = [path for path in output.split("\0") if path.strip()]
        logger.debug("git_changes_listed", revision=revision, changes=len(changes))
        return changes
