"""Error types raised by the incremental filtering core."""

from pathlib import Path
from typing import Optional, Union


class IncrementalError(Exception):
    """Base class for every failure of an incremental run."""


class ValidationError(IncrementalError, ValueError):
    """Malformed construction options."""

    def __init__(self, message: str, option: Optional[str] = None):
        super().__init__(message)
        self.option = option


class GitEnvironmentError(IncrementalError):
    """Git is unavailable or the tracking root is not inside a repository."""


class InvalidReferenceError(IncrementalError):
    """A stored marker does not resolve to a revision of the repository."""

    def __init__(self, revision: str, detail: str = ""):
        message = f"Git: Not a valid commit hash '{revision}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.revision = revision


class StateCorruption(IncrementalError):
    """The persisted state file exists but cannot be understood."""

    def __init__(self, path: Union[str, Path, None], detail: str):
        where = f" {path}" if path is not None else ""
        super().__init__(f"Corrupted incremental state file{where}: {detail}")
        self.path = path
