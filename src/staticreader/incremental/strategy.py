"""Strategies that find the paths changed since a marker.

Two interchangeable strategies exist: the time strategy compares file
modification times against the instant the previous run started, the git
strategy asks the repository which paths changed since the recorded commit.
"""

import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Set, Union

import structlog

from staticreader.exceptions import GitEnvironmentError, StateCorruption
from staticreader.incremental.vcs import VcsClient

logger = structlog.get_logger(__name__)

# Never descended into while scanning for modified files
_SKIPPED_DIRS = frozenset({".git", ".hg", ".svn"})


def format_time_marker(moment: datetime) -> str:
    """Serialize an instant as an ISO-8601 UTC string with millisecond precision."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_time_marker(marker: str) -> datetime:
    """Parse a time marker. Accepts a trailing `Z`; naive values are taken as UTC.

    Raises:
        StateCorruption: If `marker` is not an ISO-8601 date-time
    """
    try:
        moment = datetime.fromisoformat(marker.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise StateCorruption(None, f"invalid time marker {marker!r}") from e
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class ChangeStrategy(ABC):
    """Computes the change set since a marker and produces the next marker."""

    name: str

    @abstractmethod
    def changed_since(self, marker: str, tracking_root: Path) -> Set[str]:
        """Return forward-slash paths relative to `tracking_root` changed since `marker`."""

    @abstractmethod
    def current_marker(self) -> str:
        """Marker to record when the current run finishes."""


class TimeStrategy(ChangeStrategy):
    """Modification-time based change detection.

    The marker is the instant the strategy was created, so files modified
    while a long run is still reading are picked up again next time. A file
    counts as changed when its `st_mtime` is strictly greater than the
    marker; markers keep milliseconds, so the result is exact at whole-second
    filesystem resolution and as precise as the filesystem beyond that.
    """

    name = "time"

    def __init__(self, started_at: Optional[datetime] = None):
        self.started_at = started_at or datetime.now(timezone.utc)

    def changed_since(self, marker: str, tracking_root: Path) -> Set[str]:
        since = parse_time_marker(marker).timestamp()
        root = Path(tracking_root)
        changed: Set[str] = set()

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d not in _SKIPPED_DIRS]
            for filename in filenames:
                path = os.path.join(dirpath, filename)
                try:
                    mtime = os.stat(path).st_mtime
                except FileNotFoundError:
                    # removed while walking
                    continue
                if mtime > since:
                    changed.add(Path(os.path.relpath(path, root)).as_posix())

        logger.debug("time_changes_scanned", root=str(root), since=marker, changes=len(changed))
        return changed

    def current_marker(self) -> str:
        return format_time_marker(self.started_at)


class GitStrategy(ChangeStrategy):
    """Commit based change detection.

    Construction checks the repository eagerly: the client must answer and
    `tracking_root` must lie inside its working tree.
    """

    name = "git"

    def __init__(self, client: VcsClient, tracking_root: Union[str, Path]):
        self.client = client
        self._base_dir = Path(client.base_dir()).resolve()
        self._prefixes: Dict[Path, str] = {}
        self._prefix_for(Path(tracking_root))

    def _prefix_for(self, tracking_root: Path) -> str:
        root = tracking_root.resolve()
        if root not in self._prefixes:
            try:
                relative = root.relative_to(self._base_dir)
            except ValueError as e:
                raise GitEnvironmentError(
                    f"Incremental build: {root} is not inside the git repository "
                    f"at {self._base_dir}."
                ) from e
            self._prefixes[root] = "" if relative == Path(".") else relative.as_posix() + "/"
        return self._prefixes[root]

    def changed_since(self, marker: str, tracking_root: Path) -> Set[str]:
        prefix = self._prefix_for(Path(tracking_root))
        changed = {
            path[len(prefix):]
            for path in (p.replace("\\", "/") for p in self.client.changes_since(marker))
            if path.startswith(prefix) and len(path) > len(prefix)
        }
        logger.debug("git_changes_scoped", prefix=prefix, revision=marker, changes=len(changed))
        return changed

    def current_marker(self) -> str:
        return self.client.current_revision()
