"""Incremental filter - orchestrates one incremental run.

Per run: construct (captures the time marker and checks the environment),
call `filter()` on the discovered files before consuming them, then call
`finalize()` once everything was consumed to record the new marker.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar, Union

import structlog

from staticreader.exceptions import ValidationError
from staticreader.incremental.state import JsonStateStore, StateStore
from staticreader.incremental.strategy import ChangeStrategy, GitStrategy, TimeStrategy
from staticreader.incremental.triggers import TriggerEngine
from staticreader.incremental.vcs import GitClient, VcsClient
from staticreader.models.config import IncrementalOptions, Settings, validate_options

logger = structlog.get_logger(__name__)

_C = TypeVar("_C")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IncrementalFilter:
    """Skips files unchanged since the previous run of the same key.

    Files that did not change are still selected when a trigger rule links
    them to a changed file.
    """

    def __init__(
        self,
        options: Union[IncrementalOptions, Mapping[str, Any]],
        *,
        store: Optional[StateStore] = None,
        vcs: Optional[VcsClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Validate options and prepare the strategy.

        Args:
            options: Incremental options; a mapping takes its missing `file`
                and `strategy` from `Settings`
            store: State store to use instead of the JSON file named by `file`
            vcs: Repository client to use instead of opening one with GitPython
            clock: Source of the run's start instant (time strategy)

        Raises:
            ValidationError: If an option is malformed or `tracking_root` is
                not an existing directory
            GitEnvironmentError: If the git strategy cannot work here
        """
        started_at = (clock or _utcnow)()

        if isinstance(options, Mapping):
            settings = Settings()
            options = {"file": settings.state_file, "strategy": settings.strategy, **options}
        self.options = validate_options(IncrementalOptions, options, "Incremental build")

        self.key = self.options.key
        root = Path(os.path.abspath(self.options.tracking_root or Path.cwd()))
        if not root.is_dir():
            raise ValidationError(
                f"Incremental build option 'tracking_root' is not an existing directory: {root}",
                option="tracking_root",
            )
        self.tracking_root = root.resolve()
        # candidates may be spelled through the unresolved root
        self._roots = [self.tracking_root] if root == self.tracking_root else [root, self.tracking_root]
        self.store = store if store is not None else JsonStateStore(self.options.file)
        self.engine = TriggerEngine(self.options.triggers)

        self.strategy: ChangeStrategy
        if self.options.strategy == "git":
            client = vcs if vcs is not None else GitClient(self.tracking_root)
            self.strategy = GitStrategy(client, self.tracking_root)
        else:
            self.strategy = TimeStrategy(started_at)

    def _key_of(self, candidate: Any) -> Optional[str]:
        """Tracking-root relative path of a candidate, None if outside the root."""
        path = Path(os.path.abspath(self.tracking_root / os.fspath(candidate)))
        for root in self._roots:
            try:
                return path.relative_to(root).as_posix()
            except ValueError:
                continue
        try:
            return path.resolve().relative_to(self.tracking_root).as_posix()
        except ValueError:
            return None

    def filter(self, candidates: Sequence[_C]) -> List[_C]:
        """Select the candidates to process in this run.

        Reads the state fresh on every call and has no side effects.

        Args:
            candidates: Discovered files, absolute or relative to the tracking root

        Returns:
            All candidates when the key has no marker yet, otherwise the
            changed and triggered candidates in their original order

        Raises:
            StateCorruption: If the state file cannot be read
            InvalidReferenceError: If a git marker no longer resolves
        """
        candidates = list(candidates)
        marker = self.store.get(self.key)
        if not marker:
            logger.info("incremental_first_run", key=self.key, candidates=len(candidates))
            return candidates

        changes = self.strategy.changed_since(marker, self.tracking_root)
        selected = self.engine.select(candidates, changes, key_of=self._key_of)

        logger.info(
            "incremental_filter_applied",
            key=self.key,
            strategy=self.strategy.name,
            marker=marker,
            changes=len(changes),
            candidates=len(candidates),
            selected=len(selected),
        )
        return selected

    def finalize(self) -> str:
        """Record the marker of this run for the key.

        Only this key's entry of the state file is rewritten.

        Returns:
            The recorded marker
        """
        marker = self.strategy.current_marker()
        self.store.save(self.key, marker)
        logger.info("incremental_marker_saved", key=self.key, strategy=self.strategy.name, marker=marker)
        return marker

    def status(self) -> Dict[str, Any]:
        """Describe the stream: key, strategy, state file and stored marker."""
        marker = self.store.get(self.key)
        return {
            "key": self.key,
            "strategy": self.strategy.name,
            "file": str(self.options.file),
            "tracking_root": str(self.tracking_root),
            "marker": marker,
            "incremental": marker is not None,
        }
