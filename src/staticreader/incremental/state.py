"""Persistent markers for incremental runs.

The state file is a JSON object mapping a key to the marker recorded by the
last finished run of that key. Saving merges one key into whatever is on
disk. There is no locking: concurrent writers of one file race and the last
write wins.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

import pydantic
import structlog
from pydantic import Field, RootModel

from staticreader.exceptions import StateCorruption

logger = structlog.get_logger(__name__)

DEFAULT_STATE_FILE = ".incremental"


class IncrementalState(RootModel[Dict[str, str]]):
    """Contents of a state file: key -> marker."""

    root: Dict[str, str] = Field(default_factory=dict)


class StateStore(ABC):
    """Key -> marker storage with read-merge-write semantics."""

    @abstractmethod
    def load(self) -> Dict[str, str]:
        """Return every stored marker. Never cached between calls."""

    @abstractmethod
    def save(self, key: str, marker: str) -> None:
        """Store `marker` for `key`, leaving all other keys untouched."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove `key`. Returns False if it was not stored."""

    def get(self, key: str) -> Optional[str]:
        return self.load().get(key)


class JsonStateStore(StateStore):
    """State store backed by a pretty-printed UTF-8 JSON file."""

    def __init__(self, path: Union[str, Path] = DEFAULT_STATE_FILE):
        self.path = Path(path)

    def load(self) -> Dict[str, str]:
        """Read the state file.

        Returns:
            Mapping of key to marker, empty when the file does not exist

        Raises:
            StateCorruption: If the file is not a JSON object of strings
        """
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StateCorruption(self.path, str(e)) from e

        try:
            return IncrementalState.model_validate(data).root
        except pydantic.ValidationError as e:
            raise StateCorruption(
                self.path, "expected a JSON object mapping keys to markers"
            ) from e

    def save(self, key: str, marker: str) -> None:
        """Merge `key` into the file and write it back atomically.

        Uses a temporary file and rename so readers never see a partial file.
        """
        data = self.load()
        data[key] = marker
        self._write(data)
        logger.debug("state_saved", path=str(self.path), key=key, marker=marker)

    def delete(self, key: str) -> bool:
        data = self.load()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        logger.debug("state_key_deleted", path=str(self.path), key=key)
        return True

    def _write(self, data: Dict[str, str]) -> None:
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=directory, prefix=f".{self.path.name}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            os.replace(temp_path, self.path)
        except Exception:
            # Clean up temp file on error
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise


class MemoryStateStore(StateStore):
    """In-process state store, mainly for tests and embedding."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def load(self) -> Dict[str, str]:
        return dict(self._data)

    def save(self, key: str, marker: str) -> None:
        self._data[key] = marker

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None
