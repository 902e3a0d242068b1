"""Case-insensitive glob matching on forward-slash relative paths.

A pattern is tested against the whole path, one segment at a time: `*`, `?`
and `[...]` never cross a `/`, `**` spans any number of directories. A
pattern without a slash matches the file name at any depth and a trailing
slash stands for everything below a directory. Within a pattern list a
leading `!` negates an earlier match; the last matching entry wins.
"""

import os
from fnmatch import fnmatchcase
from functools import lru_cache
from typing import Iterable, List, Sequence, Tuple, TypeVar, Union

PathLike = Union[str, "os.PathLike[str]"]
_P = TypeVar("_P")

# (include, pattern segments)
_Compiled = Tuple[Tuple[bool, Tuple[str, ...]], ...]


def normalize_path(path: PathLike) -> str:
    """Return `path` as a string with forward slashes."""
    return os.fspath(path).replace("\\", "/")


def _segments(pattern: str) -> Tuple[str, ...]:
    pattern = pattern.lower()
    while pattern.startswith("./"):
        pattern = pattern[2:]
    if pattern.endswith("/"):
        pattern += "**"
    if "/" not in pattern.lstrip("/"):
        pattern = "**/" + pattern
    segments: List[str] = []
    for segment in pattern.lstrip("/").split("/"):
        if not segment or (segment == "**" and segments and segments[-1] == "**"):
            continue
        segments.append(segment)
    return tuple(segments)


@lru_cache(maxsize=256)
def _compile(patterns: Tuple[str, ...]) -> _Compiled:
    compiled = []
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        include = not pattern.startswith("!")
        if not include:
            pattern = pattern[1:]
        segments = _segments(pattern)
        if segments:
            compiled.append((include, segments))
    return tuple(compiled)


def _match_segments(pattern: Tuple[str, ...], path: Tuple[str, ...]) -> bool:
    if not pattern:
        return not path
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(rest, path[i:]) for i in range(len(path) + 1))
    return bool(path) and fnmatchcase(path[0], head) and _match_segments(rest, path[1:])


class PatternMatcher:
    """Tests forward-slash relative paths against one or more glob patterns."""

    def __init__(self, patterns: Union[str, Sequence[str]]):
        if isinstance(patterns, str):
            patterns = [patterns]
        self.patterns: Tuple[str, ...] = tuple(patterns)
        self._compiled = _compile(self.patterns)

    def matches(self, path: PathLike) -> bool:
        segments = tuple(s for s in normalize_path(path).lower().split("/") if s and s != ".")
        matched = False
        for include, pattern in self._compiled:
            if include != matched and _match_segments(pattern, segments):
                matched = include
        return matched

    def any_match(self, paths: Iterable[PathLike]) -> bool:
        return any(self.matches(path) for path in paths)

    def filter(self, paths: Iterable[_P]) -> List[_P]:
        """Return the entries of `paths` that match, in their original order."""
        return [path for path in paths if self.matches(path)]  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"PatternMatcher({list(self.patterns)!r})"
