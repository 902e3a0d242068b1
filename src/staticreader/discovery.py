"""Glob based file discovery.

Produces the candidate list for a read: every file below a directory whose
directory-relative path matches the include pattern(s) and none of the
ignore patterns.
"""

import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pathspec

from staticreader.incremental.patterns import PatternMatcher

Patterns = Union[str, Sequence[str]]


def _ignore_spec(ignore: Patterns) -> pathspec.PathSpec:
    lines = [ignore] if isinstance(ignore, str) else list(ignore)
    return pathspec.PathSpec.from_lines("gitignore", [line.lower() for line in lines])


def discover_files(
    cwd: Union[str, Path],
    pattern: Patterns = "**/*",
    ignore: Optional[Patterns] = None,
    dot: bool = False,
) -> List[Path]:
    """
    Walk `cwd` and return the absolute paths of matching files, sorted.

    Include patterns are globs tested against the whole relative path; entries
    starting with `!` exclude what earlier entries included. Ignore patterns
    follow .gitignore rules, so ignoring a directory ignores everything below
    it. Matching is case-insensitive. Dotfiles and dot directories are skipped
    unless `dot` is set.

    Raises:
        FileNotFoundError: If `cwd` is not a directory
    """
    root = Path(os.path.abspath(cwd))
    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {cwd}")

    include = PatternMatcher(pattern)
    exclude = _ignore_spec(ignore) if ignore else None

    result: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        if not dot:
            # Prune in-place (prevents descent)
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]

        for filename in filenames:
            if not dot and filename.startswith("."):
                continue
            filepath = current / filename
            relative = filepath.relative_to(root).as_posix()
            if not include.matches(relative):
                continue
            if exclude is not None and exclude.match_file(relative.lower()):
                continue
            result.append(filepath)

    result.sort()
    return result
