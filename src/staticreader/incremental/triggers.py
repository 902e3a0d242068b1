"""Trigger rules and the engine that expands changes into extra inclusions.

A trigger marks files for processing even though they did not change
themselves, e.g. every page when a shared layout changes.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Collection,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    TypeVar,
    Union,
)

import structlog

from staticreader.exceptions import ValidationError
from staticreader.incremental.patterns import PatternMatcher

logger = structlog.get_logger(__name__)

_C = TypeVar("_C")

CallbackResult = Union[None, str, Sequence[str]]


@dataclass(frozen=True)
class AllActivating:
    """A change matching `source` selects every candidate."""

    source: str


@dataclass(frozen=True)
class SomeActivating:
    """A change matching `source` selects the candidates matching `target`."""

    source: str
    target: str


@dataclass(frozen=True)
class Callback:
    """Programmatic rule.

    `func` receives the sorted list of changed paths and returns nothing,
    a pattern or a list of patterns; the returned patterns are applied to
    the candidates unconditionally.
    """

    func: Callable[[List[str]], CallbackResult]


TriggerRule = Union[AllActivating, SomeActivating, Callback]


def _parse_item(index: int, item: Any) -> TriggerRule:
    if isinstance(item, (AllActivating, SomeActivating, Callback)):
        return item
    if isinstance(item, str):
        if not item.strip():
            raise ValueError(f"triggers[{index}] is an empty pattern")
        return AllActivating(item)
    if isinstance(item, (list, tuple)):
        if len(item) == 2 and all(isinstance(part, str) and part.strip() for part in item):
            return SomeActivating(item[0], item[1])
        raise ValueError(
            f"triggers[{index}] must be a (source, target) pair of patterns, got {item!r}"
        )
    if callable(item):
        return Callback(item)
    raise ValueError(
        f"triggers[{index}] must be a pattern string, a (source, target) pair "
        f"or a callable, got {type(item).__name__}"
    )


def parse_triggers(value: Any) -> List[TriggerRule]:
    """Convert the `triggers` option into a list of rules.

    Accepts a list whose items are pattern strings (all-activating),
    two-element pattern pairs (some-activating), callables or rule objects.
    A single callable is accepted in place of the list.

    Raises:
        ValueError: If the value or one of its items has an unsupported shape
    """
    if value is None:
        return []
    if isinstance(value, Callback) or callable(value):
        return [_parse_item(0, value)]
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise ValueError(
            "expected a list of triggers '([str, str] | str | callable)[]', "
            f"got {type(value).__name__}"
        )
    return [_parse_item(index, item) for index, item in enumerate(value)]


def _as_patterns(result: CallbackResult) -> List[str]:
    if result is None:
        return []
    if isinstance(result, str):
        return [result] if result.strip() else []
    if isinstance(result, (list, tuple, set, frozenset)) and all(
        isinstance(pattern, str) for pattern in result
    ):
        return [pattern for pattern in result if pattern.strip()]
    raise ValidationError(
        f"Incremental build trigger callback must return a pattern or a list of "
        f"patterns, got {type(result).__name__}",
        option="triggers",
    )


class TriggerEngine:
    """Selects the candidates to process for a given set of changes.

    Rules are partitioned once at construction. Evaluation is a single pass
    over the changes: files selected by a trigger never count as changes.
    """

    def __init__(self, rules: Iterable[TriggerRule] = ()):
        self.all_sources: List[str] = []
        # source pattern -> target patterns, first-seen order
        self.some_targets: Dict[str, List[str]] = OrderedDict()
        self.callbacks: List[Callback] = []

        for rule in rules:
            if isinstance(rule, AllActivating):
                if rule.source not in self.all_sources:
                    self.all_sources.append(rule.source)
            elif isinstance(rule, SomeActivating):
                targets = self.some_targets.setdefault(rule.source, [])
                if rule.target not in targets:
                    targets.append(rule.target)
            elif isinstance(rule, Callback):
                self.callbacks.append(rule)
            else:
                raise TypeError(f"Unknown trigger rule: {rule!r}")

    def select(
        self,
        candidates: Sequence[_C],
        changes: Collection[str],
        key_of: Callable[[_C], Optional[str]],
    ) -> List[_C]:
        """Return the candidates that must be processed.

        Args:
            candidates: Files produced by discovery, in output order
            changes: Paths changed since the marker, relative to the tracking root
            key_of: Maps a candidate to its tracking-root relative path, or
                `None` when the candidate lies outside the tracking root

        Returns:
            Every candidate when an all-activating rule fires, otherwise the
            changed candidates plus the triggered ones, in candidate order
        """
        changed = sorted(changes)

        extra_targets: List[str] = []
        for callback in self.callbacks:
            extra_targets.extend(_as_patterns(callback.func(list(changed))))

        for source in self.all_sources:
            if PatternMatcher(source).any_match(changed):
                logger.debug("trigger_all_activated", source=source)
                return list(candidates)

        keys = [key_of(candidate) for candidate in candidates]
        target_hits: Dict[str, Set[int]] = {}

        def hits(pattern: str) -> Set[int]:
            if pattern not in target_hits:
                matcher = PatternMatcher(pattern)
                target_hits[pattern] = {
                    index
                    for index, key in enumerate(keys)
                    if key is not None and matcher.matches(key)
                }
            return target_hits[pattern]

        triggered: Set[int] = set()
        for source, targets in self.some_targets.items():
            if PatternMatcher(source).any_match(changed):
                for target in targets:
                    triggered |= hits(target)
                logger.debug("trigger_some_activated", source=source, targets=targets)
        for target in extra_targets:
            triggered |= hits(target)

        change_set = set(changed)
        return [
            candidate
            for index, (candidate, key) in enumerate(zip(candidates, keys))
            if index in triggered or (key is not None and key in change_set)
        ]
