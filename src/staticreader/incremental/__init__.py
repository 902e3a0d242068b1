"""Incremental change detection for file discovery.

Decides which discovered files must be processed again, given the marker
recorded by the previous run and the trigger rules linking files together.
"""

from staticreader.incremental.manager import IncrementalFilter
from staticreader.incremental.patterns import PatternMatcher
from staticreader.incremental.state import JsonStateStore, MemoryStateStore, StateStore
from staticreader.incremental.strategy import ChangeStrategy, GitStrategy, TimeStrategy
from staticreader.incremental.triggers import (
    AllActivating,
    Callback,
    SomeActivating,
    TriggerEngine,
    TriggerRule,
    parse_triggers,
)
from staticreader.incremental.vcs import GitClient, VcsClient

__all__ = [
    "AllActivating",
    "Callback",
    "ChangeStrategy",
    "GitClient",
    "GitStrategy",
    "IncrementalFilter",
    "JsonStateStore",
    "MemoryStateStore",
    "PatternMatcher",
    "SomeActivating",
    "StateStore",
    "TimeStrategy",
    "TriggerEngine",
    "TriggerRule",
    "VcsClient",
    "parse_triggers",
]
