"""Unit tests for the incremental filter orchestrator."""

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from staticreader.exceptions import (
    GitEnvironmentError,
    InvalidReferenceError,
    StateCorruption,
    ValidationError,
)
from staticreader.incremental import IncrementalFilter, MemoryStateStore
from staticreader.incremental.strategy import format_time_marker

T0 = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
FILES = ["file1.txt", "file2.txt", "file3.txt"]


@pytest.fixture
def tree(tmp_path, make_files):
    """file1..3.txt, only file2.txt modified after T0."""
    paths = make_files(tmp_path, FILES, mtime=T0.timestamp() - 100)
    os.utime(paths[1], (T0.timestamp() + 5, T0.timestamp() + 5))
    return paths


class TestConstruction:
    """Test option validation."""

    def test_requires_options(self):
        with pytest.raises(ValidationError, match="expects an options object"):
            IncrementalFilter(None)

    def test_key_required(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            IncrementalFilter({"tracking_root": tmp_path}, store=MemoryStateStore())
        assert exc_info.value.option == "key"

    @pytest.mark.parametrize("key", ["", 42, None])
    def test_key_must_be_non_empty_string(self, tmp_path, key):
        with pytest.raises(ValidationError) as exc_info:
            IncrementalFilter({"key": key, "tracking_root": tmp_path}, store=MemoryStateStore())
        assert exc_info.value.option == "key"
        assert "'key'" in str(exc_info.value)

    def test_unknown_strategy(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            IncrementalFilter(
                {"key": "k", "strategy": "mtime", "tracking_root": tmp_path},
                store=MemoryStateStore(),
            )
        assert exc_info.value.option == "strategy"

    def test_malformed_triggers(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            IncrementalFilter(
                {"key": "k", "triggers": [["only-source"]], "tracking_root": tmp_path},
                store=MemoryStateStore(),
            )
        assert exc_info.value.option == "triggers"
        assert "triggers" in str(exc_info.value)

    def test_unknown_option(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            IncrementalFilter({"key": "k", "triggersCwd": str(tmp_path)}, store=MemoryStateStore())
        assert exc_info.value.option == "triggersCwd"

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        incremental = IncrementalFilter({"key": "k"})
        assert incremental.strategy.name == "time"
        assert incremental.options.file == Path(".incremental")
        assert incremental.tracking_root == tmp_path.resolve()

    def test_defaults_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STATICREADER_STATE_FILE", str(tmp_path / "state.json"))
        incremental = IncrementalFilter({"key": "k", "tracking_root": tmp_path})
        assert incremental.options.file == tmp_path / "state.json"

    def test_missing_tracking_root(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            IncrementalFilter(
                {"key": "k", "tracking_root": tmp_path / "typo"},
                store=MemoryStateStore({"k": "2000-01-01T00:00:00.000+00:00"}),
            )
        assert exc_info.value.option == "tracking_root"
        assert "not an existing directory" in str(exc_info.value)

    def test_tracking_root_must_be_a_directory(self, tmp_path):
        (tmp_path / "a.md").write_text("a", encoding="utf-8")
        with pytest.raises(ValidationError) as exc_info:
            IncrementalFilter({"key": "k", "tracking_root": tmp_path / "a.md"}, store=MemoryStateStore())
        assert exc_info.value.option == "tracking_root"

    def test_git_strategy_fails_fast_outside_repository(self, tmp_path):
        with pytest.raises(GitEnvironmentError):
            IncrementalFilter(
                {"key": "k", "strategy": "git", "tracking_root": tmp_path},
                store=MemoryStateStore(),
            )


class TestTimeStrategyFilter:
    """Test filtering with the time strategy."""

    def test_first_run_is_identity(self, tmp_path, tree):
        incremental = IncrementalFilter(
            {"key": "test", "tracking_root": tmp_path}, store=MemoryStateStore()
        )
        assert incremental.filter(tree) == tree

    def test_filters_unchanged_files(self, tmp_path, tree):
        store = MemoryStateStore({"test": format_time_marker(T0)})
        incremental = IncrementalFilter({"key": "test", "tracking_root": tmp_path}, store=store)
        assert incremental.filter(tree) == [tree[1]]

    def test_relative_candidates(self, tmp_path, tree):
        store = MemoryStateStore({"test": format_time_marker(T0)})
        incremental = IncrementalFilter({"key": "test", "tracking_root": tmp_path}, store=store)
        assert incremental.filter(FILES) == ["file2.txt"]

    def test_filter_is_idempotent(self, tmp_path, tree):
        store = MemoryStateStore({"test": format_time_marker(T0)})
        incremental = IncrementalFilter({"key": "test", "tracking_root": tmp_path}, store=store)
        assert incremental.filter(tree) == incremental.filter(tree)
        assert store.load() == {"test": format_time_marker(T0)}

    def test_result_contains_changed_candidates(self, tmp_path, tree):
        store = MemoryStateStore({"test": format_time_marker(T0)})
        incremental = IncrementalFilter(
            {"key": "test", "tracking_root": tmp_path, "triggers": [["**/*1*", "**/*3*"]]},
            store=store,
        )
        changes = incremental.strategy.changed_since(format_time_marker(T0), tmp_path)
        result = incremental.filter(tree)
        assert {p for p in tree if p.name in changes} <= set(result)

    def test_all_activating_trigger(self, tmp_path, tree):
        store = MemoryStateStore({"test": format_time_marker(T0)})
        incremental = IncrementalFilter(
            {"key": "test", "tracking_root": tmp_path, "triggers": ["**/*2*"]}, store=store
        )
        assert incremental.filter(tree) == tree

    def test_some_activating_trigger(self, tmp_path, tree):
        store = MemoryStateStore({"test": format_time_marker(T0)})
        incremental = IncrementalFilter(
            {"key": "test", "tracking_root": tmp_path, "triggers": [["**/*2*", "**/*3*"]]},
            store=store,
        )
        assert incremental.filter(tree) == [tree[1], tree[2]]

    def test_tracking_root_differs_from_read_directory(self, tmp_path, make_files):
        old = T0.timestamp() - 100
        pages = make_files(tmp_path, ["pages/a.md", "pages/b.md"], mtime=old)
        make_files(tmp_path, ["layouts/base.html"], mtime=T0.timestamp() + 5)

        store = MemoryStateStore({"test": format_time_marker(T0)})
        incremental = IncrementalFilter(
            {
                "key": "test",
                "tracking_root": tmp_path,
                "triggers": [["layouts/**", "pages/b.md"]],
            },
            store=store,
        )
        assert incremental.filter(pages) == [pages[1]]

    def test_finalize_writes_construction_time(self, tmp_path, tree):
        store = MemoryStateStore()
        incremental = IncrementalFilter(
            {"key": "test", "tracking_root": tmp_path}, store=store, clock=lambda: T0
        )
        assert incremental.finalize() == format_time_marker(T0)
        assert store.get("test") == format_time_marker(T0)

    def test_modification_during_run_is_seen_next_cycle(self, tmp_path, tree):
        store = MemoryStateStore()
        first = IncrementalFilter(
            {"key": "test", "tracking_root": tmp_path}, store=store, clock=lambda: T0
        )
        assert first.filter(tree) == tree

        # file1 is modified while the first run is still reading
        os.utime(tree[0], (T0.timestamp() + 1, T0.timestamp() + 1))
        first.finalize()

        second = IncrementalFilter(
            {"key": "test", "tracking_root": tmp_path},
            store=store,
            clock=lambda: T0 + timedelta(minutes=5),
        )
        assert tree[0] in second.filter(tree)

    def test_real_clock_cycle(self, tmp_path, make_files):
        store = MemoryStateStore()
        paths = make_files(tmp_path, FILES, mtime=1_000_000)
        first = IncrementalFilter({"key": "test", "tracking_root": tmp_path}, store=store)
        started = first.strategy.started_at.timestamp()
        os.utime(paths[2], (started + 1, started + 1))
        first.finalize()

        second = IncrementalFilter({"key": "test", "tracking_root": tmp_path}, store=store)
        assert second.filter(paths) == [paths[2]]

    def test_finalize_preserves_other_keys(self, tmp_path, tree):
        state_file = tmp_path / "state" / ".incremental"
        state_file.parent.mkdir()
        state_file.write_text(json.dumps({"b": "untouched"}), encoding="utf-8")

        incremental = IncrementalFilter(
            {"key": "a", "file": str(state_file), "tracking_root": tmp_path}, clock=lambda: T0
        )
        incremental.finalize()

        data = json.loads(state_file.read_text(encoding="utf-8"))
        assert data == {"b": "untouched", "a": format_time_marker(T0)}

    def test_corrupted_state_aborts_filter(self, tmp_path, tree):
        state_file = tmp_path / "broken.json"
        state_file.write_text("{", encoding="utf-8")
        incremental = IncrementalFilter(
            {"key": "a", "file": str(state_file), "tracking_root": tmp_path}
        )
        with pytest.raises(StateCorruption):
            incremental.filter(tree)

    def test_state_is_read_on_every_filter(self, tmp_path, tree):
        store = MemoryStateStore()
        incremental = IncrementalFilter({"key": "test", "tracking_root": tmp_path}, store=store)
        assert incremental.filter(tree) == tree

        store.save("test", format_time_marker(T0))
        assert incremental.filter(tree) == [tree[1]]

    def test_status(self, tmp_path):
        store = MemoryStateStore({"test": "marker"})
        incremental = IncrementalFilter({"key": "test", "tracking_root": tmp_path}, store=store)
        status = incremental.status()
        assert status["key"] == "test"
        assert status["strategy"] == "time"
        assert status["marker"] == "marker"
        assert status["incremental"] is True


class TestGitStrategyFilter:
    """Test filtering with the git strategy and a fake repository."""

    def test_first_run_is_identity(self, tmp_path, fake_vcs):
        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": tmp_path},
            store=MemoryStateStore(),
            vcs=fake_vcs,
        )
        assert incremental.filter(FILES) == FILES
        assert fake_vcs.calls == []

    def test_filters_by_diff(self, tmp_path, fake_vcs):
        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": tmp_path},
            store=MemoryStateStore({"test": "base"}),
            vcs=fake_vcs,
        )
        assert incremental.filter(FILES) == ["file2.txt"]

    def test_all_activating(self, tmp_path, fake_vcs):
        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": tmp_path, "triggers": ["**/*2*"]},
            store=MemoryStateStore({"test": "base"}),
            vcs=fake_vcs,
        )
        assert incremental.filter(FILES) == FILES

    def test_some_activating(self, tmp_path, fake_vcs):
        incremental = IncrementalFilter(
            {
                "key": "test",
                "strategy": "git",
                "tracking_root": tmp_path,
                "triggers": [["**/*2*", "**/*3*"]],
            },
            store=MemoryStateStore({"test": "base"}),
            vcs=fake_vcs,
        )
        assert incremental.filter(FILES) == ["file2.txt", "file3.txt"]

    def test_absolute_candidates(self, tmp_path, fake_vcs):
        candidates = [tmp_path / name for name in FILES]
        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": tmp_path},
            store=MemoryStateStore({"test": "base"}),
            vcs=fake_vcs,
        )
        assert incremental.filter(candidates) == [tmp_path / "file2.txt"]

    def test_invalid_marker_aborts(self, tmp_path, fake_vcs):
        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": tmp_path},
            store=MemoryStateStore({"test": "deadbeef"}),
            vcs=fake_vcs,
        )
        with pytest.raises(InvalidReferenceError):
            incremental.filter(FILES)

    def test_finalize_records_head(self, tmp_path, fake_vcs):
        store = MemoryStateStore({"test": "base", "other": "keep"})
        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": tmp_path}, store=store, vcs=fake_vcs
        )
        fake_vcs.head = "head222"
        assert incremental.finalize() == "head222"
        assert store.load() == {"test": "head222", "other": "keep"}

    def test_callback_trigger(self, tmp_path, fake_vcs):
        def rule(changes):
            return "**/*1*" if "file2.txt" in changes else None

        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": tmp_path, "triggers": rule},
            store=MemoryStateStore({"test": "base"}),
            vcs=fake_vcs,
        )
        assert incremental.filter(FILES) == ["file1.txt", "file2.txt"]


class TestGitRepository:
    """Test the git strategy end to end against a real repository."""

    def test_reads_only_changed_file(self, test_repo):
        repo_path, first = test_repo
        input_dir = repo_path / "input"
        state_file = repo_path / ".incremental"
        state_file.write_text(json.dumps({"test": first}), encoding="utf-8")

        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "file": str(state_file), "tracking_root": input_dir}
        )
        candidates = sorted(input_dir.glob("file*.txt"))
        assert [p.name for p in incremental.filter(candidates)] == ["file2.txt"]

    def test_triggers(self, test_repo):
        repo_path, first = test_repo
        input_dir = repo_path / "input"
        incremental = IncrementalFilter(
            {
                "key": "test",
                "strategy": "git",
                "tracking_root": input_dir,
                "triggers": [["**/*2*", "**/*3*"]],
            },
            store=MemoryStateStore({"test": first}),
        )
        candidates = sorted(input_dir.glob("file*.txt"))
        assert [p.name for p in incremental.filter(candidates)] == ["file2.txt", "file3.txt"]

    def test_invalid_commit(self, test_repo):
        repo_path, _ = test_repo
        incremental = IncrementalFilter(
            {"key": "test", "strategy": "git", "tracking_root": repo_path},
            store=MemoryStateStore({"test": "391010629523c2a1dfa1bb95badc6f30947da39b"}),
        )
        with pytest.raises(InvalidReferenceError, match="Not a valid commit hash"):
            incremental.filter(["input/file1.txt"])

    def test_finalize_then_nothing_changed(self, test_repo):
        repo_path, first = test_repo
        store = MemoryStateStore({"test": first})
        options = {"key": "test", "strategy": "git", "tracking_root": repo_path / "input"}

        IncrementalFilter(options, store=store).finalize()
        assert store.get("test") != first

        candidates = sorted((repo_path / "input").glob("file*.txt"))
        assert IncrementalFilter(options, store=store).filter(candidates) == []
