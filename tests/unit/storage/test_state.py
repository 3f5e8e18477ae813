"""Unit tests for the state records and repository lock."""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from tinyvcs.storage.state import (
    RepositoryLock,
    RepositoryLockedError,
    StateError,
    StateStore,
    atomic_write_text,
)


@pytest.fixture
def tinyvcs_dir(tmp_path: Path) -> Path:
    repo_dir = tmp_path / ".tinyvcs"
    repo_dir.mkdir()
    return repo_dir


@pytest.fixture
def state(tinyvcs_dir: Path) -> StateStore:
    return StateStore(tinyvcs_dir)


class TestAtomicWrite:
    """Test atomic file replacement."""

    def test_replaces_content(self, tmp_path: Path) -> None:
        """Test that the file ends up with the new text only."""
        target = tmp_path / "record"
        target.write_text("old")
        atomic_write_text(target, "new")

        assert target.read_text() == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["record"]


class TestRefs:
    """Test the reference table record."""

    def test_round_trip(self, state: StateStore) -> None:
        refs = {"HEAD": "a" * 64, "INITIAL": "b" * 64, "master": "a" * 64}
        state.write_refs(refs)
        assert state.read_refs() == refs

    def test_missing_refs(self, state: StateStore) -> None:
        """Test that a missing reference table is a state error."""
        with pytest.raises(StateError, match="Missing"):
            state.read_refs()

    def test_corrupted_refs(self, state: StateStore) -> None:
        """Test that unparseable JSON is a state error."""
        state.refs_path.write_text("{not json")
        with pytest.raises(StateError, match="Corrupted"):
            state.read_refs()


class TestIndex:
    """Test the staging index record."""

    def test_missing_index_is_empty(self, state: StateStore) -> None:
        """Test that no index file means nothing is staged."""
        assert state.read_index() == {}

    def test_index_format(self, state: StateStore) -> None:
        """Test the on-disk index layout."""
        state.write_index({"b.txt": "2" * 64, "a.txt": "1" * 64})

        data = json.loads(state.index_path.read_text())
        assert data["version"] == 1
        assert list(data["entries"]) == ["a.txt", "b.txt"]
        assert data["entries"]["a.txt"] == {"blob_hash": "1" * 64}
        assert state.read_index() == {"a.txt": "1" * 64, "b.txt": "2" * 64}

    def test_unsupported_version(self, state: StateStore) -> None:
        """Test that an index with an unknown version is refused."""
        state.index_path.write_text(json.dumps({"version": 99, "entries": {}}))
        with pytest.raises(StateError, match="Unsupported index version"):
            state.read_index()


class TestRemovalsAndBranch:
    """Test the removal set and current-branch records."""

    def test_removals_round_trip(self, state: StateStore) -> None:
        assert state.read_removals() == set()
        state.write_removals({"b.txt", "a.txt"})
        assert json.loads(state.removals_path.read_text()) == ["a.txt", "b.txt"]
        assert state.read_removals() == {"a.txt", "b.txt"}

    def test_current_branch_round_trip(self, state: StateStore) -> None:
        state.write_current_branch("feature")
        assert state.read_current_branch() == "feature"

    def test_missing_current_branch(self, state: StateStore) -> None:
        with pytest.raises(StateError):
            state.read_current_branch()


class TestRepositoryLock:
    """Test the repository lock file."""

    def test_lock_lifecycle(self, tinyvcs_dir: Path) -> None:
        """Test that the lock file exists only while held."""
        lock = RepositoryLock(tinyvcs_dir)
        with lock:
            assert lock.held
            assert lock.lock_path.exists()
        assert not lock.held
        assert not lock.lock_path.exists()

    def test_second_lock_refused(self, tinyvcs_dir: Path) -> None:
        """Test that a held lock cannot be acquired again."""
        with RepositoryLock(tinyvcs_dir):
            with pytest.raises(RepositoryLockedError, match="locked"):
                RepositoryLock(tinyvcs_dir).acquire()

    def test_lock_released_on_error(self, tinyvcs_dir: Path) -> None:
        """Test that an exception inside the block still releases the lock."""
        with pytest.raises(RuntimeError):
            with RepositoryLock(tinyvcs_dir):
                raise RuntimeError("boom")
        assert not (tinyvcs_dir / "lock").exists()

    @pytest.mark.skipif(os.name != "posix", reason="stale-lock detection is POSIX only")
    def test_stale_lock_from_dead_process_is_replaced(self, tinyvcs_dir: Path) -> None:
        """Test that a lock left by an exited process is taken over."""
        child = subprocess.Popen([sys.executable, "-c", "pass"])
        child.wait()
        (tinyvcs_dir / "lock").write_text(str(child.pid))

        with RepositoryLock(tinyvcs_dir) as lock:
            assert lock.held
            assert (tinyvcs_dir / "lock").read_text() == str(os.getpid())
        assert not (tinyvcs_dir / "lock").exists()

    def test_lock_of_live_process_refused(self, tinyvcs_dir: Path) -> None:
        (tinyvcs_dir / "lock").write_text(str(os.getpid()))
        with pytest.raises(RepositoryLockedError, match="locked"):
            RepositoryLock(tinyvcs_dir).acquire()

    def test_lock_without_pid_refused(self, tinyvcs_dir: Path) -> None:
        (tinyvcs_dir / "lock").write_text("")
        with pytest.raises(RepositoryLockedError, match="delete the lock file"):
            RepositoryLock(tinyvcs_dir).acquire()
