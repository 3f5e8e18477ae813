"""Unit tests for CheckoutEngine."""

import pytest

from tinyvcs.core import CheckoutEngine, Repository
from tinyvcs.core.errors import (
    AlreadyCurrentError,
    FileNotInCommitError,
    NoSuchBranchError,
    NoSuchCommitError,
    UntrackedFileInTheWayError,
)


class TestCheckoutFile:
    """Test restoring single files."""

    def test_restore_from_head(self, vcs) -> None:
        """Test that a file is restored from HEAD without being staged."""
        vcs.commit_file("a.txt", "original")
        vcs.write("a.txt", "edited")

        with Repository.open(vcs.root) as repo:
            assert CheckoutEngine(repo).checkout_file("a.txt") == "a.txt"
            assert repo.staged == {}
        assert vcs.read("a.txt") == "original"

    def test_restore_deleted_file(self, vcs) -> None:
        vcs.commit_file("dir/a.txt", "original")
        (vcs.root / "dir" / "a.txt").unlink()

        with Repository.open(vcs.root) as repo:
            CheckoutEngine(repo).checkout_file("dir/a.txt")
        assert vcs.read("dir/a.txt") == "original"

    def test_restore_untracked(self, vcs) -> None:
        vcs.write("a.txt", "untracked")
        with Repository.open(vcs.root) as repo:
            with pytest.raises(FileNotInCommitError, match="File does not exist in that commit."):
                CheckoutEngine(repo).checkout_file("a.txt")

    def test_restore_from_commit(self, vcs) -> None:
        """Test restoring a file from an older commit by abbreviated id."""
        first = vcs.commit_file("a.txt", "v1")
        vcs.commit_file("a.txt", "v2")

        with Repository.open(vcs.root) as repo:
            CheckoutEngine(repo).checkout_commit_file(first.id[:8], "a.txt")
        assert vcs.read("a.txt") == "v1"

    def test_restore_from_unknown_commit(self, vcs) -> None:
        vcs.commit_file("a.txt", "v1")
        with Repository.open(vcs.root) as repo:
            with pytest.raises(NoSuchCommitError):
                CheckoutEngine(repo).checkout_commit_file("0" * 10, "a.txt")


class TestCheckoutBranch:
    """Test switching branches."""

    def test_switch_rewrites_working_tree(self, vcs) -> None:
        """Test that files are written, deleted and kept to match the branch."""
        vcs.commit_file("shared.txt", "shared")
        vcs.branch("other")
        vcs.commit_file("master_only.txt", "m")
        vcs.commit_file("shared.txt", "changed on master")

        head = vcs.checkout("other")

        assert sorted(head.tracked) == ["shared.txt"]
        assert vcs.read("shared.txt") == "shared"
        assert not (vcs.root / "master_only.txt").exists()
        with Repository.open(vcs.root, write=False) as repo:
            assert repo.current_branch == "other"
            assert repo.refs.head() == head.id

    def test_switch_back(self, vcs) -> None:
        vcs.branch("other")
        vcs.commit_file("a.txt", "a")
        vcs.checkout("other")
        assert not (vcs.root / "a.txt").exists()
        vcs.checkout("master")
        assert vcs.read("a.txt") == "a"

    def test_switch_clears_pending(self, vcs) -> None:
        vcs.commit_file("a.txt", "a")
        vcs.branch("other")
        vcs.rm("a.txt")
        vcs.checkout("other")

        with Repository.open(vcs.root, write=False) as repo:
            assert repo.staged == {}
            assert repo.removals == set()
        assert vcs.read("a.txt") == "a"

    def test_unknown_branch(self, vcs) -> None:
        with pytest.raises(NoSuchBranchError, match="No such branch exists."):
            vcs.checkout("nope")

    def test_current_branch(self, vcs) -> None:
        with pytest.raises(AlreadyCurrentError, match="No need to checkout the current branch."):
            vcs.checkout("master")

    def test_untracked_file_in_the_way(self, vcs) -> None:
        """Test that an untracked file blocks the switch and nothing changes."""
        vcs.branch("other")
        vcs.commit_file("a.txt", "a")
        vcs.write("stray.txt", "untracked")

        with pytest.raises(UntrackedFileInTheWayError):
            vcs.checkout("other")

        assert vcs.read("a.txt") == "a"
        with Repository.open(vcs.root, write=False) as repo:
            assert repo.current_branch == "master"

    def test_ignored_untracked_file_in_the_way(self, vcs) -> None:
        """Test that ignore rules do not hide an untracked file from the check."""
        vcs.commit_file(".tinyvcsignore", "*.log\n")
        vcs.branch("other")
        vcs.checkout("other")
        vcs.commit_file("notes.log", "from other")
        vcs.checkout("master")
        vcs.write("notes.log", "local work")

        with pytest.raises(UntrackedFileInTheWayError):
            vcs.checkout("other")

        assert vcs.read("notes.log") == "local work"
        with Repository.open(vcs.root, write=False) as repo:
            assert repo.current_branch == "master"

    def test_untracked_ignore_file_in_the_way(self, vcs) -> None:
        vcs.branch("other")
        vcs.checkout("other")
        vcs.commit_file(".tinyvcsignore", "*.tmp\n")
        vcs.checkout("master")
        vcs.write(".tinyvcsignore", "*.log\n")

        with pytest.raises(UntrackedFileInTheWayError):
            vcs.checkout("other")

        assert vcs.read(".tinyvcsignore") == "*.log\n"

    def test_staged_new_file_is_not_in_the_way(self, vcs) -> None:
        vcs.branch("other")
        vcs.write("new.txt", "staged")
        vcs.add("new.txt")
        vcs.checkout("other")
        assert vcs.read("new.txt") == "staged"


class TestReset:
    """Test resetting the current branch."""

    def test_reset_to_older_commit(self, vcs) -> None:
        first = vcs.commit_file("a.txt", "v1")
        vcs.commit_file("b.txt", "b")

        vcs.reset(first.id[:10])

        assert vcs.read("a.txt") == "v1"
        assert not (vcs.root / "b.txt").exists()
        with Repository.open(vcs.root, write=False) as repo:
            assert repo.refs.head() == first.id
            assert repo.refs.branch_commit("master") == first.id

    def test_reset_to_other_branch_commit(self, vcs) -> None:
        """Test that reset can move to a commit made on another branch."""
        vcs.branch("other")
        vcs.checkout("other")
        other = vcs.commit_file("o.txt", "o")
        vcs.checkout("master")

        vcs.reset(other.id)

        assert vcs.read("o.txt") == "o"
        with Repository.open(vcs.root, write=False) as repo:
            assert repo.current_branch == "master"
            assert repo.refs.branch_commit("master") == other.id

    def test_reset_clears_pending(self, vcs) -> None:
        first = vcs.commit_file("a.txt", "v1")
        vcs.write("b.txt", "b")
        vcs.add("b.txt")
        vcs.reset(first.id)

        with Repository.open(vcs.root, write=False) as repo:
            assert repo.staged == {}

    def test_reset_unknown_commit(self, vcs) -> None:
        with pytest.raises(NoSuchCommitError):
            vcs.reset("f" * 64)

    def test_reset_untracked_in_the_way(self, vcs) -> None:
        first = vcs.commit_file("a.txt", "v1")
        vcs.write("stray.txt", "untracked")
        with pytest.raises(UntrackedFileInTheWayError):
            vcs.reset(first.id)

    def test_reset_ignored_untracked_in_the_way(self, vcs) -> None:
        vcs.commit_file(".tinyvcsignore", "*.log\n")
        first = vcs.commit_file("notes.log", "committed")
        vcs.rm("notes.log")
        vcs.commit("drop notes")
        vcs.write("notes.log", "local work")

        with pytest.raises(UntrackedFileInTheWayError):
            vcs.reset(first.id)

        assert vcs.read("notes.log") == "local work"
