"""Checkout engine: writing commit snapshots into the working directory."""

import logging
from typing import List

from tinyvcs.core.errors import (
    AlreadyCurrentError,
    FileNotInCommitError,
    NoSuchBranchError,
    UntrackedFileInTheWayError,
)
from tinyvcs.core.repository import Repository
from tinyvcs.storage import Commit

logger = logging.getLogger(__name__)


class CheckoutEngine:
    """Materializes tracked files of commits in the working directory.

    Whole-tree operations (branch checkout, reset) refuse to run while the
    working directory holds a file that is neither tracked by HEAD nor
    staged, because it could be overwritten or silently left behind.
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def checkout_file(self, filename: str) -> str:
        """Restore one file from HEAD. The file is not staged.

        Returns:
            The normalized filename

        Raises:
            FileNotInCommitError: If HEAD does not track the file
        """
        name = self.repo.workspace.normalize(filename)
        self._restore_file(self.repo.head_commit(), name)
        return name

    def checkout_commit_file(self, commit_id: str, filename: str) -> str:
        """Restore one file from a (possibly abbreviated) commit id.

        Raises:
            NoSuchCommitError: If no commit matches the id
            AmbiguousCommitIdError: If several commits match the id
            FileNotInCommitError: If that commit does not track the file
        """
        name = self.repo.workspace.normalize(filename)
        commit = self.repo.commits.get(self.repo.resolve_commit(commit_id))
        self._restore_file(commit, name)
        return name

    def checkout_branch(self, branch: str) -> Commit:
        """Switch the working directory and HEAD to another branch.

        Returns:
            The commit now at HEAD

        Raises:
            NoSuchBranchError: If the branch is unknown
            AlreadyCurrentError: If the branch is already checked out
            UntrackedFileInTheWayError: If an untracked file is present
        """
        repo = self.repo
        if not repo.refs.has_branch(branch):
            raise NoSuchBranchError()
        if branch == repo.current_branch:
            raise AlreadyCurrentError()

        target = repo.branch_head(branch)
        self.check_untracked()
        self.replace_working_tree(target)
        repo.refs.switch(branch)
        repo.clear_pending()
        logger.info("Checked out branch %s at %s", branch, target.id[:7])
        return target

    def reset(self, commit_id: str) -> Commit:
        """Move the current branch to a commit and check out its files.

        Raises:
            NoSuchCommitError: If no commit matches the id
            AmbiguousCommitIdError: If several commits match the id
            UntrackedFileInTheWayError: If an untracked file is present
        """
        repo = self.repo
        target = repo.commits.get(repo.resolve_commit(commit_id))
        self.check_untracked()
        self.replace_working_tree(target)
        repo.refs.advance(repo.current_branch, target.id)
        repo.clear_pending()
        logger.info("Reset %s to %s", repo.current_branch, target.id[:7])
        return target

    def untracked_files(self) -> List[str]:
        """Working files neither tracked by HEAD nor staged, sorted."""
        tracked = self.repo.head_commit().tracked
        return sorted(
            name for name in self.repo.workspace.list_files(include_ignored=True)
            if name not in tracked and name not in self.repo.staged
        )

    def check_untracked(self) -> None:
        untracked = self.untracked_files()
        if untracked:
            logger.debug("Untracked files in the way: %s", ", ".join(untracked))
            raise UntrackedFileInTheWayError()

    def replace_working_tree(self, target: Commit) -> None:
        """Make the working directory match ``target``'s tracked files.

        Files tracked by HEAD but not by ``target`` are deleted; every file
        of ``target`` is (over)written.
        """
        workspace = self.repo.workspace
        head = self.repo.head_commit()
        for name in head.tracked:
            if name not in target.tracked:
                workspace.delete(name)
        for name in target.tracked:
            self._restore_file(target, name)

    def _restore_file(self, commit: Commit, name: str) -> None:
        blob_id = commit.tracked.get(name)
        if blob_id is None:
            raise FileNotInCommitError()
        self.repo.workspace.write(name, self.repo.blobs.read_content(blob_id))
