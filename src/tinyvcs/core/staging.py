"""Staging area management for TinyVCS.

The staging index records files to be added or updated by the next commit;
the removal set records tracked files to be dropped by it. Both are
reconciled on every add, rm and commit so that a filename never has
contradictory pending state.
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from tinyvcs.core.errors import (
    EmptyCommitError,
    EmptyMessageError,
    FileNotFoundInWorkspaceError,
    NothingToRemoveError,
)
from tinyvcs.core.repository import Repository
from tinyvcs.storage import Commit
from tinyvcs.storage.object_store import compute_blob_id

logger = logging.getLogger(__name__)


class AddStatus(str, Enum):
    """What ``StagingManager.add`` did with a file."""

    STAGED = "staged"
    ALREADY_STAGED = "already staged"
    UNCHANGED = "unchanged"


class RemoveStatus(str, Enum):
    """What ``StagingManager.rm`` did with a file."""

    REMOVED = "removed"
    UNSTAGED = "unstaged"


class StagingManager:
    """Pending-change operations: add, rm and commit.

    Attributes:
        repo: Repository the operations act on
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def add(self, filename: str) -> AddStatus:
        """Stage the working-directory version of a file.

        A file whose content equals HEAD's version is not staged; any stale
        staging entry for it is dropped instead.

        Raises:
            FileNotFoundInWorkspaceError: If the file does not exist
            PathOutsideWorkspaceError: If the path escapes the workspace
        """
        repo = self.repo
        name = repo.workspace.normalize(filename)
        if not repo.workspace.exists(name):
            raise FileNotFoundInWorkspaceError()

        content = repo.workspace.read(name)
        if repo.staged.get(name) == compute_blob_id(name, content):
            return AddStatus.ALREADY_STAGED

        repo.removals.discard(name)
        blob_id = repo.blobs.put(name, content)

        if repo.head_commit().tracked.get(name) == blob_id:
            repo.staged.pop(name, None)
            logger.debug("%s matches HEAD; not staged", name)
            return AddStatus.UNCHANGED

        repo.staged[name] = blob_id
        logger.info("Staged %s -> %s", name, blob_id[:8])
        return AddStatus.STAGED

    def add_paths(self, paths: Iterable[str]) -> List[Tuple[str, AddStatus]]:
        """Stage files and directories (recursively, honoring ignore rules).

        Returns:
            (filename, status) for every file considered
        """
        results = []
        for path in paths:
            for name in self.repo.workspace.expand(path):
                results.append((name, self.add(name)))
        return results

    def rm(self, filename: str) -> RemoveStatus:
        """Unstage a file, and if HEAD tracks it, delete it and mark it removed.

        Raises:
            NothingToRemoveError: If the file is neither tracked nor staged
        """
        repo = self.repo
        name = repo.workspace.normalize(filename)

        if name in repo.head_commit().tracked:
            repo.workspace.delete(name)
            repo.staged.pop(name, None)
            repo.removals.add(name)
            logger.info("Marked %s for removal", name)
            return RemoveStatus.REMOVED

        if name in repo.staged:
            del repo.staged[name]
            logger.info("Unstaged %s", name)
            return RemoveStatus.UNSTAGED

        raise NothingToRemoveError()

    def commit(
        self,
        message: str,
        allow_empty: bool = False,
        timestamp: Optional[str] = None,
    ) -> Commit:
        """Snapshot HEAD's files plus pending changes as a new commit.

        Args:
            message: Commit message
            allow_empty: Commit even with nothing staged or removed
            timestamp: Explicit ISO 8601 timestamp (default: now)

        Returns:
            The new commit, now at HEAD and the current branch

        Raises:
            EmptyCommitError: If nothing is staged or marked for removal
            EmptyMessageError: If the message is empty
        """
        repo = self.repo
        if not allow_empty and not repo.has_pending_changes():
            raise EmptyCommitError()
        if not message:
            raise EmptyMessageError()

        head = repo.head_commit()
        tracked = dict(head.tracked)
        for name in repo.removals:
            tracked.pop(name, None)
        tracked.update(repo.staged)

        commit = repo.commits.create(head.id, message, tracked, timestamp=timestamp)
        repo.refs.advance(repo.current_branch, commit.id)
        repo.clear_pending()
        return commit
