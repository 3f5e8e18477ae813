"""Merge engine: split-point discovery and three-way file resolution.

Every commit has at most one parent, so the nearest common ancestor of two
branches is found by walking both parent chains in step until one side
reaches a commit the other side has already visited.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from tinyvcs.constants import CONFLICT_END, CONFLICT_SEPARATOR, CONFLICT_START
from tinyvcs.core.checkout import CheckoutEngine
from tinyvcs.core.errors import (
    NoSuchBranchError,
    SelfMergeError,
    UncommittedChangesError,
)
from tinyvcs.core.refs import BRANCH_MISSING
from tinyvcs.core.repository import Repository
from tinyvcs.core.staging import StagingManager
from tinyvcs.storage import Commit, CommitStore, CommitStoreError

logger = logging.getLogger(__name__)


class MergeStatus(str, Enum):
    FAST_FORWARD = "fast-forward"
    ANCESTOR = "ancestor"
    MERGED = "merged"
    CONFLICT = "conflict"


class FileAction(str, Enum):
    """Resolution of one file in a three-way merge."""

    KEEP = "keep"
    TAKE_TARGET = "take-target"
    REMOVE = "remove"
    CONFLICT = "conflict"


@dataclass
class MergeResult:
    """Outcome of ``MergeEngine.merge``.

    Attributes:
        status: How the merge was resolved
        branch: The branch merged into the current one
        split_id: Id of the nearest common ancestor
        commit_id: Commit now at HEAD after a fast-forward or merge commit
        taken: Files checked out from the given branch and staged
        removed: Files removed because the given branch deleted them
        conflicts: Files written with conflict markers
    """

    status: MergeStatus
    branch: str
    split_id: str
    commit_id: Optional[str] = None
    taken: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return self.status == MergeStatus.CONFLICT


def classify(split: Optional[str], current: Optional[str], target: Optional[str]) -> FileAction:
    """Decide one file's resolution from its blob ids (None when absent)."""
    if current == split:
        if target == split:
            return FileAction.KEEP
        return FileAction.TAKE_TARGET if target is not None else FileAction.REMOVE
    if target == split or target == current:
        return FileAction.KEEP
    return FileAction.CONFLICT


def find_split_point(commits: CommitStore, current_id: str, target_id: str) -> str:
    """Return the id of the nearest common ancestor of two commits.

    Raises:
        CommitStoreError: If the two chains never meet
    """
    current: Optional[str] = current_id
    target: Optional[str] = target_id
    current_seen = {current_id}
    target_seen = {target_id}

    while True:
        if current is not None and current in target_seen:
            return current
        if target is not None and target in current_seen:
            return target
        if current is None and target is None:
            raise CommitStoreError(
                f"Commits {current_id[:7]} and {target_id[:7]} share no ancestor"
            )
        # A side that reached the root stops stepping
        if current is not None:
            current = commits.get(current).parent_id
            if current is not None:
                current_seen.add(current)
        if target is not None:
            target = commits.get(target).parent_id
            if target is not None:
                target_seen.add(target)


def conflict_content(current: bytes, target: bytes) -> bytes:
    return CONFLICT_START + current + CONFLICT_SEPARATOR + target + CONFLICT_END


class MergeEngine:
    """Merges another branch into the current one."""

    def __init__(self, repo: Repository) -> None:
        self.repo = repo
        self.checkout = CheckoutEngine(repo)
        self.staging = StagingManager(repo)

    def merge(self, branch: str) -> MergeResult:
        """Merge ``branch`` into the current branch.

        Returns:
            MergeResult; a conflicted merge leaves marked, staged files and
            no commit

        Raises:
            SelfMergeError: If ``branch`` is the current branch
            UncommittedChangesError: If anything is staged or removed
            NoSuchBranchError: If the branch is unknown
            UntrackedFileInTheWayError: If an untracked file is present
        """
        repo = self.repo
        if branch == repo.current_branch:
            raise SelfMergeError()
        if repo.has_pending_changes():
            raise UncommittedChangesError()
        if not repo.refs.has_branch(branch):
            raise NoSuchBranchError(BRANCH_MISSING)
        self.checkout.check_untracked()

        current = repo.head_commit()
        target = repo.branch_head(branch)
        split_id = find_split_point(repo.commits, current.id, target.id)
        logger.debug("Split point of %s and %s is %s", repo.current_branch, branch, split_id[:7])

        if split_id == current.id:
            self.checkout.replace_working_tree(target)
            repo.refs.advance(repo.current_branch, target.id)
            logger.info("Fast-forwarded %s to %s", repo.current_branch, target.id[:7])
            return MergeResult(MergeStatus.FAST_FORWARD, branch, split_id, commit_id=target.id)

        if split_id == target.id:
            return MergeResult(MergeStatus.ANCESTOR, branch, split_id, commit_id=current.id)

        result = MergeResult(MergeStatus.MERGED, branch, split_id)
        self._resolve_files(repo.commits.get(split_id), current, target, result)

        if result.conflicts:
            result.status = MergeStatus.CONFLICT
            logger.info("Merge of %s stopped with %d conflicts", branch, len(result.conflicts))
            return result

        message = f"Merged {branch} into {repo.current_branch}."
        commit = self.staging.commit(message, allow_empty=True)
        result.commit_id = commit.id
        return result

    def _resolve_files(self, split: Commit, current: Commit, target: Commit, result: MergeResult) -> None:
        repo = self.repo
        names = set(split.tracked) | set(current.tracked) | set(target.tracked)

        for name in sorted(names):
            split_blob = split.tracked.get(name)
            current_blob = current.tracked.get(name)
            target_blob = target.tracked.get(name)
            action = classify(split_blob, current_blob, target_blob)
            logger.debug("%s: %s", name, action.value)

            if action == FileAction.TAKE_TARGET:
                repo.workspace.write(name, repo.blobs.read_content(target_blob))
                repo.staged[name] = target_blob
                result.taken.append(name)
            elif action == FileAction.REMOVE:
                self.staging.rm(name)
                result.removed.append(name)
            elif action == FileAction.CONFLICT:
                content = conflict_content(
                    repo.blobs.read_content(current_blob) if current_blob else b"",
                    repo.blobs.read_content(target_blob) if target_blob else b"",
                )
                repo.workspace.write(name, content)
                repo.staged[name] = repo.blobs.put(name, content)
                result.conflicts.append(name)
