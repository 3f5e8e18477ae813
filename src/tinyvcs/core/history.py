"""Read-only queries: log, global log, find, status and integrity check."""

from dataclasses import dataclass, field
from typing import List, Tuple

from tinyvcs.core.errors import NoCommitFoundError
from tinyvcs.core.repository import Repository
from tinyvcs.storage import Commit
from tinyvcs.storage.object_store import compute_blob_id


def log(repo: Repository, include_root: bool = False, limit: int = 0) -> List[Commit]:
    """Commits from HEAD back along the parent chain, newest first.

    The root commit created by ``init`` is left out unless ``include_root``.
    """
    commits = []
    commit = repo.head_commit()
    while commit is not None:
        if commit.is_root and not include_root:
            break
        commits.append(commit)
        if limit and len(commits) >= limit:
            break
        commit = repo.commits.parent_of(commit)
    return commits


def global_log(repo: Repository) -> List[Commit]:
    """Every commit ever made, newest first."""
    rows = repo.commits.metadata_db.get_commit_history()
    return [repo.commits.get(row["commit_hash"]) for row in rows]


def find(repo: Repository, message: str) -> List[str]:
    """Ids of all commits whose message is exactly ``message``.

    Raises:
        NoCommitFoundError: If no commit has that message
    """
    ids = repo.commits.metadata_db.find_commits_by_message(message)
    if not ids:
        raise NoCommitFoundError()
    return ids


@dataclass
class StatusReport:
    current_branch: str
    head_id: str
    branches: List[str] = field(default_factory=list)
    staged: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[Tuple[str, str]] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not (self.staged or self.removed or self.modified or self.untracked)


def status(repo: Repository) -> StatusReport:
    """Summarize branches, pending changes and the working directory.

    ``modified`` lists (filename, "modified" | "deleted") for tracked or
    staged files whose working copy no longer matches what would be
    committed.
    """
    workspace = repo.workspace
    tracked = repo.head_commit().tracked
    present = workspace.list_files()

    report = StatusReport(
        current_branch=repo.current_branch,
        head_id=repo.refs.head(),
        branches=repo.refs.branches(),
        staged=sorted(repo.staged),
        removed=sorted(repo.removals),
    )

    expected = {name: blob_id for name, blob_id in tracked.items() if name not in repo.removals}
    expected.update(repo.staged)
    for name in sorted(expected):
        if not workspace.exists(name):
            report.modified.append((name, "deleted"))
        elif compute_blob_id(name, workspace.read(name)) != expected[name]:
            report.modified.append((name, "modified"))

    report.untracked = sorted(
        name for name in present
        if name not in repo.staged and (name not in tracked or name in repo.removals)
    )
    return report


def verify_integrity(repo: Repository) -> List[Tuple[str, str, str]]:
    """Find tracked entries whose blob is missing from the content store.

    Returns:
        (commit id, filename, blob id) for every dangling reference
    """
    dangling = []
    for commit in repo.commits.iter_commits():
        for name, blob_id in commit.tracked.items():
            if not repo.blobs.exists(blob_id):
                dangling.append((commit.id, name, blob_id))
    return dangling
