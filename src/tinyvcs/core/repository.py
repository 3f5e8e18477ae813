"""Repository value: every piece of state one operation works on.

A ``Repository`` is loaded from disk at the start of an operation, passed
through the operation's call graph, and persisted when the operation
completes without raising. The repository lock is held in between.
"""

import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Set

from tinyvcs.constants import (
    DB_SCHEMA_VERSION,
    DEFAULT_BRANCH,
    INITIAL_COMMIT_MESSAGE,
    OBJECTS_DIR,
)
from tinyvcs.core.errors import (
    AmbiguousCommitIdError,
    NoSuchCommitError,
    NotARepositoryError,
    RepositoryExistsError,
)
from tinyvcs.core.refs import RefTable
from tinyvcs.core.workspace import Workspace
from tinyvcs.storage import (
    BlobStore,
    Commit,
    CommitStore,
    MetadataDB,
    ObjectStore,
    RepositoryLock,
    StateStore,
)

logger = logging.getLogger(__name__)


class Repository:
    """All state of a repository for the duration of one operation.

    Attributes:
        workspace: Working directory access
        blobs: Content store
        commits: Commit graph
        refs: Reference table (branches, HEAD, INITIAL, current branch)
        staged: Staging index, filename -> blob id
        removals: Removal set
    """

    def __init__(
        self,
        workspace: Workspace,
        blobs: BlobStore,
        commits: CommitStore,
        state: StateStore,
        refs: RefTable,
        staged: Dict[str, str],
        removals: Set[str],
    ) -> None:
        self.workspace = workspace
        self.blobs = blobs
        self.commits = commits
        self.state = state
        self.refs = refs
        self.staged = staged
        self.removals = removals

    @property
    def current_branch(self) -> str:
        return self.refs.current_branch

    def head_commit(self) -> Commit:
        return self.commits.get(self.refs.head())

    def branch_head(self, branch: str) -> Commit:
        return self.commits.get(self.refs.branch_commit(branch))

    def resolve_commit(self, commit_id: str) -> str:
        """Resolve a full or abbreviated commit id.

        Raises:
            NoSuchCommitError: If no stored commit matches
            AmbiguousCommitIdError: If more than one stored commit matches
        """
        matches = self.commits.match_prefix(commit_id.strip())
        if not matches:
            raise NoSuchCommitError()
        if len(matches) > 1:
            raise AmbiguousCommitIdError(
                f"Commit id {commit_id} is ambiguous: matches {', '.join(m[:12] for m in matches)}..."
            )
        return matches[0]

    def has_pending_changes(self) -> bool:
        return bool(self.staged or self.removals)

    def clear_pending(self) -> None:
        self.staged.clear()
        self.removals.clear()

    def save(self) -> None:
        """Persist the four state records."""
        self.state.write_refs(self.refs.to_dict())
        self.state.write_current_branch(self.refs.current_branch)
        self.state.write_index(self.staged)
        self.state.write_removals(self.removals)
        logger.debug(
            "Saved state: branch=%s head=%s staged=%d removed=%d",
            self.current_branch, self.refs.head()[:7], len(self.staged), len(self.removals),
        )

    @classmethod
    @contextmanager
    def open(cls, workspace_root: Path, write: bool = True) -> Iterator["Repository"]:
        """Load a repository for one operation.

        Holds the repository lock while the caller runs and saves the state
        records afterwards (unless ``write`` is False or the caller raised).

        Raises:
            NotARepositoryError: If no repository exists at ``workspace_root``
            RepositoryLockedError: If another operation holds the lock
        """
        workspace = Workspace(workspace_root)
        if not workspace.tinyvcs_dir.is_dir():
            raise NotARepositoryError()

        with RepositoryLock(workspace.tinyvcs_dir):
            with MetadataDB(workspace.tinyvcs_dir) as metadata_db:
                index_stale = metadata_db.get_schema_version() != DB_SCHEMA_VERSION
                repo = cls._load(workspace, metadata_db)
                if index_stale:
                    logger.warning("Metadata index missing or outdated; rebuilding from commit records")
                    repo.commits.reindex()
                yield repo
                if write:
                    repo.save()

    @classmethod
    def init(cls, workspace_root: Path, branch: str = DEFAULT_BRANCH) -> Commit:
        """Create a new repository with a root commit.

        Returns:
            The root commit

        Raises:
            RepositoryExistsError: If a repository already exists here
        """
        workspace = Workspace(workspace_root)
        tinyvcs_dir = workspace.tinyvcs_dir
        if tinyvcs_dir.exists():
            raise RepositoryExistsError()

        tinyvcs_dir.mkdir(parents=True)
        try:
            (tinyvcs_dir / OBJECTS_DIR).mkdir()
            with RepositoryLock(tinyvcs_dir), MetadataDB(tinyvcs_dir) as metadata_db:
                metadata_db.init_schema()
                object_store = ObjectStore(tinyvcs_dir)
                commits = CommitStore(object_store, metadata_db)
                root = commits.create(None, INITIAL_COMMIT_MESSAGE, {})

                repo = cls(
                    workspace=workspace,
                    blobs=BlobStore(object_store),
                    commits=commits,
                    state=StateStore(tinyvcs_dir),
                    refs=RefTable.initialize(root.id, branch),
                    staged={},
                    removals=set(),
                )
                repo.save()
        except Exception:
            # Clean up partial initialization
            shutil.rmtree(tinyvcs_dir, ignore_errors=True)
            raise

        logger.info("Initialized repository in %s", tinyvcs_dir)
        return root

    @classmethod
    def _load(cls, workspace: Workspace, metadata_db: MetadataDB) -> "Repository":
        state = StateStore(workspace.tinyvcs_dir)
        object_store = ObjectStore(workspace.tinyvcs_dir)
        metadata_db.init_schema()
        return cls(
            workspace=workspace,
            blobs=BlobStore(object_store),
            commits=CommitStore(object_store, metadata_db),
            state=state,
            refs=RefTable(state.read_refs(), state.read_current_branch()),
            staged=state.read_index(),
            removals=state.read_removals(),
        )

