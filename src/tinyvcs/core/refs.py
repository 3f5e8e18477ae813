"""Reference table: branch pointers, HEAD and the INITIAL marker."""

import logging
from typing import Dict, List

from tinyvcs.constants import HEAD, INITIAL, RESERVED_REFS
from tinyvcs.core.errors import (
    BranchExistsError,
    CannotDeleteCurrentError,
    InvalidBranchNameError,
    NoSuchBranchError,
)

logger = logging.getLogger(__name__)

BRANCH_MISSING = "A branch with that name does not exist."


class RefTable:
    """Mutable mapping of branch name to commit id.

    Two reserved keys live alongside the branches: ``HEAD`` (the commit
    currently checked out) and ``INITIAL`` (the root commit). ``current_branch``
    names the branch that HEAD shadows.

    Attributes:
        current_branch: Name of the checked-out branch
    """

    def __init__(self, refs: Dict[str, str], current_branch: str) -> None:
        self._refs = dict(refs)
        self.current_branch = current_branch

    def head(self) -> str:
        return self._refs[HEAD]

    def initial(self) -> str:
        return self._refs[INITIAL]

    def has_branch(self, name: str) -> bool:
        return name not in RESERVED_REFS and name in self._refs

    def branch_commit(self, name: str) -> str:
        """Return the commit id a branch points at.

        Raises:
            NoSuchBranchError: If the branch is unknown
        """
        if not self.has_branch(name):
            raise NoSuchBranchError()
        return self._refs[name]

    def branches(self) -> List[str]:
        """Ordinary branch names, sorted."""
        return sorted(name for name in self._refs if name not in RESERVED_REFS)

    def create_branch(self, name: str) -> None:
        """Create a branch pointing at HEAD.

        Raises:
            InvalidBranchNameError: For empty, reserved or whitespace names
            BranchExistsError: If the branch already exists
        """
        validate_branch_name(name)
        if name in self._refs:
            raise BranchExistsError()
        self._refs[name] = self.head()
        logger.info("Created branch %s at %s", name, self.head()[:7])

    def delete_branch(self, name: str) -> None:
        """Delete a branch pointer; its commits stay in the graph.

        Raises:
            CannotDeleteCurrentError: If ``name`` is the current branch
            NoSuchBranchError: If the branch is unknown
        """
        if name == self.current_branch:
            raise CannotDeleteCurrentError()
        if not self.has_branch(name):
            raise NoSuchBranchError(BRANCH_MISSING)
        del self._refs[name]
        logger.info("Deleted branch %s", name)

    def advance(self, branch: str, commit_id: str) -> None:
        """Point both ``branch`` and HEAD at ``commit_id``."""
        self._refs[branch] = commit_id
        self._refs[HEAD] = commit_id
        logger.debug("Moved %s and HEAD to %s", branch, commit_id[:7])

    def switch(self, branch: str) -> None:
        """Make ``branch`` current and move HEAD to its commit."""
        commit_id = self.branch_commit(branch)
        self.current_branch = branch
        self._refs[HEAD] = commit_id
        logger.debug("Switched to branch %s at %s", branch, commit_id[:7])

    def to_dict(self) -> Dict[str, str]:
        return dict(self._refs)

    @classmethod
    def initialize(cls, root_commit_id: str, branch: str) -> "RefTable":
        refs = {HEAD: root_commit_id, INITIAL: root_commit_id, branch: root_commit_id}
        return cls(refs, branch)


def validate_branch_name(name: str) -> None:
    if not name or name in RESERVED_REFS or any(c.isspace() for c in name):
        raise InvalidBranchNameError(f"Invalid branch name: {name!r}")
