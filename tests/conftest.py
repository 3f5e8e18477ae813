"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Optional

import pytest

from tinyvcs.core import (
    CheckoutEngine,
    MergeEngine,
    MergeResult,
    Repository,
    StagingManager,
)
from tinyvcs.storage import Commit


class RepoDriver:
    """Runs one operation per call, the way separate CLI invocations would."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, name: str, content: str) -> Path:
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    def read(self, name: str) -> str:
        return (self.root / name).read_text()

    def add(self, *names: str) -> None:
        with Repository.open(self.root) as repo:
            staging = StagingManager(repo)
            for name in names:
                staging.add(name)

    def rm(self, name: str) -> None:
        with Repository.open(self.root) as repo:
            StagingManager(repo).rm(name)

    def commit(self, message: str) -> Commit:
        with Repository.open(self.root) as repo:
            return StagingManager(repo).commit(message)

    def commit_file(self, name: str, content: str, message: Optional[str] = None) -> Commit:
        self.write(name, content)
        self.add(name)
        return self.commit(message or f"update {name}")

    def branch(self, name: str) -> None:
        with Repository.open(self.root) as repo:
            repo.refs.create_branch(name)

    def checkout(self, branch: str) -> Commit:
        with Repository.open(self.root) as repo:
            return CheckoutEngine(repo).checkout_branch(branch)

    def reset(self, commit_id: str) -> Commit:
        with Repository.open(self.root) as repo:
            return CheckoutEngine(repo).reset(commit_id)

    def merge(self, branch: str) -> MergeResult:
        with Repository.open(self.root) as repo:
            return MergeEngine(repo).merge(branch)

    def head(self) -> Commit:
        with Repository.open(self.root, write=False) as repo:
            return repo.head_commit()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create an empty workspace directory with an initialized repository."""
    root = tmp_path / "workspace"
    root.mkdir()
    Repository.init(root)
    return root


@pytest.fixture
def vcs(workspace: Path) -> RepoDriver:
    """Driver running operations against the initialized workspace."""
    return RepoDriver(workspace)
