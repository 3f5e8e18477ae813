"""Fixtures for CLI tests run as a separate process."""

import os
import subprocess
import sys
from pathlib import Path

import pytest

TINYVCS = [sys.executable, "-m", "tinyvcs.cli.main"]
SRC_DIR = Path(__file__).resolve().parents[3] / "src"


def run_tinyvcs(workspace: Path, *args: str) -> subprocess.CompletedProcess:
    """Run the tinyvcs CLI in ``workspace``."""
    env = os.environ.copy()
    env.pop("TINYVCS_ROOT", None)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    return subprocess.run(
        [*TINYVCS, *args],
        cwd=workspace,
        capture_output=True,
        text=True,
        env=env,
    )


@pytest.fixture
def tinyvcs():
    """The CLI runner function, for tests in this directory."""
    return run_tinyvcs


@pytest.fixture
def initialized_repo(tmp_path):
    """Create a temporary directory with an initialized TinyVCS repository.

    Returns:
        Path: Path to the workspace root
    """
    workspace = tmp_path / "test_workspace"
    workspace.mkdir()

    result = run_tinyvcs(workspace, "init", "--quiet")

    if result.returncode != 0:
        raise RuntimeError(f"Failed to initialize repo: {result.stdout}\n{result.stderr}")

    return workspace
