"""Fixtures for CLI integration tests run in-process."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from tinyvcs.cli.main import app

runner = CliRunner()


@pytest.fixture
def repo_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Change into a fresh directory and initialize a repository there.

    Returns:
        Path: Path to the workspace root
    """
    monkeypatch.delenv("TINYVCS_ROOT", raising=False)
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["init", "--quiet"])
    assert result.exit_code == 0, result.output
    return tmp_path
