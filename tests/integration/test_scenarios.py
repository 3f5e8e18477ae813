"""End-to-end workflows through the CLI."""

import json
from pathlib import Path

from typer.testing import CliRunner

from tinyvcs.cli.main import app
from tinyvcs.constants import TINYVCS_DIR

runner = CliRunner()


def run(*args: str) -> str:
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result.stdout


def _head(repo_dir: Path) -> str:
    return json.loads((repo_dir / TINYVCS_DIR / "refs.json").read_text())["HEAD"]


class TestWorkflows:
    """Typical sessions from init to merge."""

    def test_first_commit_log(self, repo_dir: Path) -> None:
        """A single commit is the only log entry."""
        (repo_dir / "hello.txt").write_text("world")
        run("add", "hello.txt")
        run("commit", "-m", "first")

        out = run("log")

        assert out.count("===") == 1
        assert "first" in out

    def test_branch_round_trip(self, repo_dir: Path) -> None:
        """Switching branches restores each branch's file content."""
        (repo_dir / "hello.txt").write_text("world")
        run("add", "hello.txt")
        run("commit", "-m", "first")
        run("branch", "feature")
        run("checkout", "feature")
        (repo_dir / "hello.txt").write_text("moon")
        run("add", "hello.txt")
        run("commit", "-m", "second")

        run("checkout", "master")
        assert (repo_dir / "hello.txt").read_text() == "world"

        run("checkout", "feature")
        assert (repo_dir / "hello.txt").read_text() == "moon"

    def test_automatic_merge(self, repo_dir: Path) -> None:
        """Edits to different files on two branches merge into one commit."""
        (repo_dir / "x.txt").write_text("x0")
        (repo_dir / "y.txt").write_text("y0")
        run("add", "x.txt", "y.txt")
        run("commit", "-m", "C1")
        run("branch", "A")
        run("branch", "B")

        run("checkout", "A")
        (repo_dir / "x.txt").write_text("x1")
        run("add", "x.txt")
        run("commit", "-m", "edit x")

        run("checkout", "B")
        (repo_dir / "y.txt").write_text("y1")
        run("add", "y.txt")
        run("commit", "-m", "edit y")
        before = _head(repo_dir)

        out = run("merge", "A")

        assert "Merged into" in out
        assert (repo_dir / "x.txt").read_text() == "x1"
        assert (repo_dir / "y.txt").read_text() == "y1"
        assert _head(repo_dir) != before
        assert "Merged A into B." in run("log", "-n", "1")

    def test_conflicting_merge(self, repo_dir: Path) -> None:
        """Different edits to one file leave both versions between markers."""
        (repo_dir / "x.txt").write_text("base\n")
        run("add", "x.txt")
        run("commit", "-m", "C1")
        run("branch", "A")
        run("branch", "B")

        run("checkout", "A")
        (repo_dir / "x.txt").write_text("left\n")
        run("add", "x.txt")
        run("commit", "-m", "left")

        run("checkout", "B")
        (repo_dir / "x.txt").write_text("right\n")
        run("add", "x.txt")
        run("commit", "-m", "right")

        result = runner.invoke(app, ["merge", "A"])

        assert result.exit_code == 1
        assert "Encountered a merge conflict." in result.stdout
        assert (repo_dir / "x.txt").read_text() == (
            "<<<<<<< HEAD\nright\n=======\nleft\n>>>>>>>\n"
        )

        # Resolve and commit
        (repo_dir / "x.txt").write_text("both\n")
        run("add", "x.txt")
        run("commit", "-m", "resolved")
        assert "resolved" in run("log", "--oneline", "-n", "1")

    def test_rm_then_checkout_restores(self, repo_dir: Path) -> None:
        """A removed file comes back from an older commit."""
        (repo_dir / "a.txt").write_text("keep me")
        run("add", "a.txt")
        run("commit", "-m", "add a")
        first = _head(repo_dir)
        run("rm", "a.txt")
        run("commit", "-m", "remove a")
        assert not (repo_dir / "a.txt").exists()

        run("checkout", first, "--file", "a.txt")

        assert (repo_dir / "a.txt").read_text() == "keep me"
        status = run("status")
        assert "a.txt" in status.split("=== Untracked Files ===")[1]
