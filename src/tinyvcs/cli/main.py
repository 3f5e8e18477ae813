"""Main CLI entry point for TinyVCS."""

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from tinyvcs.constants import (
    ENV_LOG_LEVEL,
    ENV_ROOT,
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    TINYVCS_DIR,
)
from tinyvcs.core import (
    AddStatus,
    CheckoutEngine,
    MergeEngine,
    MergeStatus,
    Repository,
    StagingManager,
    VCSError,
)
from tinyvcs.core import history
from tinyvcs.storage import Commit, RepositoryLockedError

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(
    name="tinyvcs",
    help="A small local version-control system",
    add_completion=False,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        envvar=ENV_ROOT,
        help="Working directory of the repository (default: current directory)",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar=ENV_LOG_LEVEL,
        help="Logging level: DEBUG, INFO, WARNING, ERROR",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
) -> None:
    """Version control for a working directory."""
    _configure_logging("DEBUG" if verbose else log_level)
    ctx.obj = {"root": root}


def _workspace_root(ctx: typer.Context) -> Path:
    root = (ctx.obj or {}).get("root")
    return Path(root) if root else Path.cwd()


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Report user errors (exit 1) and system errors (exit 2)."""
    try:
        yield
    except (VCSError, RepositoryLockedError) as e:
        console.print(escape(str(e)))
        raise typer.Exit(EXIT_USER_ERROR)
    except typer.Exit:
        raise
    except Exception as e:
        logger.debug("Operation failed", exc_info=True)
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(EXIT_SYSTEM_ERROR)


def _format_date(timestamp: str) -> str:
    return datetime.fromisoformat(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _print_commit(commit: Commit) -> None:
    console.print("===")
    console.print(f"[bold yellow]commit {commit.id}[/bold yellow]")
    if commit.parent_id:
        console.print(f"[dim]Parent: {commit.parent_id[:7]}[/dim]")
    else:
        console.print("[dim]Parent: (root commit)[/dim]")
    console.print(f"[bold]Date:[/bold]   {_format_date(commit.timestamp)}")
    for line in commit.message.split("\n"):
        console.print(f"    {escape(line)}")
    console.print()


@app.command()
def version() -> None:
    """Show TinyVCS version."""
    from tinyvcs import __version__
    typer.echo(f"TinyVCS version {__version__}")


@app.command()
def init(
    ctx: typer.Context,
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress output except errors",
    ),
) -> None:
    """Initialize a repository in the working directory."""
    workspace_root = _workspace_root(ctx)
    with _handle_errors():
        root_commit = Repository.init(workspace_root)

    if not quiet:
        success_message = f"""[bold green]✓[/bold green] Initialized TinyVCS repository

[dim]Repository root:[/dim] {escape(str(workspace_root))}
[dim]Storage location:[/dim] {escape(str(workspace_root / TINYVCS_DIR))}
[dim]Initial commit:[/dim] {root_commit.id[:7]}

[bold]Next steps:[/bold]
  1. Stage files: [cyan]tinyvcs add <file>[/cyan]
  2. Commit them: [cyan]tinyvcs commit -m "first"[/cyan]
"""
        console.print(Panel(success_message, border_style="green", title="TinyVCS Initialized"))


@app.command()
def add(
    ctx: typer.Context,
    paths: List[str] = typer.Argument(..., help="Files or directories to add"),
) -> None:
    """Add files to the staging area."""
    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        results = StagingManager(repo).add_paths(paths)

    staged = 0
    for name, status in results:
        if status == AddStatus.STAGED:
            staged += 1
            console.print(f"  [green]+[/green] {escape(name)}")
        else:
            console.print(f"  [dim]= {escape(name)} ({status.value})[/dim]")
    console.print(f"\n[bold]{staged} file(s) staged[/bold]")


@app.command()
def rm(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File to remove"),
) -> None:
    """Unstage a file and, if tracked, delete it and mark it for removal."""
    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        status = StagingManager(repo).rm(path)
        console.print(f"  [red]-[/red] {escape(path)} ({status.value})")


@app.command()
def commit(
    ctx: typer.Context,
    message: Optional[str] = typer.Option(
        None,
        "--message",
        "-m",
        help="Commit message (required)",
    ),
) -> None:
    """Commit staged files as a snapshot."""
    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        new_commit = StagingManager(repo).commit(message or "")
        console.print(f"[bold green]>[/bold green] Committed [bold cyan]{new_commit.id[:7]}[/bold cyan]")
        console.print(f"  [dim]Date:[/dim]    {_format_date(new_commit.timestamp)}")
        console.print(f"  [dim]Parent:[/dim]  {new_commit.parent_id[:7]}")
        console.print(f"\n  {escape(new_commit.message)}")


@app.command()
def log(
    ctx: typer.Context,
    max_count: Optional[int] = typer.Option(
        None,
        "--max-count",
        "-n",
        help="Limit number of commits to show",
    ),
    oneline: bool = typer.Option(
        False,
        "--oneline",
        help="Show each commit on a single line",
    ),
    include_root: bool = typer.Option(
        False,
        "--root",
        help="Include the initial commit",
    ),
) -> None:
    """Show the history of the current branch."""
    with _handle_errors(), Repository.open(_workspace_root(ctx), write=False) as repo:
        commits = history.log(repo, include_root=include_root, limit=max_count or 0)
        if not commits:
            console.print("[dim]No commits yet[/dim]")
            return
        for entry in commits:
            if oneline:
                first_line = entry.message.split("\n")[0]
                console.print(f"[yellow]{entry.id[:7]}[/yellow] {escape(first_line)}")
            else:
                _print_commit(entry)


@app.command("global-log")
def global_log(ctx: typer.Context) -> None:
    """Show every commit ever made."""
    with _handle_errors(), Repository.open(_workspace_root(ctx), write=False) as repo:
        for entry in history.global_log(repo):
            _print_commit(entry)


@app.command()
def find(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Exact commit message"),
) -> None:
    """Print the ids of all commits with the given message."""
    with _handle_errors(), Repository.open(_workspace_root(ctx), write=False) as repo:
        for commit_id in history.find(repo, message):
            console.print(commit_id)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show branches, staged and removed files, and working directory changes."""
    with _handle_errors(), Repository.open(_workspace_root(ctx), write=False) as repo:
        report = history.status(repo)

    console.print("[bold]=== Branches ===[/bold]")
    for name in report.branches:
        marker = "*" if name == report.current_branch else ""
        console.print(f"{marker}{escape(name)}")
    console.print()

    console.print("[bold]=== Staged Files ===[/bold]")
    for name in report.staged:
        console.print(escape(name))
    console.print()

    console.print("[bold]=== Removed Files ===[/bold]")
    for name in report.removed:
        console.print(escape(name))
    console.print()

    console.print("[bold]=== Modifications Not Staged For Commit ===[/bold]")
    for name, change in report.modified:
        console.print(f"{escape(name)} ({change})")
    console.print()

    console.print("[bold]=== Untracked Files ===[/bold]")
    for name in report.untracked:
        console.print(escape(name))
    console.print()


@app.command()
def checkout(
    ctx: typer.Context,
    target: Optional[str] = typer.Argument(
        None,
        help="Branch to switch to, or commit id to take --file from",
    ),
    file: Optional[str] = typer.Option(
        None,
        "--file",
        "-f",
        help="Restore only this file (from HEAD, or from the given commit)",
    ),
) -> None:
    """Check out a branch, or restore a single file from HEAD or a commit."""
    if target is None and file is None:
        console.print("Incorrect operands.")
        raise typer.Exit(EXIT_USER_ERROR)

    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        engine = CheckoutEngine(repo)
        if file is None:
            head = engine.checkout_branch(target)
            console.print(f"Switched to branch [bold]{escape(target)}[/bold] ({head.id[:7]})")
        elif target is None:
            engine.checkout_file(file)
        else:
            engine.checkout_commit_file(target, file)


@app.command()
def branch(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the new branch"),
) -> None:
    """Create a branch at the current commit."""
    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        repo.refs.create_branch(name)


@app.command("rm-branch")
def rm_branch(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Branch to delete"),
) -> None:
    """Delete a branch pointer (its commits are kept)."""
    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        repo.refs.delete_branch(name)


@app.command()
def reset(
    ctx: typer.Context,
    commit_id: str = typer.Argument(..., help="Commit id (may be abbreviated)"),
) -> None:
    """Move the current branch to a commit and check out its files."""
    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        target = CheckoutEngine(repo).reset(commit_id)
        console.print(f"HEAD is now at [bold cyan]{target.id[:7]}[/bold cyan] {escape(target.message)}")


@app.command()
def merge(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Branch to merge into the current branch"),
) -> None:
    """Merge a branch into the current branch."""
    with _handle_errors(), Repository.open(_workspace_root(ctx)) as repo:
        result = MergeEngine(repo).merge(name)

    if result.status == MergeStatus.FAST_FORWARD:
        console.print("Current branch fast-forwarded.")
    elif result.status == MergeStatus.ANCESTOR:
        console.print("Given branch is an ancestor of the current branch.")
    elif result.status == MergeStatus.MERGED:
        console.print(f"[bold green]>[/bold green] Merged into [bold cyan]{result.commit_id[:7]}[/bold cyan]")
    else:
        for conflicted in result.conflicts:
            console.print(f"  [red]![/red] {escape(conflicted)}")
        console.print("Encountered a merge conflict.")
        raise typer.Exit(EXIT_USER_ERROR)


@app.command()
def reindex(ctx: typer.Context) -> None:
    """Rebuild the metadata index from the commit records."""
    with _handle_errors(), Repository.open(_workspace_root(ctx), write=False) as repo:
        count = repo.commits.reindex()
    console.print(f"Indexed {count} commit(s)")


@app.command()
def fsck(ctx: typer.Context) -> None:
    """Check that every tracked file of every commit has its blob."""
    with _handle_errors(), Repository.open(_workspace_root(ctx), write=False) as repo:
        dangling = history.verify_integrity(repo)

    if not dangling:
        console.print("[green]No dangling references[/green]")
        return
    for commit_id, name, blob_id in dangling:
        console.print(f"  [red]x[/red] {commit_id[:7]} {escape(name)} -> missing blob {blob_id[:8]}")
    raise typer.Exit(EXIT_SYSTEM_ERROR)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
