"""Basic smoke tests to verify project setup."""

from tinyvcs import __version__


def test_version() -> None:
    """Test that version is correctly defined."""
    assert __version__ == "0.1.0"


def test_import_storage() -> None:
    """Test that storage module can be imported."""
    from tinyvcs import storage  # noqa: F401


def test_import_core() -> None:
    """Test that core module can be imported."""
    from tinyvcs import core  # noqa: F401


def test_import_cli() -> None:
    """Test that cli module can be imported."""
    from tinyvcs.cli import main  # noqa: F401


def test_workspace_fixture(workspace) -> None:
    """Test that the workspace fixture initializes a repository."""
    assert (workspace / ".tinyvcs").is_dir()
    assert (workspace / ".tinyvcs" / "refs.json").exists()
