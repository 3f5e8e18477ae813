"""Working-directory access for TinyVCS.

Filenames are handled as POSIX paths relative to the workspace root, so the
same name is used in the staging index, in commits and on disk.
"""

import fnmatch
import logging
from pathlib import Path, PurePosixPath
from typing import List, Set

from tinyvcs.constants import IGNORE_FILE, TINYVCS_DIR
from tinyvcs.core.errors import PathOutsideWorkspaceError

logger = logging.getLogger(__name__)


class Workspace:
    """The working directory that snapshots are taken from and written to.

    Attributes:
        root: Absolute, resolved workspace root
        tinyvcs_dir: The repository directory inside the root
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()
        self.tinyvcs_dir = self.root / TINYVCS_DIR

    def normalize(self, filename: str) -> str:
        """Turn a user-supplied path into a root-relative POSIX filename.

        Raises:
            PathOutsideWorkspaceError: If the path escapes the root or points
                into the repository directory
        """
        outside = PathOutsideWorkspaceError(
            f"Path {filename} is outside workspace root {self.root}"
        )
        path = Path(filename)
        if not path.is_absolute():
            path = self.root / path
        if path.parts[:len(self.root.parts)] != self.root.parts:
            raise outside

        # Normalised lexically; resolve() would follow symlinks out of the tree
        parts: List[str] = []
        for part in path.parts[len(self.root.parts):]:
            if part == ".":
                continue
            if part == "..":
                if not parts:
                    raise outside
                parts.pop()
            else:
                parts.append(part)

        if not parts:
            raise outside
        if parts[0] == TINYVCS_DIR:
            raise PathOutsideWorkspaceError(f"Path {filename} is inside the repository directory")
        return PurePosixPath(*parts).as_posix()

    def expand(self, filename: str) -> List[str]:
        """Filenames named by a user path; a directory names every
        non-ignored file below it."""
        if Path(filename) in (Path("."), self.root):
            return sorted(self.list_files())

        name = self.normalize(filename)
        if self.path(name).is_dir():
            prefix = name + "/"
            return sorted(f for f in self.list_files() if f.startswith(prefix))
        return [name]

    def path(self, name: str) -> Path:
        return self.root.joinpath(*PurePosixPath(name).parts)

    def exists(self, name: str) -> bool:
        return self.path(name).is_file()

    def read(self, name: str) -> bytes:
        return self.path(name).read_bytes()

    def write(self, name: str, content: bytes) -> None:
        target = self.path(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def delete(self, name: str) -> bool:
        """Delete a working file and any directories it leaves empty.

        Returns:
            True if a file was deleted
        """
        target = self.path(name)
        if not target.is_file():
            return False
        target.unlink()
        parent = target.parent
        while parent != self.root:
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent
        return True

    def list_files(self, include_ignored: bool = False) -> Set[str]:
        """All files in the working directory outside ``.tinyvcs/``.

        Args:
            include_ignored: Keep files matched by ``.tinyvcsignore`` (and the
                ignore file itself)

        Returns:
            Set of working file names
        """
        patterns = [] if include_ignored else self._load_ignore_patterns()
        files = set()
        for item in self.root.rglob("*"):
            if not item.is_file():
                continue
            rel_path = item.relative_to(self.root)
            if rel_path.parts[0] == TINYVCS_DIR:
                continue
            if not include_ignored:
                if rel_path.as_posix() == IGNORE_FILE or self._should_ignore(rel_path, patterns):
                    continue
            files.add(rel_path.as_posix())
        return files

    def _load_ignore_patterns(self) -> List[str]:
        """Load patterns from the .tinyvcsignore file."""
        ignore_file = self.root / IGNORE_FILE

        if not ignore_file.exists():
            return []

        patterns = []
        for line in ignore_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            # Skip empty lines and comments
            if line and not line.startswith("#"):
                patterns.append(line)
        return patterns

    def _should_ignore(self, rel_path: Path, patterns: List[str]) -> bool:
        """Check if path matches any ignore pattern."""
        path_str = rel_path.as_posix()

        for pattern in patterns:
            # Directory patterns ending with / match everything below them
            if pattern.endswith("/"):
                directory = pattern.rstrip("/")
                if path_str.startswith(directory + "/"):
                    return True
            elif fnmatch.fnmatch(path_str, pattern) or fnmatch.fnmatch(rel_path.name, pattern):
                return True

        return False
