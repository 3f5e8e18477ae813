"""Small mutable state records and the repository lock.

The reference table, staging index, removal set and current-branch marker
are each kept in their own file under .tinyvcs/ and always replaced
atomically (tmp file + rename). A lock file guards a repository for the
duration of one operation.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Set

from tinyvcs.constants import (
    CURRENT_BRANCH_FILE,
    INDEX_FILE,
    INDEX_VERSION,
    LOCK_FILE,
    REFS_FILE,
    REMOVALS_FILE,
)

logger = logging.getLogger(__name__)


class StateError(Exception):
    """Raised when a state record is missing or corrupted."""


class RepositoryLockedError(Exception):
    """Raised when another operation holds the repository lock."""


def atomic_write_text(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temp file in the same directory."""
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".tmp_{path.name}_",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class StateStore:
    """Reader/writer for the four state records of a repository.

    Record formats:
        refs.json       {"HEAD": "<id>", "INITIAL": "<id>", "master": "<id>", ...}
        index           {"version": 1, "entries": {"<file>": {"blob_hash": "<id>"}}}
        removals.json   ["<file>", ...]
        CURRENT_BRANCH  <branch name>

    Attributes:
        tinyvcs_dir: Path to the .tinyvcs directory
    """

    def __init__(self, tinyvcs_dir: Path) -> None:
        self.tinyvcs_dir = Path(tinyvcs_dir)
        self.refs_path = self.tinyvcs_dir / REFS_FILE
        self.index_path = self.tinyvcs_dir / INDEX_FILE
        self.removals_path = self.tinyvcs_dir / REMOVALS_FILE
        self.current_branch_path = self.tinyvcs_dir / CURRENT_BRANCH_FILE

    # Reference table

    def read_refs(self) -> Dict[str, str]:
        refs = self._read_json(self.refs_path)
        if not isinstance(refs, dict):
            raise StateError(f"Corrupted reference table: {self.refs_path}")
        return {str(k): str(v) for k, v in refs.items()}

    def write_refs(self, refs: Dict[str, str]) -> None:
        self._write_json(self.refs_path, dict(sorted(refs.items())))

    # Staging index

    def read_index(self) -> Dict[str, str]:
        """Load the staging index as a filename -> blob id mapping."""
        if not self.index_path.exists():
            return {}

        index = self._read_json(self.index_path)
        if not isinstance(index, dict) or index.get("version") != INDEX_VERSION:
            version = index.get("version") if isinstance(index, dict) else None
            raise StateError(f"Unsupported index version: {version}")

        return {
            name: entry["blob_hash"]
            for name, entry in index.get("entries", {}).items()
        }

    def write_index(self, staged: Dict[str, str]) -> None:
        entries = {
            name: {"blob_hash": blob_id}
            for name, blob_id in sorted(staged.items())
        }
        self._write_json(self.index_path, {"version": INDEX_VERSION, "entries": entries})

    # Removal set

    def read_removals(self) -> Set[str]:
        if not self.removals_path.exists():
            return set()
        removals = self._read_json(self.removals_path)
        if not isinstance(removals, list):
            raise StateError(f"Corrupted removal set: {self.removals_path}")
        return set(removals)

    def write_removals(self, removals: Set[str]) -> None:
        self._write_json(self.removals_path, sorted(removals))

    # Current branch

    def read_current_branch(self) -> str:
        if not self.current_branch_path.exists():
            raise StateError(f"Missing current branch marker: {self.current_branch_path}")
        branch = self.current_branch_path.read_text(encoding="utf-8").strip()
        if not branch:
            raise StateError("Current branch marker is empty")
        return branch

    def write_current_branch(self, branch: str) -> None:
        atomic_write_text(self.current_branch_path, branch + "\n")

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            raise StateError(f"Missing state record: {path.name}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"Corrupted state record {path.name}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False))


class RepositoryLock:
    """Exclusive lock file held for the duration of one operation.

    Example:
        >>> with RepositoryLock(Path(".tinyvcs")):
        ...     ...
    """

    def __init__(self, tinyvcs_dir: Path) -> None:
        self.lock_path = Path(tinyvcs_dir) / LOCK_FILE
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        try:
            self._fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            if not self._is_stale():
                raise RepositoryLockedError(
                    f"Repository is locked by another operation ({self.lock_path}). "
                    "If no other operation is running, delete the lock file."
                ) from e
            logger.warning("Removing stale lock %s left by a dead process", self.lock_path)
            self.lock_path.unlink(missing_ok=True)
            try:
                self._fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError as retry_error:
                raise RepositoryLockedError(
                    f"Repository is locked by another operation ({self.lock_path})."
                ) from retry_error
        os.write(self._fd, str(os.getpid()).encode("ascii"))
        logger.debug("Acquired repository lock %s", self.lock_path)

    def _is_stale(self) -> bool:
        """True if the lock names a process that no longer exists.

        Only checked on POSIX; a lock without a readable PID is never stale.
        """
        if os.name != "posix":
            return False
        try:
            pid = int(self.lock_path.read_text(encoding="ascii").strip())
        except (OSError, ValueError):
            return False
        if pid <= 0:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        except PermissionError:
            pass
        return False

    def release(self) -> None:
        if self._fd is None:
            return
        os.close(self._fd)
        self._fd = None
        try:
            os.unlink(self.lock_path)
        except FileNotFoundError:
            pass
        logger.debug("Released repository lock %s", self.lock_path)

    @property
    def held(self) -> bool:
        return self._fd is not None

    def __enter__(self) -> "RepositoryLock":
        self.acquire()
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()
