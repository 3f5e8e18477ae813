"""Commit object builder and serializer.

This module handles the creation, serialization and lookup of commit
objects, which represent snapshots of the working directory at a point in
time. Commits live in the object store next to blobs and are mirrored into
the metadata database for queries.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from tinyvcs.constants import BLOB_KIND, COMMIT_KIND
from tinyvcs.storage.metadata_db import MetadataDB
from tinyvcs.storage.object_store import (
    ObjectStore,
    TypedStore,
    compute_hash,
    is_valid_hash,
)

logger = logging.getLogger(__name__)


class CommitStoreError(Exception):
    """Exception raised while building or reading commits."""


@dataclass(frozen=True)
class Commit:
    """An immutable snapshot: tracked files, parent, message and timestamp."""

    id: str
    parent_id: Optional[str]
    message: str
    timestamp: str
    tracked: Mapping[str, str]

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.id,
            "parent": self.parent_id,
            "timestamp": self.timestamp,
            "message": self.message,
            "tracked": dict(self.tracked),
        }


def compute_commit_hash(
    tracked: Mapping[str, str],
    parent_id: Optional[str],
    message: str,
    timestamp: str,
) -> str:
    """Compute SHA-256 hash of a commit.

    Hash is computed over the canonical JSON representation (sorted keys,
    no whitespace) of the commit fields, so identical inputs always hash
    identically regardless of the tracked map's insertion order.
    """
    canonical_json = json.dumps(
        {
            "parent": parent_id,
            "timestamp": timestamp,
            "message": message,
            "tracked": dict(tracked),
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return compute_hash(canonical_json.encode("utf-8"))


def _freeze(tracked: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType({name: tracked[name] for name in sorted(tracked)})


class CommitStore(TypedStore[Commit]):
    """Builder and reader for commit objects.

    Commits are stored as pretty-printed JSON records in
    `.tinyvcs/objects/commits/` and indexed in the metadata database.

    Attributes:
        object_store: ObjectStore holding blobs and commits
        metadata_db: Open MetadataDB used as the query index
    """

    kind = COMMIT_KIND

    def __init__(self, object_store: ObjectStore, metadata_db: MetadataDB) -> None:
        super().__init__(object_store)
        self.metadata_db = metadata_db

    def create(
        self,
        parent_id: Optional[str],
        message: str,
        tracked: Mapping[str, str],
        timestamp: Optional[str] = None,
    ) -> Commit:
        """Create, persist and index a new commit.

        Args:
            parent_id: Id of the parent commit, or None for the root commit
            message: Commit message
            tracked: Snapshot of tracked files, filename -> blob id
            timestamp: ISO 8601 timestamp (default: now, UTC)

        Returns:
            The new Commit

        Raises:
            CommitStoreError: If the parent or a tracked blob is missing
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc).isoformat()

        if parent_id is not None and not self.exists(parent_id):
            raise CommitStoreError(f"Parent commit not found: {parent_id}")

        missing = [
            name for name, blob_id in tracked.items()
            if not self.object_store.object_exists(BLOB_KIND, blob_id)
        ]
        if missing:
            raise CommitStoreError(
                f"Tracked files reference missing blobs: {', '.join(sorted(missing))}"
            )

        frozen = _freeze(tracked)
        commit_hash = compute_commit_hash(frozen, parent_id, message, timestamp)
        commit = Commit(commit_hash, parent_id, message, timestamp, frozen)

        self._save(commit_hash, commit)
        self._index(commit)

        logger.info("Created commit %s (%d tracked files)", commit_hash[:7], len(frozen))
        return commit

    def parent_of(self, commit: Commit) -> Optional[Commit]:
        if commit.parent_id is None:
            return None
        return self.get(commit.parent_id)

    def match_prefix(self, prefix: str, limit: int = 2) -> List[str]:
        """Return up to ``limit`` stored commit ids starting with ``prefix``.

        Returns an empty list for prefixes that are not hexadecimal.
        """
        prefix = prefix.lower()
        if not prefix or any(c not in "0123456789abcdef" for c in prefix):
            return []
        if is_valid_hash(prefix):
            return [prefix] if self.exists(prefix) else []
        return self.metadata_db.find_commits_by_prefix(prefix, limit=limit)

    def iter_commits(self) -> Iterator[Commit]:
        """Yield every stored commit, in id order."""
        for commit_id in sorted(self.list_ids()):
            yield self.get(commit_id)

    def reindex(self) -> int:
        """Rebuild the metadata index from the commit records.

        Returns:
            Number of commits indexed
        """
        self.metadata_db.clear()
        count = 0
        for commit in self.iter_commits():
            self._index(commit)
            count += 1
        logger.info("Reindexed %d commits", count)
        return count

    def _encode(self, obj: Commit) -> bytes:
        # Pretty-print JSON for human readability
        return json.dumps(obj.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")

    def _decode(self, object_id: str, data: bytes) -> Commit:
        try:
            record = json.loads(data.decode("utf-8"))
            commit = Commit(
                id=record["hash"],
                parent_id=record.get("parent"),
                message=record["message"],
                timestamp=record["timestamp"],
                tracked=_freeze(record.get("tracked", {})),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise CommitStoreError(f"Corrupted commit record {object_id}: {e}") from e

        actual = compute_commit_hash(commit.tracked, commit.parent_id, commit.message, commit.timestamp)
        if commit.id != object_id or actual != object_id:
            raise CommitStoreError(
                f"Commit hash mismatch: expected {object_id}, got {actual}"
            )
        return commit

    def _index(self, commit: Commit) -> None:
        self.metadata_db.index_commit(
            commit_hash=commit.id,
            parent_hash=commit.parent_id,
            timestamp=commit.timestamp,
            message=commit.message,
        )
