"""Storage layer for TinyVCS.

This module provides the content-addressable object store, the commit
store, the metadata index database and the small state records.
"""

from tinyvcs.storage.commit_store import Commit, CommitStore, CommitStoreError
from tinyvcs.storage.metadata_db import DatabaseError, MetadataDB
from tinyvcs.storage.object_store import (
    Blob,
    BlobStore,
    ObjectCorruptedError,
    ObjectNotFoundError,
    ObjectStore,
    TypedStore,
)
from tinyvcs.storage.state import (
    RepositoryLock,
    RepositoryLockedError,
    StateError,
    StateStore,
)

__all__ = [
    "ObjectStore",
    "TypedStore",
    "Blob",
    "BlobStore",
    "ObjectNotFoundError",
    "ObjectCorruptedError",
    "Commit",
    "CommitStore",
    "CommitStoreError",
    "MetadataDB",
    "DatabaseError",
    "StateStore",
    "StateError",
    "RepositoryLock",
    "RepositoryLockedError",
]
