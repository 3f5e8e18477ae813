"""Content-addressable object storage for TinyVCS.

This module implements a Git-like keyed object store using SHA-256 ids.
Objects are partitioned by kind (blobs, commits) under .tinyvcs/objects/,
written atomically and optionally gzip-compressed for large records.

On top of the raw keyed storage sits ``TypedStore``, a small generic layer
that turns bytes into domain objects for one kind, and ``BlobStore``, the
content store for file snapshots.
"""

import gzip
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, Optional, Set, TypeVar

from tinyvcs.constants import (
    BLOB_KIND,
    GZIP_THRESHOLD,
    HASH_ALGORITHM,
    HASH_LENGTH,
    OBJECT_KINDS,
    OBJECTS_DIR,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObjectNotFoundError(Exception):
    """Raised when an object cannot be found in the object store."""

    pass


class ObjectCorruptedError(Exception):
    """Raised when an object's id doesn't match its content."""

    pass


def compute_hash(data: bytes) -> str:
    """Compute the hex digest used for object ids."""
    hasher = hashlib.new(HASH_ALGORITHM)
    hasher.update(data)
    return hasher.hexdigest()


def is_valid_hash(object_id: str) -> bool:
    """Check that a string looks like a full object id."""
    if not isinstance(object_id, str) or len(object_id) != HASH_LENGTH:
        return False
    try:
        int(object_id, 16)
    except ValueError:
        return False
    return True


class ObjectStore:
    """Content-addressable storage for repository objects.

    Stores immutable records keyed by their SHA-256 id, one directory per
    object kind. Writing an id that already exists is a no-op.

    Storage layout:
        .tinyvcs/objects/<kind>/<id[:2]>/<id[2:]>      # Raw record
        .tinyvcs/objects/<kind>/<id[:2]>/<id[2:]>.gz   # Compressed record

    Attributes:
        tinyvcs_dir: Path to the .tinyvcs directory
        objects_dir: Path to the objects directory

    Example:
        >>> store = ObjectStore(Path(".tinyvcs"))
        >>> store.write_object("blobs", object_id, b"hello.txt\\x00world")
        >>> store.read_object("blobs", object_id)
    """

    def __init__(self, tinyvcs_dir: Path) -> None:
        """Initialize the object store.

        Args:
            tinyvcs_dir: Path to .tinyvcs directory

        Raises:
            ValueError: If tinyvcs_dir doesn't exist
        """
        self.tinyvcs_dir = Path(tinyvcs_dir)
        self.objects_dir = self.tinyvcs_dir / OBJECTS_DIR

        if not self.tinyvcs_dir.exists():
            raise ValueError(f"TinyVCS directory not found: {tinyvcs_dir}")

    def write_object(
        self,
        kind: str,
        object_id: str,
        data: bytes,
        compress: Optional[bool] = None,
    ) -> bool:
        """Write a record to the object store.

        If a record with the same id already exists, nothing is written
        (deduplication). Uses atomic write (tmp file + rename) to prevent
        corruption.

        Args:
            kind: Object kind (one of OBJECT_KINDS)
            object_id: SHA-256 id of the record (64 hex characters)
            data: Serialized record
            compress: Force compression (True), no compression (False), or
                     auto-compress at GZIP_THRESHOLD (None, default)

        Returns:
            True if the record was written, False if it already existed

        Raises:
            OSError: If write fails (permissions, disk full, etc.)
        """
        self._validate_kind(kind)
        self._validate_hash(object_id)

        if self.object_exists(kind, object_id):
            return False

        should_compress = compress
        if compress is None:
            should_compress = len(data) >= GZIP_THRESHOLD

        if should_compress:
            data_to_write = gzip.compress(data, compresslevel=6)
        else:
            data_to_write = data

        object_path = self._get_object_path(kind, object_id, compressed=bool(should_compress))
        object_path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: tmp file -> rename
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=object_path.parent,
            prefix=".tmp_",
            suffix=".obj",
        )
        try:
            with os.fdopen(tmp_fd, "wb") as f:
                f.write(data_to_write)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, object_path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug("Wrote %s object %s (%d bytes)", kind, object_id[:8], len(data))
        return True

    def read_object(self, kind: str, object_id: str) -> bytes:
        """Read a record from the object store.

        Args:
            kind: Object kind
            object_id: SHA-256 id of the record

        Returns:
            The stored record, decompressed if needed

        Raises:
            ObjectNotFoundError: If the record doesn't exist or the id is malformed
        """
        self._validate_kind(kind)
        if not is_valid_hash(object_id):
            raise ObjectNotFoundError(f"Object not found: {kind}/{object_id}")

        compressed_path = self._get_object_path(kind, object_id, compressed=True)
        uncompressed_path = self._get_object_path(kind, object_id, compressed=False)

        if compressed_path.exists():
            return gzip.decompress(compressed_path.read_bytes())
        if uncompressed_path.exists():
            return uncompressed_path.read_bytes()

        raise ObjectNotFoundError(f"Object not found: {kind}/{object_id}")

    def object_exists(self, kind: str, object_id: str) -> bool:
        """Check if a record exists in the store (compressed or not)."""
        if not is_valid_hash(object_id):
            return False

        compressed_path = self._get_object_path(kind, object_id, compressed=True)
        uncompressed_path = self._get_object_path(kind, object_id, compressed=False)

        return compressed_path.exists() or uncompressed_path.exists()

    def list_ids(self, kind: str) -> Set[str]:
        """Return the ids of every stored record of one kind."""
        self._validate_kind(kind)
        kind_dir = self.objects_dir / kind
        if not kind_dir.exists():
            return set()

        ids = set()
        for shard in kind_dir.iterdir():
            if not shard.is_dir() or len(shard.name) != 2:
                continue
            for entry in shard.iterdir():
                if entry.name.startswith(".tmp_"):
                    continue
                name = entry.name[:-3] if entry.name.endswith(".gz") else entry.name
                object_id = shard.name + name
                if is_valid_hash(object_id):
                    ids.add(object_id)
        return ids

    def _get_object_path(self, kind: str, object_id: str, compressed: bool = False) -> Path:
        """Get the filesystem path for a record.

        Uses Git-like sharding: objects/<kind>/<id[:2]>/<id[2:]>[.gz]
        """
        prefix = object_id[:2]
        suffix = object_id[2:]
        filename = f"{suffix}.gz" if compressed else suffix
        return self.objects_dir / kind / prefix / filename

    def _validate_kind(self, kind: str) -> None:
        if kind not in OBJECT_KINDS:
            raise ValueError(f"Unknown object kind: {kind}")

    def _validate_hash(self, object_id: str) -> None:
        """Validate that an id string is properly formatted.

        Raises:
            ValueError: If id is invalid format
        """
        if not isinstance(object_id, str):
            raise ValueError(f"Hash must be string, got {type(object_id)}")

        if len(object_id) != HASH_LENGTH:
            raise ValueError(
                f"Hash must be {HASH_LENGTH} characters, got {len(object_id)}"
            )

        try:
            int(object_id, 16)
        except ValueError as e:
            raise ValueError(f"Hash must be hexadecimal: {e}") from e


class TypedStore(Generic[T]):
    """Lookup of one object kind, decoded into domain objects.

    Subclasses set ``kind`` and implement ``_encode``/``_decode``; the
    keyed storage underneath is shared by every kind.
    """

    kind: str = ""

    def __init__(self, object_store: ObjectStore) -> None:
        self.object_store = object_store

    def get(self, object_id: str) -> T:
        """Load and decode an object.

        Raises:
            ObjectNotFoundError: If no object of this kind has that id
            ObjectCorruptedError: If the stored record is damaged
        """
        data = self.object_store.read_object(self.kind, object_id)
        return self._decode(object_id, data)

    def exists(self, object_id: str) -> bool:
        return self.object_store.object_exists(self.kind, object_id)

    def list_ids(self) -> Set[str]:
        return self.object_store.list_ids(self.kind)

    def _save(self, object_id: str, obj: T, compress: Optional[bool] = None) -> bool:
        return self.object_store.write_object(
            self.kind, object_id, self._encode(obj), compress=compress
        )

    def _encode(self, obj: T) -> bytes:
        raise NotImplementedError

    def _decode(self, object_id: str, data: bytes) -> T:
        raise NotImplementedError


@dataclass(frozen=True)
class Blob:
    """An immutable snapshot of one file's name and bytes."""

    id: str
    name: str
    content: bytes


def _blob_record(name: str, content: bytes) -> bytes:
    if "\x00" in name:
        raise ValueError(f"Blob name may not contain NUL: {name!r}")
    return name.encode("utf-8") + b"\x00" + content


def compute_blob_id(name: str, content: bytes) -> str:
    """Compute the id of a blob from its file name and content."""
    return compute_hash(_blob_record(name, content))


class BlobStore(TypedStore[Blob]):
    """Content store for file blobs.

    A blob is stored as ``name + NUL + content``; its id is the SHA-256 of
    that record, so every read can be verified against the id.

    Example:
        >>> blobs = BlobStore(ObjectStore(Path(".tinyvcs")))
        >>> blob_id = blobs.put("hello.txt", b"world")
        >>> blobs.get(blob_id).content
        b'world'
    """

    kind = BLOB_KIND

    def put(self, name: str, content: bytes, compress: Optional[bool] = None) -> str:
        """Store a blob and return its id. Idempotent."""
        blob_id = compute_blob_id(name, content)
        self._save(blob_id, Blob(blob_id, name, content), compress=compress)
        return blob_id

    def read_content(self, blob_id: str) -> bytes:
        return self.get(blob_id).content

    def _encode(self, obj: Blob) -> bytes:
        return _blob_record(obj.name, obj.content)

    def _decode(self, object_id: str, data: bytes) -> Blob:
        actual_id = compute_hash(data)
        if actual_id != object_id:
            raise ObjectCorruptedError(
                f"Blob corrupted: expected {object_id}, got {actual_id}"
            )
        name, sep, content = data.partition(b"\x00")
        if not sep:
            raise ObjectCorruptedError(f"Blob record has no name header: {object_id}")
        return Blob(object_id, name.decode("utf-8"), content)
