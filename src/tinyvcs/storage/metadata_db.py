"""SQLite metadata database for TinyVCS.

This module indexes commit metadata in a SQLite database.
The database serves as a rebuildable index - the true source of truth is the
commit records in the object store.
"""

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from tinyvcs.constants import DB_SCHEMA_VERSION, METADATA_DB


class DatabaseError(Exception):
    """Base exception for database errors."""

    pass


class MetadataDB:
    """SQLite database manager for TinyVCS metadata.

    Answers the queries that would otherwise need a scan of every commit
    record: abbreviated-id lookup, find-by-message and the global log.

    Schema Tables:
        - commits: Commit records with hash, parent, timestamp, message
        - metadata: Schema version

    Attributes:
        db_path: Path to the SQLite database file
        conn: Active database connection (if open)

    Example:
        >>> with MetadataDB(Path(".tinyvcs")) as db:
        ...     db.init_schema()
        ...     db.find_commits_by_message("first")
    """

    def __init__(self, tinyvcs_dir: Path) -> None:
        """Initialize database manager.

        Args:
            tinyvcs_dir: Path to .tinyvcs directory
        """
        self.tinyvcs_dir = Path(tinyvcs_dir)
        self.db_path = self.tinyvcs_dir / METADATA_DB
        self.conn: Optional[sqlite3.Connection] = None
        self._wal_mode_supported: Optional[bool] = None

    def open(self) -> None:
        """Open database connection and configure journal mode.

        Attempts to use WAL mode. Falls back to DELETE mode if WAL is not
        supported (e.g., on NFS).

        Raises:
            DatabaseError: If connection fails
        """
        if self.conn is not None:
            return  # Already open

        try:
            self.conn = sqlite3.connect(str(self.db_path), timeout=30.0)
            self.conn.row_factory = sqlite3.Row

            if self._wal_mode_supported is None:
                self._detect_wal_support()

            if self._wal_mode_supported:
                self.conn.execute("PRAGMA journal_mode=WAL")
            else:
                self.conn.execute("PRAGMA journal_mode=DELETE")

            self.conn.execute("PRAGMA foreign_keys=ON")

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to open database: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "MetadataDB":
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _detect_wal_support(self) -> None:
        """Detect if WAL journal mode is supported."""
        try:
            cursor = self.conn.execute("PRAGMA journal_mode=WAL")  # type: ignore
            result = cursor.fetchone()
            self._wal_mode_supported = result[0].upper() == "WAL"
        except sqlite3.Error:
            self._wal_mode_supported = False

    def _require_conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise DatabaseError("Database not open")
        return self.conn

    def init_schema(self) -> None:
        """Initialize database schema.

        Creates all tables and indices. Safe to call on existing database
        (uses IF NOT EXISTS).

        Raises:
            DatabaseError: If schema creation fails
        """
        conn = self._require_conn()

        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS commits (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    commit_hash TEXT UNIQUE NOT NULL,
                    parent_hash TEXT,
                    timestamp TEXT NOT NULL,
                    message TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_commits_parent
                ON commits(parent_hash)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_commits_message
                ON commits(message)
            """)

            cursor.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                ("schema_version", str(DB_SCHEMA_VERSION)),
            )

            conn.commit()

        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to initialize schema: {e}") from e

    def index_commit(
        self,
        commit_hash: str,
        parent_hash: Optional[str],
        timestamp: str,
        message: str,
    ) -> bool:
        """Insert a commit row.

        Args:
            commit_hash: SHA-256 id of the commit
            parent_hash: Parent commit id (None for the root commit)
            timestamp: ISO 8601 timestamp
            message: Commit message

        Returns:
            True if inserted, False if the commit was already indexed
        """
        conn = self._require_conn()

        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR IGNORE INTO commits (commit_hash, parent_hash, timestamp, message)
                VALUES (?, ?, ?, ?)
                """,
                (commit_hash, parent_hash, timestamp, message),
            )
            conn.commit()
            return cursor.rowcount > 0

        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to index commit: {e}") from e

    def find_commits_by_prefix(self, prefix: str, limit: int = 2) -> List[str]:
        """Return up to ``limit`` commit ids starting with ``prefix``, sorted.

        Callers pass a hex-only prefix, so it carries no LIKE wildcards.
        """
        conn = self._require_conn()

        try:
            cursor = conn.execute(
                "SELECT commit_hash FROM commits WHERE commit_hash LIKE ? || '%' "
                "ORDER BY commit_hash LIMIT ?",
                (prefix.lower(), limit),
            )
            return [row["commit_hash"] for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to query commit: {e}") from e

    def find_commits_by_message(self, message: str) -> List[str]:
        """Return ids of every commit whose message equals ``message``."""
        conn = self._require_conn()

        try:
            cursor = conn.execute(
                "SELECT commit_hash FROM commits WHERE message = ? ORDER BY timestamp DESC, id DESC",
                (message,),
            )
            return [row["commit_hash"] for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to query commits: {e}") from e

    def get_commit_history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Get every indexed commit in reverse chronological order.

        Args:
            limit: Maximum number of commits to return

        Returns:
            List of commit dictionaries
        """
        conn = self._require_conn()

        try:
            query = "SELECT * FROM commits ORDER BY timestamp DESC, id DESC"
            params: tuple = ()
            if limit:
                query += " LIMIT ?"
                params = (limit,)

            cursor = conn.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get history: {e}") from e

    def clear(self) -> None:
        """Delete every indexed commit."""
        conn = self._require_conn()

        try:
            conn.execute("DELETE FROM commits")
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to clear index: {e}") from e

    def get_schema_version(self) -> int:
        """Get the database schema version (0 if uninitialized)."""
        conn = self._require_conn()

        try:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'metadata'"
            )
            if cursor.fetchone() is None:
                return 0

            cursor = conn.execute("SELECT value FROM metadata WHERE key = 'schema_version'")
            row = cursor.fetchone()
            if row is None:
                return 0
            return int(row[0])

        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to get schema version: {e}") from e
