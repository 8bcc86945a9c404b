"""Database connection management and schema migrations."""

from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from types import TracebackType

# Schema version for migrations
SCHEMA_VERSION = 1

# SQL statements for schema creation
SCHEMA_SQL = """
-- Small durable key/value slots (calibration thresholds, run metadata)
CREATE TABLE IF NOT EXISTS meta_kv (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    updated_at INTEGER NOT NULL
);

-- Cached embedding vectors keyed by passage hash
CREATE TABLE IF NOT EXISTS embeddings (
    key TEXT PRIMARY KEY,
    vector_json TEXT NOT NULL,
    dim INTEGER NOT NULL,
    meta_json TEXT,
    created_at INTEGER NOT NULL
);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at INTEGER NOT NULL
);
"""


class DatabaseError(Exception):
    """Database operation error."""


class Database:
    """SQLite database connection manager with schema migrations.

    A single connection is shared across threads; statements are serialized
    with a lock.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize database connection.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        """Get the database file path."""
        return self._db_path

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection.

        Returns:
            Active SQLite connection.

        Raises:
            DatabaseError: If the database cannot be opened.
        """
        with self._lock:
            if self._connection is None:
                try:
                    self._db_path.parent.mkdir(parents=True, exist_ok=True)
                    self._connection = sqlite3.connect(self._db_path, check_same_thread=False)
                    # Use WAL mode for better concurrent access
                    self._connection.execute("PRAGMA journal_mode = WAL")
                except (OSError, sqlite3.Error) as e:
                    raise DatabaseError(f"Cannot open database {self._db_path}: {e}") from e
                # Return rows as Row objects for dict-like access
                self._connection.row_factory = sqlite3.Row

            return self._connection

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def __enter__(self) -> Database:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()

    def transaction(self) -> _TransactionContext:
        """Get a transaction context manager.

        Usage:
            with db.transaction() as cursor:
                cursor.execute(...)
        """
        return _TransactionContext(self.connect(), self._lock)

    def fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        """Execute a query and return its first row.

        Raises:
            DatabaseError: If the statement fails.
        """
        with self._lock:
            try:
                return self.connect().execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise DatabaseError(str(e)) from e

    def fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        """Execute a query and return all rows.

        Raises:
            DatabaseError: If the statement fails.
        """
        with self._lock:
            try:
                return self.connect().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise DatabaseError(str(e)) from e

    def get_schema_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current schema version, or 0 if not initialized.
        """
        try:
            row = self.fetchone("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            return row["version"] if row else 0
        except DatabaseError:
            # Table doesn't exist yet
            return 0

    def initialize_schema(self) -> None:
        """Initialize or migrate the database schema."""
        current_version = self.get_schema_version()

        if current_version < SCHEMA_VERSION:
            self._apply_migrations(current_version)

    def _apply_migrations(self, from_version: int) -> None:
        """Apply schema migrations from the given version.

        Args:
            from_version: Starting schema version.

        Raises:
            DatabaseError: If a migration statement fails.
        """
        conn = self.connect()

        with self._lock:
            try:
                if from_version == 0:
                    # Initial schema creation
                    conn.executescript(SCHEMA_SQL)
                    conn.execute(
                        "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                        (1, int(time.time())),
                    )
                    conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise DatabaseError(f"Schema migration failed: {e}") from e


class _TransactionContext:
    """Context manager for database transactions."""

    def __init__(self, connection: sqlite3.Connection, lock: threading.RLock) -> None:
        self._connection = connection
        self._lock = lock
        self._cursor: sqlite3.Cursor | None = None

    def __enter__(self) -> sqlite3.Cursor:
        self._lock.acquire()
        self._cursor = self._connection.cursor()
        return self._cursor

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if self._cursor is not None:
                if exc_type is None:
                    self._connection.commit()
                else:
                    self._connection.rollback()
                self._cursor.close()
        finally:
            self._lock.release()


def get_default_db_path() -> Path:
    """Get the default database path.

    Returns:
        Path to ~/.attnflow/attnflow.db
    """
    return Path.home() / ".attnflow" / "attnflow.db"
