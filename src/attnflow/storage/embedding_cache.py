"""Embedding cache: bounded in-process LRU in front of SQLite.

Keys are stable hashes of the normalized text sent to an embedding encoder.
Vectors are stored as JSON float lists, which round-trip exactly.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from attnflow.storage.db import Database, DatabaseError, get_default_db_path

logger = logging.getLogger(__name__)


def hash_text(text: str) -> str:
    """Stable cache key for a piece of text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:32]


class LRUCache:
    """Thread-safe bounded mapping that evicts the least recently used key."""

    def __init__(self, limit: int = 200) -> None:
        self.limit = max(1, limit)
        self._data: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            if key not in self._data:
                return None
            self._data.move_to_end(key)
            return self._data[key]

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.limit:
                self._data.popitem(last=False)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class EmbeddingCache:
    """Read-through store for embedding vectors.

    Lookups check memory first, then disk (promoting disk hits into memory).
    Concurrent misses for the same key may both compute and store; the last
    write wins and both values are valid.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        lru_size: int = 200,
        db: Database | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.attnflow/attnflow.db
            lru_size: Number of vectors kept in memory.
            db: An already open Database to share (takes precedence over db_path).
        """
        self._owns_db = db is None
        self._db = db or Database(db_path or get_default_db_path())
        self._db.initialize_schema()
        self._lru = LRUCache(lru_size)
        self.stats = {"memory": 0, "disk": 0, "miss": 0}

    def get(self, key: str) -> list[float] | None:
        """Return the cached vector for a key, or None on a miss."""
        cached = self._lru.get(key)
        if cached is not None:
            self.stats["memory"] += 1
            return list(cached[0])

        try:
            row = self._db.fetchone("SELECT vector_json, meta_json FROM embeddings WHERE key = ?", (key,))
        except DatabaseError as e:
            logger.warning("Embedding cache read failed for %s: %s", key, e)
            row = None

        if row is None:
            self.stats["miss"] += 1
            return None

        try:
            vector = [float(x) for x in json.loads(row["vector_json"])]
            meta = json.loads(row["meta_json"]) if row["meta_json"] else {}
        except (ValueError, TypeError) as e:
            logger.warning("Discarding unreadable cached embedding %s: %s", key, e)
            self.stats["miss"] += 1
            return None

        self._lru.set(key, (tuple(vector), meta))
        self.stats["disk"] += 1
        return vector

    def get_metadata(self, key: str) -> dict | None:
        """Return the metadata stored with a vector, if any."""
        if self.get(key) is None:
            return None
        cached = self._lru.get(key)
        return dict(cached[1]) if cached is not None else None

    def put(self, key: str, vector: Sequence[float], metadata: dict | None = None) -> None:
        """Store a vector in memory and on disk.

        Disk write failures are logged; the in-memory entry is kept.
        """
        values = tuple(float(x) for x in vector)
        meta = dict(metadata or {})
        self._lru.set(key, (values, meta))

        try:
            with self._db.transaction() as cursor:
                cursor.execute(
                    "INSERT OR REPLACE INTO embeddings (key, vector_json, dim, meta_json, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (key, json.dumps(list(values)), len(values), json.dumps(meta), int(time.time())),
                )
        except Exception as e:
            logger.warning("Embedding cache write failed for %s: %s", key, e)

    def count(self) -> int:
        """Number of vectors persisted on disk."""
        try:
            row = self._db.fetchone("SELECT COUNT(*) AS n FROM embeddings")
        except DatabaseError:
            return 0
        return row["n"] if row else 0

    def close(self) -> None:
        """Close the database connection if this cache opened it."""
        if self._owns_db:
            self._db.close()

    def __enter__(self) -> EmbeddingCache:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()
