"""Storage layer for calibration state and cached embeddings."""

from attnflow.storage.db import Database, DatabaseError
from attnflow.storage.embedding_cache import EmbeddingCache, LRUCache, hash_text
from attnflow.storage.threshold_store import InMemoryThresholdStore, ThresholdStore

__all__ = [
    "Database",
    "DatabaseError",
    "EmbeddingCache",
    "LRUCache",
    "hash_text",
    "ThresholdStore",
    "InMemoryThresholdStore",
]
