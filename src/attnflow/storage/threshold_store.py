"""Durable slot for calibrated similarity thresholds."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from attnflow.models import ThresholdState
from attnflow.storage.db import Database, DatabaseError, get_default_db_path

logger = logging.getLogger(__name__)

THRESHOLDS_KEY = "thresholds"


class ThresholdStore:
    """Persist thresholds in the ``meta_kv`` table.

    Read failures and missing values return None; write failures are logged.
    Neither ever raises, so an analysis can always fall back to defaults.
    """

    def __init__(self, db_path: Path | None = None, db: Database | None = None) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.attnflow/attnflow.db
            db: An already open Database to share (takes precedence over db_path).
        """
        self._owns_db = db is None
        self._db = db or Database(db_path or get_default_db_path())
        self._ready = False

    def _ensure_schema(self) -> None:
        if not self._ready:
            self._db.initialize_schema()
            self._ready = True

    def load(self) -> ThresholdState | None:
        """Load persisted thresholds.

        Returns:
            The stored ThresholdState, or None if absent or unreadable.
        """
        try:
            self._ensure_schema()
            row = self._db.fetchone("SELECT value_json FROM meta_kv WHERE key = ?", (THRESHOLDS_KEY,))
        except DatabaseError as e:
            logger.warning("Could not read thresholds: %s", e)
            return None

        if row is None:
            return None

        try:
            data = json.loads(row["value_json"])
            related = float(data["related"])
            topic_shift = float(data.get("topicShift", ThresholdState().topic_shift))
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Ignoring malformed persisted thresholds: %s", e)
            return None

        return ThresholdState(related=related, topic_shift=topic_shift)

    def save(self, state: ThresholdState) -> None:
        """Persist thresholds, logging instead of raising on failure."""
        payload = json.dumps(state.model_dump(by_alias=True))
        try:
            self._ensure_schema()
            with self._db.transaction() as cursor:
                cursor.execute(
                    "INSERT OR REPLACE INTO meta_kv (key, value_json, updated_at) VALUES (?, ?, ?)",
                    (THRESHOLDS_KEY, payload, int(time.time())),
                )
        except Exception as e:
            logger.warning("Saving thresholds failed: %s", e)

    def clear(self) -> None:
        """Remove persisted thresholds."""
        try:
            self._ensure_schema()
            with self._db.transaction() as cursor:
                cursor.execute("DELETE FROM meta_kv WHERE key = ?", (THRESHOLDS_KEY,))
        except Exception as e:
            logger.warning("Clearing thresholds failed: %s", e)

    def close(self) -> None:
        """Close the database connection if this store opened it."""
        if self._owns_db:
            self._db.close()

    def __enter__(self) -> ThresholdStore:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()


class InMemoryThresholdStore:
    """Process-local threshold slot, for tests and ``--no-persist`` runs."""

    def __init__(self, initial: ThresholdState | None = None) -> None:
        self.value = initial
        self.saves = 0

    def load(self) -> ThresholdState | None:
        return self.value

    def save(self, state: ThresholdState) -> None:
        self.value = state
        self.saves += 1
