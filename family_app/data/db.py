"""
Family App — Snapshot Database.

Durable on-device storage for the local entity store. The whole store is kept
as one JSON document per snapshot name and rewritten on every mutation, so a
restart picks up exactly where the last session stopped.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from family_app.data.models import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT = "family-app-storage"


class SnapshotDB:
    """SQLite-backed key/value storage for JSON snapshots."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the snapshots table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    name     TEXT PRIMARY KEY,
                    payload  TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                )
            """)
        logger.debug("Snapshots table initialized at %s", self._db_path)

    def save(self, payload: dict[str, Any], name: str = DEFAULT_SNAPSHOT) -> None:
        """Replace the named snapshot."""
        body = json.dumps(payload, ensure_ascii=False)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO snapshots (name, payload, saved_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    payload = excluded.payload,
                    saved_at = excluded.saved_at
                """,
                (name, body, utc_now_iso()),
            )
        logger.debug("Saved snapshot '%s' (%d bytes)", name, len(body))

    def load(self, name: str = DEFAULT_SNAPSHOT) -> dict[str, Any] | None:
        """Return the named snapshot, or None if missing or unreadable."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM snapshots WHERE name = ?", (name,)
            ).fetchone()
        if row is None:
            return None
        try:
            payload = json.loads(row["payload"])
        except json.JSONDecodeError:
            logger.warning("Snapshot '%s' is not valid JSON, ignoring it", name)
            return None
        if not isinstance(payload, dict):
            logger.warning("Snapshot '%s' has unexpected shape, ignoring it", name)
            return None
        return payload

    def delete(self, name: str = DEFAULT_SNAPSHOT) -> bool:
        """Remove the named snapshot. Returns True if it existed."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM snapshots WHERE name = ?", (name,))
            return cursor.rowcount > 0
