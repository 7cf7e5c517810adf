"""SQLite persistence for assessment snapshots and client settings."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import cast
from uuid import uuid4

from .logging_setup import get_logger

SCHEMA_VERSION = 1
MODEL_FINGERPRINT_KEY = "model_fingerprint"

logger = get_logger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Saved copy of one assessment's selection, answers and meta."""

    id: str
    timestamp: str
    version: str
    customer: str
    assessor: str
    selected_caps: list[str]
    answers_by_cap: dict[str, dict[str, str]]
    meta: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Return the JSON record shape."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "version": self.version,
            "customer": self.customer,
            "assessor": self.assessor,
            "selectedCaps": list(self.selected_caps),
            "answersByCap": self.answers_by_cap,
            "meta": self.meta,
        }


def new_snapshot(
    version: str,
    selected_caps: list[str],
    answers_by_cap: dict[str, dict[str, str]],
    meta: dict[str, str],
) -> Snapshot:
    """Build a snapshot with a fresh id and the current UTC timestamp."""
    return Snapshot(
        id=str(uuid4()),
        timestamp=datetime.now(UTC).isoformat(),
        version=version,
        customer=meta.get("customer", ""),
        assessor=meta.get("assessor", ""),
        selected_caps=list(selected_caps),
        answers_by_cap=answers_by_cap,
        meta=dict(meta),
    )


class SnapshotStore:
    """Database access layer for snapshot history."""

    def __init__(self, db_path: Path | str) -> None:
        """Open the database and bring its schema up to date."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )
            logger.debug("Applied snapshot schema migration %d", version)

    def _migrate_to_v1(self) -> None:
        """Create snapshot and settings tables."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    version TEXT NOT NULL,
                    customer TEXT NOT NULL,
                    assessor TEXT NOT NULL,
                    selected_caps TEXT NOT NULL,
                    answers_by_cap TEXT NOT NULL,
                    meta TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """)

    def save(self, snapshot: Snapshot) -> Snapshot:
        """Insert or replace one snapshot."""
        with self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO snapshots (
                    id, created_at, version, customer, assessor, selected_caps, answers_by_cap, meta
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.id,
                    snapshot.timestamp,
                    snapshot.version,
                    snapshot.customer,
                    snapshot.assessor,
                    json.dumps(snapshot.selected_caps),
                    json.dumps(snapshot.answers_by_cap),
                    json.dumps(snapshot.meta),
                ),
            )
        logger.info("Saved snapshot %s", snapshot.id)
        return snapshot

    def list_snapshots(self) -> list[Snapshot]:
        """Return snapshots newest first."""
        rows = self._conn.execute("SELECT * FROM snapshots ORDER BY created_at DESC, rowid DESC").fetchall()
        return [_snapshot_from_row(row) for row in rows]

    def get(self, snapshot_id: str) -> Snapshot | None:
        """Return one snapshot by id."""
        row = self._conn.execute("SELECT * FROM snapshots WHERE id = ?", (snapshot_id,)).fetchone()
        if row is None:
            return None
        return _snapshot_from_row(row)

    def delete(self, snapshot_id: str) -> bool:
        """Delete one snapshot; return whether it existed."""
        with self._conn:
            cursor = self._conn.execute("DELETE FROM snapshots WHERE id = ?", (snapshot_id,))
        return cursor.rowcount > 0

    def get_setting(self, key: str) -> str | None:
        """Return a stored client setting."""
        row = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set_setting(self, key: str, value: str) -> None:
        """Store a client setting."""
        with self._conn:
            self._conn.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()


def _snapshot_from_row(row: sqlite3.Row) -> Snapshot:
    """Decode a row; corrupt JSON columns fall back to empty values."""
    return Snapshot(
        id=str(row["id"]),
        timestamp=str(row["created_at"]),
        version=str(row["version"]),
        customer=str(row["customer"]),
        assessor=str(row["assessor"]),
        selected_caps=[str(item) for item in _json_column(row["selected_caps"], list)],
        answers_by_cap=cast(dict[str, dict[str, str]], _json_column(row["answers_by_cap"], dict)),
        meta=cast(dict[str, str], _json_column(row["meta"], dict)),
    )


def _json_column(value: object, expected: type) -> object:
    try:
        decoded: object = json.loads(str(value))
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable snapshot column value")
        return expected()
    return decoded if isinstance(decoded, expected) else expected()
