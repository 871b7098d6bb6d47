"""
State store using SQLite.

Tracks:
- Resource state (desired vs actual) after each apply
- Change history
- Generated values that StoredValues keeps stable across runs
"""

import json
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

STATE_DB_ENV = "PANTRY_STATE_DB"


@dataclass
class ResourceState:
    """Last known state of a managed resource."""
    id: str
    type: str
    desired_state: Dict[str, Any]
    actual_state: Dict[str, Any]
    applied_at: datetime
    applied_by: str
    hostname: str
    config_file: str
    status: str  # "converged", "compliant", "failed"


@dataclass
class HistoryEntry:
    """A single change in resource history."""
    timestamp: datetime
    resource_id: str
    action: str
    user: str
    hostname: str
    success: bool
    changes: Dict[str, Any]
    error: Optional[str] = None


@dataclass
class GeneratedValue:
    key: str
    kind: str
    value: str
    created_at: datetime


class Store:
    """
    SQLite-based state store.

    Example:
        with Store() as store:
            store.save_resource(resource_state)
            resources = store.list_resources()
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: Path to SQLite database
                     (default: $PANTRY_STATE_DB or ~/.pantry/state.db)
        """
        self.db_path = db_path or self.default_path()
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    @staticmethod
    def default_path() -> str:
        return os.getenv(STATE_DB_ENV) or str(Path.home() / ".pantry" / "state.db")

    def _init_schema(self) -> None:
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS resources (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                desired_state TEXT NOT NULL,
                actual_state TEXT NOT NULL,
                applied_at TEXT NOT NULL,
                applied_by TEXT NOT NULL,
                hostname TEXT NOT NULL,
                config_file TEXT NOT NULL,
                status TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                resource_id TEXT NOT NULL,
                action TEXT NOT NULL,
                user TEXT NOT NULL,
                hostname TEXT NOT NULL,
                success INTEGER NOT NULL,
                changes TEXT NOT NULL,
                error TEXT
            );

            CREATE TABLE IF NOT EXISTS generated_values (
                key TEXT NOT NULL,
                kind TEXT NOT NULL,
                value TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (key, kind)
            );

            CREATE INDEX IF NOT EXISTS idx_history_resource
                ON history(resource_id);
            CREATE INDEX IF NOT EXISTS idx_history_timestamp
                ON history(timestamp DESC);
        """)
        self.conn.commit()

    @staticmethod
    def _row_to_state(row: sqlite3.Row) -> ResourceState:
        return ResourceState(
            id=row["id"],
            type=row["type"],
            desired_state=json.loads(row["desired_state"]),
            actual_state=json.loads(row["actual_state"]),
            applied_at=datetime.fromisoformat(row["applied_at"]),
            applied_by=row["applied_by"],
            hostname=row["hostname"],
            config_file=row["config_file"],
            status=row["status"],
        )

    def save_resource(self, state: ResourceState) -> None:
        """Insert or replace the state row for a resource."""
        self.conn.execute("""
            INSERT OR REPLACE INTO resources
            (id, type, desired_state, actual_state, applied_at, applied_by,
             hostname, config_file, status)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            state.id,
            state.type,
            json.dumps(state.desired_state, default=str),
            json.dumps(state.actual_state, default=str),
            state.applied_at.isoformat(),
            state.applied_by,
            state.hostname,
            state.config_file,
            state.status,
        ))
        self.conn.commit()

    def get_resource(self, resource_id: str) -> Optional[ResourceState]:
        row = self.conn.execute(
            "SELECT * FROM resources WHERE id = ?",
            (resource_id,)
        ).fetchone()
        return self._row_to_state(row) if row else None

    def list_resources(self) -> List[ResourceState]:
        rows = self.conn.execute(
            "SELECT * FROM resources ORDER BY applied_at DESC, id"
        ).fetchall()
        return [self._row_to_state(row) for row in rows]

    def add_history(self, entry: HistoryEntry) -> None:
        self.conn.execute("""
            INSERT INTO history
            (timestamp, resource_id, action, user, hostname, success, changes, error)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry.timestamp.isoformat(),
            entry.resource_id,
            entry.action,
            entry.user,
            entry.hostname,
            1 if entry.success else 0,
            json.dumps(entry.changes, default=str),
            entry.error,
        ))
        self.conn.commit()

    def get_history(self, resource_id: str, limit: int = 10) -> List[HistoryEntry]:
        """
        Get change history for a resource, newest first.

        Args:
            resource_id: Resource identifier
            limit: Maximum number of entries to return
        """
        rows = self.conn.execute("""
            SELECT * FROM history
            WHERE resource_id = ?
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
        """, (resource_id, limit)).fetchall()

        return [
            HistoryEntry(
                timestamp=datetime.fromisoformat(row["timestamp"]),
                resource_id=row["resource_id"],
                action=row["action"],
                user=row["user"],
                hostname=row["hostname"],
                success=bool(row["success"]),
                changes=json.loads(row["changes"]),
                error=row["error"],
            )
            for row in rows
        ]

    def get_value(self, key: str, kind: str = "uuid") -> Optional[str]:
        row = self.conn.execute(
            "SELECT value FROM generated_values WHERE key = ? AND kind = ?",
            (key, kind)
        ).fetchone()
        return row["value"] if row else None

    def save_value(self, key: str, kind: str, value: str) -> None:
        self.conn.execute("""
            INSERT OR REPLACE INTO generated_values (key, kind, value, created_at)
            VALUES (?, ?, ?, ?)
        """, (key, kind, value, datetime.now().isoformat()))
        self.conn.commit()

    def list_values(self) -> List[GeneratedValue]:
        rows = self.conn.execute(
            "SELECT * FROM generated_values ORDER BY key, kind"
        ).fetchall()
        return [
            GeneratedValue(
                key=row["key"],
                kind=row["kind"],
                value=row["value"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def forget_value(self, key: str) -> bool:
        """Drop every stored value for key. Returns True if any existed."""
        cursor = self.conn.execute("DELETE FROM generated_values WHERE key = ?", (key,))
        self.conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
