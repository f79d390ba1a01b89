"""
SQLite persistence for the local event store, tombstones and sync history.
"""

import logging
import sqlite3
from pathlib import Path

from calendar_reconcile.models import parse_override_marker

logger = logging.getLogger(__name__)

_TABLES = """
    CREATE TABLE IF NOT EXISTS calendar_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        date TEXT NOT NULL,
        time TEXT,
        description TEXT NOT NULL DEFAULT '',
        type TEXT NOT NULL DEFAULT 'OTHER',
        event_scope TEXT NOT NULL DEFAULT 'personal',
        company TEXT,
        overrides_logical_id TEXT,
        is_auto_generated INTEGER NOT NULL DEFAULT 0,
        external_id TEXT,
        calendar_id TEXT,
        sync_status TEXT NOT NULL DEFAULT 'LOCAL',
        last_synced_at INTEGER,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    );
    CREATE TABLE IF NOT EXISTS sync_tombstones (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        logical_id TEXT NOT NULL UNIQUE,
        external_id TEXT NOT NULL DEFAULT '',
        is_deleted INTEGER NOT NULL DEFAULT 0,
        title TEXT NOT NULL,
        date TEXT,
        synced_at INTEGER NOT NULL,
        calendar_id TEXT
    );
    CREATE TABLE IF NOT EXISTS sync_runs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        calendar_id TEXT NOT NULL,
        sync_type TEXT NOT NULL,
        status TEXT NOT NULL,
        pushed INTEGER NOT NULL DEFAULT 0,
        pulled INTEGER NOT NULL DEFAULT 0,
        deleted INTEGER NOT NULL DEFAULT 0,
        skipped INTEGER NOT NULL DEFAULT 0,
        errors TEXT NOT NULL DEFAULT '[]',
        started_at INTEGER NOT NULL,
        finished_at INTEGER NOT NULL
    );
    CREATE TABLE IF NOT EXISTS sync_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_ref TEXT,
        direction TEXT NOT NULL,
        status TEXT NOT NULL,
        message TEXT,
        logged_at INTEGER NOT NULL
    );
    CREATE TABLE IF NOT EXISTS companies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        trading_name TEXT NOT NULL,
        registration_date TEXT,
        status TEXT NOT NULL DEFAULT 'Active'
    );
"""

_INDEXES = """
    CREATE INDEX IF NOT EXISTS calendar_events_sync_status_idx
        ON calendar_events(sync_status);
    CREATE INDEX IF NOT EXISTS calendar_events_external_id_idx
        ON calendar_events(external_id);
    CREATE UNIQUE INDEX IF NOT EXISTS calendar_events_live_override_idx
        ON calendar_events(overrides_logical_id)
        WHERE overrides_logical_id IS NOT NULL AND sync_status != 'DELETED';
    CREATE INDEX IF NOT EXISTS sync_tombstones_is_deleted_idx
        ON sync_tombstones(is_deleted);
    CREATE INDEX IF NOT EXISTS sync_log_logged_at_idx
        ON sync_log(logged_at);
"""


class StateDatabase:
    """Manages the SQLite database backing the reconciliation engine."""

    def __init__(self, db_path: Path, check_same_thread: bool = True):
        self.db_path = db_path
        self.check_same_thread = check_same_thread
        self.conn: sqlite3.Connection | None = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def connect(self):
        """Initialize and connect to the state database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=self.check_same_thread)
        self.conn.row_factory = sqlite3.Row  # Enable column access by name
        self._init_schema()

    def _init_schema(self):
        """Create tables, bring older files up to date, then create indexes."""
        self.conn.executescript(_TABLES)
        self.migrate_if_needed()
        self.conn.executescript(_INDEXES)
        self.conn.commit()

    def _columns(self, table: str) -> set[str]:
        return {row["name"] for row in self.conn.execute(f"PRAGMA table_info({table})")}

    def migrate_if_needed(self):
        """Bring a state database created by an older version up to date."""
        if "calendar_id" not in self._columns("sync_tombstones"):
            # Older tombstones have no calendar and are left out of stale detection.
            logger.info("Migrating state database: adding sync_tombstones.calendar_id...")
            self.conn.execute("ALTER TABLE sync_tombstones ADD COLUMN calendar_id TEXT")
        if "overrides_logical_id" not in self._columns("calendar_events"):
            self._migrate_override_markers()

    def _migrate_override_markers(self):
        """
        Add the typed override column to databases created before it existed.

        Older files kept override markers only inside the free-text
        description ("[overrides:<logical id>]"). The column is added and
        back-filled from those markers. Where two live events claim the same
        logical id, only the oldest keeps the claim so the partial unique
        index can be created; the others are logged.
        """
        logger.info("Migrating state database: adding overrides_logical_id column...")
        self.conn.execute("ALTER TABLE calendar_events ADD COLUMN overrides_logical_id TEXT")

        claimed: set[str] = set()
        rows = self.conn.execute(
            "SELECT id, description, sync_status FROM calendar_events ORDER BY id"
        ).fetchall()
        backfilled = 0
        for row in rows:
            logical_id = parse_override_marker(row["description"])
            if not logical_id:
                continue
            live = row["sync_status"] != "DELETED"
            if live and logical_id in claimed:
                logger.warning(
                    f"Migration: event {row['id']} repeats override of {logical_id}; "
                    f"keeping the older claim"
                )
                continue
            if live:
                claimed.add(logical_id)
            self.conn.execute(
                "UPDATE calendar_events SET overrides_logical_id = ? WHERE id = ?",
                (logical_id, row["id"]),
            )
            backfilled += 1

        logger.info(f"Migration complete: back-filled {backfilled} override marker(s).")

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        if not self.conn:
            raise sqlite3.ProgrammingError("State database is not connected")
        return self.conn.execute(sql, params)

    def commit(self):
        """Commit pending transactions."""
        if self.conn:
            self.conn.commit()

    def rollback(self):
        if self.conn:
            self.conn.rollback()

    def close(self):
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
