"""
Durable remote identity of generated (logical) events.

One row per logical id, upserted on every touch and never deleted. Deletion is
monotonic: once a logical id is marked deleted only restore() clears it.
"""

import logging
import threading
import time
from datetime import date

from calendar_reconcile.db import StateDatabase
from calendar_reconcile.models import SyncTombstone

logger = logging.getLogger(__name__)


class SyncTombstoneTracker:
    """Maps logical id -> {external id, is_deleted}."""

    def __init__(self, state_db: StateDatabase):
        self.db = state_db
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def lock_for(self, logical_id: str) -> threading.Lock:
        """In-process advisory lock for pushes of one logical id."""
        with self._locks_guard:
            lock = self._locks.get(logical_id)
            if lock is None:
                lock = self._locks[logical_id] = threading.Lock()
            return lock

    def record_synced(
        self,
        logical_id: str,
        external_id: str,
        title: str = "",
        event_date: date | None = None,
        calendar_id: str | None = None,
    ):
        """Record that a logical event exists remotely under external_id.

        An existing deletion flag is preserved.
        """
        self.db.execute(
            "INSERT INTO sync_tombstones "
            "(logical_id, external_id, is_deleted, title, date, synced_at, calendar_id) "
            "VALUES (?, ?, 0, ?, ?, ?, ?) "
            "ON CONFLICT(logical_id) DO UPDATE SET "
            "external_id = excluded.external_id, "
            "calendar_id = COALESCE(excluded.calendar_id, calendar_id), "
            "title = CASE WHEN excluded.title != '' THEN excluded.title ELSE title END, "
            "date = COALESCE(excluded.date, date), "
            "synced_at = excluded.synced_at",
            (
                logical_id,
                external_id,
                title,
                event_date.isoformat() if event_date else None,
                int(time.time()),
                calendar_id,
            ),
        )
        self.db.commit()
        logger.debug(f"Tombstone {logical_id} -> {external_id}")

    def record_deleted(self, logical_id: str, title: str = "", event_date: date | None = None):
        """Mark a logical id deleted, creating a deletion marker if it was never synced."""
        self.db.execute(
            "INSERT INTO sync_tombstones (logical_id, external_id, is_deleted, title, date, synced_at) "
            "VALUES (?, '', 1, ?, ?, ?) "
            "ON CONFLICT(logical_id) DO UPDATE SET "
            "is_deleted = 1, "
            "synced_at = excluded.synced_at",
            (
                logical_id,
                title,
                event_date.isoformat() if event_date else None,
                int(time.time()),
            ),
        )
        self.db.commit()
        logger.debug(f"Tombstone {logical_id} marked deleted")

    def restore(self, logical_id: str) -> bool:
        """Clear the deletion flag (explicit user action). Returns True if a row changed."""
        cursor = self.db.execute(
            "UPDATE sync_tombstones SET is_deleted = 0, external_id = '', synced_at = ? "
            "WHERE logical_id = ? AND is_deleted = 1",
            (int(time.time()), logical_id),
        )
        self.db.commit()
        restored = cursor.rowcount > 0
        if restored:
            logger.info(f"Restored {logical_id}; it will be generated again on the next sync")
        return restored

    def get(self, logical_id: str) -> SyncTombstone | None:
        row = self.db.execute(
            "SELECT * FROM sync_tombstones WHERE logical_id = ?", (logical_id,)
        ).fetchone()
        return self._row_to_tombstone(row) if row else None

    def is_deleted(self, logical_id: str) -> bool:
        row = self.db.execute(
            "SELECT is_deleted FROM sync_tombstones WHERE logical_id = ?", (logical_id,)
        ).fetchone()
        return bool(row and row["is_deleted"])

    def external_id_for(self, logical_id: str) -> str | None:
        row = self.db.execute(
            "SELECT external_id FROM sync_tombstones WHERE logical_id = ?", (logical_id,)
        ).fetchone()
        if row is None or not row["external_id"]:
            return None
        return row["external_id"]

    def deleted_ids(self) -> set[str]:
        cursor = self.db.execute("SELECT logical_id FROM sync_tombstones WHERE is_deleted = 1")
        return {row["logical_id"] for row in cursor.fetchall()}

    def known_external_ids(self) -> set[str]:
        """External ids of every tombstone, deleted ones included."""
        cursor = self.db.execute(
            "SELECT external_id FROM sync_tombstones WHERE external_id != ''"
        )
        return {row["external_id"] for row in cursor.fetchall()}

    def live_synced(
        self, start: date, end: date, calendar_id: str | None = None
    ) -> list[SyncTombstone]:
        """Live tombstones with an external id dated within [start, end).

        With calendar_id, only those pushed to that calendar.
        """
        sql = (
            "SELECT * FROM sync_tombstones "
            "WHERE is_deleted = 0 AND external_id != '' AND date >= ? AND date < ?"
        )
        params: tuple = (start.isoformat(), end.isoformat())
        if calendar_id is not None:
            sql += " AND calendar_id = ?"
            params += (calendar_id,)
        cursor = self.db.execute(sql + " ORDER BY date, logical_id", params)
        return [self._row_to_tombstone(row) for row in cursor.fetchall()]

    def all(self) -> list[SyncTombstone]:
        cursor = self.db.execute("SELECT * FROM sync_tombstones ORDER BY date, logical_id")
        return [self._row_to_tombstone(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_tombstone(row) -> SyncTombstone:
        return SyncTombstone(
            logical_id=row["logical_id"],
            external_id=row["external_id"],
            is_deleted=bool(row["is_deleted"]),
            title=row["title"],
            date=date.fromisoformat(row["date"]) if row["date"] else None,
            synced_at=row["synced_at"],
            calendar_id=row["calendar_id"],
        )
