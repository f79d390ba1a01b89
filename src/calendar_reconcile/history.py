"""
Sync-run history and the rolling per-event activity log.
"""

import json
import logging
import time

from calendar_reconcile.db import StateDatabase
from calendar_reconcile.models import SyncResult

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
LOG_RETENTION_DAYS = 30


class SyncHistory:
    """Records passes in sync_runs and individual decisions in sync_log."""

    def __init__(self, state_db: StateDatabase):
        self.db = state_db

    def log_activity(
        self, event_ref: str, direction: str, status: str, message: str | None = None
    ):
        """Append one PUSH/PULL/DELETE decision to the activity log."""
        self.db.execute(
            "INSERT INTO sync_log (event_ref, direction, status, message, logged_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (event_ref, direction, status, message, int(time.time())),
        )
        self.db.commit()

    def record_run(
        self,
        calendar_id: str,
        result: SyncResult,
        started_at: int,
        finished_at: int | None = None,
        status: str | None = None,
    ) -> int:
        if status is None:
            if not result.errors:
                status = "SUCCESS"
            elif result.changed:
                status = "PARTIAL"
            else:
                status = "FAILED"
        cursor = self.db.execute(
            "INSERT INTO sync_runs (calendar_id, sync_type, status, pushed, pulled, deleted, "
            "skipped, errors, started_at, finished_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                calendar_id,
                result.sync_type,
                status,
                result.pushed,
                result.pulled,
                result.deleted,
                result.skipped,
                json.dumps(result.errors),
                started_at,
                finished_at or int(time.time()),
            ),
        )
        self.db.commit()
        return cursor.lastrowid

    def recent_runs(self, limit: int = 10) -> list[dict]:
        cursor = self.db.execute(
            "SELECT * FROM sync_runs ORDER BY finished_at DESC, id DESC LIMIT ?", (limit,)
        )
        runs = []
        for row in cursor.fetchall():
            runs.append(
                {
                    "id": row["id"],
                    "calendarId": row["calendar_id"],
                    "syncType": row["sync_type"],
                    "status": row["status"],
                    "pushed": row["pushed"],
                    "pulled": row["pulled"],
                    "deleted": row["deleted"],
                    "skipped": row["skipped"],
                    "errors": json.loads(row["errors"]),
                    "startedAt": row["started_at"],
                    "finishedAt": row["finished_at"],
                }
            )
        return runs

    def status_counts(self, since: int | None = None) -> dict[str, int]:
        """Activity-log entries per status over the last 24 hours (or since ``since``)."""
        if since is None:
            since = int(time.time()) - DAY_SECONDS
        cursor = self.db.execute(
            "SELECT status, COUNT(*) AS n FROM sync_log WHERE logged_at >= ? GROUP BY status",
            (since,),
        )
        return {row["status"]: row["n"] for row in cursor.fetchall()}

    def last_sync_at(self) -> int | None:
        row = self.db.execute("SELECT MAX(finished_at) AS last FROM sync_runs").fetchone()
        return row["last"] if row else None

    def prune(self, retention_days: int = LOG_RETENTION_DAYS) -> int:
        """Drop activity-log entries older than the retention period."""
        cutoff = int(time.time()) - retention_days * DAY_SECONDS
        cursor = self.db.execute("DELETE FROM sync_log WHERE logged_at < ?", (cutoff,))
        self.db.commit()
        if cursor.rowcount:
            logger.debug(f"Pruned {cursor.rowcount} activity log entries")
        return cursor.rowcount

    def summary(self, limit: int = 10) -> dict:
        return {
            "recent": self.recent_runs(limit),
            "last24h": self.status_counts(),
            "lastSyncAt": self.last_sync_at(),
        }
