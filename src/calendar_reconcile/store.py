"""
Local event store: CRUD over calendar events and company records.
"""

import logging
import sqlite3
import time
from datetime import date

from calendar_reconcile.db import StateDatabase
from calendar_reconcile.models import CalendarEvent
from calendar_reconcile.models import CalendarSyncError
from calendar_reconcile.models import Company
from calendar_reconcile.models import EventType
from calendar_reconcile.models import RemoteEvent
from calendar_reconcile.models import SyncStatus
from calendar_reconcile.models import parse_override_marker

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = (
    "title, date, time, description, type, event_scope, company, "
    "overrides_logical_id, is_auto_generated, external_id, calendar_id, "
    "sync_status, last_synced_at, created_at, updated_at"
)


def _row_to_event(row: sqlite3.Row) -> CalendarEvent:
    return CalendarEvent(
        id=row["id"],
        title=row["title"],
        date=date.fromisoformat(row["date"]),
        time=row["time"],
        description=row["description"] or "",
        type=EventType(row["type"]),
        event_scope=row["event_scope"],
        company=row["company"],
        overrides_logical_id=row["overrides_logical_id"],
        is_auto_generated=bool(row["is_auto_generated"]),
        external_id=row["external_id"],
        calendar_id=row["calendar_id"],
        sync_status=SyncStatus(row["sync_status"]),
        last_synced_at=row["last_synced_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_company(row: sqlite3.Row) -> Company:
    reg = row["registration_date"]
    return Company(
        id=row["id"],
        trading_name=row["trading_name"],
        registration_date=date.fromisoformat(reg) if reg else None,
        status=row["status"],
    )


class EventStore:
    """CRUD over locally owned calendar events, backed by StateDatabase."""

    def __init__(self, state_db: StateDatabase):
        self.db = state_db

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        """Insert a new event and return it with its id populated.

        A legacy ``[overrides:<logical id>]`` marker in the description fills
        ``overrides_logical_id`` when the field itself is not set.
        """
        if event.overrides_logical_id is None:
            event.overrides_logical_id = parse_override_marker(event.description)

        now = int(time.time())
        event.created_at = event.created_at or now
        event.updated_at = now
        try:
            cursor = self.db.execute(
                f"INSERT INTO calendar_events ({_EVENT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._event_params(event),
            )
        except sqlite3.IntegrityError as e:
            raise CalendarSyncError(
                f"A live event already overrides {event.overrides_logical_id!r}"
            ) from e
        self.db.commit()
        event.id = cursor.lastrowid
        logger.debug(f"Stored event {event.id}: {event.title!r} on {event.date}")
        return event

    def update_event(self, event: CalendarEvent):
        """Persist every field of an existing event."""
        event.updated_at = int(time.time())
        assignments = ", ".join(f"{col.strip()} = ?" for col in _EVENT_COLUMNS.split(","))
        try:
            self.db.execute(
                f"UPDATE calendar_events SET {assignments} WHERE id = ?",
                (*self._event_params(event), event.id),
            )
        except sqlite3.IntegrityError as e:
            raise CalendarSyncError(
                f"A live event already overrides {event.overrides_logical_id!r}"
            ) from e
        self.db.commit()

    def mark_synced(self, event_id: int, external_id: str, calendar_id: str):
        """Record a successful push (or link) of a local event."""
        now = int(time.time())
        self.db.execute(
            "UPDATE calendar_events "
            "SET external_id = ?, calendar_id = ?, sync_status = 'SYNCED', "
            "last_synced_at = ?, updated_at = ? "
            "WHERE id = ?",
            (external_id, calendar_id, now, now, event_id),
        )
        self.db.commit()

    def mark_deleted(self, event_id: int):
        """Soft-delete: keep the row so its external id stays known."""
        self.db.execute(
            "UPDATE calendar_events SET sync_status = 'DELETED', updated_at = ? WHERE id = ?",
            (int(time.time()), event_id),
        )
        self.db.commit()

    def delete_event(self, event_id: int) -> CalendarEvent | None:
        """Remove an event on user request.

        Events that never reached the provider are removed outright; anything
        with an external id or a prior sync is soft-deleted instead.
        """
        event = self.get_event(event_id)
        if event is None:
            return None
        never_synced = event.external_id is None and event.sync_status in (
            SyncStatus.LOCAL,
            SyncStatus.PENDING,
        )
        if never_synced:
            self.db.execute("DELETE FROM calendar_events WHERE id = ?", (event_id,))
            self.db.commit()
            logger.debug(f"Hard-deleted never-synced event {event_id}")
        else:
            self.mark_deleted(event_id)
            logger.debug(f"Soft-deleted event {event_id} (external id {event.external_id})")
        return event

    def insert_pulled(self, remote: RemoteEvent, calendar_id: str) -> CalendarEvent:
        """Import a provider event that has no local counterpart."""
        now = int(time.time())
        time_part = None
        if remote.date_time and len(remote.date_time) >= 16:
            time_part = remote.date_time[11:16]
        event = CalendarEvent(
            title=remote.title or "Untitled Event",
            date=remote.day,
            time=time_part,
            type=EventType.OTHER,
            external_id=remote.external_id,
            calendar_id=calendar_id,
            sync_status=SyncStatus.SYNCED,
            last_synced_at=now,
        )
        return self.add_event(event)

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def get_event(self, event_id: int) -> CalendarEvent | None:
        row = self.db.execute(
            "SELECT * FROM calendar_events WHERE id = ? LIMIT 1", (event_id,)
        ).fetchone()
        return _row_to_event(row) if row else None

    def find_by_external_id(self, external_id: str) -> CalendarEvent | None:
        """Look up by provider id, deleted rows included."""
        row = self.db.execute(
            "SELECT * FROM calendar_events WHERE external_id = ? ORDER BY id LIMIT 1",
            (external_id,),
        ).fetchone()
        return _row_to_event(row) if row else None

    def list_events(
        self, start: date, end: date, include_deleted: bool = False
    ) -> list[CalendarEvent]:
        """Events dated within the half-open window [start, end)."""
        sql = "SELECT * FROM calendar_events WHERE date >= ? AND date < ?"
        if not include_deleted:
            sql += " AND sync_status != 'DELETED'"
        cursor = self.db.execute(sql + " ORDER BY date, id", (start.isoformat(), end.isoformat()))
        return [_row_to_event(row) for row in cursor.fetchall()]

    def list_candidate_pool(self, start: date, end: date) -> list[CalendarEvent]:
        """Live events in the window plus every live override event.

        Override events are included regardless of date: an override moved
        outside the window still supersedes its generated occurrence.
        """
        cursor = self.db.execute(
            "SELECT * FROM calendar_events WHERE sync_status != 'DELETED' "
            "AND ((date >= ? AND date < ?) OR overrides_logical_id IS NOT NULL) "
            "ORDER BY date, id",
            (start.isoformat(), end.isoformat()),
        )
        return [_row_to_event(row) for row in cursor.fetchall()]

    def list_synced(
        self, start: date, end: date, calendar_id: str | None = None
    ) -> list[CalendarEvent]:
        """SYNCED events in the window that carry a provider id, optionally for one calendar."""
        sql = (
            "SELECT * FROM calendar_events "
            "WHERE sync_status = 'SYNCED' AND external_id IS NOT NULL "
            "AND date >= ? AND date < ?"
        )
        params: tuple = (start.isoformat(), end.isoformat())
        if calendar_id is not None:
            sql += " AND calendar_id = ?"
            params += (calendar_id,)
        cursor = self.db.execute(sql + " ORDER BY date, id", params)
        return [_row_to_event(row) for row in cursor.fetchall()]

    def known_external_ids(self) -> set[str]:
        """Every provider id ever attached to a local event, deleted ones included."""
        cursor = self.db.execute(
            "SELECT external_id FROM calendar_events WHERE external_id IS NOT NULL"
        )
        return {row[0] for row in cursor.fetchall()}

    # ------------------------------------------------------------------ #
    # Company records                                                      #
    # ------------------------------------------------------------------ #

    def add_company(self, company: Company) -> Company:
        cursor = self.db.execute(
            "INSERT INTO companies (trading_name, registration_date, status) VALUES (?, ?, ?)",
            (
                company.trading_name,
                company.registration_date.isoformat() if company.registration_date else None,
                company.status,
            ),
        )
        self.db.commit()
        company.id = cursor.lastrowid
        return company

    def list_companies(self) -> list[Company]:
        cursor = self.db.execute("SELECT * FROM companies ORDER BY id")
        return [_row_to_company(row) for row in cursor.fetchall()]

    @staticmethod
    def _event_params(event: CalendarEvent) -> tuple:
        return (
            event.title,
            event.date.isoformat(),
            event.time,
            event.description or "",
            EventType(event.type).value,
            event.event_scope,
            event.company,
            event.overrides_logical_id,
            int(event.is_auto_generated),
            event.external_id,
            event.calendar_id,
            SyncStatus(event.sync_status).value,
            event.last_synced_at,
            event.created_at,
            event.updated_at,
        )
