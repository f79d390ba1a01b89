"""
Unit tests for display titles and title+date matching against the remote snapshot.
"""

from datetime import date

from calendar_reconcile.models import CalendarEvent
from calendar_reconcile.models import EventType
from calendar_reconcile.models import RemoteEvent
from calendar_reconcile.sync.matching import RemoteSnapshot
from calendar_reconcile.sync.matching import normalize_title


class TestDisplayTitle:
    def test_personal_event(self):
        event = CalendarEvent(title="Dentist", date=date(2025, 4, 2))
        assert event.display_title == "Personal Event: Dentist"

    def test_company_event_with_name(self):
        event = CalendarEvent(
            title="Board meeting", date=date(2025, 4, 2), event_scope="company", company="Acme Ltd"
        )
        assert event.display_title == "Company Event (Acme Ltd): Board meeting"

    def test_company_event_without_name(self):
        event = CalendarEvent(title="Board meeting", date=date(2025, 4, 2), event_scope="company")
        assert event.display_title == "Company Event: Board meeting"

    def test_anniversary_keeps_raw_title(self):
        event = CalendarEvent(
            title="Acme Ltd — 5th Anniversary", date=date(2025, 3, 1), type=EventType.ANNIVERSARY
        )
        assert event.display_title == "Acme Ltd — 5th Anniversary"


class TestSnapshot:
    def test_whitespace_is_normalised(self):
        assert normalize_title("  Personal Event:   Dentist ") == "Personal Event: Dentist"

    def test_find_requires_same_day(self):
        snapshot = RemoteSnapshot(
            [RemoteEvent(external_id="g-1", title="Personal Event: Dentist", date=date(2025, 4, 2))]
        )
        assert snapshot.find("Personal Event:  Dentist", date(2025, 4, 2)) == "g-1"
        assert snapshot.find("Personal Event: Dentist", date(2025, 4, 3)) is None

    def test_no_fuzzy_matching(self):
        snapshot = RemoteSnapshot(
            [RemoteEvent(external_id="g-1", title="Personal Event: Dentist", date=date(2025, 4, 2))]
        )
        assert snapshot.find("personal event: dentist", date(2025, 4, 2)) is None
        assert snapshot.find("Personal Event: Dentist appt", date(2025, 4, 2)) is None

    def test_timed_events_match_by_day(self):
        snapshot = RemoteSnapshot(
            [
                RemoteEvent(
                    external_id="g-2",
                    title="Personal Event: Call",
                    date_time="2025-04-02T09:30:00Z",
                )
            ]
        )
        assert snapshot.find("Personal Event: Call", date(2025, 4, 2)) == "g-2"
        assert "g-2" in snapshot
        assert len(snapshot) == 1

    def test_first_listed_wins_for_remote_duplicates(self):
        snapshot = RemoteSnapshot(
            [
                RemoteEvent(external_id="g-1", title="Same", date=date(2025, 4, 2)),
                RemoteEvent(external_id="g-2", title="Same", date=date(2025, 4, 2)),
            ]
        )
        assert snapshot.find("Same", date(2025, 4, 2)) == "g-1"
