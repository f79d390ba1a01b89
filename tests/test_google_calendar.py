"""
Unit tests for GoogleCalendarAdapter against a stub discovery service.

No network access: the adapter is handed a stand-in for the object returned by
googleapiclient.discovery.build().
"""

from datetime import date
from types import SimpleNamespace

import pytest
from googleapiclient.errors import HttpError

from calendar_reconcile.google_calendar import GoogleCalendarAdapter
from calendar_reconcile.models import AnniversaryOccurrence
from calendar_reconcile.models import CalendarEvent
from calendar_reconcile.models import GeneratedCandidate
from calendar_reconcile.models import PersistedCandidate
from calendar_reconcile.models import ProviderAuthError
from calendar_reconcile.models import ProviderError


def _http_error(status: int) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="stub"), b"")


class _Request:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class _Events:
    def __init__(self, pages=None, error=None):
        self.pages = list(pages or [])
        self.error = error
        self.inserted = []
        self.list_calls = []

    def list(self, **kwargs):
        self.list_calls.append(kwargs)
        if self.error is not None:
            return _Request(error=self.error)
        return _Request(self.pages.pop(0))

    def insert(self, calendarId, body):
        self.inserted.append(body)
        if self.error is not None:
            return _Request(error=self.error)
        return _Request({"id": f"g{len(self.inserted)}"})

    def delete(self, calendarId, eventId):
        return _Request({}, error=self.error)


class _Service:
    def __init__(self, events: _Events):
        self._events = events

    def events(self):
        return self._events


def _adapter(events: _Events, tmp_path) -> GoogleCalendarAdapter:
    return GoogleCalendarAdapter(tmp_path / "token.json", "Europe/London", service=_Service(events))


ANNIV = GeneratedCandidate(
    AnniversaryOccurrence(
        logical_id="acme-ltd-anniv-2025",
        title="Acme Ltd — 5th Anniversary",
        date=date(2025, 3, 1),
        description="Acme Ltd was registered on 01 March 2020.",
        company_id=1,
        company_name="Acme Ltd",
        years_old=5,
    )
)


class TestListEvents:
    def test_pages_are_followed(self, tmp_path):
        events = _Events(
            pages=[
                {
                    "items": [{"id": "a", "summary": "All day", "start": {"date": "2025-03-01"}}],
                    "nextPageToken": "p2",
                },
                {
                    "items": [
                        {
                            "id": "b",
                            "summary": "Timed",
                            "start": {"dateTime": "2025-03-02T09:00:00Z"},
                        },
                        {"id": "c", "status": "cancelled", "start": {"date": "2025-03-03"}},
                    ]
                },
            ]
        )
        listed = _adapter(events, tmp_path).list_events("primary", date(2025, 1, 1), date(2026, 1, 1))

        assert [e.external_id for e in listed] == ["a", "b"]
        assert listed[0].day == date(2025, 3, 1)
        assert listed[1].day == date(2025, 3, 2)
        assert events.list_calls[1]["pageToken"] == "p2"
        assert events.list_calls[0]["timeMin"] == "2025-01-01T00:00:00+00:00"

    def test_window_bounds_follow_configured_timezone(self, tmp_path):
        events = _Events(pages=[{"items": []}])
        adapter = GoogleCalendarAdapter(
            tmp_path / "token.json", "America/Los_Angeles", service=_Service(events)
        )
        adapter.list_events("primary", date(2025, 1, 1), date(2025, 2, 1))

        call = events.list_calls[0]
        assert call["timeMin"] == "2025-01-01T00:00:00-08:00"
        assert call["timeMax"] == "2025-02-01T00:00:00-08:00"
        assert call["timeZone"] == "America/Los_Angeles"

    def test_unknown_timezone_is_provider_error(self, tmp_path):
        adapter = GoogleCalendarAdapter(
            tmp_path / "token.json", "Mars/Olympus_Mons", service=_Service(_Events())
        )
        with pytest.raises(ProviderError):
            adapter.list_events("primary", date(2025, 1, 1), date(2025, 2, 1))

    def test_auth_status_maps_to_auth_error(self, tmp_path):
        adapter = _adapter(_Events(error=_http_error(401)), tmp_path)
        with pytest.raises(ProviderAuthError):
            adapter.list_events("primary", date(2025, 1, 1), date(2026, 1, 1))

    def test_client_error_maps_to_provider_error(self, tmp_path):
        adapter = _adapter(_Events(error=_http_error(400)), tmp_path)
        with pytest.raises(ProviderError):
            adapter.list_events("primary", date(2025, 1, 1), date(2026, 1, 1))


class TestCreateEvent:
    def test_anniversary_is_all_day(self, tmp_path):
        events = _Events()
        external_id = _adapter(events, tmp_path).create_event("primary", ANNIV)

        assert external_id == "g1"
        body = events.inserted[0]
        assert body["summary"] == "Acme Ltd — 5th Anniversary"
        assert body["start"] == {"date": "2025-03-01"}
        assert body["end"] == {"date": "2025-03-02"}
        assert body["extendedProperties"]["private"]["reconcileKey"] == "acme-ltd-anniv-2025"

    def test_timed_event_uses_configured_timezone(self, tmp_path):
        events = _Events()
        candidate = PersistedCandidate(
            CalendarEvent(id=5, title="Dentist", date=date(2025, 4, 2), time="14:30")
        )
        _adapter(events, tmp_path).create_event("primary", candidate)

        body = events.inserted[0]
        assert body["summary"] == "Personal Event: Dentist"
        assert body["start"] == {"dateTime": "2025-04-02T14:30:00", "timeZone": "Europe/London"}
        assert body["end"] == {"dateTime": "2025-04-02T15:30:00", "timeZone": "Europe/London"}


class TestDeleteEvent:
    @pytest.mark.parametrize("status", [404, 410])
    def test_already_gone_is_not_an_error(self, tmp_path, status):
        _adapter(_Events(error=_http_error(status)), tmp_path).delete_event("primary", "g1")

    def test_forbidden_is_auth_error(self, tmp_path):
        with pytest.raises(ProviderAuthError):
            _adapter(_Events(error=_http_error(403)), tmp_path).delete_event("primary", "g1")


def test_missing_credentials_file(tmp_path):
    adapter = GoogleCalendarAdapter(tmp_path / "missing.json")
    with pytest.raises(ProviderAuthError):
        adapter.list_events("primary", date(2025, 1, 1), date(2026, 1, 1))
