"""
Unit tests for OverrideResolver: override precedence, tombstone suppression,
sync-type filtering and candidate uniqueness.
"""

from datetime import date

import pytest

from calendar_reconcile import anniversary
from calendar_reconcile.models import CalendarEvent
from calendar_reconcile.models import Company
from calendar_reconcile.models import DuplicateCandidateError
from calendar_reconcile.models import EventType
from calendar_reconcile.models import GeneratedCandidate
from calendar_reconcile.models import PersistedCandidate
from calendar_reconcile.models import SyncStatus
from calendar_reconcile.models import SyncType
from calendar_reconcile.overrides import OverrideResolver
from calendar_reconcile.overrides import matches_sync_type

WINDOW = (date(2025, 1, 1), date(2026, 1, 1))
ACME = Company(id=1, trading_name="Acme Ltd", registration_date=date(2020, 3, 1))


def _generated():
    return anniversary.generate([ACME], *WINDOW)


def _event(event_id, title, **kwargs):
    kwargs.setdefault("date", date(2025, 4, 1))
    return CalendarEvent(id=event_id, title=title, **kwargs)


class TestOverridePrecedence:
    def test_live_override_drops_generated_occurrence(self, tracker):
        override = _event(10, "Acme party", overrides_logical_id="acme-ltd-anniv-2025")
        resolution = OverrideResolver(tracker).resolve([override], _generated(), window=WINDOW)

        keys = [c.key for c in resolution.candidates]
        assert "acme-ltd-anniv-2025" not in keys
        assert keys == ["event:10"]
        assert resolution.overridden == {"acme-ltd-anniv-2025"}

    def test_synced_override_still_wins(self, tracker):
        override = _event(
            10,
            "Acme party",
            overrides_logical_id="acme-ltd-anniv-2025",
            sync_status=SyncStatus.SYNCED,
            external_id="g-1",
        )
        resolution = OverrideResolver(tracker).resolve([override], _generated(), window=WINDOW)
        assert resolution.candidates == []

    def test_deleted_override_releases_occurrence(self, tracker):
        override = _event(
            10,
            "Acme party",
            overrides_logical_id="acme-ltd-anniv-2025",
            sync_status=SyncStatus.DELETED,
        )
        resolution = OverrideResolver(tracker).resolve([override], _generated(), window=WINDOW)
        assert [c.key for c in resolution.candidates] == ["acme-ltd-anniv-2025"]


class TestTombstones:
    def test_deleted_logical_id_is_not_regenerated(self, tracker):
        tracker.record_deleted("acme-ltd-anniv-2025")
        resolution = OverrideResolver(tracker).resolve([], _generated(), window=WINDOW)
        assert resolution.candidates == []
        assert "acme-ltd-anniv-2025" in resolution.suppressed

    def test_known_external_id_is_carried(self, tracker):
        tracker.record_synced("acme-ltd-anniv-2025", "g-7", "Acme Ltd — 5th Anniversary")
        resolution = OverrideResolver(tracker).resolve([], _generated(), window=WINDOW)

        (candidate,) = resolution.candidates
        assert isinstance(candidate, GeneratedCandidate)
        assert candidate.external_id == "g-7"


class TestSyncTypeFilter:
    def test_matches_sync_type(self):
        regular = _event(1, "Lunch")
        auto = _event(2, "Invoice due", is_auto_generated=True, type=EventType.INVOICE)
        anniv = _event(3, "Manual anniversary", type=EventType.ANNIVERSARY)

        assert matches_sync_type(regular, SyncType.ALL)
        assert matches_sync_type(regular, SyncType.REGULAR)
        assert not matches_sync_type(regular, SyncType.AUTO_GENERATED)
        assert not matches_sync_type(auto, SyncType.REGULAR)
        assert matches_sync_type(auto, SyncType.AUTO_GENERATED)
        assert matches_sync_type(anniv, SyncType.AUTO_GENERATED)

    def test_only_local_and_pending_events_are_candidates(self, tracker):
        events = [
            _event(1, "Local", sync_status=SyncStatus.LOCAL),
            _event(2, "Pending", sync_status=SyncStatus.PENDING),
            _event(3, "Synced", sync_status=SyncStatus.SYNCED, external_id="g-3"),
            _event(4, "Deleted", sync_status=SyncStatus.DELETED),
        ]
        resolution = OverrideResolver(tracker).resolve(events, [], window=WINDOW)
        assert [c.key for c in resolution.candidates] == ["event:1", "event:2"]
        assert all(isinstance(c, PersistedCandidate) for c in resolution.candidates)

    def test_window_limits_local_candidates(self, tracker):
        events = [_event(1, "Next year", date=date(2026, 2, 1))]
        resolution = OverrideResolver(tracker).resolve(events, [], window=WINDOW)
        assert resolution.candidates == []


class TestUniqueness:
    def test_duplicate_override_claims_are_reported(self, tracker):
        events = [
            _event(1, "A", overrides_logical_id="acme-ltd-anniv-2025"),
            _event(2, "B", overrides_logical_id="acme-ltd-anniv-2025"),
        ]
        resolution = OverrideResolver(tracker).resolve(events, _generated(), window=WINDOW)
        assert resolution.duplicates == ["acme-ltd-anniv-2025"]
        assert "acme-ltd-anniv-2025" not in [c.key for c in resolution.candidates]

    def test_repeated_generated_key_is_skipped(self, tracker):
        generated = _generated() * 2
        resolution = OverrideResolver(tracker).resolve([], generated, window=WINDOW)
        assert [c.key for c in resolution.candidates] == ["acme-ltd-anniv-2025"]
        assert resolution.duplicates == ["acme-ltd-anniv-2025"]

    def test_strict_mode_raises(self, tracker):
        generated = _generated() * 2
        with pytest.raises(DuplicateCandidateError):
            OverrideResolver(tracker, strict=True).resolve([], generated, window=WINDOW)
