"""
SyncOrchestrator: thin coordinator that delegates each phase to sync submodules.
"""

import logging
import threading
import time
from collections.abc import Callable
from contextlib import contextmanager
from datetime import date
from datetime import timedelta

from calendar_reconcile import anniversary
from calendar_reconcile.db import StateDatabase
from calendar_reconcile.history import SyncHistory
from calendar_reconcile.models import AnniversaryOccurrence
from calendar_reconcile.models import CalendarEvent
from calendar_reconcile.models import ProviderAuthError
from calendar_reconcile.models import ProviderError
from calendar_reconcile.models import SyncConfig
from calendar_reconcile.models import SyncInProgressError
from calendar_reconcile.models import SyncResult
from calendar_reconcile.models import SyncType
from calendar_reconcile.overrides import OverrideResolver
from calendar_reconcile.remote import RemoteCalendarAdapter
from calendar_reconcile.store import EventStore
from calendar_reconcile.sync.matching import RemoteSnapshot
from calendar_reconcile.sync.pull import run_delete_stale
from calendar_reconcile.sync.pull import run_pull_missing
from calendar_reconcile.sync.push import run_push
from calendar_reconcile.tombstones import SyncTombstoneTracker

# Calendars with a pass in flight in this process.
_active_calendars: set[str] = set()
_active_guard = threading.Lock()


@contextmanager
def _exclusive(calendar_id: str):
    with _active_guard:
        if calendar_id in _active_calendars:
            raise SyncInProgressError(f"A sync is already running for calendar {calendar_id!r}")
        _active_calendars.add(calendar_id)
    try:
        yield
    finally:
        with _active_guard:
            _active_calendars.discard(calendar_id)


class SyncOrchestrator:
    """Reconciles the local event store with one remote calendar."""

    def __init__(
        self,
        config: SyncConfig,
        state_db: StateDatabase,
        client: RemoteCalendarAdapter,
        invalidate_cache: Callable[[str, SyncResult], None] | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.config = config
        self.client = client
        self.invalidate_cache = invalidate_cache
        self.today = today
        self.logger = logging.getLogger(__name__)

        self.store = EventStore(state_db)
        self.tracker = SyncTombstoneTracker(state_db)
        self.history = SyncHistory(state_db)
        self.resolver = OverrideResolver(self.tracker)

    def default_window(self) -> tuple[date, date]:
        today = self.today()
        return (
            today - timedelta(days=self.config.window_past_days),
            today + timedelta(days=self.config.window_future_days),
        )

    # ------------------------------------------------------------------ #
    # Reconciliation pass                                                  #
    # ------------------------------------------------------------------ #

    def unified_sync(
        self,
        calendar_id: str | None = None,
        sync_type: SyncType | str = SyncType.ALL,
        include_anniversary_events: bool = True,
        window: tuple[date, date] | None = None,
    ) -> SyncResult:
        """Run one reconciliation pass and return its aggregated counts.

        Per-candidate provider failures are collected in ``errors``; a
        ProviderAuthError ends the pass and propagates to the caller.
        """
        calendar_id = calendar_id or self.config.calendar_id
        sync_type = SyncType(sync_type)
        window = window or self.default_window()
        result = SyncResult(sync_type=sync_type.value)
        started_at = int(time.time())

        with _exclusive(calendar_id):
            self.logger.info(
                f"Starting {sync_type.value} sync of {calendar_id} "
                f"for {window[0]} .. {window[1]}"
            )
            try:
                self._run(calendar_id, sync_type, include_anniversary_events, window, result)
            except ProviderAuthError as e:
                self.logger.error(f"Authentication error: {e}")
                if not self.config.dry_run:
                    result.errors.append(f"Authentication error: {e}")
                    self.history.record_run(calendar_id, result, started_at, status="AUTH_ERROR")
                raise

        self.logger.info(
            f"Sync finished: pushed={result.pushed} pulled={result.pulled} "
            f"deleted={result.deleted} skipped={result.skipped} errors={len(result.errors)}"
        )

        if self.config.dry_run:
            return result

        self.history.record_run(calendar_id, result, started_at)
        self.history.prune()
        if result.changed:
            self._invalidate(calendar_id, result)
        return result

    def _run(
        self,
        calendar_id: str,
        sync_type: SyncType,
        include_anniversary_events: bool,
        window: tuple[date, date],
        result: SyncResult,
    ):
        start, end = window

        # Collect
        generated: list[AnniversaryOccurrence] = []
        if include_anniversary_events and sync_type != SyncType.REGULAR:
            generated = anniversary.generate(self.store.list_companies(), start, end)
            self.logger.debug(f"Generated {len(generated)} anniversary occurrence(s)")
        resolution = self.resolver.resolve(
            self.store.list_candidate_pool(start, end), generated, sync_type, window
        )
        for key in resolution.duplicates:
            result.errors.append(f"Duplicate candidate {key} skipped")

        # Snapshot
        try:
            snapshot = RemoteSnapshot(self.client.list_events(calendar_id, start, end))
        except ProviderError as e:
            self.logger.error(f"Failed to list remote events: {e}")
            result.errors.append(f"Failed to list remote events: {e}")
            return
        self.logger.debug(f"Remote snapshot holds {len(snapshot)} event(s)")

        args = (self.config, result, self.logger)
        touched = run_push(
            *args,
            self.client,
            self.store,
            self.tracker,
            self.history,
            calendar_id,
            resolution.candidates,
            snapshot,
        )

        if sync_type != SyncType.ALL:
            return

        run_pull_missing(
            *args, self.store, self.tracker, self.history, calendar_id, snapshot, window, touched
        )
        run_delete_stale(
            *args, self.store, self.tracker, self.history, calendar_id, snapshot, window, touched
        )

    def _invalidate(self, calendar_id: str, result: SyncResult):
        if self.invalidate_cache is None:
            return
        try:
            self.invalidate_cache(calendar_id, result)
        except Exception as e:
            self.logger.warning(f"Cache invalidation failed (ignored): {e}")

    # ------------------------------------------------------------------ #
    # User-initiated changes                                               #
    # ------------------------------------------------------------------ #

    def delete_event(self, event_id: int, calendar_id: str | None = None) -> CalendarEvent | None:
        """Delete a local event and, best-effort, its remote copy.

        Deleting an override also tombstones the occurrence it replaced so
        the generated version does not come back.
        """
        event = self.store.get_event(event_id)
        if event is None:
            return None
        if event.external_id:
            self._delete_remote(event.calendar_id or calendar_id, event.external_id)
        self.store.delete_event(event_id)
        if event.overrides_logical_id:
            self.tracker.record_deleted(event.overrides_logical_id)
        self.logger.info(f"Deleted event {event_id} ({event.title!r})")
        return event

    def delete_anniversary(self, logical_id: str, calendar_id: str | None = None):
        """Tombstone a generated anniversary so it is never regenerated."""
        tombstone = self.tracker.get(logical_id)
        if tombstone is not None and tombstone.external_id:
            self._delete_remote(tombstone.calendar_id or calendar_id, tombstone.external_id)

        occurrence = self.find_occurrence(logical_id)
        if occurrence is not None:
            self.tracker.record_deleted(logical_id, occurrence.title, occurrence.date)
        else:
            self.tracker.record_deleted(logical_id)
        self.logger.info(f"Anniversary {logical_id} deleted")

    def restore_anniversary(self, logical_id: str) -> bool:
        return self.tracker.restore(logical_id)

    def find_occurrence(self, logical_id: str) -> AnniversaryOccurrence | None:
        """Regenerate the occurrence a logical id refers to, if its company still qualifies."""
        _, sep, year = logical_id.rpartition("-anniv-")
        if not sep or not year.isdigit():
            return None
        year = int(year)
        for occ in anniversary.generate(
            self.store.list_companies(), date(year, 1, 1), date(year + 1, 1, 1)
        ):
            if occ.logical_id == logical_id:
                return occ
        return None

    def _delete_remote(self, calendar_id: str | None, external_id: str):
        try:
            self.client.delete_event(calendar_id or self.config.calendar_id, external_id)
        except ProviderError as e:
            self.logger.warning(f"Could not delete remote event {external_id}: {e}")
