"""
Pull phase: import remote events unknown locally, then retire local records
whose remote copy has disappeared.
"""

import sqlite3
from datetime import date

from calendar_reconcile.history import SyncHistory
from calendar_reconcile.models import CalendarSyncError
from calendar_reconcile.models import SyncConfig
from calendar_reconcile.models import SyncResult
from calendar_reconcile.store import EventStore
from calendar_reconcile.sync.matching import RemoteSnapshot
from calendar_reconcile.sync.matching import match_key
from calendar_reconcile.tombstones import SyncTombstoneTracker


def _local_match_keys(
    store: EventStore, tracker: SyncTombstoneTracker, start: date, end: date
) -> set:
    keys = {match_key(e.display_title, e.date) for e in store.list_events(start, end)}
    keys.update(match_key(t.title, t.date) for t in tracker.all() if t.date)
    return keys


def run_pull_missing(
    config: SyncConfig,
    result: SyncResult,
    logger,
    store: EventStore,
    tracker: SyncTombstoneTracker,
    history: SyncHistory,
    calendar_id: str,
    snapshot: RemoteSnapshot,
    window: tuple[date, date],
    touched: set[str],
):
    """Insert remote events with no local counterpart as SYNCED local events."""
    known = store.known_external_ids() | tracker.known_external_ids() | touched
    local_keys = _local_match_keys(store, tracker, *window)

    for remote in snapshot.events:
        if remote.external_id in known:
            continue
        if remote.day is None:
            logger.warning(f"Remote event {remote.external_id} has no usable start date; skipping")
            continue
        if match_key(remote.title, remote.day) in local_keys:
            logger.debug(f"Remote event {remote.external_id} matches a local event by title/date")
            continue

        if config.dry_run:
            logger.info(f"[DRY RUN] Would PULL {remote.external_id}: {remote.title!r}")
            result.pulled += 1
            continue

        try:
            event = store.insert_pulled(remote, calendar_id)
        except (CalendarSyncError, sqlite3.Error) as e:
            logger.error(f"Failed to pull {remote.external_id}: {e}")
            result.errors.append(f'Failed to pull "{remote.title}": {e}')
            continue

        known.add(remote.external_id)
        local_keys.add(match_key(remote.title, remote.day))
        result.pulled += 1
        history.log_activity(f"event:{event.id}", "PULL", "SUCCESS", remote.external_id)
        logger.debug(f"Pulled {remote.external_id} as local event {event.id}")


def run_delete_stale(
    config: SyncConfig,
    result: SyncResult,
    logger,
    store: EventStore,
    tracker: SyncTombstoneTracker,
    history: SyncHistory,
    calendar_id: str,
    snapshot: RemoteSnapshot,
    window: tuple[date, date],
    touched: set[str],
):
    """Mark deleted every record synced to calendar_id that is no longer listed."""
    for event in store.list_synced(*window, calendar_id=calendar_id):
        if event.external_id in snapshot or event.external_id in touched:
            continue
        if config.dry_run:
            logger.info(f"[DRY RUN] Would DELETE local event {event.id} ({event.title!r})")
            result.deleted += 1
            continue
        try:
            store.mark_deleted(event.id)
        except sqlite3.Error as e:
            logger.error(f"Failed to mark event {event.id} deleted: {e}")
            result.errors.append(f'Failed to delete "{event.title}": {e}')
            continue
        result.deleted += 1
        history.log_activity(f"event:{event.id}", "DELETE", "SUCCESS", event.external_id)
        logger.debug(f"Event {event.id} no longer exists remotely; marked deleted")

    for tombstone in tracker.live_synced(*window, calendar_id=calendar_id):
        if tombstone.external_id in snapshot or tombstone.external_id in touched:
            continue
        if config.dry_run:
            logger.info(f"[DRY RUN] Would TOMBSTONE {tombstone.logical_id}")
            result.deleted += 1
            continue
        try:
            tracker.record_deleted(tombstone.logical_id)
        except sqlite3.Error as e:
            logger.error(f"Failed to tombstone {tombstone.logical_id}: {e}")
            result.errors.append(f'Failed to delete "{tombstone.title}": {e}')
            continue
        result.deleted += 1
        history.log_activity(tombstone.logical_id, "DELETE", "SUCCESS", tombstone.external_id)
        logger.debug(f"{tombstone.logical_id} no longer exists remotely; tombstoned")
