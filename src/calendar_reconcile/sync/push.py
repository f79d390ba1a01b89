"""
Push phase: skip, link or create each candidate remotely.
"""

import sqlite3

from calendar_reconcile.history import SyncHistory
from calendar_reconcile.models import CandidateEvent
from calendar_reconcile.models import GeneratedCandidate
from calendar_reconcile.models import ProviderError
from calendar_reconcile.models import SyncConfig
from calendar_reconcile.models import SyncResult
from calendar_reconcile.remote import RemoteCalendarAdapter
from calendar_reconcile.store import EventStore
from calendar_reconcile.sync.matching import RemoteSnapshot
from calendar_reconcile.tombstones import SyncTombstoneTracker


def _record_link(
    candidate: CandidateEvent,
    external_id: str,
    calendar_id: str,
    store: EventStore,
    tracker: SyncTombstoneTracker,
):
    if isinstance(candidate, GeneratedCandidate):
        tracker.record_synced(
            candidate.key, external_id, candidate.title, candidate.date, calendar_id
        )
    else:
        store.mark_synced(candidate.event.id, external_id, calendar_id)


def _create(
    candidate: CandidateEvent,
    calendar_id: str,
    client: RemoteCalendarAdapter,
    store: EventStore,
    tracker: SyncTombstoneTracker,
) -> str | None:
    """Create remotely and record the outcome; None if another writer got there first."""
    if not isinstance(candidate, GeneratedCandidate):
        external_id = client.create_event(calendar_id, candidate)
        store.mark_synced(candidate.event.id, external_id, calendar_id)
        return external_id

    with tracker.lock_for(candidate.key):
        if tracker.is_deleted(candidate.key) or tracker.external_id_for(candidate.key):
            return None
        external_id = client.create_event(calendar_id, candidate)
        tracker.record_synced(
            candidate.key, external_id, candidate.title, candidate.date, calendar_id
        )
        return external_id


def run_push(
    config: SyncConfig,
    result: SyncResult,
    logger,
    client: RemoteCalendarAdapter,
    store: EventStore,
    tracker: SyncTombstoneTracker,
    history: SyncHistory,
    calendar_id: str,
    candidates: list[CandidateEvent],
    snapshot: RemoteSnapshot,
) -> set[str]:
    """Process every candidate in order; returns the external ids pushed or linked.

    A failure on one candidate is recorded and the loop moves on.
    """
    touched: set[str] = set()
    logger.info(f"Processing {len(candidates)} push candidate(s)...")

    for candidate in candidates:
        label = candidate.display_title

        if candidate.external_id:
            logger.debug(f"Skip {candidate.key}: already synced as {candidate.external_id}")
            result.skipped += 1
            continue

        existing = snapshot.find(label, candidate.date)
        if existing:
            if config.dry_run:
                logger.info(f"[DRY RUN] Would LINK {candidate.key} -> {existing}")
            else:
                try:
                    _record_link(candidate, existing, calendar_id, store, tracker)
                    history.log_activity(candidate.key, "PUSH", "LINKED", existing)
                except sqlite3.Error as e:
                    logger.error(f"Failed to link {candidate.key}: {e}")
                    result.errors.append(f'Failed to link "{candidate.title}": {e}')
                    continue
                logger.debug(f"Linked {candidate.key} to existing remote event {existing}")
            touched.add(existing)
            result.skipped += 1
            continue

        if config.dry_run:
            logger.info(f"[DRY RUN] Would PUSH {candidate.key}: {label!r} on {candidate.date}")
            result.pushed += 1
            continue

        try:
            external_id = _create(candidate, calendar_id, client, store, tracker)
        except (ProviderError, sqlite3.Error) as e:
            logger.error(f'Failed to push "{label}": {e}')
            result.errors.append(f'Failed to push "{candidate.title}": {e}')
            history.log_activity(candidate.key, "PUSH", "FAILED", str(e))
            continue

        if external_id is None:
            logger.debug(f"Skip {candidate.key}: recorded by a concurrent writer")
            result.skipped += 1
            continue

        touched.add(external_id)
        result.pushed += 1
        history.log_activity(candidate.key, "PUSH", "SUCCESS", external_id)
        logger.debug(f"Pushed {candidate.key} as {external_id}")

    return touched
