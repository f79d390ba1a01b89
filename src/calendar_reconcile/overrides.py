"""
Override resolution: decides which generated occurrences survive and merges
them with local push candidates.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from datetime import date

from calendar_reconcile.models import AnniversaryOccurrence
from calendar_reconcile.models import CalendarEvent
from calendar_reconcile.models import CandidateEvent
from calendar_reconcile.models import DuplicateCandidateError
from calendar_reconcile.models import EventType
from calendar_reconcile.models import GeneratedCandidate
from calendar_reconcile.models import PersistedCandidate
from calendar_reconcile.models import SyncStatus
from calendar_reconcile.models import SyncType
from calendar_reconcile.tombstones import SyncTombstoneTracker

logger = logging.getLogger(__name__)

_PUSHABLE = (SyncStatus.LOCAL, SyncStatus.PENDING)


@dataclass
class Resolution:
    candidates: list[CandidateEvent] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    overridden: set[str] = field(default_factory=set)
    suppressed: set[str] = field(default_factory=set)  # tombstoned logical ids


def matches_sync_type(event: CalendarEvent, sync_type: SyncType) -> bool:
    """Whether a local event belongs to the requested sync population."""
    sync_type = SyncType(sync_type)
    if sync_type == SyncType.ALL:
        return True
    auto = (
        event.is_auto_generated
        or event.type == EventType.ANNIVERSARY
        or event.overrides_logical_id is not None
    )
    if sync_type == SyncType.AUTO_GENERATED:
        return auto
    return not event.is_auto_generated


class OverrideResolver:
    """Filters generated occurrences against overrides and tombstones."""

    def __init__(self, tracker: SyncTombstoneTracker, strict: bool = False):
        self.tracker = tracker
        self.strict = strict

    def resolve(
        self,
        local_events: Iterable[CalendarEvent],
        generated: Iterable[AnniversaryOccurrence],
        sync_type: SyncType = SyncType.ALL,
        window: tuple[date, date] | None = None,
    ) -> Resolution:
        """Build the unique candidate set for one pass.

        Generated occurrences that a live local event overrides, or whose
        logical id is tombstoned as deleted, are dropped. Local events join
        the set when they match ``sync_type``, are LOCAL or PENDING and (when
        ``window`` is given) fall inside it.
        """
        local_events = list(local_events)
        result = Resolution()

        # Overrides
        override_owner: dict[str, int] = {}
        for event in local_events:
            logical_id = event.overrides_logical_id
            if not logical_id or not event.is_live:
                continue
            if logical_id in override_owner:
                self._duplicate(
                    result,
                    logical_id,
                    f"events {override_owner[logical_id]} and {event.id} both override {logical_id}",
                )
                continue
            override_owner[logical_id] = event.id
        result.overridden = set(override_owner)

        # Tombstones
        result.suppressed = self.tracker.deleted_ids()

        seen: set[str] = set()

        def _add(candidate: CandidateEvent):
            if candidate.key in seen:
                self._duplicate(result, candidate.key, f"candidate {candidate.key} appears twice")
                return
            seen.add(candidate.key)
            result.candidates.append(candidate)

        for occ in generated:
            if occ.logical_id in result.overridden:
                logger.debug(f"{occ.logical_id} is overridden by a local event; skipping")
                continue
            if occ.logical_id in result.suppressed:
                logger.debug(f"{occ.logical_id} was deleted; not regenerating")
                continue
            _add(GeneratedCandidate(occ, self.tracker.external_id_for(occ.logical_id)))

        for event in local_events:
            if event.sync_status not in _PUSHABLE:
                continue
            if not matches_sync_type(event, sync_type):
                continue
            if window is not None and not (window[0] <= event.date < window[1]):
                continue
            _add(PersistedCandidate(event))

        return result

    def _duplicate(self, result: Resolution, key: str, message: str):
        if self.strict:
            raise DuplicateCandidateError(message)
        logger.warning(f"Data inconsistency: {message}; skipping")
        result.duplicates.append(key)
