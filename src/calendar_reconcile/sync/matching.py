"""
Title+date matching between local candidates and the remote snapshot.

Matching is exact: whitespace-normalised display title and day-granularity
date. There is no fuzzy matching.
"""

from collections.abc import Iterable
from datetime import date

from calendar_reconcile.models import RemoteEvent


def normalize_title(title: str | None) -> str:
    return " ".join((title or "").split())


def match_key(title: str | None, day: date | None) -> tuple[str, date | None]:
    return normalize_title(title), day


class RemoteSnapshot:
    """Index over the remote listing taken once at the start of a pass."""

    def __init__(self, events: Iterable[RemoteEvent]):
        self.events = list(events)
        self.external_ids = {e.external_id for e in self.events}
        self._by_key: dict[tuple[str, date | None], str] = {}
        for event in self.events:
            # First listed wins when the provider already holds duplicates.
            self._by_key.setdefault(match_key(event.title, event.day), event.external_id)

    def __len__(self) -> int:
        return len(self.events)

    def __contains__(self, external_id: str) -> bool:
        return external_id in self.external_ids

    def find(self, display_title: str, day: date) -> str | None:
        """External id of a remote event with the same title and day, if any."""
        return self._by_key.get(match_key(display_title, day))
