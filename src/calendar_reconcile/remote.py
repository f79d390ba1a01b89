"""
Remote calendar capability used by the orchestrator.
"""

from abc import ABC
from abc import abstractmethod
from datetime import date

from calendar_reconcile.models import CandidateEvent
from calendar_reconcile.models import RemoteEvent


class RemoteCalendarAdapter(ABC):
    """List/create/delete against one external calendar provider.

    Implementations raise ProviderError for a failed call and
    ProviderAuthError when credentials are missing or rejected.
    """

    @abstractmethod
    def list_events(self, calendar_id: str, start: date, end: date) -> list[RemoteEvent]:
        """Events starting within [start, end)."""

    @abstractmethod
    def create_event(self, calendar_id: str, candidate: CandidateEvent) -> str:
        """Create the candidate remotely and return its external id."""

    @abstractmethod
    def delete_event(self, calendar_id: str, external_id: str) -> None:
        """Delete a remote event; an event that is already gone is not an error."""
