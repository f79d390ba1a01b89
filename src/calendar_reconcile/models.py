"""
Pure data models: no sqlite, provider or HTTP imports.
"""

import datetime
import re
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from enum import Enum
from pathlib import Path

DEFAULT_STATE_DB = Path.home() / ".local/share/calendar-reconcile-state.db"
DEFAULT_CONFIG = Path.home() / ".config/calendar-reconcile.conf"
DEFAULT_CREDENTIALS = Path.home() / ".config/calendar-reconcile-token.json"

# Legacy free-text override marker, e.g. "[overrides:acme-ltd-anniv-2025]".
_OVERRIDE_MARKER_RE = re.compile(r"\[overrides:([a-z0-9][a-z0-9-]*)\]")


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""

    pass


class ConfigError(CalendarSyncError):
    """The configuration file cannot be read or holds a bad value."""

    pass


class ProviderError(CalendarSyncError):
    """A single call to the calendar provider failed."""

    pass


class ProviderAuthError(CalendarSyncError):
    """Provider credentials are missing, expired or rejected."""

    pass


class DuplicateCandidateError(CalendarSyncError):
    """The merged candidate set contains the same key twice."""

    pass


class SyncInProgressError(CalendarSyncError):
    """Another reconciliation pass is already running for this calendar."""

    pass


class SyncStatus(str, Enum):
    LOCAL = "LOCAL"
    PENDING = "PENDING"
    SYNCED = "SYNCED"
    DELETED = "DELETED"


class SyncType(str, Enum):
    ALL = "all"
    REGULAR = "regular"
    AUTO_GENERATED = "auto-generated"


class EventType(str, Enum):
    MEETING = "MEETING"
    DEADLINE = "DEADLINE"
    REMINDER = "REMINDER"
    INVOICE = "INVOICE"
    ANNIVERSARY = "ANNIVERSARY"
    OTHER = "OTHER"


def parse_override_marker(description: str | None) -> str | None:
    """Return the logical id named by a legacy ``[overrides:...]`` marker."""
    if not description:
        return None
    m = _OVERRIDE_MARKER_RE.search(description)
    return m.group(1) if m else None


@dataclass
class SyncConfig:
    """Configuration for a reconciliation run."""

    calendar_id: str = "primary"
    state_db_path: Path = field(default_factory=lambda: DEFAULT_STATE_DB)
    credentials_path: Path = field(default_factory=lambda: DEFAULT_CREDENTIALS)
    timezone: str = "UTC"
    window_past_days: int = 30
    window_future_days: int = 180
    cache_invalidation_url: str | None = None
    dry_run: bool = False
    verbose: bool = False
    yes: bool = False  # Auto-confirm without prompting


@dataclass
class Company:
    """Company registration record (read-only input to the generator)."""

    id: int
    trading_name: str
    registration_date: date | None = None
    status: str = "Active"


@dataclass
class CalendarEvent:
    """A locally owned calendar event."""

    title: str
    date: date
    id: int | None = None
    time: str | None = None  # "HH:MM"; None means all-day
    description: str = ""
    type: EventType = EventType.OTHER
    event_scope: str = "personal"  # 'personal' or 'company'
    company: str | None = None
    overrides_logical_id: str | None = None
    is_auto_generated: bool = False
    external_id: str | None = None
    calendar_id: str | None = None
    sync_status: SyncStatus = SyncStatus.LOCAL
    last_synced_at: int | None = None
    created_at: int | None = None
    updated_at: int | None = None

    @property
    def is_live(self) -> bool:
        return self.sync_status != SyncStatus.DELETED

    @property
    def is_anniversary(self) -> bool:
        return self.type == EventType.ANNIVERSARY

    @property
    def display_title(self) -> str:
        """Title as pushed to the provider."""
        if self.is_anniversary:
            return self.title
        if self.event_scope == "company":
            if self.company:
                return f"Company Event ({self.company}): {self.title}"
            return f"Company Event: {self.title}"
        return f"Personal Event: {self.title}"


@dataclass(frozen=True)
class AnniversaryOccurrence:
    """One generated anniversary; never persisted directly."""

    logical_id: str
    title: str
    date: date
    description: str
    company_id: int
    company_name: str
    years_old: int


@dataclass
class PersistedCandidate:
    """A local event queued for push."""

    event: CalendarEvent

    @property
    def key(self) -> str:
        return f"event:{self.event.id}"

    @property
    def title(self) -> str:
        return self.event.title

    @property
    def display_title(self) -> str:
        return self.event.display_title

    @property
    def date(self) -> date:
        return self.event.date

    @property
    def time(self) -> str | None:
        return self.event.time

    @property
    def description(self) -> str:
        return self.event.description

    @property
    def external_id(self) -> str | None:
        return self.event.external_id

    @property
    def is_anniversary(self) -> bool:
        return self.event.is_anniversary


@dataclass
class GeneratedCandidate:
    """A generated anniversary occurrence queued for push."""

    occurrence: AnniversaryOccurrence
    external_id: str | None = None

    @property
    def key(self) -> str:
        return self.occurrence.logical_id

    @property
    def title(self) -> str:
        return self.occurrence.title

    @property
    def display_title(self) -> str:
        return self.occurrence.title

    @property
    def date(self) -> date:
        return self.occurrence.date

    @property
    def time(self) -> str | None:
        return None

    @property
    def description(self) -> str:
        return self.occurrence.description

    @property
    def is_anniversary(self) -> bool:
        return True


CandidateEvent = PersistedCandidate | GeneratedCandidate


@dataclass
class SyncTombstone:
    """Durable remote identity of a generated (logical) event."""

    logical_id: str
    external_id: str
    is_deleted: bool
    title: str
    date: date | None
    synced_at: int
    calendar_id: str | None = None


@dataclass
class RemoteEvent:
    """An event as listed by the calendar provider."""

    external_id: str
    title: str
    date: datetime.date | None = None  # all-day events
    date_time: str | None = None  # ISO 8601 start for timed events

    @property
    def day(self) -> datetime.date | None:
        """Start date at day granularity."""
        if self.date is not None:
            return self.date
        if self.date_time:
            try:
                return datetime.date.fromisoformat(self.date_time[:10])
            except ValueError:
                return None
        return None


@dataclass
class SyncResult:
    """Aggregated outcome of one reconciliation pass."""

    sync_type: str = SyncType.ALL.value
    pushed: int = 0
    pulled: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.pushed or self.pulled or self.deleted)

    def as_dict(self) -> dict:
        return {
            "pushed": self.pushed,
            "pulled": self.pulled,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "syncType": self.sync_type,
        }
