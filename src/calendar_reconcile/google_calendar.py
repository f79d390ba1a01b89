"""
Google Calendar v3 implementation of RemoteCalendarAdapter.
"""

import logging
from datetime import date
from datetime import datetime
from datetime import time
from datetime import timedelta
from pathlib import Path
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from tenacity import retry
from tenacity import retry_if_exception
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from calendar_reconcile.models import CandidateEvent
from calendar_reconcile.models import ProviderAuthError
from calendar_reconcile.models import ProviderError
from calendar_reconcile.models import RemoteEvent
from calendar_reconcile.remote import RemoteCalendarAdapter

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.events"]

_AUTH_STATUSES = (401, 403)
_GONE_STATUSES = (404, 410)
_PAGE_SIZE = 250


def _status_of(error: HttpError) -> int:
    return int(getattr(error.resp, "status", 0) or 0)


def _is_transient(error: BaseException) -> bool:
    """Rate limiting and server-side failures are worth retrying."""
    if not isinstance(error, HttpError):
        return False
    status = _status_of(error)
    return status == 429 or status >= 500


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)
def _execute(request):
    return request.execute()


class GoogleCalendarAdapter(RemoteCalendarAdapter):
    """Talks to Google Calendar with stored OAuth user credentials."""

    def __init__(self, credentials_path: Path, timezone: str = "UTC", service=None):
        self.credentials_path = credentials_path
        self.timezone = timezone
        self._service = service

    # ------------------------------------------------------------------ #
    # Connection                                                           #
    # ------------------------------------------------------------------ #

    def _load_credentials(self) -> Credentials:
        if not self.credentials_path.exists():
            raise ProviderAuthError(f"Credentials file not found: {self.credentials_path}")
        try:
            creds = Credentials.from_authorized_user_file(str(self.credentials_path), SCOPES)
        except ValueError as e:
            raise ProviderAuthError(f"Invalid credentials file {self.credentials_path}: {e}") from e

        if not creds.valid:
            if not (creds.expired and creds.refresh_token):
                raise ProviderAuthError("Stored credentials are invalid and cannot be refreshed")
            logger.debug("Refreshing expired Google credentials")
            try:
                creds.refresh(Request())
            except RefreshError as e:
                raise ProviderAuthError(f"Could not refresh Google credentials: {e}") from e
            self.credentials_path.write_text(creds.to_json())
        return creds

    @property
    def service(self):
        if self._service is None:
            creds = self._load_credentials()
            self._service = build("calendar", "v3", credentials=creds, cache_discovery=False)
        return self._service

    def _call(self, request, action: str, missing_ok: bool = False):
        """Execute a request, translating provider failures into our exceptions."""
        try:
            return _execute(request)
        except RefreshError as e:
            raise ProviderAuthError(f"Authentication error: {e}") from e
        except HttpError as e:
            status = _status_of(e)
            if missing_ok and status in _GONE_STATUSES:
                logger.debug(f"{action}: already gone")
                return None
            if status in _AUTH_STATUSES:
                raise ProviderAuthError(f"Authentication error: {e}") from e
            raise ProviderError(f"{action} failed (HTTP {status}): {e}") from e
        except OSError as e:
            raise ProviderError(f"{action} failed: {e}") from e

    # ------------------------------------------------------------------ #
    # RemoteCalendarAdapter                                                #
    # ------------------------------------------------------------------ #

    def list_events(self, calendar_id: str, start: date, end: date) -> list[RemoteEvent]:
        events = []
        page_token = None
        while True:
            request = self.service.events().list(
                calendarId=calendar_id,
                timeMin=self._midnight(start),
                timeMax=self._midnight(end),
                timeZone=self.timezone,
                singleEvents=True,
                showDeleted=False,
                maxResults=_PAGE_SIZE,
                pageToken=page_token,
            )
            page = self._call(request, "List events")
            for item in page.get("items", []):
                if item.get("status") == "cancelled":
                    continue
                events.append(self._to_remote_event(item))
            page_token = page.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(events)} event(s) from {calendar_id}")
        return events

    def create_event(self, calendar_id: str, candidate: CandidateEvent) -> str:
        body = self._event_body(candidate)
        request = self.service.events().insert(calendarId=calendar_id, body=body)
        created = self._call(request, f'Create "{candidate.display_title}"')
        return created["id"]

    def delete_event(self, calendar_id: str, external_id: str) -> None:
        request = self.service.events().delete(calendarId=calendar_id, eventId=external_id)
        self._call(request, f"Delete {external_id}", missing_ok=True)

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    def _midnight(self, day: date) -> str:
        """Start of day in the configured timezone, as RFC 3339."""
        try:
            tz = ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError as e:
            raise ProviderError(f"Unknown timezone {self.timezone!r}") from e
        return datetime.combine(day, time.min, tzinfo=tz).isoformat()

    def _event_body(self, candidate: CandidateEvent) -> dict:
        body = {
            "summary": candidate.display_title,
            "description": candidate.description or "",
            "extendedProperties": {"private": {"reconcileKey": candidate.key}},
        }
        if candidate.is_anniversary or not candidate.time:
            body["start"] = {"date": candidate.date.isoformat()}
            body["end"] = {"date": (candidate.date + timedelta(days=1)).isoformat()}
        else:
            hour, minute = (int(part) for part in candidate.time.split(":")[:2])
            start = datetime.combine(candidate.date, datetime.min.time()).replace(
                hour=hour, minute=minute
            )
            end = start + timedelta(hours=1)
            body["start"] = {"dateTime": start.isoformat(), "timeZone": self.timezone}
            body["end"] = {"dateTime": end.isoformat(), "timeZone": self.timezone}
        return body

    @staticmethod
    def _to_remote_event(item: dict) -> RemoteEvent:
        start = item.get("start", {})
        all_day = start.get("date")
        return RemoteEvent(
            external_id=item["id"],
            title=item.get("summary", ""),
            date=date.fromisoformat(all_day) if all_day else None,
            date_time=start.get("dateTime"),
        )
