"""
HTTP surface: POST /sync, GET /sync/status and GET /health.
"""

import logging
from collections.abc import Callable
from datetime import date

from fastapi import APIRouter
from fastapi import Depends
from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Query
from fastapi import Request
from fastapi import status
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator

from calendar_reconcile.db import StateDatabase
from calendar_reconcile.models import CalendarSyncError
from calendar_reconcile.models import ProviderAuthError
from calendar_reconcile.models import SyncConfig
from calendar_reconcile.models import SyncInProgressError
from calendar_reconcile.models import SyncResult
from calendar_reconcile.models import SyncType
from calendar_reconcile.remote import RemoteCalendarAdapter
from calendar_reconcile.sync import SyncOrchestrator

logger = logging.getLogger(__name__)


class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    calendar_id: str | None = Field(None, alias="calendarId", min_length=1)
    sync_type: SyncType = Field(SyncType.ALL, alias="syncType")
    include_anniversary_events: bool = Field(True, alias="includeAnniversaryEvents")
    time_min: date | None = Field(None, alias="timeMin")
    time_max: date | None = Field(None, alias="timeMax")

    @model_validator(mode="after")
    def _check_window(self):
        if self.time_min and self.time_max and self.time_min >= self.time_max:
            raise ValueError("timeMin must be before timeMax")
        return self


class SyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pushed: int
    pulled: int
    deleted: int
    skipped: int
    errors: list[str]
    sync_type: str = Field(alias="syncType")


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recent: list[dict]
    last24h: dict[str, int]
    last_sync_at: int | None = Field(None, alias="lastSyncAt")


router = APIRouter(prefix="/sync", tags=["sync"])


def get_orchestrator(request: Request):
    """Open a per-request state DB connection and yield an orchestrator over it."""
    config: SyncConfig = request.app.state.config
    state_db = StateDatabase(config.state_db_path, check_same_thread=False)
    state_db.connect()
    orchestrator = SyncOrchestrator(
        config,
        state_db,
        request.app.state.client_factory(config),
        invalidate_cache=request.app.state.invalidate_cache,
    )
    try:
        yield orchestrator
    finally:
        state_db.close()


@router.post("", response_model=SyncResponse)
def run_sync(
    body: SyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Run one reconciliation pass."""
    default_start, default_end = orchestrator.default_window()
    window = (body.time_min or default_start, body.time_max or default_end)
    if window[0] >= window[1]:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Sync window is empty",
        )

    try:
        result: SyncResult = orchestrator.unified_sync(
            calendar_id=body.calendar_id,
            sync_type=body.sync_type,
            include_anniversary_events=body.include_anniversary_events,
            window=window,
        )
    except ProviderAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication error: {e}",
        ) from e
    except SyncInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except CalendarSyncError as e:
        logger.error(f"Sync failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Sync failed: {e}",
        ) from e

    return result.as_dict()


@router.get("/status", response_model=StatusResponse)
def sync_status(
    limit: int = Query(10, ge=1, le=100),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Recent passes and activity counts over the last 24 hours."""
    return orchestrator.history.summary(limit)


def _default_client_factory(config: SyncConfig) -> RemoteCalendarAdapter:
    from calendar_reconcile.google_calendar import GoogleCalendarAdapter

    return GoogleCalendarAdapter(config.credentials_path, config.timezone)


def create_app(
    config: SyncConfig,
    client_factory: Callable[[SyncConfig], RemoteCalendarAdapter] | None = None,
    invalidate_cache: Callable[[str, SyncResult], None] | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Calendar Reconcile",
        description="Reconciles local calendar events with an external calendar",
    )
    app.state.config = config
    app.state.client_factory = client_factory or _default_client_factory
    if invalidate_cache is None and config.cache_invalidation_url:
        from calendar_reconcile.cache import HttpCacheInvalidator

        invalidate_cache = HttpCacheInvalidator(config.cache_invalidation_url)
    app.state.invalidate_cache = invalidate_cache

    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app
