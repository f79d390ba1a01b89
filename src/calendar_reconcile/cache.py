"""
Dashboard cache invalidation after a pass that changed something.
"""

import logging

import requests

from calendar_reconcile.models import SyncResult

logger = logging.getLogger(__name__)


class HttpCacheInvalidator:
    """POSTs a small notification to the dashboard's cache endpoint."""

    def __init__(self, url: str, timeout: int = 10):
        self.url = url
        self.timeout = timeout

    def __call__(self, calendar_id: str, result: SyncResult):
        response = requests.post(
            self.url,
            json={"calendarId": calendar_id, "summary": result.as_dict()},
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.debug(f"Cache invalidated via {self.url} ({response.status_code})")
