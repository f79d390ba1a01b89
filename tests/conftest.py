"""
Shared pytest fixtures.
"""

from datetime import date

import pytest

from calendar_reconcile.db import StateDatabase
from calendar_reconcile.models import SyncConfig
from calendar_reconcile.store import EventStore
from calendar_reconcile.sync import SyncOrchestrator
from calendar_reconcile.tombstones import SyncTombstoneTracker
from tests.fake_client import FakeRemoteCalendar

CALENDAR_ID = "primary"
TODAY = date(2025, 1, 1)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "test_state.db"


@pytest.fixture
def state_db(db_path):
    with StateDatabase(db_path) as db:
        yield db


@pytest.fixture
def store(state_db):
    return EventStore(state_db)


@pytest.fixture
def tracker(state_db):
    return SyncTombstoneTracker(state_db)


@pytest.fixture
def sync_config(db_path, tmp_path):
    return SyncConfig(
        calendar_id=CALENDAR_ID,
        state_db_path=db_path,
        credentials_path=tmp_path / "token.json",
        dry_run=False,
        verbose=False,
    )


@pytest.fixture
def remote():
    return FakeRemoteCalendar()


@pytest.fixture
def orchestrator(sync_config, state_db, remote):
    return SyncOrchestrator(sync_config, state_db, remote, today=lambda: TODAY)

