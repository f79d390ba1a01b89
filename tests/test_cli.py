"""
Smoke tests for the typer CLI commands that need no provider access.
"""

from datetime import date

from typer.testing import CliRunner

from calendar_reconcile.cli import app
from calendar_reconcile.db import StateDatabase
from calendar_reconcile.store import EventStore
from calendar_reconcile.tombstones import SyncTombstoneTracker

runner = CliRunner()


def _invoke(db_path, tmp_path, *args):
    return runner.invoke(
        app,
        ["--config", str(tmp_path / "absent.conf"), "--state-db", str(db_path), *args],
    )


class TestLocalCommands:
    def test_add_company_and_list_anniversaries(self, db_path, tmp_path):
        result = _invoke(db_path, tmp_path, "add-company", "Acme Ltd", "--registered", "2020-03-01")
        assert result.exit_code == 0, result.output

        result = _invoke(
            db_path, tmp_path, "anniversaries", "--from", "2025-01-01", "--to", "2026-01-01"
        )
        assert result.exit_code == 0, result.output
        assert "acme-ltd-anniv-2025" in result.output

    def test_add_event_with_override(self, db_path, tmp_path):
        result = _invoke(
            db_path,
            tmp_path,
            "add-event",
            "Acme party",
            "--date",
            "2025-03-07",
            "--overrides",
            "acme-ltd-anniv-2025",
        )
        assert result.exit_code == 0, result.output

        with StateDatabase(db_path) as db:
            (event,) = EventStore(db).list_candidate_pool(date(2025, 1, 1), date(2026, 1, 1))
        assert event.overrides_logical_id == "acme-ltd-anniv-2025"

    def test_invalid_date_exits_1(self, db_path, tmp_path):
        result = _invoke(db_path, tmp_path, "add-event", "Oops", "--date", "2025-13-01")
        assert result.exit_code == 1

    def test_restore(self, db_path, tmp_path):
        with StateDatabase(db_path) as db:
            SyncTombstoneTracker(db).record_deleted("acme-ltd-anniv-2025")

        assert _invoke(db_path, tmp_path, "restore", "acme-ltd-anniv-2025").exit_code == 0
        assert _invoke(db_path, tmp_path, "restore", "acme-ltd-anniv-2025").exit_code == 1

    def test_status_without_database(self, db_path, tmp_path):
        result = _invoke(db_path, tmp_path, "status")
        assert result.exit_code == 0
        assert "No state database yet" in result.output

    def test_malformed_config_exits_1(self, db_path, tmp_path):
        config = tmp_path / "bad.conf"
        config.write_text("[calendar-reconcile]\nwindow_future_days = forever\n")
        result = runner.invoke(
            app, ["--config", str(config), "--state-db", str(db_path), "status"]
        )
        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert "window_future_days" in result.output
