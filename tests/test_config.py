"""
Unit tests for INI configuration loading.
"""

from pathlib import Path

import pytest

from calendar_reconcile.config import CONFIG_ENV_VAR
from calendar_reconcile.config import build_config
from calendar_reconcile.config import resolve_config_path
from calendar_reconcile.models import DEFAULT_CONFIG
from calendar_reconcile.models import ConfigError


def _write(tmp_path, body: str) -> Path:
    path = tmp_path / "calendar-reconcile.conf"
    path.write_text(body)
    return path


class TestResolvePath:
    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.conf"))
        assert resolve_config_path(tmp_path / "cli.conf") == tmp_path / "cli.conf"

    def test_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.conf"))
        assert resolve_config_path() == tmp_path / "env.conf"

    def test_default(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert resolve_config_path() == DEFAULT_CONFIG


class TestBuildConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = build_config(tmp_path / "absent.conf")
        assert cfg.calendar_id == "primary"
        assert cfg.window_past_days == 30
        assert cfg.window_future_days == 180
        assert cfg.cache_invalidation_url is None
        assert not cfg.dry_run

    def test_file_values(self, tmp_path):
        path = _write(
            tmp_path,
            "[calendar-reconcile]\n"
            "calendar_id = team@example.com\n"
            f"state_db_path = {tmp_path / 'state.db'}\n"
            "timezone = Europe/London\n"
            "window_past_days = 7\n"
            "window_future_days = 60\n"
            "cache_invalidation_url = http://localhost:3000/api/cache\n"
            "dry_run = yes\n",
        )
        cfg = build_config(path)
        assert cfg.calendar_id == "team@example.com"
        assert cfg.state_db_path == tmp_path / "state.db"
        assert cfg.timezone == "Europe/London"
        assert cfg.window_past_days == 7
        assert cfg.window_future_days == 60
        assert cfg.cache_invalidation_url == "http://localhost:3000/api/cache"
        assert cfg.dry_run

    def test_overrides_win_unless_none(self, tmp_path):
        path = _write(tmp_path, "[calendar-reconcile]\ncalendar_id = from-file\n")
        assert build_config(path, calendar_id="from-cli").calendar_id == "from-cli"
        assert build_config(path, calendar_id=None).calendar_id == "from-file"

    def test_other_sections_ignored(self, tmp_path):
        path = _write(tmp_path, "[something-else]\ncalendar_id = nope\n")
        assert build_config(path).calendar_id == "primary"

    def test_malformed_number_is_config_error(self, tmp_path):
        path = _write(tmp_path, "[calendar-reconcile]\nwindow_past_days = a month\n")
        with pytest.raises(ConfigError, match="window_past_days"):
            build_config(path)

    def test_unparseable_file_is_config_error(self, tmp_path):
        path = _write(tmp_path, "calendar_id = no section header\n")
        with pytest.raises(ConfigError):
            build_config(path)
