"""
INI configuration loading.

Example ``~/.config/calendar-reconcile.conf``::

    [calendar-reconcile]
    calendar_id = primary
    credentials_path = ~/.config/calendar-reconcile-token.json
    timezone = Europe/London
    window_past_days = 30
    window_future_days = 180
"""

import os
from configparser import ConfigParser
from configparser import Error as ConfigParserError
from pathlib import Path

from calendar_reconcile.models import DEFAULT_CONFIG
from calendar_reconcile.models import DEFAULT_CREDENTIALS
from calendar_reconcile.models import DEFAULT_STATE_DB
from calendar_reconcile.models import ConfigError
from calendar_reconcile.models import SyncConfig

SECTION = "calendar-reconcile"
CONFIG_ENV_VAR = "CALENDAR_RECONCILE_CONFIG"

_TRUE = {"1", "true", "yes", "on"}


def resolve_config_path(config_path: Path | None = None) -> Path:
    """Explicit path, then $CALENDAR_RECONCILE_CONFIG, then the default."""
    if config_path is not None:
        return config_path
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG


def load_config_file(config_path: Path) -> dict[str, str]:
    if not config_path.exists():
        return {}
    parser = ConfigParser()
    try:
        parser.read(config_path)
    except ConfigParserError as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e
    if SECTION not in parser:
        return {}
    return dict(parser[SECTION])


def _as_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUE


def _as_int(values: dict[str, str], key: str, default: int) -> int:
    raw = values.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a whole number, got {raw!r}") from None


def build_config(config_path: Path | None = None, **overrides) -> SyncConfig:
    """Read the config file into a SyncConfig; non-None ``overrides`` win.

    Raises ConfigError for an unreadable file or a malformed value.
    """
    values = load_config_file(resolve_config_path(config_path))

    cfg = SyncConfig(
        calendar_id=values.get("calendar_id", "primary"),
        state_db_path=Path(values["state_db_path"]).expanduser()
        if values.get("state_db_path")
        else DEFAULT_STATE_DB,
        credentials_path=Path(values["credentials_path"]).expanduser()
        if values.get("credentials_path")
        else DEFAULT_CREDENTIALS,
        timezone=values.get("timezone", "UTC"),
        window_past_days=_as_int(values, "window_past_days", 30),
        window_future_days=_as_int(values, "window_future_days", 180),
        cache_invalidation_url=values.get("cache_invalidation_url") or None,
        dry_run=_as_bool(values.get("dry_run")),
        verbose=_as_bool(values.get("verbose")),
        yes=_as_bool(values.get("yes")),
    )
    for name, value in overrides.items():
        if value is not None:
            setattr(cfg, name, value)
    return cfg
