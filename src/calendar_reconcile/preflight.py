"""
Preflight checks run before sync to catch common misconfigurations early.
"""

import json
import logging
import sqlite3

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from calendar_reconcile.models import SyncConfig

logger = logging.getLogger(__name__)


def run_preflight_checks(cfg: SyncConfig, console: Console) -> bool:
    """Return True if sync may proceed; print issues and return False otherwise."""
    issues: list[tuple[str, str, str]] = []  # (label, detail, hint)

    # 1. Credentials file present and parseable
    creds = cfg.credentials_path
    if not creds.exists():
        logger.error(f"Credentials file not found: {creds}")
        issues.append(
            (
                "Credentials",
                f"{creds} not found",
                "Authorise the application and save the OAuth token JSON there",
            )
        )
    else:
        try:
            data = json.loads(creds.read_text())
        except (OSError, ValueError) as e:
            logger.error(f"Credentials file unreadable ({creds}): {e}")
            issues.append(("Credentials", f"{creds}: {e}", "Re-create the token file"))
        else:
            if not data.get("refresh_token"):
                issues.append(
                    (
                        "Credentials",
                        f"{creds} has no refresh_token",
                        "Re-authorise with offline access so the token can be refreshed",
                    )
                )

    # 2. State DB parent dir writable + DB readable if it exists
    db_path = cfg.state_db_path
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create state DB directory {db_path.parent}: {e}")
        issues.append(
            (
                "State database",
                f"{db_path}: {e}",
                f"Check permissions on {db_path.parent}",
            )
        )
    else:
        if db_path.exists():
            try:
                conn = sqlite3.connect(db_path)
                conn.execute("SELECT 1")
                # BEGIN IMMEDIATE needs a journal file next to the DB.
                conn.execute("BEGIN IMMEDIATE")
                conn.execute("ROLLBACK")
                conn.close()
            except sqlite3.Error as e:
                logger.error(f"State DB not readable/writable ({db_path}): {e}")
                issues.append(
                    (
                        "State database",
                        f"{db_path}: {e}",
                        f"Check permissions on {db_path.parent} "
                        f"(journal files must be creatable alongside the DB)",
                    )
                )

    if issues:
        _print_issues(issues, console)
        return False

    return True


def _print_issues(issues: list[tuple[str, str, str]], console: Console) -> None:
    body = Text()
    for i, (label, detail, hint) in enumerate(issues):
        if i:
            body.append("\n")
        body.append(f"  ✗  {label}: ", style="bold red")
        body.append(detail, style="bold red")
        body.append(f"\n       → {hint}", style="yellow")

    console.print(Panel(body, title="[bold red]Preflight checks failed[/bold red]"))
