"""
Command-line interface for Calendar Reconcile.
"""

import logging
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from datetime import timedelta
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from calendar_reconcile import anniversary
from calendar_reconcile.config import build_config
from calendar_reconcile.config import resolve_config_path
from calendar_reconcile.db import StateDatabase
from calendar_reconcile.models import CalendarEvent
from calendar_reconcile.models import CalendarSyncError
from calendar_reconcile.models import Company
from calendar_reconcile.models import ConfigError
from calendar_reconcile.models import EventType
from calendar_reconcile.models import ProviderAuthError
from calendar_reconcile.models import SyncConfig
from calendar_reconcile.models import SyncType
from calendar_reconcile.store import EventStore
from calendar_reconcile.sync import SyncOrchestrator
from calendar_reconcile.tombstones import SyncTombstoneTracker

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Reconcile local calendar events and company anniversaries with Google Calendar.",
)

console = Console()


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path | None = None
    state_db: Path | None = None
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file path (default: $CALENDAR_RECONCILE_CONFIG or "
            "~/.config/calendar-reconcile.conf)",
        ),
    ] = None,
    state_db: Annotated[
        Path | None,
        typer.Option("--state-db", help="State DB path (overrides config)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.state_db = state_db
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )


def _config(**overrides) -> SyncConfig:
    try:
        return build_config(
            state.config_path,
            state_db_path=state.state_db,
            verbose=state.verbose or None,
            **overrides,
        )
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        raise typer.Exit(1) from None


def _parse_date(value: str, option: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[bold red]Error:[/] Invalid date for {option}: {value!r}")
        raise typer.Exit(1) from None


def _make_client(cfg: SyncConfig):
    from calendar_reconcile.google_calendar import GoogleCalendarAdapter

    return GoogleCalendarAdapter(cfg.credentials_path, cfg.timezone)


def _make_invalidator(cfg: SyncConfig):
    if not cfg.cache_invalidation_url:
        return None
    from calendar_reconcile.cache import HttpCacheInvalidator

    return HttpCacheInvalidator(cfg.cache_invalidation_url)


def _fmt_ts(ts: int | None) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S") if ts else "—"


# ---------------------------------------------------------------------------
# Subcommand: sync
# ---------------------------------------------------------------------------

_CAL_OPT = Annotated[
    str | None,
    typer.Option("--calendar", "-C", help="Provider calendar id (overrides config)"),
]
_DRY_RUN = Annotated[bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")]
_YES = Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")]


@app.command()
def sync(
    calendar: _CAL_OPT = None,
    sync_type: Annotated[
        SyncType,
        typer.Option("--type", "-t", help="Which events to reconcile", case_sensitive=False),
    ] = SyncType.ALL,
    no_anniversaries: Annotated[
        bool,
        typer.Option("--no-anniversaries", help="Do not generate company anniversaries"),
    ] = False,
    time_min: Annotated[
        str | None, typer.Option("--from", help="Window start YYYY-MM-DD (inclusive)")
    ] = None,
    time_max: Annotated[
        str | None, typer.Option("--to", help="Window end YYYY-MM-DD (exclusive)")
    ] = None,
    dry_run: _DRY_RUN = False,
    yes: _YES = False,
) -> None:
    """Run one reconciliation pass against the provider calendar."""
    from calendar_reconcile.preflight import run_preflight_checks

    cfg = _config(calendar_id=calendar, dry_run=dry_run or None, yes=yes or None)

    if not run_preflight_checks(cfg, console):
        raise typer.Exit(1)

    with StateDatabase(cfg.state_db_path) as state_db:
        orchestrator = SyncOrchestrator(
            cfg, state_db, _make_client(cfg), invalidate_cache=_make_invalidator(cfg)
        )
        default_start, default_end = orchestrator.default_window()
        window = (
            _parse_date(time_min, "--from") if time_min else default_start,
            _parse_date(time_max, "--to") if time_max else default_end,
        )
        if window[0] >= window[1]:
            console.print("[bold red]Error:[/] --from must be before --to")
            raise typer.Exit(1)

        # -- Info panel ------------------------------------------------------
        info = Text()
        info.append("  Calendar:  ", style="bold")
        info.append(f"{cfg.calendar_id}\n")
        info.append("  Window:    ", style="bold")
        info.append(f"{window[0]} → {window[1]}\n")
        info.append("  Type:      ", style="bold")
        info.append(sync_type.value, style="cyan")
        info.append("\n  Anniversaries: ", style="bold")
        info.append("no" if no_anniversaries else "yes")
        if cfg.dry_run:
            info.append("\n  Mode:      ")
            info.append("DRY RUN", style="bold magenta")
        console.print(Panel(info, title="[bold]Calendar Reconcile[/bold]"))

        if not cfg.yes and not cfg.dry_run:
            typer.confirm("Proceed?", abort=True)

        # -- Run -------------------------------------------------------------
        try:
            result = orchestrator.unified_sync(
                calendar_id=cfg.calendar_id,
                sync_type=sync_type,
                include_anniversary_events=not no_anniversaries,
                window=window,
            )
        except ProviderAuthError as e:
            console.print(f"[bold red]Authentication error:[/] {e}")
            raise typer.Exit(1) from None
        except CalendarSyncError as e:
            console.print(f"[bold red]Sync failed:[/] {e}")
            raise typer.Exit(1) from None
        except KeyboardInterrupt:
            console.print("[yellow]Interrupted by user[/]")
            raise typer.Exit(130) from None

    # -- Results table -------------------------------------------------------
    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Pushed", str(result.pushed))
    results.add_row("Pulled", str(result.pulled))
    results.add_row("Deleted", str(result.deleted))
    results.add_row("Skipped", str(result.skipped))
    error_val = Text(str(len(result.errors)))
    if not result.errors:
        error_val.append(" ✓", style="green")
    else:
        error_val.stylize("bold red")
    results.add_row("Errors", error_val)

    console.print(Panel(results, title="[bold]Results[/bold]", expand=False))
    for message in result.errors:
        console.print(f"  [red]•[/] {message}")

    if result.errors:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Subcommand: status
# ---------------------------------------------------------------------------


@app.command()
def status(
    limit: Annotated[int, typer.Option("--limit", help="Number of recent passes")] = 10,
) -> None:
    """Show configuration and recent sync history."""
    from calendar_reconcile.history import SyncHistory

    config_path = resolve_config_path(state.config_path)
    cfg = _config()
    config_exists = config_path.exists()
    db_exists = cfg.state_db_path.exists()

    cfg_info = Text()
    cfg_info.append("  Config:   ", style="bold")
    cfg_info.append(str(config_path) + " ")
    cfg_info.append(
        "✓" if config_exists else "(not found)", style="green" if config_exists else "red"
    )
    cfg_info.append("\n  State DB: ", style="bold")
    cfg_info.append(str(cfg.state_db_path) + " ")
    cfg_info.append("✓" if db_exists else "(not found)", style="green" if db_exists else "yellow")
    cfg_info.append("\n  Calendar: ", style="bold")
    cfg_info.append(cfg.calendar_id)
    console.print(Panel(cfg_info, title="[bold]Calendar Reconcile — Status[/bold]"))

    if not db_exists:
        console.print(
            "[yellow]No state database yet — run[/] "
            "[cyan]calendar-reconcile sync[/] "
            "[yellow]to create it.[/]"
        )
        return

    with StateDatabase(cfg.state_db_path) as state_db:
        summary = SyncHistory(state_db).summary(limit)

    if not summary["recent"]:
        console.print("[yellow]No syncs recorded yet.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Finished")
    table.add_column("Calendar")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Pushed", justify="right")
    table.add_column("Pulled", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Errors", justify="right")
    for run in summary["recent"]:
        style = "green" if run["status"] == "SUCCESS" else "red"
        table.add_row(
            _fmt_ts(run["finishedAt"]),
            run["calendarId"],
            run["syncType"],
            Text(run["status"], style=style),
            str(run["pushed"]),
            str(run["pulled"]),
            str(run["deleted"]),
            str(len(run["errors"])),
        )
    console.print(Panel(table, title="[bold]Recent passes[/bold]", expand=False))

    counts = ", ".join(f"{k}: {v}" for k, v in sorted(summary["last24h"].items())) or "none"
    console.print(f"  Last 24h activity: {counts}")


# ---------------------------------------------------------------------------
# Subcommands: companies and anniversaries
# ---------------------------------------------------------------------------


@app.command("add-company")
def add_company(
    name: Annotated[str, typer.Argument(help="Trading name")],
    registered: Annotated[
        str | None, typer.Option("--registered", help="Registration date YYYY-MM-DD")
    ] = None,
    inactive: Annotated[bool, typer.Option("--inactive", help="Record as not active")] = False,
) -> None:
    """Add a company whose registration anniversaries should be generated."""
    cfg = _config()
    reg_date = _parse_date(registered, "--registered") if registered else None
    with StateDatabase(cfg.state_db_path) as state_db:
        company = EventStore(state_db).add_company(
            Company(
                id=0,
                trading_name=name,
                registration_date=reg_date,
                status="Inactive" if inactive else "Active",
            )
        )
    console.print(f"[green]Added company {company.id}:[/] {company.trading_name}")


@app.command()
def anniversaries(
    time_min: Annotated[
        str | None, typer.Option("--from", help="Window start YYYY-MM-DD (default: today)")
    ] = None,
    time_max: Annotated[
        str | None, typer.Option("--to", help="Window end YYYY-MM-DD (default: +1 year)")
    ] = None,
) -> None:
    """List generated anniversary occurrences and their sync state."""
    cfg = _config()
    start = _parse_date(time_min, "--from") if time_min else date.today()
    end = _parse_date(time_max, "--to") if time_max else start + timedelta(days=365)

    with StateDatabase(cfg.state_db_path) as state_db:
        store = EventStore(state_db)
        tracker = SyncTombstoneTracker(state_db)
        occurrences = anniversary.generate(store.list_companies(), start, end)
        tombstones = {occ.logical_id: tracker.get(occ.logical_id) for occ in occurrences}

    if not occurrences:
        console.print(f"[yellow]No anniversaries between {start} and {end}.[/]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Date")
    table.add_column("Logical id")
    table.add_column("Title")
    table.add_column("State")
    for occ in occurrences:
        tomb = tombstones[occ.logical_id]
        if tomb is None:
            label = Text("pending", style="yellow")
        elif tomb.is_deleted:
            label = Text("deleted", style="red")
        else:
            label = Text(f"synced ({tomb.external_id})", style="green")
        table.add_row(str(occ.date), occ.logical_id, occ.title, label)
    console.print(Panel(table, title=f"[bold]Anniversaries {start} → {end}[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Subcommands: local events
# ---------------------------------------------------------------------------


@app.command("add-event")
def add_event(
    title: Annotated[str, typer.Argument(help="Event title")],
    on: Annotated[str, typer.Option("--date", help="Event date YYYY-MM-DD")],
    at: Annotated[str | None, typer.Option("--time", help="Start time HH:MM")] = None,
    description: Annotated[str, typer.Option("--description", "-d")] = "",
    event_type: Annotated[
        EventType, typer.Option("--type", "-t", case_sensitive=False)
    ] = EventType.OTHER,
    company: Annotated[
        str | None, typer.Option("--company", help="Company name (makes the event company-scoped)")
    ] = None,
    overrides: Annotated[
        str | None,
        typer.Option("--overrides", help="Logical id of the generated anniversary this replaces"),
    ] = None,
) -> None:
    """Create a local event; it is pushed on the next sync."""
    cfg = _config()
    event = CalendarEvent(
        title=title,
        date=_parse_date(on, "--date"),
        time=at,
        description=description,
        type=event_type,
        event_scope="company" if company else "personal",
        company=company,
        overrides_logical_id=overrides,
    )
    with StateDatabase(cfg.state_db_path) as state_db:
        try:
            event = EventStore(state_db).add_event(event)
        except CalendarSyncError as e:
            console.print(f"[bold red]Error:[/] {e}")
            raise typer.Exit(1) from None
    console.print(f"[green]Added event {event.id}:[/] {event.display_title} on {event.date}")


@app.command()
def delete(
    target: Annotated[str, typer.Argument(help="Local event id or anniversary logical id")],
    calendar: _CAL_OPT = None,
    yes: _YES = False,
) -> None:
    """Delete a local event or anniversary, including its remote copy."""
    cfg = _config(calendar_id=calendar)
    if not (yes or cfg.yes):
        typer.confirm(f"Delete {target}?", abort=True)

    with StateDatabase(cfg.state_db_path) as state_db:
        orchestrator = SyncOrchestrator(cfg, state_db, _make_client(cfg))
        try:
            if target.isdigit():
                event = orchestrator.delete_event(int(target), cfg.calendar_id)
                if event is None:
                    console.print(f"[bold red]Error:[/] No event with id {target}")
                    raise typer.Exit(1)
                console.print(f"[green]Deleted event {target}:[/] {event.title}")
            else:
                orchestrator.delete_anniversary(target, cfg.calendar_id)
                console.print(f"[green]Deleted anniversary[/] {target}")
        except ProviderAuthError as e:
            console.print(f"[bold red]Authentication error:[/] {e}")
            raise typer.Exit(1) from None


@app.command()
def restore(
    logical_id: Annotated[str, typer.Argument(help="Anniversary logical id")],
) -> None:
    """Allow a deleted anniversary to be generated again."""
    cfg = _config()
    with StateDatabase(cfg.state_db_path) as state_db:
        restored = SyncTombstoneTracker(state_db).restore(logical_id)
    if not restored:
        console.print(f"[yellow]{logical_id} is not deleted; nothing to restore.[/]")
        raise typer.Exit(1)
    console.print(f"[green]Restored[/] {logical_id}")


# ---------------------------------------------------------------------------
# Subcommand: serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port")] = 8008,
) -> None:
    """Serve the HTTP API (POST /sync, GET /sync/status)."""
    import uvicorn

    from calendar_reconcile.api import create_app

    cfg = _config()
    uvicorn.run(create_app(cfg), host=host, port=port)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
