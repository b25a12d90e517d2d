"""TrainState CLI.

Exports and restores backups and imports workouts from an Apple Health
export, using the same controller a UI would drive.
"""

import asyncio
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress
from rich.table import Table
from rich.text import Text

from trainstate.backup.files import list_backups
from trainstate.config.settings import settings
from trainstate.core.logger import setup_logger
from trainstate.db.session import get_session, get_stats, init_db
from trainstate.ingestion.health_import import ImportResult
from trainstate.integrations.healthkit.client import AppleHealthExportStore
from trainstate.orchestration.controller import DataExchangeController, ExchangeEvent

console = Console()

app = typer.Typer(
    name="trainstate",
    help="TrainState data tools - backup, restore and Apple Health import",
    add_completion=False,
)


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    setup_logger(level="DEBUG" if debug else settings.log_level, log_file=settings.log_file)
    init_db()


def _drain(controller: DataExchangeController) -> list[ExchangeEvent]:
    events: list[ExchangeEvent] = []
    while not controller.events.empty():
        events.append(controller.events.get_nowait())
    return events


def _report(events: list[ExchangeEvent]) -> bool:
    """Print terminal events; return True when the operation completed."""
    completed = False
    for event in events:
        if event.kind == "completed":
            completed = True
            console.print(f"[bold green]✓[/bold green] {event.message}")
        elif event.kind == "failed":
            console.print(Panel(Text(event.message, style="bold red"), title=event.operation, border_style="red"))
        elif event.kind == "info":
            console.print(f"[yellow]{event.message}[/yellow]")
    return completed


@app.command("init-db")
def init_db_command() -> None:
    """Create the local database tables."""
    init_db()
    console.print(f"[bold green]✓[/bold green] Database ready at {settings.database_url}")


@app.command()
def stats() -> None:
    """Show row counts of the local store."""
    with get_session() as session:
        counts = get_stats(session)

    table = Table(title="Local store")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)

    backups = list_backups(settings.backup_dir)
    console.print(f"[dim]{len(backups)} backup(s) in {settings.backup_dir}[/dim]")


@app.command()
def export(
    out_dir: Path = typer.Option(None, "--out-dir", "-o", help="Directory for the backup file"),
) -> None:
    """Export all workouts, categories and subcategories to a backup file."""
    controller = DataExchangeController(backup_dir=out_dir or settings.backup_dir)
    path = asyncio.run(controller.export_backup())
    if not _report(_drain(controller)) or path is None:
        raise typer.Exit(code=1)


@app.command()
def restore(
    path: Path = typer.Argument(..., help="Backup file to restore", exists=True, dir_okay=False),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Replace ALL local data with the contents of a backup file."""
    controller = DataExchangeController(backup_dir=settings.backup_dir)

    async def pick() -> Path:
        return path

    async def confirm(message: str) -> bool:
        return yes or typer.confirm(message, default=False)

    result = asyncio.run(controller.restore_from_picker(pick, confirm))
    events = _drain(controller)
    if not _report(events) or result is None:
        if any(event.kind == "failed" for event in events):
            raise typer.Exit(code=1)
        return
    if result.dropped_references:
        console.print(f"[yellow]{result.dropped_references} dangling reference(s) were dropped[/yellow]")


@app.command("health-import")
def health_import(
    export_path: Path = typer.Option(None, "--export", "-e", help="Apple Health export.zip or export.xml"),
    import_all: bool = typer.Option(False, "--all", help="Re-sync every workout, not only new ones"),
) -> None:
    """Import workouts from an Apple Health export."""
    source = export_path or settings.health_export_path
    if source is None:
        console.print("[bold red]✗ No export given.[/bold red] Use --export or set TRAINSTATE_HEALTH_EXPORT_PATH.")
        raise typer.Exit(code=1)

    # Ask before the progress display takes over the terminal
    granted = settings.health_read_consent or typer.confirm(
        f"Allow TrainState to read workouts from {source}?", default=True
    )
    store = AppleHealthExportStore(source, granted=granted)
    controller = DataExchangeController(health_store=store)

    async def run() -> ImportResult | None:
        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Importing workouts", total=1.0)
            job = asyncio.create_task(controller.import_health(only_unimported=not import_all))
            while not job.done():
                await asyncio.sleep(0.1)
                progress.update(task, completed=_latest_progress(controller, progress, task))
            return await job

    result = asyncio.run(run())
    events = _drain(controller)
    if not _report(events) and any(event.kind == "failed" for event in events):
        raise typer.Exit(code=1)
    if result is not None and result.activities:
        table = Table(title="New workouts by activity")
        table.add_column("Activity", style="cyan")
        table.add_column("Count", justify="right")
        for name, count in sorted(result.activities.items()):
            table.add_row(name, str(count))
        console.print(table)


def _latest_progress(controller: DataExchangeController, progress: Progress, task) -> float:
    """Consume progress events, re-queue the rest for the final report."""
    latest = progress.tasks[task].completed
    pending: list[ExchangeEvent] = []
    while not controller.events.empty():
        event = controller.events.get_nowait()
        if event.kind == "progress" and event.progress is not None:
            latest = event.progress
        else:
            pending.append(event)
    for event in pending:
        controller.events.put_nowait(event)
    return latest


@app.command("list-backups")
def list_backups_command() -> None:
    """List backup files in the backup directory, newest first."""
    backups = list_backups(settings.backup_dir)
    if not backups:
        console.print(f"[yellow]No backups in {settings.backup_dir}[/yellow]")
        return
    for path in backups:
        console.print(f"  {path.name}  [dim]{path.stat().st_size} bytes[/dim]")
    logger.debug(f"Listed {len(backups)} backups")


if __name__ == "__main__":
    app()
