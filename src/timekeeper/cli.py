"""
CLI: ``timekeeper``: inspect and try out cron schedules.

    timekeeper next "*/15 * * * * *" --count 3
    timekeeper watch "*/1 * * * * *" --duration 5
"""

from __future__ import annotations

import json
import time
import zoneinfo

import typer
from rich.console import Console
from rich.table import Table

from timekeeper.errors import InvalidCronExpressionError
from timekeeper.logging import configure_logging
from timekeeper.scheduling import CronTranslator, TaskScheduler

app = typer.Typer(
    name="timekeeper",
    help="timekeeper: in-process background task scheduling.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        from timekeeper import __version__

        typer.echo(f"timekeeper {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """timekeeper CLI: preview and watch cron schedules."""


def _translator(expression: str, tz: str | None) -> CronTranslator:
    try:
        zone = zoneinfo.ZoneInfo(tz) if tz else None
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        err_console.print(f"[red]Unknown timezone:[/red] {tz}")
        raise typer.Exit(code=2) from None
    try:
        return CronTranslator(expression, zone)
    except InvalidCronExpressionError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=2) from None


@app.command("next")
def next_occurrences(
    expression: str = typer.Argument(..., help="Cron expression, seconds first"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Occurrences to show"),
    tz: str | None = typer.Option(None, "--tz", help="IANA timezone (default: local)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the next occurrences of a cron expression."""
    translator = _translator(expression, tz)
    occurrences = translator.upcoming(count)

    if json_out:
        typer.echo(json.dumps([o.isoformat() for o in occurrences], indent=2))
        return

    table = Table(title=f"Next occurrences: {expression}")
    table.add_column("#", justify="right")
    table.add_column("Occurrence")
    for index, occurrence in enumerate(occurrences, start=1):
        table.add_row(str(index), occurrence.isoformat())
    console.print(table)


@app.command("watch")
def watch(
    expression: str = typer.Argument(..., help="Cron expression, seconds first"),
    duration: float = typer.Option(10.0, "--duration", "-d", min=0.0, help="Seconds to watch"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log scheduler events"),
) -> None:
    """Run a cron expression on a live scheduler and print each firing."""
    _translator(expression, None)
    if verbose:
        configure_logging(level="DEBUG", force=True)

    def on_fire(timer, tally: int) -> None:
        console.print(f"[green]fired[/green] #{tally} at {time.strftime('%H:%M:%S')}")

    with TaskScheduler() as scheduler:
        scheduler.register_cron(expression, on_fire, "watch", description="CLI watch")
        time.sleep(duration)
        record = scheduler.get_record("watch")
        total = record.cron_actual_tally if record is not None else 0

    console.print(f"{total} firing(s) in {duration:g}s")


if __name__ == "__main__":
    app()
