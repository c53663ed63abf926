"""
Diamond IQ: Terminal Drill CLI.

A Rich terminal host for the adaptive drill engine.

Commands:
- diamond-iq drill     - Drill scenarios, weakest first
- diamond-iq stats     - Show drill statistics
- diamond-iq preview   - Show upcoming scenarios
- diamond-iq reset     - Clear review state
- diamond-iq validate  - Validate a scenario pack
"""
from __future__ import annotations

import random
import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import get_settings

from .catalog import Scenario, check_pack_quality, filter_scenarios, load_pack
from .exceptions import DrillError
from .models import AnswerQuality
from .scheduler import DrillScheduler, describe_due
from .state_store import SessionStore, open_store
from .stats import compute_stats
from .sync import SyncQueue

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="diamond-iq",
    help="Diamond IQ: adaptive baseball/softball situation drills",
    no_args_is_help=True,
)
console = Console()

STYLES = {
    AnswerQuality.BEST: "bold green",
    AnswerQuality.OK: "bold yellow",
    AnswerQuality.BAD: "bold red",
    AnswerQuality.TIMEOUT: "bold magenta",
}


def _fail(error: DrillError) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


def _open_store() -> SessionStore:
    settings = get_settings()
    return open_store(settings.drill_store_backend, state_dir=settings.drill_state_dir)


def _load_scenarios(
    pack: Optional[Path],
    sport: Optional[str] = None,
    level: Optional[str] = None,
    category: Optional[str] = None,
) -> list[Scenario]:
    scenario_pack = load_pack(pack or get_settings().scenario_pack_path)
    return filter_scenarios(scenario_pack.scenarios, sport=sport, level=level, category=category)


# =============================================================================
# Display Helpers
# =============================================================================


def display_scenario(scenario: Scenario, options: list[tuple[AnswerQuality, str]]) -> None:
    """Display the situation and the shuffled answer options."""
    runners = ", ".join(scenario.runners) if scenario.runners else "bases empty"
    header = f"{scenario.sport} | {scenario.level} | {scenario.outs} out | {runners}"

    content = f"[bold]{scenario.title}[/bold]\n\n{scenario.description}\n\n{scenario.question}\n"
    for index, (_, label) in enumerate(options):
        content += f"\n  {chr(65 + index)}. {label}"

    console.print(Panel(content, title=header, title_align="left", border_style="cyan", padding=(1, 2)))


def display_feedback(scenario: Scenario, quality: AnswerQuality, next_due_label: str) -> None:
    """Display the coaching cue for the chosen answer."""
    if quality is AnswerQuality.TIMEOUT:
        body = f"Out of time. Best play: {scenario.best.label}\n\n{scenario.best.coaching_cue}"
    else:
        option = getattr(scenario, quality.value)
        body = f"{option.label}\n\n{option.coaching_cue}"
        if quality is not AnswerQuality.BEST:
            body += f"\n\n[dim]Best play: {scenario.best.label}[/dim]"

    console.print(Panel(
        f"{body}\n\n[dim]{next_due_label}[/dim]",
        title=quality.value.upper(),
        border_style=STYLES[quality],
        padding=(1, 2),
    ))


# =============================================================================
# Commands
# =============================================================================


@app.command()
def drill(
    pack: Optional[Path] = typer.Option(None, "--pack", "-p", help="Scenario pack JSON"),
    session_id: Optional[str] = typer.Option(None, "--session", "-s", help="Session id"),
    sport: Optional[str] = typer.Option(None, "--sport", help="baseball or softball"),
    level: Optional[str] = typer.Option(None, "--level", help="Level filter, e.g. high-school"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category filter"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum scenarios this run"),
) -> None:
    """Drill scenarios, weakest and most overdue first."""
    settings = get_settings()
    try:
        scenarios = _load_scenarios(pack, sport, level, category)
        store = _open_store()
        session = store.load_or_create(session_id or settings.drill_session_id)
    except DrillError as e:
        _fail(e)

    if not scenarios:
        console.print("[yellow]No scenarios match those filters.[/yellow]")
        raise typer.Exit(0)

    scheduler = DrillScheduler()
    queue = SyncQueue(store, debounce_ms=settings.sync_debounce_ms)
    answered = 0

    try:
        while answered < limit:
            scenario = scheduler.select_next(scenarios, session)
            if scenario is None:
                console.print("[green]All caught up![/green]")
                break

            options = [
                (AnswerQuality.BEST, scenario.best.label),
                (AnswerQuality.OK, scenario.ok.label),
                (AnswerQuality.BAD, scenario.bad.label),
            ]
            random.shuffle(options)

            console.print()
            display_scenario(scenario, options)
            choice = Prompt.ask(
                "Your call ([bold]A/B/C[/bold], [bold]t[/bold] = out of time, [bold]q[/bold] = quit)",
                choices=["a", "b", "c", "t", "q"],
                show_choices=False,
            ).lower()

            if choice == "q":
                break

            quality = AnswerQuality.TIMEOUT if choice == "t" else options[ord(choice) - ord("a")][0]
            record = scheduler.record_answer(session, scenario.id, quality)
            queue.queue_answer(session, scenario.id)
            queue.flush_if_due()
            answered += 1

            display_feedback(scenario, quality, describe_due(record.next_due_at, scheduler.clock()))
    finally:
        try:
            queue.flush()
        except DrillError as e:
            logger.error(f"Could not save progress: {e}")
            console.print(f"[bold red]Progress not saved:[/bold red] {e}")

    summary = compute_stats(scenarios, session)
    console.print(
        f"\n[bold cyan]{answered} answered[/bold cyan]  |  "
        f"accuracy {summary.correct_rate * 100:.0f}%  |  "
        f"streak {summary.current_streak} (best {summary.best_streak})"
    )


@app.command()
def stats(
    pack: Optional[Path] = typer.Option(None, "--pack", "-p", help="Scenario pack JSON"),
    session_id: Optional[str] = typer.Option(None, "--session", "-s", help="Session id"),
) -> None:
    """Show drill statistics."""
    try:
        scenarios = _load_scenarios(pack)
        session = _open_store().load_or_create(session_id or get_settings().drill_session_id)
    except DrillError as e:
        _fail(e)

    result = compute_stats(scenarios, session)

    table = Table(title="Drill Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Scenarios", str(result.total_items))
    table.add_row("Seen", str(result.items_seen))
    table.add_row("Attempts", str(result.total_attempts))
    table.add_row("Accuracy", f"{result.correct_rate * 100:.1f}%")
    table.add_row("Average ease", f"{result.average_ease:.2f}")
    table.add_row("Average interval", f"{result.average_interval_days:.1f}d")
    table.add_row("Current streak", str(result.current_streak))
    table.add_row("Best streak", str(result.best_streak))

    console.print(table)


@app.command()
def preview(
    pack: Optional[Path] = typer.Option(None, "--pack", "-p", help="Scenario pack JSON"),
    session_id: Optional[str] = typer.Option(None, "--session", "-s", help="Session id"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of scenarios to preview"),
) -> None:
    """Preview upcoming scenarios."""
    try:
        scenarios = _load_scenarios(pack)
        session = _open_store().load_or_create(session_id or get_settings().drill_session_id)
    except DrillError as e:
        _fail(e)

    scheduler = DrillScheduler()
    now = scheduler.clock()

    table = Table(title="Upcoming Scenarios")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Status")

    for scenario, next_due_at in scheduler.upcoming(scenarios, session, limit=limit):
        label = describe_due(next_due_at, now)
        status = f"[yellow]{label}[/yellow]" if next_due_at <= now else f"[green]{label}[/green]"
        table.add_row(scenario.id, scenario.title, status)

    console.print(table)


@app.command()
def reset(
    session_id: Optional[str] = typer.Option(None, "--session", "-s", help="Session id"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear review state for a fresh start."""
    target = session_id or get_settings().drill_session_id
    if not confirm and not Confirm.ask(f"Reset ALL review state for {target!r}? This cannot be undone!", default=False):
        raise typer.Exit(0)

    try:
        _open_store().reset(target)
    except DrillError as e:
        _fail(e)

    console.print("[green]All review state has been reset.[/green]")


@app.command()
def validate(
    pack: Path = typer.Argument(..., help="Scenario pack JSON to check"),
) -> None:
    """Validate a scenario pack and report quality warnings."""
    try:
        scenario_pack = load_pack(pack)
    except DrillError as e:
        _fail(e)

    console.print(f"[green]{len(scenario_pack.scenarios)} scenarios valid[/green]")
    for warning in check_pack_quality(scenario_pack):
        console.print(f"[yellow]warning:[/yellow] {warning}")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level.upper(),
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
