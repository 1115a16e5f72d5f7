"""History and alias commands."""

from datetime import timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sleepship.core.aliases import find_config_path, load_aliases, resolve_alias
from sleepship.core.exceptions import AliasError, HistoryError
from sleepship.history.store import HistoryEntry, HistoryStore
from sleepship.cli.main import app

console = Console()

alias_app = typer.Typer(help="Manage command aliases defined in .sleepship.toml")
app.add_typer(alias_app, name="alias")


# =============================================================================
# HISTORY
# =============================================================================


@app.command()
def history(
    last: int = typer.Option(
        0,
        "--last",
        "-n",
        min=0,
        help="Show only the last N runs",
    ),
    failed: bool = typer.Option(
        False,
        "--failed",
        help="Show only failed runs",
    ),
    project_dir: Path = typer.Option(
        Path("."),
        "--dir",
        "-d",
        help="Project directory",
    ),
) -> None:
    """
    Show the execution history of this project.
    """
    try:
        runs = HistoryStore(project_dir.resolve()).load()
    except HistoryError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    if not runs:
        console.print("[yellow]No execution history found[/yellow]")
        return

    if failed:
        entries = runs.failed()
        if not entries:
            console.print("[green]No failed executions found[/green]")
            return
    elif last > 0:
        entries = runs.last(last)
    else:
        entries = runs.entries

    console.print(_history_table(entries))
    console.print(_summary(entries))


def _history_table(entries: list[HistoryEntry]) -> Table:
    table = Table(title=f"Task Execution History ({len(entries)} entries)")
    table.add_column("Status")
    table.add_column("Task File", style="bold", max_width=50)
    table.add_column("Executed At", style="cyan")
    table.add_column("Duration", justify="right")
    table.add_column("Tasks", justify="right")
    table.add_column("Retries", justify="right")
    table.add_column("Branch")

    for entry in entries:
        status = "[green]OK[/green]" if entry.success else "[red]FAILED[/red]"
        branch = entry.branch_name.removeprefix("feature/") or "-"
        table.add_row(
            status,
            Path(entry.task_file).name,
            entry.executed_at.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            format_duration(entry.duration),
            str(entry.task_count),
            str(entry.max_retries),
            _shorten(branch, 20),
        )
        if not entry.success and entry.error_message:
            table.add_row("", f"[yellow]Error:[/yellow] {escape(_shorten(entry.error_message, 100))}")

    return table


def _shorten(text: str, width: int) -> str:
    return text[: width - 3] + "..." if len(text) > width else text


def _summary(entries: list[HistoryEntry]) -> str:
    succeeded = sum(1 for e in entries if e.success)
    total = sum((e.duration for e in entries), timedelta(0))
    return (
        f"Total: {len(entries)} | [green]Success[/green]: {succeeded} | "
        f"[red]Failed[/red]: {len(entries) - succeeded} | "
        f"[blue]Total Duration[/blue]: {format_duration(total)}"
    )


def format_duration(duration: timedelta) -> str:
    """Format a duration as ``42s``, ``3m 5s`` or ``2h 10m``."""
    seconds = int(duration.total_seconds())
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {seconds % 3600 // 60}m"


# =============================================================================
# ALIASES
# =============================================================================


@alias_app.command("list")
def list_aliases() -> None:
    """
    List all aliases.
    """
    try:
        aliases = load_aliases()
    except AliasError as e:
        console.print(f"[bold red]Failed to load aliases:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    if not aliases:
        if find_config_path() is None:
            console.print("No .sleepship.toml file found.")
            console.print("\nCreate one in your project or home directory, for example:")
            console.print('\n\\[aliases]\ndev = "sync tasks-dev.md"\ntest = "sync tasks-test.md --max-retries 5"')
        else:
            console.print("No aliases defined in .sleepship.toml")
        return

    table = Table(title=f"Aliases ({len(aliases)})")
    table.add_column("Name", style="cyan")
    table.add_column("Command")
    for name in sorted(aliases):
        table.add_row(escape(name), escape(aliases[name]))
    console.print(table)


@alias_app.command("get")
def get_alias(
    name: str = typer.Argument(..., help="Alias name"),
) -> None:
    """
    Show the command behind an alias.
    """
    try:
        aliases = load_aliases()
        resolved = resolve_alias(name, aliases)
    except AliasError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(escape(f"{name} = {aliases[name]}"))
    if resolved != aliases[name]:
        console.print(f"[dim]Resolves to: {escape(resolved)}[/dim]")
