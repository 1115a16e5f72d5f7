"""Main CLI entry point using Typer."""

import sys
from pathlib import Path

import anyio
import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from sleepship import __version__
from sleepship.core.aliases import expand_argv, load_aliases
from sleepship.core.config import build_run_config, get_settings
from sleepship.core.engine import SyncEngine
from sleepship.core.exceptions import AliasError, ConfigurationError, SleepshipError
from sleepship.core.log import configure_logging
from sleepship.core.state import RunResult
from sleepship.reporting.pull_request import generate_pr_body, generate_pr_title
from sleepship.sessions.recursion import RecursionGuard
from sleepship.sessions.worker import build_worker_args, spawn_background_worker
from sleepship.tasks.templates import TASK_FILE_TEMPLATE
from sleepship.vcs.git import sanitize_branch_name

app = typer.Typer(
    name="sleepship",
    help="Sleepship - autonomous development with Claude Code",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

# First arguments that are never treated as aliases
BUILTIN_NAMES = frozenset({"alias", "help", "--help", "-h"})


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]sleepship[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    Sleepship - run a task document with Claude Code.

    Each task is implemented by the agent, verified with its command and
    retried on failure.
    """
    pass


@app.command()
def sync(
    task_file: str | None = typer.Argument(
        None,
        help="Task document (defaults to SLEEPSHIP_SYNC_DEFAULT_TASK_FILE)",
    ),
    project_dir: Path | None = typer.Option(
        None,
        "--dir",
        "-d",
        help="Project directory (defaults to the current directory)",
    ),
    log_dir: str | None = typer.Option(
        None,
        "--log-dir",
        help="Log directory, relative to the project directory [default: logs]",
    ),
    start_from: int | None = typer.Option(
        None,
        "--start-from",
        min=1,
        help="Task number to start from [default: 1]",
    ),
    max_retries: int | None = typer.Option(
        None,
        "--max-retries",
        min=0,
        help="Retries per phase [default: 3]",
    ),
    no_branch: bool = typer.Option(
        False,
        "--no-branch",
        help="Do not create a git branch",
    ),
    no_commit: bool = typer.Option(
        False,
        "--no-commit",
        help="Do not commit after each task",
    ),
    worker: bool = typer.Option(
        False,
        "--worker",
        hidden=True,
    ),
) -> None:
    """
    Execute a task document in the background.

    Example:
        sleepship sync tasks-user-auth.md --max-retries 5
    """
    settings = get_settings()
    configure_logging(settings.sleepship_log_level)

    try:
        config = build_run_config(
            task_file,
            settings=settings,
            project_dir=project_dir,
            log_dir=log_dir,
            start_from=start_from,
            max_retries=max_retries,
            create_branch=not no_branch,
            commit_changes=not no_commit,
        )
    except ConfigurationError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    if not worker:
        args = build_worker_args(
            config.task_file,
            project_dir=project_dir,
            log_dir=log_dir,
            start_from=start_from,
            max_retries=max_retries,
            create_branch=config.create_branch,
            commit_changes=config.commit_changes,
        )
        try:
            handle = spawn_background_worker(args, log_dir=config.log_path)
        except OSError as e:
            console.print(f"[bold red]Failed to start background worker:[/bold red] {escape(str(e))}")
            raise typer.Exit(1)

        console.print(
            Panel(
                f"PID: {handle.pid}\nLog file: {handle.log_file}\n\n"
                f"[dim]Follow progress with: tail -f {handle.log_file}[/dim]",
                title="[bold blue]Running in background[/bold blue]",
                border_style="blue",
            )
        )
        return

    engine = SyncEngine(config, guard=RecursionGuard.from_environ(max_depth=config.max_depth))

    async def execute() -> RunResult:
        return await engine.run()

    try:
        result = anyio.run(execute)
    except SleepshipError as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"\n[bold red]Run failed:[/bold red] {escape(result.error_message)}")
        raise typer.Exit(1)

    console.print(
        f"\n[bold green]Done![/bold green] {result.executed_tasks} executed, "
        f"{result.skipped_tasks} skipped"
    )
    if result.executed_tasks:
        show_pr_info(result)


def show_pr_info(result: RunResult) -> None:
    """Print a suggested pull-request title and body."""
    feature = sanitize_branch_name(result.task_file.name)
    console.print(
        Panel(
            f"[bold]Title:[/bold]\n{generate_pr_title(result.tasks, feature)}\n\n"
            f"[bold]Body:[/bold]\n{generate_pr_body(result.tasks)}",
            title="[bold blue]Pull request[/bold blue]",
            border_style="blue",
        )
    )


@app.command()
def init(
    task_file: Path = typer.Argument(..., help="Task document to create"),
) -> None:
    """
    Create a task document from the template.

    Example:
        sleepship init tasks.md
    """
    if task_file.exists():
        console.print(f"[bold red]Error:[/bold red] file already exists: {task_file}")
        raise typer.Exit(1)

    try:
        task_file.write_text(TASK_FILE_TEMPLATE, encoding="utf-8")
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] failed to create task file: {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[green]Task file created: {task_file}[/green]")
    console.print("\n[bold]Next steps:[/bold]")
    console.print(f"  1. Edit the task file: {task_file}")
    console.print(f"  2. Run: sleepship sync {task_file}")


def run() -> None:
    """Console script entry point; expands a leading alias before dispatch."""
    argv = sys.argv[1:]

    if argv and argv[0] not in BUILTIN_NAMES:
        try:
            aliases = load_aliases()
        except AliasError as e:
            logger.debug(f"Ignoring alias configuration: {e}")
            aliases = {}

        try:
            argv = expand_argv(argv, aliases)
        except AliasError as e:
            console.print(f"[bold red]Error resolving alias {escape(repr(argv[0]))}:[/bold red] {escape(str(e))}")
            sys.exit(1)

    app(args=argv, prog_name="sleepship")


# Registers history and alias commands on ``app``
from sleepship.cli import commands  # noqa: E402,F401

if __name__ == "__main__":
    run()
