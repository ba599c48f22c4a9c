"""Command-line interface for devup."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from devup.activities.health import APP_SERVICE
from devup.activities.services import LogChunk
from devup.models.report import Framework, ProjectReport
from devup.settings import get_settings
from devup.workflows import (
    Analyze,
    DevupState,
    Severity,
    analyze_project,
    check_health,
    devenv_graph,
    run_environment,
)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Quiet noisy libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


app = typer.Typer(
    name="devup",
    help="Detect a project's stack and run it in a local Docker dev environment.",
)

ProjectPath = Annotated[
    Path,
    typer.Argument(help="Path to the project directory. Defaults to current directory."),
]
Verbose = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")]


def _validate_project_path(path: Path) -> Path:
    if not path.exists():
        raise typer.BadParameter(f"Path does not exist: {path}")
    if not path.is_dir():
        raise typer.BadParameter(f"Path is not a directory: {path}")
    return path.resolve()


def _report_table(report: ProjectReport) -> Table:
    """Render a report as a two-column table."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Framework", report.framework)
    table.add_row("Database", report.database)
    table.add_row("Cache", report.cache)
    table.add_row("Services", ", ".join(report.services) or "-")
    table.add_row("Port", str(report.port))
    table.add_row("Start command", report.start_command or "-")
    if report.framework is Framework.NODE:
        table.add_row("Node version", report.node_version)
    table.add_row("Existing config", "yes" if report.config_found else "no")
    return table


def _make_progress_callback(console: Console):
    """Create a Rich-based progress callback."""
    severity_styles = {
        Severity.INFO: ("blue", ""),
        Severity.SUCCESS: ("green", "✓"),
        Severity.WARNING: ("yellow", "!"),
        Severity.ERROR: ("red", "✗"),
    }

    def callback(severity: Severity, message: str) -> None:
        color, icon = severity_styles[severity]
        if icon:
            console.print(f"  [{color}]{icon}[/{color}] {message}")
        else:
            console.print(f"  [{color}]•[/{color}] {message}")

    return callback


def _make_confirm_callback(console: Console, assume_yes: bool):
    """Create a callback that shows the report and asks to proceed."""

    def callback(report: ProjectReport) -> bool:
        console.print()
        console.print(_report_table(report))
        console.print()
        if assume_yes:
            return True
        return Confirm.ask("Generate environment?", default=True, console=console)

    return callback


def _make_log_callback(console: Console):
    """Create a callback that echoes compose output, dimming stderr."""

    def callback(chunk: LogChunk) -> None:
        text = escape(chunk.text.rstrip("\n"))
        if chunk.stream == "stderr":
            console.print(f"[dim]{text}[/dim]")
        else:
            console.print(text)

    return callback


def _status_table(status: dict[str, bool]) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    for name, ok in status.items():
        table.add_row(name, "[green]ready[/green]" if ok else "[yellow]waiting[/yellow]")
    return table


def _run_graph(state: DevupState, console: Console) -> None:
    try:
        result = asyncio.run(devenv_graph.run(Analyze(), state=state))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled[/yellow]")
        sys.exit(130)

    outcome = result.output
    if not outcome.success:
        if outcome.message:
            console.print(f"\n[red]{escape(outcome.message)}[/red]")
        raise typer.Exit(1)


@app.command()
def analyze(
    project_path: ProjectPath = Path("."),
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON.")] = False,
    verbose: Verbose = False,
) -> None:
    """Detect the project's stack without writing anything."""
    _setup_logging(verbose)
    project_path = _validate_project_path(project_path)
    console = Console()

    report = asyncio.run(analyze_project(project_path))
    if as_json:
        console.print_json(report.model_dump_json(by_alias=True))
        return
    for warning in report.warnings:
        console.print(f"[yellow]![/yellow] {warning}")
    console.print(_report_table(report))


@app.command()
def init(
    project_path: ProjectPath = Path("."),
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation.")] = False,
    verbose: Verbose = False,
) -> None:
    """Analyze the project and write the dev environment files."""
    _setup_logging(verbose)
    project_path = _validate_project_path(project_path)
    console = Console()

    console.print(f"\n[bold]devup[/bold] - generating environment for {project_path.name}")
    state = DevupState(
        path=project_path,
        generate_only=True,
        on_progress=_make_progress_callback(console),
        on_confirm=_make_confirm_callback(console, yes),
    )
    _run_graph(state, console)
    console.print(f"\n[green bold]✓ Environment written to {get_settings().output_dir}/[/green bold]\n")


@app.command()
def up(
    project_path: ProjectPath = Path("."),
    verbose: Verbose = False,
) -> None:
    """Start a previously generated environment and stream its output."""
    _setup_logging(verbose)
    project_path = _validate_project_path(project_path)
    console = Console()
    on_log = _make_log_callback(console)

    async def _up() -> int:
        result, handle = await run_environment(project_path)
        if not result.success:
            console.print(f"[red]✗[/red] {escape(result.error or 'launch failed')}")
            return 1
        async for chunk in handle:
            on_log(chunk)
        return await handle.wait()

    exit_code = asyncio.run(_up())
    if exit_code != 0:
        raise typer.Exit(exit_code)


@app.command()
def status(
    project_path: ProjectPath = Path("."),
    watch: Annotated[
        bool, typer.Option("--watch", "-w", help="Keep polling until interrupted.")
    ] = False,
    verbose: Verbose = False,
) -> None:
    """Check which services of the environment accept connections."""
    _setup_logging(verbose)
    project_path = _validate_project_path(project_path)
    console = Console()
    settings = get_settings()

    async def _status() -> None:
        report = await analyze_project(project_path)
        names = [service.value for service in report.services] + [APP_SERVICE]
        while True:
            console.print(_status_table(await check_health(names, report.port)))
            if not watch:
                return
            await asyncio.sleep(settings.poll_interval)
            console.print()

    try:
        asyncio.run(_status())
    except KeyboardInterrupt:
        sys.exit(130)


@app.command()
def run(
    project_path: ProjectPath = Path("."),
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation.")] = False,
    verbose: Verbose = False,
) -> None:
    """Analyze, generate, start and wait for the whole environment."""
    _setup_logging(verbose)
    project_path = _validate_project_path(project_path)
    console = Console()

    console.print(f"\n[bold]devup[/bold] - {project_path.name}")
    state = DevupState(
        path=project_path,
        on_progress=_make_progress_callback(console),
        on_confirm=_make_confirm_callback(console, yes),
        on_log=_make_log_callback(console),
        on_status=lambda s: console.print(_status_table(s)),
    )
    _run_graph(state, console)
    console.print(f"\n[green bold]✓ {project_path.name} is up[/green bold]\n")


if __name__ == "__main__":
    app()
