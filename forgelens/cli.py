"""CLI entry point for ForgeLens."""

import json
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from forgelens import __version__
from forgelens.config import CONFIG_FILE, create_default_config, get_settings, load_settings
from forgelens.errors import ForgeLensError
from forgelens.git import (
    BranchInspector,
    ConflictAnalyzer,
    ConflictReport,
    RepositoryResolver,
    extract_remote_entries,
    parse_remote_url,
    validate_directory,
)
from forgelens.preflight import PullRequestPreflight
from forgelens.utils import get_logger, setup_logging

app = typer.Typer(
    name="forgelens",
    help="Inspect local git repositories and predict merge conflicts",
    add_completion=True,
    no_args_is_help=True,
)

console = Console()
logger = get_logger("cli")

SEVERITY_STYLES = {"high": "red", "medium": "yellow", "low": "green"}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]ForgeLens[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """ForgeLens - local git repository introspection.

    Resolve directories to hosted repositories, detect forks, compare
    branches and predict merge conflicts without touching the worktree.
    """
    try:
        settings = load_settings(config_path=config, force_reload=True)
    except ForgeLensError as e:
        _fail(e)

    setup_logging(
        level=settings.logging.level,
        log_file=settings.logging.resolved_file,
        verbose=verbose,
    )


def _fail(error: ForgeLensError) -> NoReturn:
    console.print(f"[red]Error: {escape(error.message)}[/red]")
    logger.debug(f"{error.code}: {error.details}")
    raise typer.Exit(1)


def _print_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def _yes_no(value: Optional[bool]) -> str:
    if value is None:
        return "[dim]-[/dim]"
    return "[green]yes[/green]" if value else "[red]no[/red]"


def _print_conflict_report(report: ConflictReport, base: str, head: str) -> None:
    if not report.has_conflicts:
        console.print(
            Panel(
                f"[green]{escape(head)} merges cleanly into {escape(base)}[/green]",
                title="Conflicts",
                border_style="green",
            )
        )
    else:
        table = Table(title=f"Conflicts merging {escape(head)} into {escape(base)}")
        table.add_column("File", style="cyan")
        table.add_column("Type")
        table.add_column("Marker lines", justify="right")
        table.add_column("Severity", justify="center")

        for detail in report.conflict_details:
            style = SEVERITY_STYLES.get(detail.severity, "white")
            table.add_row(
                escape(detail.file),
                escape(detail.type),
                ", ".join(str(line) for line in detail.lines) or "-",
                f"[{style}]{detail.severity}[/{style}]",
            )

        console.print(table)
        console.print(f"\n[bold]Total conflicts:[/bold] {report.total_conflicts}")

    console.print("\n[bold]Suggested actions:[/bold]")
    for action in report.suggested_actions:
        console.print(f"  • {action}")


@app.command()
def resolve(
    directory: Path = typer.Argument(Path("."), help="Repository directory"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Resolve a directory to its hosted repository."""
    try:
        resolution, fork_info = RepositoryResolver().resolve_with_fork_info(directory)
    except ForgeLensError as e:
        _fail(e)

    if as_json:
        _print_json({**resolution.to_dict(), "fork_info": fork_info.to_dict()})
        return

    table = Table(title="Repository", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Directory", escape(resolution.directory))
    table.add_row("Repository", f"[cyan]{escape(resolution.repository)}[/cyan]")
    table.add_row("Remote", escape(resolution.remote_name))
    table.add_row("URL", escape(resolution.remote_url))
    table.add_row("Fork", _yes_no(fork_info.is_fork))
    if fork_info.is_fork:
        table.add_row("Original owner", escape(fork_info.original_owner or "-"))
        table.add_row("Fork owner", escape(fork_info.fork_owner or "-"))
        table.add_row("Fork remote", escape(fork_info.fork_remote or "-"))
    console.print(table)


@app.command()
def remotes(
    directory: Path = typer.Argument(Path("."), help="Repository directory"),
) -> None:
    """List configured remotes and the repository each points to."""
    try:
        validate_directory(directory)
        entries = extract_remote_entries(directory)
    except ForgeLensError as e:
        _fail(e)

    if not entries:
        console.print("[dim]No remotes configured.[/dim]")
        return

    table = Table(title="Remotes")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("URL")
    table.add_column("Repository", style="green")

    for entry in entries:
        try:
            repository = escape(parse_remote_url(entry.url))
        except ForgeLensError:
            repository = "[yellow]unrecognised[/yellow]"
        table.add_row(escape(entry.name), escape(entry.url), repository)

    console.print(table)


@app.command()
def branch(
    directory: Path = typer.Argument(Path("."), help="Repository directory"),
    name: Optional[str] = typer.Argument(None, help="Branch to look up"),
) -> None:
    """Show the current branch, or whether NAME exists locally."""
    inspector = BranchInspector(get_settings().create_runner())
    try:
        validate_directory(directory)
        if name is None:
            console.print(escape(inspector.get_current_branch(directory)))
            return
        exists = inspector.branch_exists(directory, name)
    except ForgeLensError as e:
        _fail(e)

    if exists:
        console.print(f"[green]Branch '{escape(name)}' exists[/green]")
    else:
        console.print(f"[yellow]Branch '{escape(name)}' does not exist[/yellow]")
        raise typer.Exit(1)


@app.command()
def compare(
    directory: Path = typer.Argument(..., help="Repository directory"),
    base: str = typer.Argument(..., help="Base branch"),
    head: str = typer.Argument(..., help="Head branch"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Count commits HEAD has over BASE and check whether it is behind."""
    inspector = BranchInspector(get_settings().create_runner())
    try:
        validate_directory(directory)
        ahead = inspector.get_commit_count(directory, base, head)
        behind = inspector.is_branch_behind(directory, base, head)
    except ForgeLensError as e:
        _fail(e)

    if as_json:
        _print_json({"base": base, "head": head, "commits_ahead": ahead, "is_behind": behind})
        return

    console.print(f"[bold]{escape(head)}[/bold] is {ahead} commit(s) ahead of [bold]{escape(base)}[/bold]")
    if behind:
        console.print(f"[yellow]{escape(head)} is behind {escape(base)}; update it before opening a pull request[/yellow]")


@app.command()
def conflicts(
    directory: Path = typer.Argument(..., help="Repository directory"),
    base: str = typer.Argument(..., help="Base branch"),
    head: str = typer.Argument(..., help="Head branch"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Predict conflicts from merging HEAD into BASE."""
    analyzer = ConflictAnalyzer(get_settings().create_runner())
    try:
        validate_directory(directory)
        report = analyzer.get_conflict_report(directory, base, head)
    except ForgeLensError as e:
        _fail(e)

    if as_json:
        _print_json(report.to_dict())
        return

    _print_conflict_report(report, base, head)


@app.command()
def preflight(
    directory: Path = typer.Argument(Path("."), help="Repository directory"),
    head: Optional[str] = typer.Option(None, "--head", help="Head branch (default: current branch)"),
    base: Optional[str] = typer.Option(None, "--base", help="Base branch (default: preflight.default_base)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a summary"),
) -> None:
    """Run the local checks done before opening a pull request."""
    try:
        report = PullRequestPreflight(settings=get_settings()).run(directory, head=head, base=base)
    except ForgeLensError as e:
        _fail(e)

    if as_json:
        _print_json(report.to_dict())
    else:
        table = Table(title="Pull Request Preflight", show_header=False)
        table.add_column("Check", style="bold")
        table.add_column("Result")
        table.add_row("Target repository", f"[cyan]{escape(report.target_repository)}[/cyan]")
        if report.fork_info.is_fork:
            table.add_row("Fork of", escape(f"{report.fork_info.original_owner} (via {report.fork_info.fork_remote})"))
        head_label = escape(report.head) + (" [dim](detected)[/dim]" if report.head_detected else "")
        table.add_row("Head", head_label)
        table.add_row("Base", escape(report.base))
        table.add_row("Head exists", _yes_no(report.head_exists))
        table.add_row("Commits ahead", "-" if report.commits_ahead is None else str(report.commits_ahead))
        conflicted = None if report.conflict_report is None else report.conflict_report.has_conflicts
        table.add_row("Conflicts", _yes_no(conflicted))
        table.add_row("Behind base", _yes_no(report.is_behind))
        console.print(table)

        if report.conflict_report is not None and report.conflict_report.has_conflicts:
            console.print()
            _print_conflict_report(report.conflict_report, report.base, report.head)

        if report.ready:
            console.print("\n[green]Ready to open a pull request.[/green]")
        else:
            console.print(f"\n[red]Not ready:[/red] {', '.join(report.blockers)}")

    if not report.ready:
        raise typer.Exit(1)


@app.command()
def config(
    init: bool = typer.Option(False, "--init", help="Write the default config file if missing"),
) -> None:
    """Show current configuration."""
    if init:
        path = create_default_config()
        console.print(f"[green]Config file: {escape(str(path))}[/green]")
        return

    settings = get_settings()

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))
    console.print(f"[dim]User config: {escape(str(CONFIG_FILE))}[/dim]")

    console.print("\n[bold]Git:[/bold]")
    console.print(f"  Executable: {escape(settings.git.executable)}")
    console.print(f"  Timeout: {settings.git.timeout}s")
    console.print(f"  Locale: {settings.git.locale or 'inherited'}")

    console.print("\n[bold]Preflight:[/bold]")
    console.print(f"  Default base: {settings.preflight.default_base}")
    console.print(f"  Check conflicts: {settings.preflight.check_conflicts}")
    console.print(f"  Check behind: {settings.preflight.check_behind}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  Level: {settings.logging.level}")
    console.print(f"  File: {escape(str(settings.logging.resolved_file or '-'))}")


if __name__ == "__main__":
    app()
