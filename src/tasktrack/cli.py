"""Command-line interface for TaskTracker change detection."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tasktrack.errors import TaskTrackError
from tasktrack.ignore.patterns import IgnoreFile
from tasktrack.incremental import ChangeDetector, TaskFileMatcher
from tasktrack.logging_config import configure_logging
from tasktrack.models import ChangeReport, DetectionConfig, FingerprintMode, Settings

app = typer.Typer(
    name="tasktrack",
    help="TaskTracker change detection - find changed files and the tasks they affect",
    add_completion=False,
)
ignore_app = typer.Typer(help="Manage ignore patterns (.taskignore)")
app.add_typer(ignore_app, name="ignore")
console = Console()

_KIND_STYLES = {"new": "green", "modified": "yellow", "deleted": "red"}


def _load_config(
    root: Path,
    data_dir: Optional[Path] = None,
    verbose: bool = False,
    json_output: bool = False,
    **overrides,
) -> DetectionConfig:
    """Resolve settings from the environment plus command-line overrides."""
    settings = Settings(data_dir=str(data_dir)) if data_dir else Settings()
    configure_logging("DEBUG" if verbose else settings.log_level, json_output=json_output)
    return settings.to_detection_config(root, **overrides)


def _print_report(report: ChangeReport, segment_aligned: bool) -> None:
    result = report.result
    changes = result.changes

    console.print(f"\n[bold]Changes in[/bold] {result.root}")
    console.print(f"[cyan]Strategy:[/cyan] {result.strategy.value}")
    if result.fallback_reason:
        console.print(f"[yellow]Git unavailable, scanned the filesystem instead:[/yellow] {result.fallback_reason}")
    if result.truncated:
        console.print(
            f"[yellow]⚠ Stopped after {result.files_inspected} files; results are partial.[/yellow]\n"
            "[dim]Raise --max-files or add patterns with 'tasktrack ignore add'.[/dim]"
        )

    if changes.is_empty():
        console.print("\n[green]✓ No changes detected[/green]")
        return

    table = Table(title=f"Changed Files ({len(changes)})")
    table.add_column("Status", style="bold")
    table.add_column("File", style="cyan")
    for kind, paths in (("new", changes.new), ("modified", changes.modified), ("deleted", changes.deleted)):
        style = _KIND_STYLES[kind]
        for path in paths:
            table.add_row(f"[{style}]{kind}[/{style}]", path)
    console.print()
    console.print(table)

    if not report.affected_tasks:
        console.print("\n[dim]No tasks reference the changed files.[/dim]")
        return

    tasks_table = Table(title=f"Affected Tasks ({len(report.affected_tasks)})")
    tasks_table.add_column("ID", style="cyan", no_wrap=True)
    tasks_table.add_column("Title")
    tasks_table.add_column("Status", style="magenta")
    tasks_table.add_column("Matched Files", style="dim")
    for task in report.affected_tasks:
        tasks_table.add_row(str(task.id), task.title, task.status or "", "\n".join(task.matched_files))
    console.print()
    console.print(tasks_table)

    grouped = TaskFileMatcher(segment_aligned=segment_aligned).group_by_file(report.affected_tasks, changes)
    console.print("\n[bold]By file:[/bold]")
    for path, tasks in grouped.items():
        if tasks:
            ids = ", ".join(f"#{task.id}" for task in tasks)
            console.print(f"  • {path} [dim]→ {ids}[/dim]")


@app.command()
def changes(
    path: Path = typer.Argument(Path("."), help="Project root to check"),
    path_filter: Optional[str] = typer.Option(
        None, "--filter", "-f", help="Only report changes inside this file or directory"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON document instead of tables"),
    no_git: bool = typer.Option(False, "--no-git", help="Always scan the filesystem"),
    max_files: Optional[int] = typer.Option(
        None, "--max-files", "-n", min=1, help="Maximum files inspected by the filesystem scan"
    ),
    stat_only: bool = typer.Option(
        False, "--stat", help="Compare size and mtime instead of content hashes"
    ),
    segment_aligned: Optional[bool] = typer.Option(
        None, "--segment-aligned/--suffix", help="Match task files on whole path segments only"
    ),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="TaskTracker data directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show files changed since the last check and the tasks they affect."""
    try:
        config = _load_config(
            path,
            data_dir=data_dir,
            verbose=verbose,
            json_output=as_json,
            max_files=max_files,
            use_git=False if no_git else None,
            fingerprint_mode=FingerprintMode.STAT if stat_only else None,
            segment_aligned_match=segment_aligned,
        )
        detector = ChangeDetector(config)
        report = detector.track(path_filter=path_filter)

        if as_json:
            typer.echo(json.dumps(report.to_json_dict(), indent=2))
        else:
            _print_report(report, config.segment_aligned_match)

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def prune(
    path: Path = typer.Argument(Path("."), help="Project root"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="TaskTracker data directory"),
) -> None:
    """Remove fingerprints of files that no longer exist."""
    try:
        config = _load_config(path, data_dir=data_dir)
        removed = ChangeDetector(config).prune()
        console.print(f"[bold green]✓[/bold green] Removed {removed} stale entr{'y' if removed == 1 else 'ies'}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def status(
    path: Path = typer.Argument(Path("."), help="Project root"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="TaskTracker data directory"),
) -> None:
    """Show where change-tracking state lives and what it holds."""
    try:
        config = _load_config(path, data_dir=data_dir)
        info = ChangeDetector(config).get_status()

        console.print("\n[bold]Change Tracking Status[/bold]")
        console.print(f"[cyan]Project root:[/cyan] {info['root']}")
        console.print(f"[cyan]Fingerprint store:[/cyan] {info['fingerprint_file']}")
        if info["store_exists"]:
            console.print(f"[cyan]Tracked files:[/cyan] {info['tracked_files']}")
        else:
            console.print("[yellow]No fingerprint store yet.[/yellow] [dim]Run 'tasktrack changes' to create it.[/dim]")
        console.print(f"[cyan]Fingerprint mode:[/cyan] {info['fingerprint_mode']}")
        console.print(f"[cyan]Max files per scan:[/cyan] {info['max_files']}")

        if info["ignore_file_exists"]:
            console.print(f"[cyan]Ignore file:[/cyan] {info['ignore_file']} ({info['user_patterns']} patterns)")
        else:
            console.print("[cyan]Ignore file:[/cyan] [dim]none (defaults only)[/dim]")

        strategy = "git" if info["git_available"] else "filesystem scan"
        console.print(f"[cyan]Detection strategy:[/cyan] {strategy}")

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@ignore_app.command("list")
def ignore_list(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Project root"),
) -> None:
    """List active ignore patterns."""
    try:
        config = _load_config(path)
        ignore_file = IgnoreFile(config.ignore_file)

        table = Table(title="Ignore Patterns")
        table.add_column("Pattern", style="cyan")
        table.add_column("Source", style="dim")
        for pattern, origin in ignore_file.list_patterns():
            table.add_row(pattern, origin)
        console.print(table)

        if not ignore_file.exists():
            console.print(f"\n[dim]No {config.ignore_file.name} file. Run 'tasktrack ignore init' to create one.[/dim]")

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@ignore_app.command("add")
def ignore_add(
    pattern: str = typer.Argument(..., help="Pattern to ignore, e.g. 'generated/**' or '**/*.tmp'"),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Project root"),
) -> None:
    """Add an ignore pattern."""
    try:
        config = _load_config(path)
        if IgnoreFile(config.ignore_file).add(pattern):
            console.print(f"[bold green]✓[/bold green] Added pattern: {pattern}")
        else:
            console.print(f"[yellow]Pattern already active:[/yellow] {pattern}")
    except TaskTrackError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@ignore_app.command("remove")
def ignore_remove(
    pattern: str = typer.Argument(..., help="Pattern to remove"),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Project root"),
) -> None:
    """Remove a user ignore pattern."""
    try:
        config = _load_config(path)
        IgnoreFile(config.ignore_file).remove(pattern)
        console.print(f"[bold green]✓[/bold green] Removed pattern: {pattern}")
    except TaskTrackError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@ignore_app.command("init")
def ignore_init(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Project root"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Create a .taskignore file with usage notes."""
    try:
        config = _load_config(path)
        written = IgnoreFile(config.ignore_file).init(force=force)
        console.print(f"[bold green]✓[/bold green] Created {written}")
    except TaskTrackError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from tasktrack import __version__

    console.print(f"[bold]TaskTrack[/bold] version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
