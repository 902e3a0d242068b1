"""Command-line interface for staticreader."""

import json
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from staticreader.discovery import discover_files
from staticreader.incremental import IncrementalFilter, JsonStateStore
from staticreader.log import configure_logging
from staticreader.models import Settings

app = typer.Typer(
    name="staticreader",
    help="File discovery for static-site pipelines with incremental change detection",
    add_completion=False,
)
console = Console()

TRIGGER_SEPARATOR = "=>"


def _parse_trigger(value: str) -> object:
    """`SOURCE` rebuilds everything, `SOURCE=>TARGET` rebuilds files matching TARGET."""
    if TRIGGER_SEPARATOR in value:
        source, target = value.split(TRIGGER_SEPARATOR, 1)
        return [source.strip(), target.strip()]
    return value.strip()


def _setup(verbose: bool) -> Settings:
    settings = Settings()
    configure_logging("debug" if verbose else settings.log_level, json=settings.log_json)
    return settings


@app.command()
def scan(
    cwd: Path = typer.Argument(Path("."), help="Directory to scan"),
    pattern: Optional[List[str]] = typer.Option(None, "--pattern", "-p", help="Glob pattern (repeatable, '!' excludes)"),
    ignore: Optional[List[str]] = typer.Option(None, "--ignore", help="Glob pattern to skip (repeatable)"),
    incremental: bool = typer.Option(False, "--incremental", "-i", help="Only list files changed since the last commit of the key"),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Incremental key (defaults to '<cwd>:<pattern>')"),
    state_file: Optional[Path] = typer.Option(None, "--state-file", "-f", help="State file (defaults to .incremental)"),
    strategy: Optional[str] = typer.Option(None, "--strategy", "-s", help="Change detection strategy: time or git"),
    trigger: Optional[List[str]] = typer.Option(None, "--trigger", "-t", help="SOURCE or SOURCE=>TARGET trigger rule (repeatable)"),
    tracking_root: Optional[Path] = typer.Option(None, "--tracking-root", help="Directory to track changes in (defaults to CWD)"),
    commit: bool = typer.Option(False, "--commit", help="Record the marker of this run"),
    as_json: bool = typer.Option(False, "--json", help="Print the file list as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """List the files of a directory, optionally only those that need processing."""
    try:
        settings = _setup(verbose)
        patterns = pattern or ["**/*"]
        files = discover_files(cwd, patterns, ignore or None)

        if incremental:
            incremental_filter = IncrementalFilter(
                {
                    "key": key or f"{cwd.as_posix()}:{','.join(patterns)}",
                    "file": state_file or settings.state_file,
                    "strategy": strategy or settings.strategy,
                    "triggers": [_parse_trigger(t) for t in trigger or []],
                    "tracking_root": tracking_root or cwd,
                }
            )
            files = incremental_filter.filter(files)

        root = Path(os.path.abspath(cwd))
        relative = [f.relative_to(root).as_posix() for f in files]
        if as_json:
            typer.echo(json.dumps(relative, indent=2))
        else:
            for path in relative:
                typer.echo(path)

        if incremental and commit:
            marker = incremental_filter.finalize()
            console.print(f"[bold green]✓[/bold green] Recorded marker {marker}", highlight=False)

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def status(
    state_file: Optional[Path] = typer.Option(None, "--state-file", "-f", help="State file (defaults to .incremental)"),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Describe one stream instead of listing all markers"),
    strategy: Optional[str] = typer.Option(None, "--strategy", "-s", help="Change detection strategy of the stream"),
    tracking_root: Optional[Path] = typer.Option(None, "--tracking-root", help="Tracking root of the stream (defaults to CWD)"),
) -> None:
    """Show the markers recorded in a state file."""
    try:
        settings = _setup(False)

        if key is not None:
            info = IncrementalFilter(
                {
                    "key": key,
                    "file": state_file or settings.state_file,
                    "strategy": strategy or settings.strategy,
                    "tracking_root": tracking_root,
                }
            ).status()

            console.print(f"\n[bold]Stream {info['key']}[/bold]\n", highlight=False)
            console.print(f"  Strategy: {info['strategy']}", highlight=False)
            console.print(f"  State file: {info['file']}", highlight=False)
            console.print(f"  Tracking root: {info['tracking_root']}", highlight=False)
            if info["incremental"]:
                console.print(f"  Marker: [green]{info['marker']}[/green]", highlight=False)
            else:
                console.print("  Marker: [yellow]none, next run reads everything[/yellow]")
            return

        store = JsonStateStore(state_file or settings.state_file)
        markers = store.load()

        if not markers:
            console.print(f"[yellow]No markers recorded in {store.path}[/yellow]")
            return

        table = Table(title=f"Markers in {store.path}")
        table.add_column("Key", style="cyan")
        table.add_column("Marker", style="green")
        for name, marker in sorted(markers.items()):
            table.add_row(name, marker)
        console.print(table)

    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def forget(
    key: str = typer.Argument(..., help="Key to remove"),
    state_file: Optional[Path] = typer.Option(None, "--state-file", "-f", help="State file (defaults to .incremental)"),
) -> None:
    """Remove a key so its next run reads everything."""
    try:
        settings = _setup(False)
        store = JsonStateStore(state_file or settings.state_file)
        removed = store.delete(key)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not removed:
        console.print(f"[yellow]Key not found:[/yellow] {key}")
        raise typer.Exit(1)
    console.print(f"[bold green]✓[/bold green] Removed {key}")


@app.command()
def version() -> None:
    """Show version information."""
    from staticreader import __version__

    console.print(f"[bold]staticreader[/bold] version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
