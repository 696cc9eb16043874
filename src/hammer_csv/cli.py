"""Command-line interface for hammer-csv."""

import asyncio
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .commands import CommandOptions, ResolveCommand
from .config import load_config
from .core.dispatcher import DispatchResult
from .core.resolver import CacheStats
from .observability import configure_logging
from .utils.exceptions import DispatchError, UsageError

app = typer.Typer(
    name="hammer-csv",
    help="hammer-csv - Bulk Foreman import and export through CSV",
    add_completion=False,
)

# stdout carries CSV output
console = Console(stderr=True)
logger = structlog.get_logger(__name__)


@app.command()
def resolve(
    csv_file: Path | None = typer.Option(
        None,
        "--csv-file",
        help="CSV file (required unless --csv-export)",
        exists=True,
        dir_okay=False,
    ),
    csv_export: bool = typer.Option(
        False, "--csv-export", help="Export current data instead of importing"
    ),
    threads: int | None = typer.Option(
        None, "--threads", help="Number of threads to hammer with (default: 1)"
    ),
    server: str | None = typer.Option(None, "--server", help="Server URL"),
    username: str | None = typer.Option(
        None, "--username", "-u", help="Username to access server"
    ),
    password: str | None = typer.Option(
        None, "--password", "-p", help="Password to access server"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Be verbose"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="YAML config file"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output CSV file (default: stdout)"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
) -> None:
    """
    Translate Kind,Name,Id rows between Foreman names and identifiers.

    Import (default) fills the Id column from Name. With --csv-export, fills
    Name from Id, or lists every organization, environment, operating
    system, domain, architecture and partition table when no --csv-file is
    given.

    Examples:
        hammer-csv resolve --csv-file names.csv --server https://foreman -u admin -p changeme
        hammer-csv resolve --csv-file ids.csv --csv-export --threads 4 -o names.csv
        hammer-csv resolve --csv-export -c foreman.yaml
    """
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]ERROR: Configuration failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    configure_logging(
        level="DEBUG" if verbose else config.logging.level,
        json_logs=json_logs or config.logging.format == "json",
        log_file=config.logging.file,
    )

    options = CommandOptions(
        threads=threads if threads is not None else config.dispatch.threads,
        csv_export=csv_export,
        csv_file=csv_file,
        output=output,
        server=server,
        username=username,
        password=password,
        verbose=verbose,
    )
    command = ResolveCommand(options, config)

    try:
        result = asyncio.run(command.execute())
    except UsageError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1) from e
    except DispatchError as e:
        if e.result is not None:
            _print_summary(e.result, command.registry.stats() if command.registry else {})
        _print_failures(e)
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if result is not None:
        _print_summary(result, command.registry.stats() if command.registry else {})


def _print_summary(result: DispatchResult, cache_stats: dict[str, CacheStats]) -> None:
    table = Table(title="Dispatch Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Rows", str(result.total_rows))
    table.add_row("Threads", str(result.thread_count))
    table.add_row("Processed", str(result.processed))
    table.add_row("Skipped (comments)", str(result.skipped))
    table.add_row("Failed", str(result.failed))
    table.add_row("Not attempted", str(result.not_attempted))
    table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    console.print(table)

    used = {kind: stats for kind, stats in cache_stats.items() if stats.total_queries}
    if not used:
        return

    cache_table = Table(title="Resolver Cache")
    cache_table.add_column("Kind", style="cyan")
    cache_table.add_column("Hits", justify="right", style="green")
    cache_table.add_column("Misses", justify="right", style="yellow")
    cache_table.add_column("Remote Calls", justify="right")
    cache_table.add_column("Hit Rate", justify="right")
    for kind, stats in used.items():
        cache_table.add_row(
            kind,
            str(stats.cache_hits),
            str(stats.cache_misses),
            str(stats.remote_calls),
            f"{stats.hit_rate() * 100:.1f}%",
        )
    console.print(cache_table)


def _print_failures(error: DispatchError) -> None:
    table = Table(title="Failed Rows", show_header=True, header_style="bold red")
    table.add_column("Row", justify="right")
    table.add_column("Error Type", style="red")
    table.add_column("Message")
    for failure in error.failures:
        table.add_row(str(failure.index), failure.kind, str(failure.error))
    console.print(table)
    console.print(f"\n[bold red]ERROR:[/bold red] {error}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(
        Panel.fit(
            "[bold]hammer-csv[/bold]\n\n"
            f"Version: [cyan]{__version__}[/cyan]\n"
            "Python: 3.11+\n\n"
            "[bold]Entity kinds:[/bold]\n"
            "- organization, environment, domain, architecture\n"
            "- operatingsystem (\"name major.minor\")\n"
            "- ptable (optional on rows)",
            title="About",
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()
