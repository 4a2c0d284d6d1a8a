from logging import getLogger

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ghmirror.conf.sync import CollectionKind

from .scheduler import CycleResult

logger = getLogger(__name__)


def format_cycle_result(result: CycleResult, console: Console | None = None) -> None:
    """Display per-collection statistics of a sync cycle using Rich.

    Args:
        result: Result of the cycle
        console: Console to print to (default: a new stdout console)
    """
    console = console or Console()

    if not result.walks and not result.errors:
        console.print(
            Panel(
                "[yellow]No repositories are configured for syncing.[/yellow]",
                title="Nothing to do",
                border_style="yellow",
            )
        )
        return

    table = Table(title="Sync Cycle", show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="white")
    table.add_column("Collection", style="cyan", no_wrap=True)
    table.add_column("Pages", justify="right")
    table.add_column("Created", style="green", justify="right")
    table.add_column("Updated", style="blue", justify="right")
    table.add_column("Skipped", style="dim", justify="right")
    table.add_column("Finalized", style="dim", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Status", no_wrap=True)

    for walk in result.walks:
        failed_display = f"[red]{walk.failed}[/red]" if walk.failed else "0"
        status_display = "[red]aborted[/red]" if walk.aborted else "[green]complete[/green]"
        table.add_row(
            walk.repo,
            walk.kind.value,
            str(walk.pages_fetched),
            str(walk.created),
            str(walk.updated),
            str(walk.skipped),
            str(walk.finalized),
            failed_display,
            status_display,
        )

    console.print(table)

    for error in result.errors:
        console.print(f"[red]Error:[/red] {error}")

    console.print(f"[dim]Cycle finished in {result.duration_seconds:.1f}s[/dim]")


def format_status(rows: list[tuple[str, CollectionKind, int, int]], console: Console | None = None) -> None:
    """Display stored and finalized record counts per repository and collection.

    Args:
        rows: (repository, collection, stored, finalized) tuples
        console: Console to print to (default: a new stdout console)
    """
    console = console or Console()

    table = Table(title="Mirror Status", show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="white")
    table.add_column("Collection", style="cyan", no_wrap=True)
    table.add_column("Stored", justify="right")
    table.add_column("Finalized", style="green", justify="right")
    table.add_column("Open", style="blue", justify="right")

    for repo, kind, stored, finalized in rows:
        table.add_row(repo, kind.value, str(stored), str(finalized), str(stored - finalized))

    console.print(table)


def show_progress(message: str) -> Progress:
    """Create and return a progress spinner.

    Args:
        message: Message to display with spinner

    Returns:
        Progress context manager
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
    )
    progress.add_task(description=message, total=None)
    return progress
