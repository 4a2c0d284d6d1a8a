import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from functools import wraps
from logging import getLogger
from typing import Any

import typer
from rich.console import Console

from .conf.settings import Settings
from .conf.sync import CollectionKind, validate_repository
from .services.formatter import format_cycle_result, format_status, show_progress
from .services.gateway import PersistenceGateway
from .services.github.auth import build_client
from .services.github.errors import SyncError
from .services.scheduler import SyncOrchestrator, SyncScheduler
from .services.store import RecordStore
from .services.walker import PaginationWalker
from .settings import settings

app = typer.Typer()
logger = getLogger(__name__)
console = Console()


def syncify(f: Callable[..., Any]) -> Callable[..., Any]:
    """This simple decorator converts an async function into a sync function,
    allowing it to work with Typer.
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


@asynccontextmanager
async def open_walker(config: Settings) -> AsyncIterator[PaginationWalker]:
    """Open the GitHub client and the record store and yield a walker over them.

    Raises:
        ValueError: If no GitHub token is configured
    """
    client = build_client(config)
    async with client, RecordStore(config.store_path) as store:
        yield PaginationWalker(
            client,
            PersistenceGateway(store),
            page_size=config.sync_page_size,
            state=config.sync_state_filter,
            include_pr_contents=config.sync_include_pr_contents,
            dedupe_participants=config.sync_dedupe_participants,
        )


async def run_schedule(config: Settings, max_cycles: int | None = None) -> None:
    """Run a sync cycle immediately and then on the configured interval."""
    async with open_walker(config) as walker:
        orchestrator = SyncOrchestrator(walker, config.sync_pairs())
        scheduler = SyncScheduler(
            orchestrator,
            interval=config.sync_interval_seconds,
            mode=config.sync_schedule_mode,
        )
        logger.info(
            f"Mirroring {len(orchestrator.pairs)} collections every {config.sync_interval_seconds}s "
            f"({config.sync_schedule_mode.value})"
        )
        await scheduler.run_forever(max_cycles=max_cycles)


def _select_pairs(
    config: Settings, repos: list[str] | None, kinds: list[CollectionKind] | None
) -> list[tuple[str, CollectionKind]]:
    if repos:
        config = config.model_copy(update={"sync_repositories": [validate_repository(r) for r in repos]})
    if kinds:
        config = config.model_copy(update={"sync_collections": kinds})
    return config.sync_pairs()


@app.command(help=f"Display the current installed version of {settings.project_name}.")
def version() -> None:
    from . import __version__

    typer.echo(f"{settings.project_name} - {__version__}")


@app.command(help="Mirror continuously: run a sync cycle now and then on the configured interval.")
def run() -> None:
    try:
        asyncio.run(run_schedule(settings))
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("Stopped.")


@app.command(help="Run a single sync cycle and print its statistics.")
@syncify
async def sync(
    repo: list[str] | None = typer.Option(
        None,
        "--repo",
        help="Repository to sync (owner/name). Can be specified multiple times. Default: configured repositories",
    ),
    kind: list[CollectionKind] | None = typer.Option(
        None,
        "--kind",
        help="Collection to sync. Can be specified multiple times. Default: configured collections",
    ),
) -> None:
    """Run a single sync cycle."""
    try:
        pairs = _select_pairs(settings, repo, kind)
        async with open_walker(settings) as walker:
            with show_progress(f"Syncing {len(pairs)} collections..."):
                result = await SyncOrchestrator(walker, pairs).run_cycle()
        format_cycle_result(result, console=console)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command(help="Re-fetch a single pull request or issue, even if it is finalized.")
@syncify
async def refetch(
    repo: str = typer.Argument(..., help="Repository in owner/name format"),
    kind: CollectionKind = typer.Argument(..., help="Collection the item belongs to"),
    number: int = typer.Argument(..., help="Pull request or issue number"),
) -> None:
    """Re-fetch a single item."""
    try:
        validate_repository(repo)
        async with open_walker(settings) as walker:
            outcome = await walker.refetch(repo, kind, number)
        console.print(f"{repo} {kind.value} #{number}: {outcome}")
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except SyncError as e:
        logger.exception("Re-fetch failed")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command(help="Show how many records are mirrored and finalized per collection.")
@syncify
async def status() -> None:
    """Show mirror status."""
    rows: list[tuple[str, CollectionKind, int, int]] = []
    async with RecordStore(settings.store_path) as store:
        for repo, kind in settings.sync_pairs():
            stored = await store.count(kind, repo)
            finalized = await store.count(kind, repo, finalized_only=True)
            rows.append((repo, kind, stored, finalized))
    format_status(rows, console=console)


def run_scheduler() -> None:
    """Entry point of the long-running mirror process; takes no arguments."""
    try:
        asyncio.run(run_schedule(settings))
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    except KeyboardInterrupt:
        logger.info("Mirror stopped by interrupt")


if __name__ == "__main__":
    app()
