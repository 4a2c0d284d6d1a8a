"""Walk an upstream collection page by page and reconcile every item."""

from dataclasses import dataclass, field
from logging import getLogger
from typing import Any

from ghmirror.conf.sync import CollectionKind

from .gateway import CREATED, SKIPPED, UPDATED, PersistenceGateway
from .github.client import GitHubAPIClient
from .github.errors import SyncError
from .github.models import is_pull_request_payload, item_number, matches_collection, parse_upstream_item
from .reconciler import Skip, collection_mismatch_reason, reconcile
from .records import Record

logger = getLogger(__name__)


@dataclass
class WalkStats:
    """Statistics for one walk over a (repository, collection) pair."""

    repo: str
    kind: CollectionKind
    pages_fetched: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    finalized: int = 0
    failed: int = 0
    failed_items: list[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def items_seen(self) -> int:
        return self.created + self.updated + self.skipped + self.finalized + self.failed

    def record_outcome(self, outcome: str) -> None:
        if outcome == CREATED:
            self.created += 1
        elif outcome == UPDATED:
            self.updated += 1
        elif outcome == SKIPPED:
            self.skipped += 1


class PaginationWalker:
    """Drives reconciliation across whole collections of a repository."""

    def __init__(
        self,
        client: GitHubAPIClient,
        gateway: PersistenceGateway,
        page_size: int = 30,
        state: str = "all",
        include_pr_contents: bool = False,
        dedupe_participants: bool = False,
    ) -> None:
        """Initialize the walker.

        Args:
            client: Opened GitHub API client
            gateway: Persistence gateway over the record store
            page_size: Items requested per listing page
            state: Upstream state filter for listings
            include_pr_contents: Also fetch commits and changed files of pull requests
            dedupe_participants: Record each commenter once
        """
        self.client = client
        self.gateway = gateway
        self.page_size = page_size
        self.state = state
        self.include_pr_contents = include_pr_contents
        self.dedupe_participants = dedupe_participants

    async def walk_collection(self, repo: str, kind: CollectionKind) -> WalkStats:
        """Reconcile every item of one collection, starting at page 1.

        The walk ends at the first empty page. A failed page fetch aborts the
        walk; a failed item is logged and the walk moves on.

        Args:
            repo: Repository in owner/name format
            kind: Collection to walk

        Returns:
            Statistics of the walk
        """
        stats = WalkStats(repo=repo, kind=kind)
        page = 1

        while True:
            try:
                raw_items = await self.client.fetch_page(
                    kind, repo, page=page, page_size=self.page_size, state=self.state
                )
            except SyncError as e:
                logger.error(f"Error fetching {kind.value} on page {page} for {repo}: {e}")
                stats.aborted = True
                break

            stats.pages_fetched += 1
            if not raw_items:
                break

            for raw in raw_items:
                await self._process_listed_item(repo, kind, raw, stats)

            logger.info(f"Processed page {page} of {kind.value} for {repo}")
            page += 1

        logger.info(
            f"Walk of {repo} {kind.value} finished{' (aborted)' if stats.aborted else ''}: "
            f"{stats.pages_fetched} pages, {stats.items_seen} items, {stats.created} created, {stats.updated} updated, "
            f"{stats.skipped} skipped, {stats.finalized} finalized, {stats.failed} failed"
        )
        return stats

    async def _process_listed_item(
        self, repo: str, kind: CollectionKind, raw: dict[str, Any], stats: WalkStats
    ) -> None:
        label = raw.get("number", "?") if isinstance(raw, dict) else "?"
        try:
            number = item_number(raw)

            if kind == CollectionKind.ISSUES and is_pull_request_payload(raw):
                logger.debug(f"Skipping {repo} #{number} as it is a pull request, not an issue")
                stats.skipped += 1
                return

            existing = await self.gateway.find(kind, repo, number)
            if existing is not None:
                if existing.is_finalized:
                    logger.debug(f"{repo} {kind.value} #{number} is finalized, skipping")
                    stats.finalized += 1
                    return
                logger.debug(f"{repo} {kind.value} #{number} is still open, checking for updates")

            outcome = await self.sync_item(repo, kind, number, existing)
            stats.record_outcome(outcome)

        except SyncError as e:
            logger.warning(f"Error syncing {repo} {kind.value} #{label}: {e}")
            stats.failed += 1
            stats.failed_items.append(f"{repo}#{label}")

    async def sync_item(
        self,
        repo: str,
        kind: CollectionKind,
        number: int,
        existing: Record | None = None,
    ) -> str:
        """Fetch one item with its conversation and reconcile it into the store.

        Args:
            repo: Repository in owner/name format
            kind: Collection the item belongs to
            number: Item number
            existing: Stored record, if already looked up

        Returns:
            Outcome name (created, updated or skipped)

        Raises:
            SyncError: If fetching or parsing the item fails
        """
        raw = await self.client.fetch_item(kind, repo, number)
        item = parse_upstream_item(kind, raw)

        # Avoid fetching the thread of an item that will never be stored here
        if not matches_collection(kind, item):
            return await self.gateway.apply(kind, repo, number, Skip(collection_mismatch_reason(item)))

        comments = await self.client.fetch_comments(repo, number)

        commits = files = None
        if self.include_pr_contents and kind == CollectionKind.PULLS:
            commits = await self.client.fetch_pull_commits(repo, number)
            files = await self.client.fetch_pull_files(repo, number)

        action = reconcile(
            kind,
            item,
            comments,
            existing,
            commits=commits,
            files=files,
            dedupe_participants=self.dedupe_participants,
        )
        return await self.gateway.apply(kind, repo, number, action)

    async def refetch(self, repo: str, kind: CollectionKind, number: int) -> str:
        """Re-sync a single item even if its stored record is finalized.

        Raises:
            SyncError: If fetching or parsing the item fails
        """
        existing = await self.gateway.find(kind, repo, number)
        logger.info(f"Manually re-fetching {repo} {kind.value} #{number}")
        return await self.sync_item(repo, kind, number, existing)
