"""Async GitHub API client using httpx, throttled with a fixed courtesy delay."""

import asyncio
from collections.abc import Awaitable, Callable
from logging import getLogger
from typing import Any

import httpx
from pydantic import SecretStr

from ghmirror.conf.sync import CollectionKind

from .errors import DataShapeError, TransportError, UpstreamStatusError

logger = getLogger(__name__)

# GitHub caps per_page at 100 for sub-resource listings
SUBRESOURCE_PAGE_SIZE = 100


class GitHubAPIClient:
    """Async GitHub API client for reading pull requests, issues and comments.

    Every request is followed by a fixed pause, successful or not, so that a
    sequential caller never issues requests faster than one per courtesy delay.
    """

    def __init__(
        self,
        token: SecretStr,
        base_url: str = "https://api.github.com",
        courtesy_delay: float = 2.0,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize GitHub API client.

        Args:
            token: GitHub token sent as a Bearer credential
            base_url: Base URL for GitHub API (default: https://api.github.com)
            courtesy_delay: Seconds to pause after every request
            timeout: Request timeout in seconds
            sleep: Coroutine function used for the courtesy delay
            transport: Optional httpx transport (used by tests)
        """
        self.token = token.get_secret_value()
        self.base_url = base_url.rstrip("/")
        self.courtesy_delay = courtesy_delay
        self.timeout = timeout
        self._sleep = sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitHubAPIClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, url: str, collection: str, id_or_page: int, **kwargs: Any) -> Any:
        """GET a URL and decode its JSON body, then wait out the courtesy delay.

        Args:
            url: URL to request
            collection: Collection name used in error reports
            id_or_page: Item number or page index used in error reports
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            Decoded JSON body

        Raises:
            UpstreamStatusError: If GitHub answers with a non-success status
            TransportError: If the request fails at the network level or times out
            DataShapeError: If the body is not valid JSON
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use async with context manager")

        try:
            response = await self._client.request("GET", url, **kwargs)
            response.raise_for_status()
            if response.headers.get("X-RateLimit-Remaining") == "0":
                reset_time = response.headers.get("X-RateLimit-Reset")
                logger.warning(f"GitHub rate limit exhausted after GET {url}; resets at {reset_time}")
            try:
                return response.json()
            except ValueError as e:
                raise DataShapeError(f"Response from {url} is not valid JSON") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamStatusError(collection, id_or_page, e, e.response.status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(collection, id_or_page, e) from e
        finally:
            await self._sleep(self.courtesy_delay)

    async def _get_list(self, url: str, collection: str, id_or_page: int, **kwargs: Any) -> list[dict[str, Any]]:
        result = await self._get_json(url, collection, id_or_page, **kwargs)
        if not isinstance(result, list):
            raise DataShapeError(f"Expected a list from {url}, got {type(result).__name__}")
        return result

    async def _get_all_pages(self, url: str, collection: str, number: int) -> list[dict[str, Any]]:
        """Collect every page of a sub-resource listing, stopping at a short page."""
        page = 1
        items: list[dict[str, Any]] = []

        while True:
            batch = await self._get_list(
                url,
                collection,
                number,
                params={"per_page": SUBRESOURCE_PAGE_SIZE, "page": page},
            )
            items.extend(batch)

            if len(batch) < SUBRESOURCE_PAGE_SIZE:
                break

            page += 1

        return items

    async def fetch_page(
        self,
        kind: CollectionKind,
        repo: str,
        page: int,
        page_size: int = 30,
        state: str = "all",
    ) -> list[dict[str, Any]]:
        """Fetch one page of a repository's pull requests or issues.

        Args:
            kind: Collection to list
            repo: Repository in owner/name format
            page: Page index, starting at 1
            page_size: Items per page (max 100)
            state: Upstream state filter (open, closed, all)

        Returns:
            Ordered list of raw items; empty once past the last page

        Raises:
            FetchFailed: If the request fails
            DataShapeError: If the response is not a list
        """
        params: dict[str, str | int] = {
            "state": state,
            "page": page,
            "per_page": min(page_size, 100),
        }
        logger.debug(f"Fetching {kind.value} page {page} for {repo}")
        return await self._get_list(f"{self.base_url}/repos/{repo}/{kind.value}", kind.value, page, params=params)

    async def fetch_item(self, kind: CollectionKind, repo: str, number: int) -> dict[str, Any]:
        """Fetch full detail of a single pull request or issue.

        Raises:
            FetchFailed: If the request fails
            DataShapeError: If the response is not an object
        """
        result = await self._get_json(f"{self.base_url}/repos/{repo}/{kind.value}/{number}", kind.value, number)
        if not isinstance(result, dict):
            raise DataShapeError(f"Expected an object for {repo} {kind.value} #{number}, got {type(result).__name__}")
        return result

    async def fetch_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        """Fetch the full conversation thread of a pull request or issue.

        Pull requests share the issues comment endpoint.

        Raises:
            FetchFailed: If any page request fails
        """
        return await self._get_all_pages(f"{self.base_url}/repos/{repo}/issues/{number}/comments", "comments", number)

    async def fetch_pull_commits(self, repo: str, number: int) -> list[dict[str, Any]]:
        """Fetch the commits of a pull request.

        Raises:
            FetchFailed: If any page request fails
        """
        return await self._get_all_pages(f"{self.base_url}/repos/{repo}/pulls/{number}/commits", "commits", number)

    async def fetch_pull_files(self, repo: str, number: int) -> list[dict[str, Any]]:
        """Fetch the files changed by a pull request.

        Raises:
            FetchFailed: If any page request fails
        """
        return await self._get_all_pages(f"{self.base_url}/repos/{repo}/pulls/{number}/files", "files", number)
