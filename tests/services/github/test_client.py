"""Tests for GitHub API client."""

from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import SecretStr

from ghmirror.conf.sync import CollectionKind
from ghmirror.services.github.client import GitHubAPIClient
from ghmirror.services.github.errors import DataShapeError, FetchFailed, TransportError, UpstreamStatusError


def make_client(handler: Callable[[httpx.Request], httpx.Response], sleep: AsyncMock) -> GitHubAPIClient:
    return GitHubAPIClient(
        token=SecretStr("test_token"),
        courtesy_delay=2.0,
        sleep=sleep,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_fetch_page_sends_listing_params(no_sleep: AsyncMock) -> None:
    """Test that listing requests carry state, page, per_page and the bearer token."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"number": 1}, {"number": 2}])

    async with make_client(handler, no_sleep) as client:
        items = await client.fetch_page(CollectionKind.PULLS, "ethereum/ERCs", page=3, page_size=30, state="all")

    assert items == [{"number": 1}, {"number": 2}]
    assert len(seen) == 1
    request = seen[0]
    assert request.url.path == "/repos/ethereum/ERCs/pulls"
    assert request.url.params["state"] == "all"
    assert request.url.params["page"] == "3"
    assert request.url.params["per_page"] == "30"
    assert request.headers["Authorization"] == "Bearer test_token"
    assert request.headers["Accept"] == "application/vnd.github+json"


@pytest.mark.asyncio
async def test_every_request_is_followed_by_courtesy_delay(no_sleep: AsyncMock) -> None:
    """Test the fixed pause after a successful request."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    async with make_client(handler, no_sleep) as client:
        await client.fetch_page(CollectionKind.ISSUES, "owner/repo", page=1)

    no_sleep.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_status_error_raises_upstream_status_error(no_sleep: AsyncMock) -> None:
    """Test that non-success statuses are surfaced as UpstreamStatusError and still delayed."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"message": "Bad Gateway"})

    async with make_client(handler, no_sleep) as client:
        with pytest.raises(UpstreamStatusError) as exc_info:
            await client.fetch_page(CollectionKind.PULLS, "owner/repo", page=4)

    error = exc_info.value
    assert isinstance(error, FetchFailed)
    assert error.status_code == 502
    assert error.collection == "pulls"
    assert error.id_or_page == 4
    assert isinstance(error.cause, httpx.HTTPStatusError)
    no_sleep.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_network_error_raises_transport_error(no_sleep: AsyncMock) -> None:
    """Test that connection failures are surfaced as TransportError and still delayed."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler, no_sleep) as client:
        with pytest.raises(TransportError) as exc_info:
            await client.fetch_item(CollectionKind.ISSUES, "owner/repo", 12)

    assert exc_info.value.collection == "issues"
    assert exc_info.value.id_or_page == 12
    no_sleep.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_timeout_raises_transport_error(no_sleep: AsyncMock) -> None:
    """Test that timeouts are not retried."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ReadTimeout("timed out", request=request)

    async with make_client(handler, no_sleep) as client:
        with pytest.raises(TransportError):
            await client.fetch_comments("owner/repo", 5)

    assert calls == 1


@pytest.mark.asyncio
async def test_fetch_item_returns_object(no_sleep: AsyncMock) -> None:
    """Test fetching a single pull request."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/owner/repo/pulls/5"
        return httpx.Response(200, json={"number": 5, "title": "Add thing"})

    async with make_client(handler, no_sleep) as client:
        item = await client.fetch_item(CollectionKind.PULLS, "owner/repo", 5)

    assert item == {"number": 5, "title": "Add thing"}


@pytest.mark.asyncio
async def test_fetch_item_rejects_list_body(no_sleep: AsyncMock) -> None:
    """Test that a list where an object is expected raises DataShapeError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    async with make_client(handler, no_sleep) as client:
        with pytest.raises(DataShapeError):
            await client.fetch_item(CollectionKind.PULLS, "owner/repo", 5)


@pytest.mark.asyncio
async def test_fetch_page_rejects_object_body(no_sleep: AsyncMock) -> None:
    """Test that an object where a list is expected raises DataShapeError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"message": "Not a list"})

    async with make_client(handler, no_sleep) as client:
        with pytest.raises(DataShapeError):
            await client.fetch_page(CollectionKind.PULLS, "owner/repo", page=1)


@pytest.mark.asyncio
async def test_fetch_comments_follows_pages(no_sleep: AsyncMock) -> None:
    """Test that comment threads longer than one page are collected in order."""
    pages = {
        "1": [{"id": i, "user": {"login": "a"}} for i in range(100)],
        "2": [{"id": 100 + i, "user": {"login": "b"}} for i in range(5)],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/owner/repo/issues/7/comments"
        assert request.url.params["per_page"] == "100"
        return httpx.Response(200, json=pages[request.url.params["page"]])

    async with make_client(handler, no_sleep) as client:
        comments = await client.fetch_comments("owner/repo", 7)

    assert len(comments) == 105
    assert [c["id"] for c in comments] == list(range(105))
    assert no_sleep.await_count == 2


@pytest.mark.asyncio
async def test_fetch_pull_files_single_page(no_sleep: AsyncMock) -> None:
    """Test that a short first page ends file collection."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/owner/repo/pulls/9/files"
        return httpx.Response(200, json=[{"filename": "README.md"}])

    async with make_client(handler, no_sleep) as client:
        files = await client.fetch_pull_files("owner/repo", 9)

    assert files == [{"filename": "README.md"}]
    assert no_sleep.await_count == 1


@pytest.mark.asyncio
async def test_client_requires_context_manager(mock_client: GitHubAPIClient) -> None:
    """Test that requests outside the context manager fail loudly."""
    with pytest.raises(RuntimeError, match="Client not initialized"):
        await mock_client.fetch_page(CollectionKind.PULLS, "owner/repo", page=1)
