import os

# Set required environment variables for testing BEFORE any ghmirror imports
# This must happen before settings are loaded
if "GITHUB_TOKEN" not in os.environ:
    os.environ["GITHUB_TOKEN"] = "test_token"

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from pydantic import SecretStr

from ghmirror.services.gateway import PersistenceGateway
from ghmirror.services.github.client import GitHubAPIClient
from ghmirror.services.store import RecordStore


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that returns immediately."""
    return AsyncMock()


@pytest.fixture
def mock_client(no_sleep: AsyncMock) -> GitHubAPIClient:
    """Create a test GitHub API client for mocking."""
    return GitHubAPIClient(token=SecretStr("test_token"), sleep=no_sleep)


@pytest_asyncio.fixture
async def store():
    """Fixture providing an in-memory record store."""
    async with RecordStore(":memory:") as record_store:
        yield record_store


@pytest.fixture
def gateway(store: RecordStore) -> PersistenceGateway:
    return PersistenceGateway(store)


@pytest.fixture
def make_pull() -> Callable[..., dict[str, Any]]:
    """Factory for raw pull request payloads as returned by the pulls endpoints."""

    def _make(
        number: int,
        closed_at: str | None = None,
        merged_at: str | None = None,
        labels: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        return {
            "number": number,
            "title": f"PR {number}",
            "body": f"Description of PR {number}",
            "state": "closed" if closed_at else "open",
            "labels": [{"id": i, "name": name} for i, name in enumerate(labels)],
            "user": {"login": "author"},
            "created_at": "2024-01-01T12:00:00Z",
            "updated_at": "2024-01-02T12:00:00Z",
            "closed_at": closed_at,
            "merged_at": merged_at,
        }

    return _make


@pytest.fixture
def make_issue() -> Callable[..., dict[str, Any]]:
    """Factory for raw issue payloads as returned by the issues endpoints."""

    def _make(
        number: int,
        closed_at: str | None = None,
        pull_request: bool = False,
        labels: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        raw: dict[str, Any] = {
            "number": number,
            "title": f"Issue {number}",
            "body": f"Description of issue {number}",
            "state": "closed" if closed_at else "open",
            "labels": [{"id": i, "name": name} for i, name in enumerate(labels)],
            "user": {"login": "reporter"},
            "created_at": "2024-01-01T12:00:00Z",
            "updated_at": "2024-01-03T12:00:00Z",
            "closed_at": closed_at,
        }
        if pull_request:
            raw["pull_request"] = {"url": f"https://api.github.com/repos/owner/repo/pulls/{number}", "merged_at": None}
        return raw

    return _make


@pytest.fixture
def make_comment() -> Callable[..., dict[str, Any]]:
    """Factory for raw issue comment payloads."""

    def _make(login: str, comment_id: int = 1, body: str = "Looks good") -> dict[str, Any]:
        return {"id": comment_id, "user": {"login": login}, "body": body}

    return _make
