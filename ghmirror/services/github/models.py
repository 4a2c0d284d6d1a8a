"""Upstream items, classified once when they leave the API client."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ghmirror.conf.sync import CollectionKind

from .errors import DataShapeError


@dataclass
class UpstreamPullRequest:
    """A pull request as reported by GitHub."""

    number: int
    title: str
    body: str | None
    labels: list[str]
    state: str
    author: str | None
    created_at: datetime
    updated_at: datetime | None
    closed_at: datetime | None
    merged_at: datetime | None


@dataclass
class UpstreamIssue:
    """An issue (never a pull request) as reported by GitHub."""

    number: int
    title: str
    body: str | None
    labels: list[str]
    state: str
    author: str | None
    created_at: datetime
    updated_at: datetime | None
    closed_at: datetime | None


UpstreamItem = UpstreamPullRequest | UpstreamIssue


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp into an aware datetime.

    Args:
        value: Timestamp string such as "2024-01-01T12:00:00Z", or None

    Returns:
        Parsed datetime, or None when the value is empty

    Raises:
        DataShapeError: If the value is not a valid timestamp
    """
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise DataShapeError(f"Invalid timestamp: {value!r}") from e


def item_number(raw: dict[str, Any]) -> int:
    """Return the identifier of a raw upstream item."""
    number = raw.get("number") if isinstance(raw, dict) else None
    if not isinstance(number, int) or isinstance(number, bool):
        raise DataShapeError(f"Upstream item has no integer number: {number!r}")
    return number


def is_pull_request_payload(raw: dict[str, Any]) -> bool:
    """Return True if an issues-collection payload is actually a pull request."""
    return raw.get("pull_request") is not None


def _require(raw: dict[str, Any], key: str) -> Any:
    if raw.get(key) is None:
        raise DataShapeError(f"Upstream item #{raw.get('number')} is missing {key!r}")
    return raw[key]


def _label_names(raw: dict[str, Any]) -> list[str]:
    labels = raw.get("labels") or []
    try:
        return [label["name"] for label in labels]
    except (KeyError, TypeError) as e:
        raise DataShapeError(f"Upstream item #{raw.get('number')} has malformed labels") from e


def _author(raw: dict[str, Any]) -> str | None:
    user = raw.get("user")
    if isinstance(user, dict):
        return user.get("login")
    return None


def parse_upstream_item(kind: CollectionKind, raw: dict[str, Any]) -> UpstreamItem:
    """Classify a raw payload as a pull request or an issue.

    GitHub numbers issues and pull requests from the same sequence and lists
    pull requests in the issues collection too, flagged with a "pull_request"
    object. Anything carrying that flag, or coming from the pulls collection,
    becomes an UpstreamPullRequest.

    Args:
        kind: Collection the payload was fetched from
        raw: Decoded JSON object returned by GitHub

    Returns:
        UpstreamPullRequest or UpstreamIssue

    Raises:
        DataShapeError: If a required field is missing or malformed
    """
    if not isinstance(raw, dict):
        raise DataShapeError(f"Expected an object for a {kind.value} item, got {type(raw).__name__}")

    number = item_number(raw)
    common = dict(
        number=number,
        title=_require(raw, "title"),
        body=raw.get("body"),
        labels=_label_names(raw),
        state=_require(raw, "state"),
        author=_author(raw),
        created_at=parse_timestamp(_require(raw, "created_at")),
        updated_at=parse_timestamp(raw.get("updated_at")),
        closed_at=parse_timestamp(raw.get("closed_at")),
    )

    if kind == CollectionKind.PULLS:
        return UpstreamPullRequest(merged_at=parse_timestamp(raw.get("merged_at")), **common)

    if is_pull_request_payload(raw):
        # Issue listings only carry merged_at inside the pull_request marker
        marker = raw["pull_request"] if isinstance(raw["pull_request"], dict) else {}
        return UpstreamPullRequest(merged_at=parse_timestamp(marker.get("merged_at")), **common)

    return UpstreamIssue(**common)


def matches_collection(kind: CollectionKind, item: UpstreamItem) -> bool:
    """Return True if a parsed item may be stored in the given collection."""
    if kind == CollectionKind.PULLS:
        return isinstance(item, UpstreamPullRequest)
    return isinstance(item, UpstreamIssue)
