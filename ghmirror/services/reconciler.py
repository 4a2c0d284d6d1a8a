"""Decide how one upstream observation changes the mirror."""

from dataclasses import dataclass, field
from logging import getLogger
from typing import Any

from ghmirror.conf.sync import CollectionKind

from .github.errors import DataShapeError
from .github.models import UpstreamIssue, UpstreamItem, UpstreamPullRequest, matches_collection
from .records import IssueRecord, PullRequestRecord, Record

logger = getLogger(__name__)


@dataclass
class Create:
    """Insert a record that was not stored before."""

    record: Record


@dataclass
class Update:
    """Apply a partial update to an existing record."""

    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class Skip:
    """Leave the mirror untouched."""

    reason: str = ""


Action = Create | Update | Skip


def participants_from_comments(comments: list[dict[str, Any]], dedupe: bool = False) -> list[str]:
    """Extract commenter logins from a comment thread.

    By default every comment contributes its author, so someone who comments
    three times is listed three times. With ``dedupe`` each login is kept once,
    in order of first appearance.

    Raises:
        DataShapeError: If a comment has no user login
    """
    participants: list[str] = []
    for comment in comments:
        user = comment.get("user") if isinstance(comment, dict) else None
        login = user.get("login") if isinstance(user, dict) else None
        if not login:
            raise DataShapeError(f"Comment {comment.get('id') if isinstance(comment, dict) else comment!r} has no user")
        participants.append(login)

    if dedupe:
        return list(dict.fromkeys(participants))
    return participants


def collection_mismatch_reason(item: UpstreamItem) -> str:
    if isinstance(item, UpstreamPullRequest):
        return f"#{item.number} is a pull request, not an issue"
    return f"#{item.number} is an issue, not a pull request"


def _conversation_fields(
    item: UpstreamItem, comments: list[dict[str, Any]], dedupe_participants: bool
) -> dict[str, Any]:
    participants = participants_from_comments(comments, dedupe=dedupe_participants)
    return {
        "labels": list(item.labels),
        "conversations": list(comments),
        "num_conversations": len(comments),
        "participants": participants,
        "num_participants": len(participants),
    }


def _pull_request_fields(
    item: UpstreamPullRequest,
    commits: list[dict[str, Any]] | None,
    files: list[dict[str, Any]] | None,
) -> dict[str, Any]:
    derived: dict[str, Any] = {
        "merge_date": item.merged_at,
        "merged_at": item.merged_at,
        "closed_at": item.closed_at,
    }
    if commits is not None:
        derived["commits"] = [_commit_summary(item.number, commit) for commit in commits]
        derived["num_commits"] = len(commits)
    if files is not None:
        derived["files_changed"] = [_file_name(item.number, file) for file in files]
        derived["num_files_changed"] = len(derived["files_changed"])
    return derived


def _commit_summary(number: int, commit: Any) -> dict[str, Any]:
    detail = commit.get("commit") if isinstance(commit, dict) else None
    author = commit.get("author") if isinstance(commit, dict) else None
    if not isinstance(detail, dict) or not isinstance(author, (dict, type(None))):
        raise DataShapeError(f"Pull request #{number} has a malformed commit: {commit!r}")
    return {
        "sha": commit.get("sha"),
        "message": detail.get("message"),
        "author": author.get("login") if author else None,
    }


def _file_name(number: int, file: Any) -> str:
    filename = file.get("filename") if isinstance(file, dict) else None
    if not isinstance(filename, str):
        raise DataShapeError(f"Pull request #{number} has a malformed changed file: {file!r}")
    return filename


def _issue_fields(item: UpstreamIssue) -> dict[str, Any]:
    return {
        "state": item.state,
        "closed_at": item.closed_at,
        "updated_at": item.updated_at,
    }


def reconcile(
    kind: CollectionKind,
    item: UpstreamItem,
    comments: list[dict[str, Any]],
    existing: Record | None,
    *,
    commits: list[dict[str, Any]] | None = None,
    files: list[dict[str, Any]] | None = None,
    dedupe_participants: bool = False,
) -> Action:
    """Map an upstream observation and the stored record to an action.

    Terminal timestamps only ever move from unset to set: when a record
    exists, ``closed_at`` and ``merged_at`` are included in the update only if
    the stored value is empty and upstream has one.

    Args:
        kind: Collection the record belongs to
        item: Parsed upstream item
        comments: Raw comment thread of the item
        existing: Stored record, if any
        commits: Raw pull request commits, when fetched
        files: Raw pull request files, when fetched
        dedupe_participants: Keep each commenter once

    Returns:
        Create, Update or Skip

    Raises:
        DataShapeError: If the comment thread is malformed
    """
    if not matches_collection(kind, item):
        return Skip(collection_mismatch_reason(item))

    derived = _conversation_fields(item, comments, dedupe_participants)
    if isinstance(item, UpstreamPullRequest):
        derived.update(_pull_request_fields(item, commits, files))
    else:
        derived.update(_issue_fields(item))

    if existing is None:
        if isinstance(item, UpstreamPullRequest):
            record: Record = PullRequestRecord(
                number=item.number,
                title=item.title,
                description=item.body,
                created_at=item.created_at,
                **derived,
            )
        else:
            record = IssueRecord(
                number=item.number,
                title=item.title,
                description=item.body,
                created_at=item.created_at,
                author=item.author,
                **derived,
            )
        return Create(record)

    for name in ("closed_at", "merged_at"):
        if name not in derived:
            continue
        if getattr(existing, name) is not None or derived[name] is None:
            if getattr(existing, name) is not None and derived[name] is None:
                logger.debug(f"#{item.number}: upstream cleared {name}, keeping stored value")
            del derived[name]

    return Update(derived)
