from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

from ghmirror.conf.sync import CollectionKind


@dataclass
class PullRequestRecord:
    """Mirrored pull request, keyed by number within its repository."""

    number: int
    title: str
    description: str | None
    created_at: datetime
    labels: list[str] = field(default_factory=list)
    conversations: list[dict[str, Any]] = field(default_factory=list)
    num_conversations: int = 0
    participants: list[str] = field(default_factory=list)
    num_participants: int = 0
    commits: list[dict[str, Any]] = field(default_factory=list)
    num_commits: int = 0
    files_changed: list[str] = field(default_factory=list)
    num_files_changed: int = 0
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    merge_date: datetime | None = None

    @property
    def is_finalized(self) -> bool:
        """True once both terminal timestamps are recorded.

        A pull request closed without merging never gets merged_at, so it is
        not finalized and keeps being re-checked.
        """
        return self.closed_at is not None and self.merged_at is not None


@dataclass
class IssueRecord:
    """Mirrored issue, keyed by number within its repository."""

    number: int
    title: str
    description: str | None
    created_at: datetime
    state: str
    author: str | None
    updated_at: datetime | None = None
    labels: list[str] = field(default_factory=list)
    conversations: list[dict[str, Any]] = field(default_factory=list)
    num_conversations: int = 0
    participants: list[str] = field(default_factory=list)
    num_participants: int = 0
    closed_at: datetime | None = None

    @property
    def is_finalized(self) -> bool:
        return self.closed_at is not None


Record = PullRequestRecord | IssueRecord

RECORD_TYPES: dict[CollectionKind, type[PullRequestRecord] | type[IssueRecord]] = {
    CollectionKind.PULLS: PullRequestRecord,
    CollectionKind.ISSUES: IssueRecord,
}

# Fields written once at creation and never part of an update
IMMUTABLE_FIELDS = frozenset({"number"})


def record_type(kind: CollectionKind) -> type[PullRequestRecord] | type[IssueRecord]:
    return RECORD_TYPES[kind]


def record_field_names(kind: CollectionKind) -> list[str]:
    """Return the stored field names of a collection's record, in declaration order."""
    return [f.name for f in fields(record_type(kind))]
