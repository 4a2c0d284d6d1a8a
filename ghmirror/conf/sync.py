from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class CollectionKind(str, Enum):
    """Upstream collections that are mirrored, named after their API path segment."""

    PULLS = "pulls"
    ISSUES = "issues"


class ScheduleMode(str, Enum):
    """How the next sync cycle is timed."""

    FIXED_RATE = "fixed_rate"
    FIXED_DELAY = "fixed_delay"


def validate_repository(repo: str) -> str:
    """Check that a repository is given as owner/name and return it."""
    parts = repo.split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Repository must be in owner/name format: {repo!r}")
    return repo


class SyncSettings(BaseSettings):
    """Synchronization engine settings."""

    sync_repositories: list[str] = Field(
        default=["ethereum/EIPs", "ethereum/ERCs"],
        description="Repositories to mirror, in owner/name format, in the order they are walked",
    )
    sync_collections: list[CollectionKind] = Field(
        default=[CollectionKind.PULLS, CollectionKind.ISSUES],
        description="Collections walked for each repository, in order",
    )

    sync_page_size: int = Field(
        default=30,
        description="Items requested per page when listing a collection",
    )
    sync_state_filter: str = Field(
        default="all",
        description="Upstream state filter applied to collection listings (open, closed or all)",
    )

    sync_courtesy_delay: float = Field(
        default=2.0,
        description="Seconds to pause after every GitHub API request",
    )
    sync_interval_seconds: int = Field(
        default=12 * 60 * 60,
        description="Seconds between sync cycles",
    )
    sync_schedule_mode: ScheduleMode = Field(
        default=ScheduleMode.FIXED_RATE,
        description="fixed_rate measures the interval from cycle start, fixed_delay from cycle completion",
    )

    sync_dedupe_participants: bool = Field(
        default=False,
        description="Record each commenter once instead of once per comment",
    )
    sync_include_pr_contents: bool = Field(
        default=False,
        description="Also fetch commit and changed-file lists for pull requests",
    )

    @field_validator("sync_repositories")
    @classmethod
    def validate_repositories(cls, v: list[str]) -> list[str]:
        """Validate repositories are given as owner/name."""
        return [validate_repository(repo) for repo in v]

    @field_validator("sync_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Validate page size is accepted by the GitHub API."""
        if not 1 <= v <= 100:
            raise ValueError("Page size must be between 1 and 100")
        return v

    @field_validator("sync_state_filter")
    @classmethod
    def validate_state_filter(cls, v: str) -> str:
        if v not in ("open", "closed", "all"):
            raise ValueError("State filter must be one of: open, closed, all")
        return v

    @field_validator("sync_courtesy_delay", "sync_interval_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delays and intervals cannot be negative")
        return v

    def sync_pairs(self) -> list[tuple[str, CollectionKind]]:
        """Return the ordered (repository, collection) pairs walked by each cycle."""
        return [(repo, kind) for repo in self.sync_repositories for kind in self.sync_collections]
