"""GitHub client factory."""

from logging import getLogger

from pydantic import SecretStr

from ghmirror.conf.settings import Settings

from .client import GitHubAPIClient

logger = getLogger(__name__)


def build_client(settings: Settings | None = None, token_override: str | None = None) -> GitHubAPIClient:
    """Return a GitHub API client configured from settings.

    Args:
        settings: Application settings (defaults to global settings)
        token_override: Optional token to use instead of the configured one

    Returns:
        Unopened GitHub API client; enter it with ``async with``

    Raises:
        ValueError: If no token is configured
    """
    if settings is None:
        from ghmirror.settings import settings as global_settings

        settings = global_settings

    if token_override:
        logger.info("Using token override for authentication")
        token = SecretStr(token_override)
    elif settings.github_token:
        token = settings.github_token
    else:
        raise ValueError("GitHub token not configured (set GITHUB_TOKEN)")

    return GitHubAPIClient(
        token,
        base_url=settings.github_api_url,
        courtesy_delay=settings.sync_courtesy_delay,
        timeout=settings.github_timeout,
    )
