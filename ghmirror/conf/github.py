from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class GitHubSettings(BaseSettings):
    """GitHub API configuration and authentication settings."""

    # Personal Access Token authentication
    github_token: SecretStr | None = Field(
        default=None,
        description="GitHub token sent as a Bearer credential on every API request",
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        description="Base URL for the GitHub REST API",
    )

    github_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single GitHub API request",
    )

    # Disable validation by default - only validate when actually talking to GitHub
    github_validate_on_init: bool = Field(
        default=False,
        description="Whether to validate GitHub auth config on initialization",
    )

    @model_validator(mode="after")
    def validate_auth_config(self) -> "GitHubSettings":
        """Validate that a token is set when validation is requested."""
        if not self.github_validate_on_init:
            return self

        if self.github_token is None:
            raise ValueError("github_token is required to access the GitHub API")
        return self
