from pydantic_settings import SettingsConfigDict

from .github import GitHubSettings
from .store import StoreSettings
from .sync import SyncSettings


class Settings(GitHubSettings, StoreSettings, SyncSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    project_name: str = "ghmirror"
    debug: bool = False
