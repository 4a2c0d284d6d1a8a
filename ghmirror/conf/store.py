from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class StoreSettings(BaseSettings):
    """Local mirror database settings."""

    store_path: Path = Field(
        default=Path("ghmirror.db"),
        description="Path of the SQLite database holding mirrored pull requests and issues",
    )
