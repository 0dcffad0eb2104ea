"""Runtime configuration loaded from the environment."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Designdesk settings (env prefix DESIGNDESK_)."""

    db_path: Path = Field(
        default_factory=lambda: Path.home() / ".designdesk" / "designdesk.db",
        description="SQLite database file",
    )
    auto_assign: bool = Field(default=True, description="Assign new requests on creation")
    poll_interval: float = Field(
        default=30.0, gt=0, description="Seconds between sweeps of the pending queue"
    )
    queue_page_size: int = Field(default=20, ge=1)
    queue_max_page_size: int = Field(default=200, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="DESIGNDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
