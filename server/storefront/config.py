"""Configuration settings for the storefront catalog gateway."""

from pathlib import Path
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


def _find_env_file() -> str:
    """Find .env file - check current dir, then parent (repository root)."""
    current = Path.cwd()

    # Check current directory
    if (current / ".env").exists():
        return str(current / ".env")

    # Check parent directory (when running from server/)
    if (current.parent / ".env").exists():
        return str(current.parent / ".env")

    # Check two levels up (when running from server/storefront/)
    if (current.parent.parent / ".env").exists():
        return str(current.parent.parent / ".env")

    # Default to current directory
    return ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    port: int = 3002
    host: str = "0.0.0.0"
    debug: bool = False
    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]

    # Upstream catalog API
    api_base_url: str = "http://localhost:3000"
    api_token: str = ""
    request_timeout: float = 10.0  # seconds

    # Bearer token required by POST /api/changes (empty disables the check)
    admin_token: str = ""

    # Cache and refresh timing (in seconds)
    cache_ttl: float = 300.0  # 5 minutes
    refresh_delay: float = 0.5

    # Directory for persisted cache entries (empty keeps the cache in memory)
    cache_dir: str = ""

    # Shared change channel file (empty uses an in-process channel)
    channel_path: str = ""
    channel_poll_interval: float = 0.5

    class Config:
        env_file = _find_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def cache_path(self) -> Optional[Path]:
        """Get the cache directory as a Path, if configured."""
        return Path(self.cache_dir).expanduser() if self.cache_dir else None

    @property
    def change_channel_path(self) -> Optional[Path]:
        """Get the change channel file as a Path, if configured."""
        return Path(self.channel_path).expanduser() if self.channel_path else None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
