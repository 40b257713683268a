"""Pydantic Settings model for application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from github_mirror.utils.constants import DEFAULT_RATE_LIMIT_SAFETY_MARGIN


class Settings(BaseSettings):
    """Environment variable settings for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Generic application-wide settings
    DEBUG: bool = False

    # GitHub API settings
    GITHUB_API_URL: str = "https://api.github.com"
    REPO: str | None = None
    GITHUB_PAT_TOKEN: str | None = None
    GITHUB_USERNAME: str | None = None

    # Mirror settings
    MIRROR_DIR: Path = Path("mirror")
    RATE_LIMIT_SAFETY_MARGIN: float = DEFAULT_RATE_LIMIT_SAFETY_MARGIN


def get_settings() -> Settings:
    """Read the settings from the environment and the .env file."""
    return Settings()
