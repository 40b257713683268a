"""Models for configuration between CLI arguments and environment variables."""

from dataclasses import dataclass
from pathlib import Path

from github_mirror.utils.constants import DEFAULT_RATE_LIMIT_SAFETY_MARGIN


@dataclass
class BaseConfig:
    """Configuration shared by every command of the GitHub Mirror CLI."""

    debug: bool
    mirror_dir: Path


@dataclass
class SyncConfig(BaseConfig):
    """Configuration class for the sync command."""

    repo: str
    github_api_url: str
    github_pat_token: str | None
    github_username: str | None
    full_scan: bool = False
    rate_limit_safety_margin: float = DEFAULT_RATE_LIMIT_SAFETY_MARGIN
