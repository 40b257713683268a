"""Utility modules for shared functionality."""

from .constants import (
    DEFAULT_PER_PAGE,
    GITHUB_TIMESTAMP_FORMAT,
    SHARD_SIZE,
)
from .helpers import capture_timestamp, format_github_timestamp, parse_github_timestamp, utc_now
from .retry import retry_on_rate_limit

__all__ = [
    "DEFAULT_PER_PAGE",
    "GITHUB_TIMESTAMP_FORMAT",
    "SHARD_SIZE",
    "capture_timestamp",
    "format_github_timestamp",
    "parse_github_timestamp",
    "utc_now",
    "retry_on_rate_limit",
]
