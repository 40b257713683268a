"""General utility functions and helper classes."""

from datetime import datetime, timedelta, timezone

from github_mirror.utils.constants import GITHUB_TIMESTAMP_FORMAT


def utc_now() -> datetime:
    """Return the current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def capture_timestamp(now: datetime) -> datetime:
    """Return the watermark recorded for a run started at ``now``.

    One second is taken off so that activity landing in the same second as the
    run start is picked up again by the next run.
    """
    return now.replace(microsecond=0) - timedelta(seconds=1)


def format_github_timestamp(value: datetime) -> str:
    """Format a datetime the way the GitHub API expects in ``since`` parameters."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(GITHUB_TIMESTAMP_FORMAT)


def parse_github_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp returned by the GitHub API into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
