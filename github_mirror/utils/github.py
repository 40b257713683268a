"""Contains utility functions for GitHub interactions."""

import re

NEXT_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="next"')

OBJECT_NUMBER_PATTERN = re.compile(r"/(?:issues|pulls)/(\d+)$")


async def split_repository_in_configuration(repo: str | None) -> tuple[str, str]:
    """Splits the repository in the configuration into owner and repository."""
    if repo is None:
        raise ValueError("A repository is required in config.")
    repo = repo.strip("/")
    parts = repo.split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError("Repository must be in the format 'owner/repo' with no leading/trailing slashes or extra parts.")
    owner, repository = parts
    return owner, repository


def parse_next_link(link_header: str | None) -> str | None:
    """Return the URL of the next page from a GitHub ``Link`` header, if any."""
    if not link_header:
        return None
    for part in link_header.split(","):
        match = NEXT_LINK_PATTERN.search(part)
        if match:
            return match.group(1)
    return None


def object_number_from_url(url: str | None) -> int | None:
    """Extract the issue or pull request number from an ``issue_url``/``pull_request_url``."""
    if not url:
        return None
    match = OBJECT_NUMBER_PATTERN.search(url.rstrip("/"))
    if match is None:
        return None
    return int(match.group(1))
