# This file is intended to hold the setup for the authenticated githubkit client.

"""Sets up the githubkit client used to talk to the GitHub REST API."""

from typing import TypeAlias

from githubkit import GitHub
from githubkit.auth import TokenAuthStrategy, UnauthAuthStrategy

GitHubClient: TypeAlias = GitHub[TokenAuthStrategy] | GitHub[UnauthAuthStrategy]

USER_AGENT_PRODUCT = "github-mirror"

REQUEST_TIMEOUT = 60.0


def build_user_agent(github_username: str | None) -> str:
    """Build the User-Agent string.

    The API guide asks clients to include a GitHub username so that authors of
    misbehaving clients can be contacted.
    """
    if github_username:
        return f"{USER_AGENT_PRODUCT} (GitHub username {github_username})"
    return USER_AGENT_PRODUCT


async def get_github_client(
    github_pat_token: str | None,
    github_api_url: str,
    github_username: str | None = None,
) -> GitHubClient:
    """Returns a GitHub client, authenticated with a PAT when one is given.

    Supports custom base URL for GitHub Enterprise Server (GHES). Caching and
    githubkit's own retries are disabled: freshness tokens are managed by the
    mirror and rate limits by the rate governor and ``retry_on_rate_limit``.
    """
    auth = TokenAuthStrategy(github_pat_token) if github_pat_token else UnauthAuthStrategy()
    return GitHub(
        auth,
        base_url=github_api_url,
        user_agent=build_user_agent(github_username),
        timeout=REQUEST_TIMEOUT,
        http_cache=False,
        auto_retry=False,
    )
