"""Reconciles configuration between CLI arguments and environment variables."""

from pathlib import Path

import structlog

from github_mirror.configuration.env import Settings, get_settings
from github_mirror.configuration.exceptions import RequiredConfigurationElementError
from github_mirror.configuration.models import SyncConfig
from github_mirror.utils.github import split_repository_in_configuration

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


async def reconcile_sync_configuration(
    cli_repo: str | None = None,
    cli_mirror_dir: Path | None = None,
    cli_github_api_url: str | None = None,
    cli_github_pat_token: str | None = None,
    cli_github_username: str | None = None,
    cli_full_scan: bool = False,
    cli_debug: bool = False,
    settings: Settings | None = None,
) -> SyncConfig:
    """Merge CLI arguments over environment settings into a SyncConfig.

    Args:
        cli_repo: Repository in 'owner/repo' format given on the command line.
        cli_mirror_dir: Mirror directory given on the command line.
        cli_github_api_url: GitHub API URL given on the command line.
        cli_github_pat_token: GitHub PAT given on the command line.
        cli_github_username: GitHub username given on the command line.
        cli_full_scan: Skip the activity feed and scan every stream.
        cli_debug: Enable debug logging.
        settings: Environment settings; read from the environment when omitted.

    Raises:
        RequiredConfigurationElementError: If no repository is configured.
        ValueError: If the repository is not in 'owner/repo' format.

    Returns:
        SyncConfig: The reconciled configuration.
    """
    settings = settings or get_settings()

    repo = cli_repo or settings.REPO
    if not repo:
        raise RequiredConfigurationElementError(name="Repository", cli_name="repo", env_name="REPO")
    await split_repository_in_configuration(repo)

    github_pat_token = cli_github_pat_token or settings.GITHUB_PAT_TOKEN
    if not github_pat_token:
        logger.warning("No GitHub token configured, requests are unauthenticated and share a much smaller rate limit")

    return SyncConfig(
        debug=cli_debug or settings.DEBUG,
        mirror_dir=cli_mirror_dir or settings.MIRROR_DIR,
        repo=repo.strip("/"),
        github_api_url=cli_github_api_url or settings.GITHUB_API_URL,
        github_pat_token=github_pat_token,
        github_username=cli_github_username or settings.GITHUB_USERNAME,
        full_scan=cli_full_scan,
        rate_limit_safety_margin=settings.RATE_LIMIT_SAFETY_MARGIN,
    )
