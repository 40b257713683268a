"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
from pathlib import Path

import typer
from dotenv import load_dotenv
from typer import Argument, Option
from typing_extensions import Annotated

from github_mirror.configuration.exceptions import RequiredConfigurationElementError
from github_mirror.configuration.reconcile import reconcile_sync_configuration
from github_mirror.synchronize.driver import run_sync_workflow
from github_mirror.synchronize.exceptions import StorageError
from github_mirror.synchronize.models import ObjectKind, StreamName
from github_mirror.synchronize.state import SyncStateStore
from github_mirror.utils.log_config import configure_logging

load_dotenv()

typer_app = typer.Typer(pretty_exceptions_show_locals=False, help="Incrementally mirror GitHub issues, pull requests and comments.")


@typer_app.command(name="sync")
def sync_cli(
    repo: Annotated[str | None, Argument(envvar="REPO", help="Repository name (owner/repo).")] = None,
    mirror_dir: Annotated[Path | None, Option(envvar="MIRROR_DIR", help="Directory holding the mirror.")] = None,
    github_api_url: Annotated[str | None, Option(envvar="GITHUB_API_URL", help="GitHub API URL.")] = None,
    github_pat_token: Annotated[str | None, Option(envvar="GITHUB_PAT_TOKEN", help="GitHub Personal Access Token.")] = None,
    github_username: Annotated[str | None, Option(envvar="GITHUB_USERNAME", help="GitHub username advertised in the User-Agent.")] = None,
    full_scan: Annotated[bool, Option("--full-scan", help="Skip the activity feed and scan every stream.")] = False,
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug mode.")] = False,
) -> None:
    """Mirror everything that changed upstream since the last run."""
    configure_logging(debug)
    try:
        config = asyncio.run(
            reconcile_sync_configuration(
                cli_repo=repo,
                cli_mirror_dir=mirror_dir,
                cli_github_api_url=github_api_url,
                cli_github_pat_token=github_pat_token,
                cli_github_username=github_username,
                cli_full_scan=full_scan,
                cli_debug=debug,
            )
        )
    except (RequiredConfigurationElementError, ValueError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(2) from exc
    if config.debug and not debug:
        configure_logging(config.debug)

    try:
        result = asyncio.run(run_sync_workflow(config))
    except Exception as exc:
        # Nothing was committed, so the previous state is intact and the run can simply be retried.
        typer.echo(f"Sync of {config.repo} failed before committing state: {exc}", err=True)
        raise typer.Exit(1) from exc

    for line in result.summary_lines():
        typer.echo(line)
    if result.partial_failure:
        typer.echo(f"{result.failed} item(s) failed and will be retried on the next run.", err=True)


@typer_app.command(name="status")
def status_cli(
    mirror_dir: Annotated[Path, Option(envvar="MIRROR_DIR", help="Directory holding the mirror.")] = Path("mirror"),
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug mode.")] = False,
) -> None:
    """Show the committed watermarks of a mirror without contacting GitHub."""
    configure_logging(debug)
    try:
        state = SyncStateStore.load(mirror_dir)
    except (StorageError, ValueError) as exc:
        typer.echo(f"Could not read sync state in {mirror_dir}: {exc}", err=True)
        raise typer.Exit(1) from exc

    typer.echo(f"Mirror: {mirror_dir.absolute()}")
    for stream in StreamName:
        watermark = state.watermark(stream)
        checked = watermark.last_checked_at.isoformat() if watermark.last_checked_at else "never"
        line = f"  {stream.value}: {checked}"
        if watermark.last_feed_token:
            line += f" (feed token {watermark.last_feed_token})"
        typer.echo(line)

    objects = state.committed.objects
    pull_requests = sum(1 for record in objects.values() if record.kind == ObjectKind.PULL_REQUEST)
    typer.echo(f"Tracked objects: {len(objects)} ({len(objects) - pull_requests} issues, {pull_requests} pull requests)")


def main() -> None:
    """Entry point of the github-mirror console script."""
    typer_app()


if __name__ == "__main__":
    main()
