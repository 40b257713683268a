"""Refreshes stale issues and pull requests from the remote."""

from enum import Enum
from typing import Any

import structlog

from github_mirror.github.exceptions import GitHubNotFoundError, GitHubRequestError
from github_mirror.synchronize.context import RunContext
from github_mirror.synchronize.exceptions import StorageError
from github_mirror.synchronize.models import MirroredObject, ObjectKind

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class RefreshOutcome(str, Enum):
    """Result of refreshing a single object."""

    REFRESHED = "refreshed"
    NOT_MODIFIED = "not_modified"
    MISSING = "missing"


async def fetch_listing_entry(ctx: RunContext, number: int) -> dict[str, Any] | None:
    """Fetch the issue representation of a pull request, which is what the summary list holds."""
    try:
        response = await ctx.client.get_object(number, ObjectKind.ISSUE)
    except GitHubNotFoundError as exc:
        logger.warning("Pull request has no issue representation upstream", number=number, status_code=exc.status_code)
        return None
    entry: dict[str, Any] = response.payload
    return entry


async def refresh_object(ctx: RunContext, number: int, kind: ObjectKind) -> RefreshOutcome:
    """Fetch one object conditionally and persist it when it changed.

    The stored freshness token is only sent when the payload file is still on
    disk. A new token is staged after the payload has been written. Objects
    removed upstream keep their local copy.

    A single issue has the same representation as an issue listing entry and
    goes straight to the summary list. A changed pull request whose listing
    entry was not seen this run also has its issue representation fetched, so
    the summary list follows pull requests in event-driven runs too.
    """
    etag = ctx.state.etag(number)
    if etag is not None and not ctx.storage.object_path(number).exists():
        logger.warning("Payload file missing, fetching unconditionally", number=number)
        etag = None

    try:
        response = await ctx.client.get_object(number, kind, etag)
    except GitHubNotFoundError as exc:
        logger.warning("Object no longer exists upstream, keeping local copy", number=number, kind=kind.value, status_code=exc.status_code)
        return RefreshOutcome.MISSING

    if response.not_modified:
        logger.debug("Object not modified", number=number, kind=kind.value)
        return RefreshOutcome.NOT_MODIFIED

    summary_entry: dict[str, Any] | None = response.payload
    if kind == ObjectKind.PULL_REQUEST:
        summary_entry = None if number in ctx.summary_entries else await fetch_listing_entry(ctx, number)

    mirrored_object = MirroredObject(number=number, kind=kind, freshness_token=response.etag, payload=response.payload)
    ctx.storage.write_object(mirrored_object)
    ctx.state.stage_object(number, kind, response.etag)
    if summary_entry is not None:
        ctx.queue_summary_entry(summary_entry)
    logger.info("Refreshed object", number=number, kind=kind.value)
    return RefreshOutcome.REFRESHED


async def refresh_objects(ctx: RunContext, numbers: list[int]) -> set[int]:
    """Refresh every object in ``numbers``, returning the numbers that failed.

    A failure is logged and recorded on the run result; processing carries on
    with the next object.
    """
    failed: set[int] = set()
    for number in numbers:
        kind = ctx.kind_of(number)
        try:
            outcome = await refresh_object(ctx, number, kind)
        except (GitHubRequestError, StorageError, KeyError, ValueError) as exc:
            logger.error("Failed to refresh object", number=number, kind=kind.value, error=str(exc), error_type=type(exc).__name__)
            ctx.result.record_failure("refresh object", exc, number=number)
            failed.add(number)
            continue
        if outcome == RefreshOutcome.REFRESHED:
            ctx.result.objects_refreshed += 1
        elif outcome == RefreshOutcome.NOT_MODIFIED:
            ctx.result.objects_not_modified += 1
        else:
            ctx.result.objects_missing += 1
    return failed
