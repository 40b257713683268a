"""Fallback staleness scans over the full listings of each stream."""

from contextlib import aclosing
from datetime import datetime

import structlog

from github_mirror.synchronize.context import RunContext
from github_mirror.synchronize.models import ObjectKind, kind_of_issue_payload
from github_mirror.utils.github import object_number_from_url
from github_mirror.utils.helpers import parse_github_timestamp

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


async def scan_stale_issues(ctx: RunContext, watermark: datetime | None) -> list[int]:
    """Return every issue (pull requests included) changed since ``watermark``.

    The listing is filtered server side with ``since``. Listing entries are also
    queued for the summary list.
    """
    entries = await ctx.client.list_issues(since=watermark)
    numbers: dict[int, None] = {}
    for entry in entries:
        number = int(entry["number"])
        ctx.note_kind(number, kind_of_issue_payload(entry))
        numbers[number] = None
        ctx.queue_summary_entry(entry)
    logger.info("Scanned issues", since=watermark.isoformat() if watermark else None, stale_count=len(numbers))
    return list(numbers)


async def scan_stale_pull_requests(ctx: RunContext, watermark: datetime | None) -> list[int]:
    """Return every pull request changed since ``watermark``.

    There is no ``since`` filter on this listing; pages come most recently
    updated first, so the walk stops at the first pull request older than the
    watermark.
    """
    numbers: dict[int, None] = {}
    pages_read = 0
    async with aclosing(ctx.client.iter_pull_request_pages()) as pages:
        async for page in pages:
            pages_read += 1
            for entry in page:
                if watermark is not None and parse_github_timestamp(entry["updated_at"]) < watermark:
                    logger.info("Scanned pull requests", pages_read=pages_read, stale_count=len(numbers))
                    return list(numbers)
                number = int(entry["number"])
                ctx.note_kind(number, ObjectKind.PULL_REQUEST)
                numbers[number] = None
    logger.info("Scanned pull requests", pages_read=pages_read, stale_count=len(numbers))
    return list(numbers)


async def scan_stale_comments(ctx: RunContext, is_review: bool, watermark: datetime | None) -> list[int]:
    """Return the numbers of objects with comments changed since ``watermark``.

    Comments do not carry the number of the object they belong to; it is taken
    from the ``issue_url`` (or ``pull_request_url`` for review comments). The
    result may contain duplicates.
    """
    comments = await ctx.client.list_repository_comments(review=is_review, since=watermark)
    numbers: list[int] = []
    for comment in comments:
        url = comment.get("pull_request_url") if is_review else comment.get("issue_url")
        number = object_number_from_url(url)
        if number is None:
            logger.warning("Comment has no owning object", comment_id=comment.get("id"), url=url)
            continue
        if is_review:
            ctx.note_kind(number, ObjectKind.PULL_REQUEST)
        numbers.append(number)
    logger.info(
        "Scanned review comments" if is_review else "Scanned issue comments",
        since=watermark.isoformat() if watermark else None,
        comment_count=len(comments),
    )
    return numbers
