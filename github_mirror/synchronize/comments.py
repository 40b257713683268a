"""Merges new and changed comments into the stored comment threads."""

from datetime import datetime

import structlog

from github_mirror.github.exceptions import GitHubNotFoundError, GitHubRequestError
from github_mirror.synchronize.context import RunContext
from github_mirror.synchronize.exceptions import StorageError
from github_mirror.synchronize.models import Comment, CommentOrigin, ObjectKind

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def sort_thread(comments: list[Comment]) -> list[Comment]:
    """Return the thread in canonical order: by creation time, then origin and id."""
    return sorted(comments, key=lambda comment: (comment.created_at, comment.origin.value, comment.id))


def merge_comment_thread(existing: list[Comment], fetched: list[Comment]) -> tuple[list[Comment], int, int]:
    """Merge ``fetched`` into ``existing`` by comment identity.

    A known comment is replaced in place, an unknown one is appended, and the
    result is re-sorted. Comments are never removed.

    Returns:
        The merged thread, the number of comments added and the number updated.
    """
    thread = list(existing)
    positions = {comment.key: index for index, comment in enumerate(thread)}
    added = 0
    updated = 0
    for comment in fetched:
        index = positions.get(comment.key)
        if index is None:
            positions[comment.key] = len(thread)
            thread.append(comment)
            added += 1
        elif thread[index] != comment:
            thread[index] = comment
            updated += 1
    return sort_thread(thread), added, updated


async def merge_comments(ctx: RunContext, number: int, is_pr: bool, since: datetime | None) -> bool:
    """Bring the stored comment thread of one object up to date.

    Ordinary comments, and review comments for pull requests, changed since
    ``since`` (the thread's own watermark) are fetched and merged. The thread
    file is only rewritten when a comment was added or changed. Returns True
    if it was.
    """
    existing = ctx.storage.load_thread(number)

    ordinary_comments = await ctx.client.list_object_comments(number, review=False, since=since)
    fetched = [Comment.from_payload(payload, CommentOrigin.ORDINARY) for payload in ordinary_comments]
    if is_pr:
        review_comments = await ctx.client.list_object_comments(number, review=True, since=since)
        fetched.extend(Comment.from_payload(payload, CommentOrigin.REVIEW) for payload in review_comments)

    thread, added, updated = merge_comment_thread(existing, fetched)
    kind = ObjectKind.PULL_REQUEST if is_pr else ObjectKind.ISSUE
    written = bool(added or updated)
    if written:
        logger.info(f"Writing {len(thread)} comments on issue {number} ({added + updated} updated)", number=number, added=added, updated=updated)
        ctx.storage.write_thread(number, thread)
    else:
        logger.debug("Comment thread unchanged", number=number, fetched=len(fetched))
    ctx.state.stage_thread_watermark(number, ctx.run_started_at, kind)
    return written


async def merge_comment_threads(ctx: RunContext, numbers: list[int]) -> set[int]:
    """Merge the comment threads of every object in ``numbers``, returning the numbers that failed."""
    failed: set[int] = set()
    for number in numbers:
        is_pr = ctx.kind_of(number) == ObjectKind.PULL_REQUEST
        try:
            written = await merge_comments(ctx, number, is_pr, ctx.state.comments_checked_at(number))
        except GitHubNotFoundError as exc:
            logger.warning("Object no longer exists upstream, keeping its comments", number=number, status_code=exc.status_code)
            continue
        except (GitHubRequestError, StorageError, KeyError, ValueError) as exc:
            logger.error("Failed to merge comments", number=number, error=str(exc), error_type=type(exc).__name__)
            ctx.result.record_failure("merge comments", exc, number=number)
            failed.add(number)
            continue
        if written:
            ctx.result.threads_written += 1
        else:
            ctx.result.threads_unchanged += 1
    return failed
