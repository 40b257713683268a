"""Event-based staleness detection from the repository activity feed."""

from contextlib import aclosing
from datetime import datetime
from typing import Any

import structlog

from github_mirror.github.exceptions import GitHubRequestError
from github_mirror.synchronize.context import RunContext
from github_mirror.synchronize.models import ObjectKind, StaleSet, StreamName, SyncWatermark, kind_of_issue_payload
from github_mirror.utils.helpers import parse_github_timestamp

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

EVENT_STREAMS: dict[str, StreamName] = {
    "IssuesEvent": StreamName.ISSUES,
    "PullRequestEvent": StreamName.PULL_REQUESTS,
    "IssueCommentEvent": StreamName.ISSUE_COMMENTS,
    "PullRequestReviewCommentEvent": StreamName.PULL_REQUEST_COMMENTS,
    "PullRequestReviewEvent": StreamName.PULL_REQUEST_COMMENTS,
}
"""Feed event types that make an object stale, and the stream they affect."""


def classify_event(event: dict[str, Any]) -> tuple[StreamName, int, ObjectKind] | None:
    """Map a feed event to the stream, object number and kind it affects.

    Returns None for event types that do not touch issues or pull requests.
    """
    stream = EVENT_STREAMS.get(event.get("type", ""))
    if stream is None:
        return None
    payload = event.get("payload") or {}

    if payload.get("issue"):
        number = payload["issue"].get("number")
        kind = kind_of_issue_payload(payload["issue"])
    elif payload.get("pull_request"):
        number = payload["pull_request"].get("number")
        kind = ObjectKind.PULL_REQUEST
    else:
        number = payload.get("number")
        kind = ObjectKind.ISSUE

    if number is None:
        logger.warning("Feed event carries no object number", event_id=event.get("id"), event_type=event.get("type"))
        return None
    if stream in (StreamName.PULL_REQUESTS, StreamName.PULL_REQUEST_COMMENTS):
        kind = ObjectKind.PULL_REQUEST
    return stream, int(number), kind


async def detect_from_events(ctx: RunContext, prior: SyncWatermark) -> StaleSet:
    """Work out the stale objects from the activity feed.

    The feed is polled conditionally on the token from the previous poll. Pages
    are read until an event older than the prior watermark shows up, which
    proves the feed overlaps with what the previous run already covered. The
    order of events within the feed is not relied upon: every event at or after
    the watermark is classified wherever it appears in the pages read.

    If the pages run out before such an event is seen, activity may have fallen
    out of the feed's retention window and an untrustworthy stale set is
    returned. Without a prior watermark nothing can overlap, so only the first
    page is read for its token. The new feed token and the capture time are
    staged whatever the outcome, unless the feed could not be read or parsed.
    """
    watermark: datetime | None = prior.last_checked_at
    stale = StaleSet()
    feed_token = prior.last_feed_token
    overlaps_previous_run = False
    events_seen = 0
    oldest_seen: datetime | None = None

    try:
        async with aclosing(ctx.client.iter_event_pages(prior.last_feed_token)) as pages:
            async for page in pages:
                if page.not_modified:
                    logger.info("Activity feed not modified since last poll", feed_token=feed_token)
                    ctx.state.stage_watermark(StreamName.EVENTS, ctx.run_started_at, feed_token)
                    return StaleSet()
                feed_token = page.etag

                for event in page.payload:
                    events_seen += 1
                    created_at = parse_github_timestamp(event["created_at"])
                    if oldest_seen is None or created_at < oldest_seen:
                        oldest_seen = created_at
                    if watermark is not None and created_at < watermark:
                        overlaps_previous_run = True
                        continue
                    classified = classify_event(event)
                    if classified is None:
                        continue
                    stream, number, kind = classified
                    ctx.note_kind(number, kind)
                    stale.add(stream, number)

                if overlaps_previous_run:
                    break
                if watermark is None:
                    # Nothing to overlap with; the first page already carries the feed token.
                    break
    except GitHubRequestError as exc:
        logger.warning("Could not read the activity feed, falling back to scanning", error=str(exc), status_code=exc.status_code)
        return StaleSet.untrustworthy()
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Malformed activity feed event, falling back to scanning", error=str(exc), error_type=type(exc).__name__)
        return StaleSet.untrustworthy()

    ctx.state.stage_watermark(StreamName.EVENTS, ctx.run_started_at, feed_token)

    if not overlaps_previous_run:
        logger.info(
            "Activity feed does not reach back to the previous run, falling back to scanning",
            events_seen=events_seen,
            oldest_seen=oldest_seen.isoformat() if oldest_seen else None,
            watermark=watermark.isoformat() if watermark else None,
        )
        return StaleSet.untrustworthy()

    logger.info(
        "Activity feed covers the gap since the previous run",
        events_seen=events_seen,
        issues=len(stale.issues),
        pull_requests=len(stale.pull_requests),
        issue_comments=len(stale.issue_comments),
        pull_request_comments=len(stale.pull_request_comments),
    )
    return stale
