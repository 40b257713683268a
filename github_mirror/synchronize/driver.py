"""Orchestrates one incremental synchronization run of a repository mirror."""

import time

import structlog

from github_mirror.configuration.models import SyncConfig
from github_mirror.github.adapter import GitHubMirrorAdapter
from github_mirror.github.exceptions import GitHubRequestError
from github_mirror.github.rate_governor import RateGovernor
from github_mirror.synchronize.comments import merge_comment_threads
from github_mirror.synchronize.context import RunContext
from github_mirror.synchronize.events import detect_from_events
from github_mirror.synchronize.exceptions import StorageError
from github_mirror.synchronize.models import ObjectKind, StaleSet, StreamName
from github_mirror.synchronize.objects import refresh_objects
from github_mirror.synchronize.results import SyncMode, SyncRunResult
from github_mirror.synchronize.scanner import scan_stale_comments, scan_stale_issues, scan_stale_pull_requests
from github_mirror.synchronize.state import SyncStateStore
from github_mirror.synchronize.storage import ShardedStorage
from github_mirror.utils.helpers import capture_timestamp, utc_now

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# Malformed listing entries fail the scan of their stream only.
SCAN_ERRORS = (GitHubRequestError, KeyError, TypeError, ValueError)


def _unique(*groups: list[int]) -> list[int]:
    """Concatenate number lists, dropping repeats but keeping first-seen order."""
    seen: dict[int, None] = {}
    for group in groups:
        for number in group:
            seen[number] = None
    return list(seen)


def _scan_failed(ctx: RunContext, operation: str, exc: Exception) -> None:
    logger.error(
        "Scan failed",
        operation=operation,
        error=str(exc),
        error_type=type(exc).__name__,
        status_code=getattr(exc, "status_code", None),
    )
    ctx.result.record_failure(operation, exc)


async def scan_for_stale_objects(ctx: RunContext) -> tuple[StaleSet, set[StreamName]]:
    """Compute the stale set with full listing scans.

    Returns the stale set and the streams whose scan completed. On the first run
    the comment scans are skipped: every scanned issue and pull request has its
    comments fetched anyway.
    """
    state = ctx.state
    stale = StaleSet()
    scanned: set[StreamName] = set()

    try:
        stale.extend(StreamName.ISSUES, await scan_stale_issues(ctx, state.last_checked_at(StreamName.ISSUES)))
        scanned.add(StreamName.ISSUES)
    except SCAN_ERRORS as exc:
        _scan_failed(ctx, "scan issues", exc)

    try:
        stale.extend(StreamName.PULL_REQUESTS, await scan_stale_pull_requests(ctx, state.last_checked_at(StreamName.PULL_REQUESTS)))
        scanned.add(StreamName.PULL_REQUESTS)
    except SCAN_ERRORS as exc:
        _scan_failed(ctx, "scan pull requests", exc)

    if ctx.result.first_run:
        logger.info("First run, fetching the comments of every scanned issue and pull request")
        for number in _unique(stale.issues, stale.pull_requests):
            if ctx.kind_of(number) == ObjectKind.PULL_REQUEST:
                stale.add(StreamName.PULL_REQUEST_COMMENTS, number)
            else:
                stale.add(StreamName.ISSUE_COMMENTS, number)
        if {StreamName.ISSUES, StreamName.PULL_REQUESTS} <= scanned:
            scanned.update({StreamName.ISSUE_COMMENTS, StreamName.PULL_REQUEST_COMMENTS})
        return stale, scanned

    for stream, is_review in ((StreamName.ISSUE_COMMENTS, False), (StreamName.PULL_REQUEST_COMMENTS, True)):
        try:
            numbers = await scan_stale_comments(ctx, is_review, state.last_checked_at(stream))
        except SCAN_ERRORS as exc:
            _scan_failed(ctx, f"scan {stream.value}", exc)
            continue
        stale.extend(stream, numbers)
        scanned.add(stream)

    return stale, scanned


async def synchronize(ctx: RunContext, full_scan: bool = False) -> SyncRunResult:
    """Run one synchronization pass and commit the resulting state.

    Stream watermarks are only staged for streams that were scanned and whose
    objects were all written successfully; the events watermark is dropped if
    anything failed. Everything staged is committed in one final step.
    """
    result = ctx.result
    state = ctx.state
    result.first_run = state.is_first_run

    if full_scan:
        result.mode = SyncMode.FULL_SCAN
        stale = StaleSet.untrustworthy()
    else:
        stale = await detect_from_events(ctx, state.watermark(StreamName.EVENTS))
        result.mode = SyncMode.EVENTS if stale.trustworthy else SyncMode.FALLBACK

    scanned: set[StreamName] = set()
    if not stale.trustworthy:
        stale, scanned = await scan_for_stale_objects(ctx)

    for number in stale.pull_requests + stale.pull_request_comments:
        ctx.note_kind(number, ObjectKind.PULL_REQUEST)

    objects = _unique(stale.issues, stale.pull_requests)
    logger.info("Refreshing stale objects", count=len(objects))
    failed_objects = await refresh_objects(ctx, objects)

    summary_written = True
    if ctx.summary_entries:
        try:
            result.summary_entries_updated = ctx.storage.update_summary(list(ctx.summary_entries.values()))
        except StorageError as exc:
            logger.error("Failed to write summary list", error=str(exc))
            result.record_failure("write summary list", exc)
            summary_written = False

    threads = _unique(stale.issue_comments, stale.pull_request_comments)
    logger.info("Merging stale comment threads", count=len(threads))
    failed_threads = await merge_comment_threads(ctx, threads)

    stream_failures = {
        StreamName.ISSUES: bool(failed_objects.intersection(stale.issues)) or not summary_written,
        StreamName.PULL_REQUESTS: bool(failed_objects.intersection(stale.pull_requests)),
        StreamName.ISSUE_COMMENTS: bool(failed_threads.intersection(stale.issue_comments)),
        StreamName.PULL_REQUEST_COMMENTS: bool(failed_threads.intersection(stale.pull_request_comments)),
    }
    for stream, has_failures in stream_failures.items():
        if stream in scanned and not has_failures:
            state.stage_watermark(stream, ctx.run_started_at)
        elif stream in scanned:
            logger.warning("Not advancing watermark, some objects failed", stream=stream.value)

    if result.partial_failure:
        state.unstage_watermark(StreamName.EVENTS)

    state.commit()
    result.committed = True
    return result


async def run_sync_workflow(config: SyncConfig) -> SyncRunResult:
    """Run the sync workflow: mirror everything changed upstream since the last run."""
    governor = RateGovernor(safety_margin=config.rate_limit_safety_margin)
    github_adapter = await GitHubMirrorAdapter.create(
        repo=config.repo,
        github_pat_token=config.github_pat_token,
        github_api_url=config.github_api_url,
        github_username=config.github_username,
        governor=governor,
    )
    await governor.initialize(github_adapter.get_rate_limit)

    state = SyncStateStore.load(config.mirror_dir)
    storage = ShardedStorage(config.mirror_dir)
    ctx = RunContext(
        client=github_adapter,
        state=state,
        storage=storage,
        run_started_at=capture_timestamp(utc_now()),
    )

    start_time = time.time()
    logger.info("Synchronizing mirror", repo=config.repo, mirror_dir=str(config.mirror_dir), run_started_at=ctx.run_started_at.isoformat())
    result = await synchronize(ctx, full_scan=config.full_scan)

    result.requests_made = governor.requests_made
    result.rate_limit_wait = governor.total_wait
    logger.info(
        "Synchronized mirror",
        repo=config.repo,
        mode=result.mode.value,
        duration=round(time.time() - start_time, 2),
        objects_refreshed=result.objects_refreshed,
        threads_written=result.threads_written,
        failures=result.failed,
        requests_made=result.requests_made,
    )
    return result
