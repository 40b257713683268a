"""Data models for the incremental synchronization engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, PositiveInt

from github_mirror.utils.helpers import parse_github_timestamp


class ObjectKind(str, Enum):
    """Kind of a mirrored object. Issues and pull requests share one number space."""

    ISSUE = "issue"
    PULL_REQUEST = "pull_request"


class StreamName(str, Enum):
    """Streams tracked by the sync state store, each with its own watermark."""

    ISSUES = "issues"
    PULL_REQUESTS = "pull_requests"
    ISSUE_COMMENTS = "issue_comments"
    PULL_REQUEST_COMMENTS = "pull_request_comments"
    EVENTS = "events"


REFRESHABLE_STREAMS: tuple[StreamName, ...] = (
    StreamName.ISSUES,
    StreamName.PULL_REQUESTS,
    StreamName.ISSUE_COMMENTS,
    StreamName.PULL_REQUEST_COMMENTS,
)
"""Streams whose stale objects are refreshed; the events stream only drives detection."""


class CommentOrigin(str, Enum):
    """Endpoint family a comment was fetched from."""

    ORDINARY = "ordinary"
    REVIEW = "review"


def kind_of_issue_payload(payload: dict[str, Any]) -> ObjectKind:
    """Return the kind of an issue-shaped payload; pull requests carry a ``pull_request`` member."""
    if payload.get("pull_request"):
        return ObjectKind.PULL_REQUEST
    return ObjectKind.ISSUE


class MirroredObject(BaseModel):
    """An issue or pull request as mirrored locally."""

    number: PositiveInt
    kind: ObjectKind
    freshness_token: str | None = None
    payload: dict[str, Any]


class Comment(BaseModel):
    """A single comment in a comment thread.

    The body of the comment is kept untouched in ``data``; only ``id``,
    ``created_at`` and the origin are used by the engine.
    """

    id: int
    origin: CommentOrigin
    created_at: datetime
    data: dict[str, Any]

    @property
    def key(self) -> tuple[CommentOrigin, int]:
        """Identity of the comment within a thread."""
        return (self.origin, self.id)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], origin: CommentOrigin) -> "Comment":
        """Build a comment from a GitHub API comment representation."""
        return cls(
            id=payload["id"],
            origin=origin,
            created_at=parse_github_timestamp(payload["created_at"]),
            data=payload,
        )


class SyncWatermark(BaseModel):
    """Watermark of one stream."""

    last_checked_at: datetime | None = None
    last_feed_token: str | None = None


class ObjectRecord(BaseModel):
    """Per-object entry of the state record."""

    kind: ObjectKind = ObjectKind.ISSUE
    etag: str | None = None
    comments_checked_at: datetime | None = None


class SyncStateRecord(BaseModel):
    """Everything persisted in the state record file."""

    watermarks: dict[StreamName, SyncWatermark] = {}
    objects: dict[int, ObjectRecord] = {}


@dataclass
class StaleSet:
    """Result of staleness detection.

    When ``trustworthy`` is False nothing was computed and the caller must fall
    back to a full scan; the per-stream queues are then meaningless. Each queue
    keeps first-seen order and holds a number at most once.
    """

    trustworthy: bool = True
    queues: dict[StreamName, dict[int, None]] = field(default_factory=lambda: {stream: {} for stream in REFRESHABLE_STREAMS})

    @classmethod
    def untrustworthy(cls) -> "StaleSet":
        """Return a stale set signalling that feed evidence was lost."""
        return cls(trustworthy=False)

    def _queue(self, stream: StreamName) -> dict[int, None]:
        if stream not in REFRESHABLE_STREAMS:
            raise ValueError(f"Stream {stream.value} has no stale queue")
        return self.queues[stream]

    def numbers(self, stream: StreamName) -> list[int]:
        """Return the queued object numbers of a refreshable stream, in first-seen order."""
        return list(self._queue(stream))

    def add(self, stream: StreamName, number: int) -> bool:
        """Queue ``number`` on ``stream`` unless it is already queued there."""
        queue = self._queue(stream)
        if number in queue:
            return False
        queue[number] = None
        return True

    def extend(self, stream: StreamName, numbers: Iterable[int]) -> None:
        for number in numbers:
            self.add(stream, number)

    def is_empty(self) -> bool:
        """Return True when no stream has anything queued."""
        return not any(self.queues.values())

    @property
    def issues(self) -> list[int]:
        return self.numbers(StreamName.ISSUES)

    @property
    def pull_requests(self) -> list[int]:
        return self.numbers(StreamName.PULL_REQUESTS)

    @property
    def issue_comments(self) -> list[int]:
        return self.numbers(StreamName.ISSUE_COMMENTS)

    @property
    def pull_request_comments(self) -> list[int]:
        return self.numbers(StreamName.PULL_REQUEST_COMMENTS)


@dataclass
class ConditionalResponse:
    """Outcome of a (possibly conditional) GET against the GitHub API."""

    not_modified: bool
    payload: Any = None
    etag: str | None = None
    next_url: str | None = None


@dataclass
class RateLimitStatus:
    """Remaining request budget and the epoch second at which it resets."""

    remaining: int
    reset: float
