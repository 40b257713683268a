"""In-memory GitHub remote and helpers shared by the unit tests."""

import copy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator

import httpx

from github_mirror.github.abc import MirrorClientBase
from github_mirror.github.exceptions import GitHubNotFoundError, GitHubRequestError
from github_mirror.synchronize.models import Comment, ConditionalResponse, MirroredObject, ObjectKind, RateLimitStatus
from github_mirror.synchronize.storage import ShardedStorage
from github_mirror.utils.helpers import parse_github_timestamp

API = "https://api.github.com/repos/owner/repo"

RUN_STARTED_AT = datetime(2024, 1, 1, 23, 59, 59, tzinfo=timezone.utc)
"""Capture time of the run under test."""


def make_issue(number: int, updated_at: str, pull_request: bool = False, title: str | None = None) -> dict[str, Any]:
    """Issue listing representation of an issue (or of a pull request when ``pull_request``)."""
    issue: dict[str, Any] = {
        "number": number,
        "title": title or f"Issue {number}",
        "state": "open",
        "created_at": updated_at,
        "updated_at": updated_at,
    }
    if pull_request:
        issue["pull_request"] = {"url": f"{API}/pulls/{number}"}
    return issue


def make_comment(comment_id: int, number: int, created_at: str, review: bool = False, body: str = "comment") -> dict[str, Any]:
    """Comment representation; review comments point at their pull request."""
    comment: dict[str, Any] = {"id": comment_id, "body": body, "created_at": created_at, "updated_at": created_at}
    if review:
        comment["pull_request_url"] = f"{API}/pulls/{number}"
        comment["pull_request_review_id"] = 1
    else:
        comment["issue_url"] = f"{API}/issues/{number}"
    return comment


def make_event(event_type: str, number: int, created_at: str, pull_request: bool = False) -> dict[str, Any]:
    """Activity feed event touching object ``number``."""
    if event_type in ("PullRequestEvent", "PullRequestReviewEvent", "PullRequestReviewCommentEvent"):
        payload: dict[str, Any] = {"pull_request": {"number": number}}
    else:
        issue: dict[str, Any] = {"number": number}
        if pull_request:
            issue["pull_request"] = {"url": f"{API}/pulls/{number}"}
        payload = {"issue": issue}
    return {"id": f"{event_type}-{number}-{created_at}", "type": event_type, "created_at": created_at, "payload": payload}


class DummyResponse:
    """A githubkit response stand-in carrying a status, headers and an optional JSON body."""

    def __init__(self, status_code: int = 200, json_data: Any = None, headers: dict[str, str] | None = None) -> None:
        self.status_code = status_code
        self.headers = httpx.Headers(headers or {})
        self.raw_request = httpx.Request("GET", f"{API}/issues")
        self.raw_response = httpx.Response(status_code, headers=self.headers, request=self.raw_request)
        self.json_data = json_data

    def json(self) -> Any:
        if self.json_data is None:
            raise ValueError("Response has no JSON body")
        return self.json_data


def _changed_since(item: dict[str, Any], since: datetime | None) -> bool:
    return since is None or parse_github_timestamp(item["updated_at"]) >= since


class FakeGitHubRemote(MirrorClientBase):
    """A repository held in memory, answering the calls the mirror makes."""

    def __init__(self, page_size: int = 2) -> None:
        self.page_size = page_size
        self.issues: dict[int, dict[str, Any]] = {}
        self.pulls: dict[int, dict[str, Any]] = {}
        self.comments: dict[int, list[dict[str, Any]]] = {}
        self.review_comments: dict[int, list[dict[str, Any]]] = {}
        self.events: list[dict[str, Any]] = []
        self.events_version = 0
        self.failing: set[int] = set()
        self.removed: set[int] = set()
        self.feed_fails = False
        self.calls: list[tuple[Any, ...]] = []

    # Remote-side mutations

    def add_issue(self, number: int, updated_at: str) -> None:
        self.issues[number] = make_issue(number, updated_at)

    def add_pull_request(self, number: int, updated_at: str) -> None:
        self.issues[number] = make_issue(number, updated_at, pull_request=True)
        self.pulls[number] = {"number": number, "title": f"Pull request {number}", "updated_at": updated_at, "merged": False}

    def touch(self, number: int, updated_at: str) -> None:
        self.issues[number]["updated_at"] = updated_at
        if number in self.pulls:
            self.pulls[number]["updated_at"] = updated_at

    def add_comment(self, number: int, comment: dict[str, Any], review: bool = False) -> None:
        threads = self.review_comments if review else self.comments
        threads.setdefault(number, []).append(comment)

    def push_event(self, event: dict[str, Any]) -> None:
        """Add an event at the head of the feed."""
        self.events.insert(0, event)
        self.events_version += 1

    @property
    def events_etag(self) -> str:
        return f'W/"events-{self.events_version}"'

    def object_etag(self, number: int, kind: ObjectKind) -> str:
        payload = self.pulls[number] if kind == ObjectKind.PULL_REQUEST else self.issues[number]
        return f'W/"{kind.value}-{number}-{payload["updated_at"]}"'

    # MirrorClientBase

    async def get_rate_limit(self) -> RateLimitStatus:
        self.calls.append(("rate_limit",))
        return RateLimitStatus(remaining=5000, reset=0.0)

    async def list_issues(self, since: datetime | None = None) -> list[dict[str, Any]]:
        self.calls.append(("list_issues", since))
        changed = [copy.deepcopy(issue) for issue in self.issues.values() if _changed_since(issue, since)]
        return sorted(changed, key=lambda issue: issue["updated_at"])

    async def iter_pull_request_pages(self) -> AsyncIterator[list[dict[str, Any]]]:
        ordered = sorted(self.pulls.values(), key=lambda pull: pull["updated_at"], reverse=True)
        for start in range(0, len(ordered), self.page_size):
            self.calls.append(("pulls_page", start // self.page_size + 1))
            yield [copy.deepcopy(pull) for pull in ordered[start : start + self.page_size]]

    async def list_repository_comments(self, review: bool, since: datetime | None = None) -> list[dict[str, Any]]:
        self.calls.append(("list_repository_comments", review, since))
        threads = self.review_comments if review else self.comments
        changed = [copy.deepcopy(comment) for thread in threads.values() for comment in thread if _changed_since(comment, since)]
        return sorted(changed, key=lambda comment: comment["updated_at"])

    async def list_object_comments(self, number: int, review: bool, since: datetime | None = None) -> list[dict[str, Any]]:
        self.calls.append(("list_object_comments", number, review, since))
        threads = self.review_comments if review else self.comments
        return [copy.deepcopy(comment) for comment in threads.get(number, []) if _changed_since(comment, since)]

    async def get_object(self, number: int, kind: ObjectKind, etag: str | None = None) -> ConditionalResponse:
        self.calls.append(("get_object", number, kind, etag))
        if number in self.failing:
            raise GitHubRequestError(f"GitHub 502 error for {number}", status_code=502)
        if number in self.removed:
            raise GitHubNotFoundError(f"GitHub 404 error for {number}", status_code=404)
        current = self.object_etag(number, kind)
        if etag == current:
            return ConditionalResponse(not_modified=True, etag=etag)
        payload = self.pulls[number] if kind == ObjectKind.PULL_REQUEST else self.issues[number]
        return ConditionalResponse(not_modified=False, payload=copy.deepcopy(payload), etag=current)

    async def iter_event_pages(self, etag: str | None = None) -> AsyncIterator[ConditionalResponse]:
        self.calls.append(("events", etag))
        if self.feed_fails:
            raise GitHubRequestError("GitHub 503 error for events", status_code=503)
        if etag is not None and etag == self.events_etag:
            yield ConditionalResponse(not_modified=True, etag=etag)
            return
        for start in range(0, max(len(self.events), 1), self.page_size):
            self.calls.append(("events_page", start // self.page_size + 1))
            page = copy.deepcopy(self.events[start : start + self.page_size])
            has_next = start + self.page_size < len(self.events)
            yield ConditionalResponse(not_modified=False, payload=page, etag=self.events_etag, next_url="next" if has_next else None)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class RecordingStorage(ShardedStorage):
    """Sharded storage that remembers every write it performs."""

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        self.object_writes: list[int] = []
        self.thread_writes: list[int] = []
        self.summary_writes = 0

    def write_object(self, mirrored_object: MirroredObject) -> Path:
        path = super().write_object(mirrored_object)
        self.object_writes.append(mirrored_object.number)
        return path

    def write_thread(self, number: int, comments: list[Comment]) -> Path:
        path = super().write_thread(number, comments)
        self.thread_writes.append(number)
        return path

    def update_summary(self, entries: list[dict[str, Any]]) -> int:
        changed = super().update_summary(entries)
        if changed:
            self.summary_writes += 1
        return changed

    @property
    def payload_writes(self) -> int:
        return len(self.object_writes) + len(self.thread_writes) + self.summary_writes

    def reset(self) -> None:
        self.object_writes.clear()
        self.thread_writes.clear()
        self.summary_writes = 0
