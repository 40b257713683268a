"""Base ABC for the GitHub client consumed by the synchronization engine."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncIterator

from github_mirror.synchronize.models import ConditionalResponse, ObjectKind, RateLimitStatus


class MirrorClientBase(ABC):
    """Narrow interface of the remote API used by the mirror."""

    @abstractmethod
    async def get_rate_limit(self) -> RateLimitStatus:
        """Get the remaining core request budget and its reset time."""
        pass

    @abstractmethod
    async def list_issues(self, since: datetime | None = None) -> list[dict[str, Any]]:
        """List all issues and pull requests changed since ``since``, oldest change first."""
        pass

    @abstractmethod
    def iter_pull_request_pages(self) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield pages of pull requests, most recently changed first."""
        pass

    @abstractmethod
    async def list_repository_comments(self, review: bool, since: datetime | None = None) -> list[dict[str, Any]]:
        """List every comment of the repository changed since ``since``, oldest change first.

        Review comments on pull request diffs are listed when ``review`` is True,
        ordinary issue comments otherwise.
        """
        pass

    @abstractmethod
    async def list_object_comments(self, number: int, review: bool, since: datetime | None = None) -> list[dict[str, Any]]:
        """List the comments of one issue or pull request changed since ``since``."""
        pass

    @abstractmethod
    async def get_object(self, number: int, kind: ObjectKind, etag: str | None = None) -> ConditionalResponse:
        """Get the full representation of one issue or pull request, conditionally on ``etag``."""
        pass

    @abstractmethod
    def iter_event_pages(self, etag: str | None = None) -> AsyncIterator[ConditionalResponse]:
        """Yield pages of the repository activity feed; the first request is conditional on ``etag``."""
        pass
