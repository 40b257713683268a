"""GitHub client adapter for the githubkit library."""

from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Self

import structlog
from githubkit import Response
from githubkit.exception import GitHubException, PrimaryRateLimitExceeded, RequestFailed, SecondaryRateLimitExceeded

from github_mirror.synchronize.models import ConditionalResponse, ObjectKind, RateLimitStatus
from github_mirror.utils.constants import DEFAULT_PER_PAGE, MAX_EVENT_PAGES
from github_mirror.utils.github import parse_next_link, split_repository_in_configuration
from github_mirror.utils.helpers import format_github_timestamp
from github_mirror.utils.retry import is_rate_limited, retry_on_rate_limit

from .abc import MirrorClientBase
from .client import GitHubClient, get_github_client
from .exceptions import GitHubNotFoundError, GitHubRateLimitError, GitHubRequestError
from .rate_governor import RateGovernor

logger = structlog.get_logger(__name__)

Endpoint = Callable[..., Awaitable[Response[Any]]]


def _error_message(response: Response[Any]) -> str:
    try:
        body = response.json()
    except ValueError:
        return "no error message"
    if isinstance(body, dict):
        return str(body.get("message", body))
    return str(body)


def _request_error(exc: RequestFailed) -> GitHubRequestError:
    """Translate a failed githubkit request into the mirror's exception hierarchy."""
    status_code = exc.response.status_code
    message = f"GitHub {status_code} error: {_error_message(exc.response)}"
    if is_rate_limited(exc):
        retry_after = None
        if isinstance(exc, (PrimaryRateLimitExceeded, SecondaryRateLimitExceeded)) and exc.retry_after:
            retry_after = exc.retry_after.total_seconds()
        return GitHubRateLimitError(message, retry_after=retry_after, status_code=status_code)
    if status_code in (404, 410):
        return GitHubNotFoundError(message, status_code=status_code)
    return GitHubRequestError(message, status_code=status_code)


class GitHubMirrorAdapter(MirrorClientBase):
    """GitHub client adapter for one repository.

    Every request goes through the rate governor and every response updates it.
    Only GET requests are issued. Payloads are returned as the decoded JSON GitHub
    sent rather than githubkit's parsed models, so the mirror stores exactly what
    the API served.
    """

    def __init__(self, client: GitHubClient, owner: str, repo_name: str, governor: RateGovernor | None = None) -> None:
        """Initialize the GitHub client adapter with an already-initialized client."""
        self.client = client
        self.owner = owner
        self.repo_name = repo_name
        self.governor = governor or RateGovernor()

    @classmethod
    async def create(
        cls,
        repo: str,
        github_pat_token: str | None = None,
        github_api_url: str = "https://api.github.com",
        github_username: str | None = None,
        governor: RateGovernor | None = None,
    ) -> Self:
        """Create a new GitHub client adapter.

        Args:
            repo: Repository in 'owner/repo' format
            github_pat_token: Personal access token (optional, raises the request budget)
            github_api_url: GitHub API URL (defaults to https://api.github.com)
            github_username: Username advertised in the User-Agent string
            governor: Rate governor shared by every request of the run

        Returns:
            Configured GitHubMirrorAdapter instance
        """
        owner, repo_name = await split_repository_in_configuration(repo=repo)
        logger.info(
            "Creating client for GitHub instance and repository",
            github_api_url=github_api_url,
            owner=owner,
            repo_name=repo_name,
            authenticated=bool(github_pat_token),
        )
        client = await get_github_client(
            github_pat_token=github_pat_token,
            github_api_url=github_api_url,
            github_username=github_username,
        )
        return cls(client, owner, repo_name, governor=governor)

    @retry_on_rate_limit()
    async def _request(self, endpoint: Endpoint, **kwargs: Any) -> Response[Any]:
        """Issue one request through the governor, leaving githubkit exceptions to the retry decorator."""
        await self.governor.before_request()
        try:
            response = await endpoint(**kwargs)
        except RequestFailed as exc:
            self.governor.after_response(exc.response.headers)
            raise
        self.governor.after_response(response.headers)
        return response

    async def _call(self, endpoint: Endpoint, **kwargs: Any) -> Response[Any]:
        """Issue one request, returning 2xx and 304 responses and raising GitHubRequestError for everything else."""
        try:
            return await self._request(endpoint, **kwargs)
        except RequestFailed as exc:
            raise _request_error(exc) from exc
        except GitHubException as exc:
            raise GitHubRequestError(f"Error talking to GitHub: {exc}") from exc

    @staticmethod
    def _json(response: Response[Any]) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubRequestError("Invalid JSON in response from GitHub", status_code=response.status_code) from exc

    async def _paginate(self, endpoint: Endpoint, **params: Any) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield every page of a repository list endpoint while GitHub advertises a next page."""
        page: int = 1
        while True:
            response = await self._call(endpoint, owner=self.owner, repo=self.repo_name, per_page=DEFAULT_PER_PAGE, page=page, **params)
            items: list[dict[str, Any]] = self._json(response)
            yield items
            if not items or parse_next_link(response.headers.get("link")) is None:
                break
            page += 1

    async def _collect(self, endpoint: Endpoint, **params: Any) -> list[dict[str, Any]]:
        all_items: list[dict[str, Any]] = []
        async for items in self._paginate(endpoint, **params):
            all_items.extend(items)
        return all_items

    @staticmethod
    def _since(since: datetime | None) -> dict[str, str]:
        return {"since": format_github_timestamp(since)} if since is not None else {}

    async def get_rate_limit(self) -> RateLimitStatus:
        """Get the remaining core request budget and its reset time."""
        response = await self._call(self.client.rest.rate_limit.async_get)
        core = self._json(response)["resources"]["core"]
        return RateLimitStatus(remaining=int(core["remaining"]), reset=float(core["reset"]))

    async def list_issues(self, since: datetime | None = None) -> list[dict[str, Any]]:
        """List all issues (pull requests included) changed since ``since``, handling pagination."""
        return await self._collect(
            self.client.rest.issues.async_list_for_repo,
            state="all",
            sort="updated",
            direction="asc",
            **self._since(since),
        )

    async def iter_pull_request_pages(self) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield pages of pull requests, most recently updated first.

        The pulls endpoint has no ``since`` filter, so callers stop iterating once
        they reach pull requests older than what they need.
        """
        async for items in self._paginate(self.client.rest.pulls.async_list, state="all", sort="updated", direction="desc"):
            yield items

    async def list_repository_comments(self, review: bool, since: datetime | None = None) -> list[dict[str, Any]]:
        """List every issue comment (or pull request review comment) of the repository."""
        endpoint = self.client.rest.pulls.async_list_review_comments_for_repo if review else self.client.rest.issues.async_list_comments_for_repo
        return await self._collect(endpoint, sort="updated", direction="asc", **self._since(since))

    async def list_object_comments(self, number: int, review: bool, since: datetime | None = None) -> list[dict[str, Any]]:
        """List the comments of one issue, or the review comments of one pull request."""
        if review:
            return await self._collect(self.client.rest.pulls.async_list_review_comments, pull_number=number, **self._since(since))
        return await self._collect(self.client.rest.issues.async_list_comments, issue_number=number, **self._since(since))

    async def get_object(self, number: int, kind: ObjectKind, etag: str | None = None) -> ConditionalResponse:
        """Get one issue or pull request, returning ``not_modified`` when ``etag`` still matches."""
        if kind == ObjectKind.PULL_REQUEST:
            endpoint, params = self.client.rest.pulls.async_get, {"pull_number": number}
        else:
            endpoint, params = self.client.rest.issues.async_get, {"issue_number": number}

        headers = {"If-None-Match": etag} if etag else None
        try:
            response = await self._call(endpoint, owner=self.owner, repo=self.repo_name, headers=headers, **params)
        except GitHubRequestError as exc:
            if exc.status_code != 412 or not etag:
                raise
            logger.info("Stored freshness token rejected, fetching unconditionally", number=number, kind=kind.value)
            response = await self._call(endpoint, owner=self.owner, repo=self.repo_name, **params)
        if response.status_code == 304:
            return ConditionalResponse(not_modified=True, etag=etag)
        return ConditionalResponse(not_modified=False, payload=self._json(response), etag=response.headers.get("etag"))

    async def iter_event_pages(self, etag: str | None = None) -> AsyncIterator[ConditionalResponse]:
        """Yield pages of the repository events feed.

        Only the first request is conditional; when it comes back not modified a
        single ``not_modified`` page is yielded and iteration ends. Later pages
        carry the first page's freshness token.
        """
        endpoint = self.client.rest.activity.async_list_repo_events
        headers = {"If-None-Match": etag} if etag else None
        feed_etag = etag
        for page in range(1, MAX_EVENT_PAGES + 1):
            response = await self._call(
                endpoint,
                owner=self.owner,
                repo=self.repo_name,
                per_page=DEFAULT_PER_PAGE,
                page=page,
                headers=headers if page == 1 else None,
            )
            if response.status_code == 304:
                yield ConditionalResponse(not_modified=True, etag=etag)
                return
            if page == 1:
                feed_etag = response.headers.get("etag")
            next_url = parse_next_link(response.headers.get("link"))
            yield ConditionalResponse(not_modified=False, payload=self._json(response), etag=feed_etag, next_url=next_url)
            if next_url is None:
                return
