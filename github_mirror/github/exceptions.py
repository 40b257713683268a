"""Exceptions raised by the GitHub HTTP client collaborator."""


class GitHubRequestError(Exception):
    """Raised when a GitHub API request fails (transport error or unexpected status)."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None) -> None:
        """Initializes the exception with the HTTP status code and URL, when known."""
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class GitHubNotFoundError(GitHubRequestError):
    """Raised when the requested object does not exist (404) or was removed (410)."""

    pass


class GitHubRateLimitError(GitHubRequestError):
    """Raised when GitHub rejects a request because a rate limit was hit."""

    def __init__(self, message: str, retry_after: float | None = None, status_code: int | None = None, url: str | None = None) -> None:
        """Initializes the exception with the number of seconds GitHub asked us to wait."""
        super().__init__(message, status_code=status_code, url=url)
        self.retry_after = retry_after
