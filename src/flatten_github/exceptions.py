from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(eq=False)
class FlattenGithubError(Exception):
    """Base exception for errors in the flatten_github package."""

    @property
    def message(self) -> str:
        return "flatten_github failed."

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class InvalidInputError(FlattenGithubError):
    """Raised when a repository reference cannot be parsed into owner and name."""

    raw: str

    @property
    def message(self) -> str:
        return f"Invalid repository reference {self.raw!r}: expected a GitHub URL or 'owner/repo'."


@dataclass(eq=False)
class NotFoundError(FlattenGithubError):
    """Raised when a repository, branch or blob does not exist or is not visible."""

    resource: str
    authenticated: bool = False

    @property
    def message(self) -> str:
        if self.authenticated:
            return f"{self.resource} was not found, or the token does not have access to it (check its scopes)."
        return f"{self.resource} was not found. If it is private, supply a GitHub token."


@dataclass(eq=False)
class UnauthorizedError(FlattenGithubError):
    """Raised when GitHub rejects the supplied credential."""

    resource: str = ""

    @property
    def message(self) -> str:
        return "GitHub rejected the token (401). Check that it is valid and not expired."


@dataclass(eq=False)
class RateLimitedError(FlattenGithubError):
    """Raised when the GitHub API quota is exhausted."""

    authenticated: bool = False
    reset_at: int | None = None

    @property
    def message(self) -> str:
        when = ""
        if self.reset_at:
            when = f" (resets at {datetime.fromtimestamp(self.reset_at, tz=UTC).isoformat(timespec='seconds')})"
        if self.authenticated:
            return f"GitHub API rate limit reached{when}. Wait until the limit resets."
        return (
            f"GitHub API rate limit reached for anonymous requests{when}. "
            "Supply a GitHub token to raise the limit."
        )


@dataclass(eq=False)
class RemoteError(FlattenGithubError):
    """Raised for any other failed GitHub API call."""

    status: int | None
    detail: str = ""
    resource: str = ""

    @property
    def message(self) -> str:
        status = f"HTTP {self.status}" if self.status is not None else "request failed"
        target = f" for {self.resource}" if self.resource else ""
        detail = f": {self.detail}" if self.detail else ""
        return f"GitHub API error ({status}){target}{detail}"


@dataclass(eq=False)
class DecodeError(FlattenGithubError):
    """Raised when blob content cannot be converted to text."""

    content_id: str = ""
    reason: str = ""

    @property
    def message(self) -> str:
        return f"Blob {self.content_id or '<unknown>'} could not be decoded as text: {self.reason}"
