from __future__ import annotations

import base64
import re
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote

import httpx

from flatten_github.config import (
    BINARY_PLACEHOLDER,
    GITHUB_API_BASE,
    GITHUB_API_VERSION,
    USER_AGENT,
    RepositoryInfo,
    RepositoryReference,
    TreeEntry,
    TreeListing,
)
from flatten_github.exceptions import (
    DecodeError,
    FlattenGithubError,
    InvalidInputError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
    UnauthorizedError,
)
from flatten_github.logging import logger

if TYPE_CHECKING:
    from types import TracebackType

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_REF_MARKERS = ("/tree/", "/blob/")


def parse_repository_reference(raw: str) -> RepositoryReference:
    """Normalize a GitHub URL or ``owner/repo`` shorthand.

    Accepted forms include ``owner/repo``, ``https://github.com/owner/repo``,
    ``www.github.com/owner/repo.git``, ``git@github.com:owner/repo.git`` and
    browser URLs pointing into the repository (``/tree/<ref>``, ``/blob/<ref>/path``).

    Args:
        raw (str): the reference as typed by the user

    Raises:
        InvalidInputError: if the host is not github.com or fewer than two
            non-empty path segments remain.

    Returns:
        RepositoryReference: the owner and name of the repository
    """
    text = (raw or "").strip()
    text = _SCHEME_RE.sub("", text)
    if text.lower().startswith("git@"):
        text = text[len("git@") :].replace(":", "/", 1)
    if text.lower().startswith("www."):
        text = text[len("www.") :]
    host, _, rest = text.partition("/")
    # GitHub account names cannot contain a dot, so a dotted first segment is a host
    if "." in host:
        if host.lower().partition(":")[0] != "github.com":
            raise InvalidInputError(raw=raw)
        text = rest
    text = re.split(r"[?#]", text, maxsplit=1)[0]
    for marker in _REF_MARKERS:
        idx = text.find(marker)
        if idx != -1:
            text = text[:idx]
    text = text.strip("/")

    parts = [p for p in text.split("/") if p]
    if len(parts) < 2:  # noqa: PLR2004
        raise InvalidInputError(raw=raw)
    owner, name = parts[0], parts[1]
    name = name.removesuffix(".git")
    if not name:
        raise InvalidInputError(raw=raw)
    return RepositoryReference(owner=owner, name=name)


def _decode(content: str, encoding: str, content_id: str) -> str:
    try:
        if encoding == "base64":
            raw = base64.b64decode("".join(content.split()), validate=True)
        elif encoding in {"utf-8", "utf8"}:
            raw = content.encode("utf-8")
        else:
            raise DecodeError(content_id=content_id, reason=f"unsupported transport encoding {encoding!r}")
        return raw.decode("utf-8")
    except ValueError as e:
        raise DecodeError(content_id=content_id, reason=str(e)) from e


def decode_blob_content(
    content: str | None,
    *,
    encoding: str = "base64",
    content_id: str = "",
    strict: bool = False,
) -> str:
    """Turn the transport representation of a blob into text.

    Args:
        content (str | None): blob payload as returned by the API (base64 with line breaks)
        encoding (str): transport encoding reported by the API
        content_id (str): blob SHA, used in log events and errors
        strict (bool): raise instead of returning the placeholder

    Raises:
        DecodeError: only when `strict` is True and the content is not UTF-8 text.

    Returns:
        str: the decoded text, or ``BINARY_PLACEHOLDER`` for binary or corrupt content
    """
    try:
        return _decode(content or "", encoding, content_id)
    except DecodeError as e:
        if strict:
            raise
        logger.warning("blob_decode_failed", content_id=content_id, reason=e.reason)
        return BINARY_PLACEHOLDER


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        return str(payload.get("message", ""))
    return ""


def _reset_epoch(response: httpx.Response) -> int | None:
    value = response.headers.get("X-RateLimit-Reset")
    try:
        return int(value) if value else None
    except ValueError:
        return None


def _is_rate_limited(response: httpx.Response, detail: str) -> bool:
    if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
        return True
    if response.status_code != httpx.codes.FORBIDDEN:
        return False
    return response.headers.get("X-RateLimit-Remaining") == "0" or "rate limit" in detail.lower()


class GitHubClient:
    """Async wrapper around the three GitHub REST calls the pipeline needs.

    Use it as an async context manager so the underlying connection pool is
    closed::

        async with GitHubClient(token) as client:
            info = await client.resolve_repository(ref)
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        api_base: str = GITHUB_API_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = (token or "").strip() or None
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._client = httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _error_for(self, response: httpx.Response, resource: str) -> FlattenGithubError:
        detail = _error_detail(response)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            return UnauthorizedError(resource=resource)
        if _is_rate_limited(response, detail):
            return RateLimitedError(authenticated=self.authenticated, reset_at=_reset_epoch(response))
        if response.status_code == httpx.codes.NOT_FOUND:
            return NotFoundError(resource=resource, authenticated=self.authenticated)
        return RemoteError(status=response.status_code, detail=detail, resource=resource)

    async def _get_json(self, url: str, *, resource: str, params: dict[str, str] | None = None) -> Any:  # noqa: ANN401
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise RemoteError(status=None, detail=str(e) or type(e).__name__, resource=resource) from e
        if not response.is_success:
            raise self._error_for(response, resource)
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(status=response.status_code, detail="invalid JSON response", resource=resource) from e

    async def resolve_repository(self, ref: RepositoryReference) -> RepositoryInfo:
        """Fetch repository metadata, mainly to learn its default branch.

        Raises:
            NotFoundError: unknown repository, or private without a suitable token.
            UnauthorizedError: the token was rejected.
            RateLimitedError: the API quota is exhausted.
            RemoteError: any other failure.
        """
        resource = f"Repository {ref.display_name}"
        data = await self._get_json(f"/repos/{ref.owner}/{ref.name}", resource=resource)
        if not isinstance(data, dict) or not data.get("default_branch"):
            raise RemoteError(status=None, detail="repository metadata has no default branch", resource=resource)
        info = RepositoryInfo(
            full_name=str(data.get("full_name") or ref.display_name),
            default_branch=str(data["default_branch"]),
            private=bool(data.get("private", False)),
            size_kb=int(data.get("size") or 0),
        )
        logger.info(
            "repository_resolved",
            repo=info.full_name,
            default_branch=info.default_branch,
            private=info.private,
        )
        return info

    async def fetch_tree(self, ref: RepositoryReference, branch: str) -> TreeListing:
        """Fetch the full recursive tree of `branch` in a single call.

        GitHub caps very large listings; the result is then flagged
        ``truncated`` and a warning is logged. No pagination is attempted.
        """
        resource = f"Branch {branch!r} of {ref.display_name}"
        data = await self._get_json(
            f"/repos/{ref.owner}/{ref.name}/git/trees/{quote(branch, safe='/')}",
            resource=resource,
            params={"recursive": "1"},
        )
        if not isinstance(data, dict):
            raise RemoteError(status=None, detail="unexpected tree payload", resource=resource)

        entries: list[TreeEntry] = []
        for item in data.get("tree") or []:
            # submodules come back as type "commit" and carry no content
            if not isinstance(item, dict) or item.get("type") not in {"blob", "tree"}:
                continue
            if not item.get("path") or not item.get("sha"):
                continue
            entries.append(
                TreeEntry(
                    path=item["path"],
                    kind=item["type"],
                    content_id=item["sha"],
                    size_bytes=item.get("size"),
                ),
            )

        listing = TreeListing(sha=str(data.get("sha") or ""), entries=tuple(entries), truncated=bool(data.get("truncated")))
        logger.info("tree_fetched", repo=ref.display_name, branch=branch, entries=len(entries))
        if listing.truncated:
            logger.warning(
                "tree_truncated",
                repo=ref.display_name,
                branch=branch,
                detail="GitHub capped the recursive listing; some files are missing",
            )
        return listing

    async def fetch_blob(self, ref: RepositoryReference, content_id: str) -> str:
        """Fetch one blob and decode it to text.

        Binary or badly encoded content is returned as ``BINARY_PLACEHOLDER``;
        HTTP failures raise the usual typed errors.
        """
        resource = f"Blob {content_id} of {ref.display_name}"
        data = await self._get_json(f"/repos/{ref.owner}/{ref.name}/git/blobs/{content_id}", resource=resource)
        if not isinstance(data, dict):
            raise RemoteError(status=None, detail="unexpected blob payload", resource=resource)
        return decode_blob_content(
            data.get("content"),
            encoding=str(data.get("encoding") or "base64"),
            content_id=content_id,
        )
