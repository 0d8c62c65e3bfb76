from __future__ import annotations

from typing import TYPE_CHECKING

from flatten_github.config import FilterConfiguration, RepoStructure, TreeEntry
from flatten_github.github_client import GitHubClient, parse_repository_reference
from flatten_github.ignore_policy import is_ignored
from flatten_github.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable


def filter_entries(entries: Iterable[TreeEntry], filters: FilterConfiguration) -> list[TreeEntry]:
    """Keep blobs that pass the ignore policy and the advisory size limit.

    An entry without a reported size is kept. An entry whose size equals the
    limit is kept; only strictly larger entries are dropped.

    Args:
        entries (Iterable[TreeEntry]): tree entries in listing order
        filters (FilterConfiguration): size limit and custom ignore patterns

    Returns:
        list[TreeEntry]: the retained blobs, in their original order
    """
    limit = filters.max_file_size_bytes
    out: list[TreeEntry] = []
    for entry in entries:
        if entry.kind != "blob":
            continue
        if is_ignored(entry.path, filters.custom_ignore_patterns):
            continue
        if entry.size_bytes is not None and entry.size_bytes > limit:
            continue
        out.append(entry)
    return out


async def fetch_repo_structure(
    repo_input: str,
    *,
    branch: str | None = None,
    credential: str | None = None,
    filters: FilterConfiguration | None = None,
    client: GitHubClient | None = None,
) -> RepoStructure:
    """Resolve a repository and return its filtered, unselected file list.

    Any failure of the metadata or tree call aborts the whole operation; there
    is no partial result.

    Args:
        repo_input (str): GitHub URL or ``owner/repo``
        branch (str | None): branch, tag or commit; the default branch when blank
        credential (str | None): GitHub token, ignored when `client` is given
        filters (FilterConfiguration | None): size limit and custom ignore patterns
        client (GitHubClient | None): an open client to reuse

    Raises:
        InvalidInputError: if `repo_input` is not a repository reference.
        NotFoundError: if the repository or branch does not exist or is not visible.
        UnauthorizedError: if the token is rejected.
        RateLimitedError: if the API quota is exhausted.
        RemoteError: on any other API failure.

    Returns:
        RepoStructure: the filtered entries, resolved branch and display name
    """
    ref = parse_repository_reference(repo_input)
    filters = filters or FilterConfiguration()

    if client is None:
        async with GitHubClient(credential) as own_client:
            return await fetch_repo_structure(
                repo_input,
                branch=branch,
                filters=filters,
                client=own_client,
            )

    info = await client.resolve_repository(ref)
    target = (branch or "").strip() or info.default_branch
    listing = await client.fetch_tree(ref, target)
    entries = filter_entries(listing.entries, filters)

    blob_count = sum(1 for e in listing.entries if e.kind == "blob")
    logger.info(
        "tree_filtered",
        repo=ref.display_name,
        branch=target,
        blobs=blob_count,
        kept=len(entries),
        dropped=blob_count - len(entries),
    )
    return RepoStructure(
        entries=tuple(entries),
        resolved_branch=target,
        repo_display_name=ref.display_name,
        truncated=listing.truncated,
    )
