"""Assemble the merged repository document.

Blobs are fetched in fixed-size batches. Inside a batch the requests run
concurrently; batches run one after the other and their results are appended
in input order, so the output never depends on network timing. A file whose
retrieval fails is left out and the run carries on.

Progress is reported when a file is dispatched, not when it completes, with
the number of files retrieved so far.
"""

from __future__ import annotations

import asyncio
import io
from typing import TYPE_CHECKING

from flatten_github.config import CONCURRENCY_LIMIT, MergeConfiguration, MergeResult, OutputFormat
from flatten_github.exceptions import FlattenGithubError
from flatten_github.github_client import GitHubClient, parse_repository_reference
from flatten_github.logging import logger
from flatten_github.text_processing import build_tree_lines, file_extension, strip_comments

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from flatten_github.config import RepositoryReference, TreeEntry

    ProgressCallback = Callable[[int, int, str], None]

INSTRUCTION_START = "[SYSTEM_INSTRUCTION_START]"
INSTRUCTION_END = "[SYSTEM_INSTRUCTION_END]"
SECTION_SEPARATOR = "=" * 32


def build_preamble(instructions: str) -> str:
    if not instructions.strip():
        return ""
    return f"{INSTRUCTION_START}\n{instructions}\n{INSTRUCTION_END}\n\n{SECTION_SEPARATOR}\n\n"


def build_header(repo_display_name: str, resolved_branch: str, entity_count: int) -> str:
    return (
        "REPOSITORY_CONTEXT_DUMP\n"
        f"IDENTIFIER: {repo_display_name}\n"
        f"REF: {resolved_branch}\n"
        f"ENTITY_COUNT: {entity_count}\n\n"
    )


def build_structure_map(repo_display_name: str, paths: Sequence[str], output_format: OutputFormat) -> str:
    """Render the directory tree of `paths`, wrapped for the output format.

    Args:
        repo_display_name (str): label of the tree root
        paths (Sequence[str]): paths of the included files
        output_format (OutputFormat): format of the surrounding document

    Returns:
        str: the wrapped tree, empty when there are no paths
    """
    if not paths:
        return ""
    tree = "\n".join(build_tree_lines(repo_display_name, paths))
    match output_format:
        case OutputFormat.MARKDOWN:
            return f"## Structure\n```text\n{tree}\n```\n"
        case OutputFormat.XML:
            return f"<structure>\n<![CDATA[\n{tree}\n]]>\n</structure>\n"
        case _:
            return f"===== STRUCTURE =====\n{tree}\n"


def format_file_section(path: str, content: str, output_format: OutputFormat) -> str:
    """Wrap one file's content in the delimiters of the output format."""
    match output_format:
        case OutputFormat.MARKDOWN:
            return f"\n## File: {path}\n```{file_extension(path)}\n{content}\n```\n"
        case OutputFormat.XML:
            return f'\n<file path="{path}">\n<![CDATA[\n{content}\n]]>\n</file>\n'
        case _:
            return f"\n===== FILE: {path} =====\n{content}\n"


def assemble_document(
    files: Sequence[tuple[str, str]],
    *,
    repo_display_name: str,
    resolved_branch: str,
    requested_count: int,
    config: MergeConfiguration,
) -> str:
    """Concatenate preamble, header, structure map and file sections.

    Args:
        files (Sequence[tuple[str, str]]): ``(path, content)`` of the retrieved files, in output order
        repo_display_name (str): ``owner/repo``
        resolved_branch (str): branch, tag or commit the files come from
        requested_count (int): number of files asked for, shown in the header
        config (MergeConfiguration): formatting options

    Returns:
        str: the merged document
    """
    out = io.StringIO()
    out.write(build_preamble(config.instructions))
    if not config.minimal_header:
        out.write(build_header(repo_display_name, resolved_branch, requested_count))
    if config.include_structure_map:
        out.write(build_structure_map(repo_display_name, [p for p, _ in files], config.output_format))
    for path, content in files:
        out.write(format_file_section(path, content, config.output_format))
    return out.getvalue()


async def _fetch_file(
    client: GitHubClient,
    ref: RepositoryReference,
    entry: TreeEntry,
    *,
    strip: bool,
) -> tuple[str, str] | None:
    try:
        content = await client.fetch_blob(ref, entry.content_id)
    except FlattenGithubError as e:
        logger.warning("file_skipped", path=entry.path, error=str(e))
        return None
    if strip:
        content = strip_comments(content)
    return entry.path, content


async def generate_merged_content(
    entries: Sequence[TreeEntry],
    *,
    repo_display_name: str,
    resolved_branch: str,
    config: MergeConfiguration | None = None,
    credential: str | None = None,
    on_progress: ProgressCallback | None = None,
    client: GitHubClient | None = None,
) -> MergeResult:
    """Fetch the selected files and merge them into one document.

    Args:
        entries (Sequence[TreeEntry]): selected blobs, in output order
        repo_display_name (str): ``owner/repo`` the entries belong to
        resolved_branch (str): branch, tag or commit shown in the header
        config (MergeConfiguration | None): formatting options
        credential (str | None): GitHub token, ignored when `client` is given
        on_progress (ProgressCallback | None): called as ``(processed, total, path)``
            once per file, right before its batch is dispatched
        client (GitHubClient | None): an open client to reuse

    Returns:
        MergeResult: the document and its statistics; ``included_file_count``
            counts successful retrievals only
    """
    config = config or MergeConfiguration()
    if client is None:
        async with GitHubClient(credential) as own_client:
            return await generate_merged_content(
                entries,
                repo_display_name=repo_display_name,
                resolved_branch=resolved_branch,
                config=config,
                on_progress=on_progress,
                client=own_client,
            )

    ref = parse_repository_reference(repo_display_name)
    selected = list(entries)
    total = len(selected)
    retrieved: list[tuple[str, str]] = []

    for start in range(0, total, CONCURRENCY_LIMIT):
        batch = selected[start : start + CONCURRENCY_LIMIT]
        if on_progress is not None:
            for entry in batch:
                on_progress(len(retrieved), total, entry.path)
        results = await asyncio.gather(
            *(_fetch_file(client, ref, entry, strip=config.strip_comments) for entry in batch),
        )
        retrieved.extend(r for r in results if r is not None)

    document = assemble_document(
        retrieved,
        repo_display_name=repo_display_name,
        resolved_branch=resolved_branch,
        requested_count=total,
        config=config,
    )
    result = MergeResult(document=document, included_file_count=len(retrieved))
    logger.info(
        "merge_completed",
        repo=repo_display_name,
        requested=total,
        included=result.included_file_count,
        bytes=result.total_byte_size,
        approx_tokens=result.approximate_token_count,
    )
    return result
