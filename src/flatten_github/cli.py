"""
flatten_github: turn a GitHub repository into one document for an LLM.

Overview
--------
The repository tree is fetched through the GitHub REST API in a single
recursive call, filtered (dependency caches, build output, binary and media
files, lock files, user substrings, a size limit), and the remaining files
are downloaded and concatenated into one document:

- **markdown** (default): ``## File: path`` headings with fenced code blocks,
- **xml**: ``<file path="...">`` elements with CDATA bodies,
- **plain**: ``===== FILE: path =====`` separators.

A directory tree of the included files, a short header and an optional
instruction preamble (``--strategy``) precede the file sections. The token
count printed at the end is an estimate (four bytes per token).

Anonymous requests are limited to a few dozen calls per hour by GitHub; set
``GITHUB_TOKEN`` (environment or ``.env``) or pass ``--token`` for anything
beyond small repositories.

Usage
-----
Run ``python -m flatten_github.cli --help`` for full options. Common examples:
    - Markdown to stdout:
        flatten-github acme/widgets > widgets.md

    - XML of the ``dev`` branch, comments stripped, with a review preamble:
        flatten-github https://github.com/acme/widgets --branch dev --format xml --strip-comments --strategy refactor --output widgets.xml

    - Only the ``src/`` tree, skipping fixtures:
        flatten-github acme/widgets --select src/ --ignore fixtures --output src.md

    - Defaults from a YAML file (keys are option names):
        flatten-github --config flatten.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError

from flatten_github import __version__
from flatten_github.config import AnalysisStrategy, OutputFormat
from flatten_github.exceptions import FlattenGithubError
from flatten_github.github_client import GitHubClient
from flatten_github.logging import logger, setup_logging
from flatten_github.output_construction import generate_merged_content
from flatten_github.settings import Settings, load_config_file
from flatten_github.structure import fetch_repo_structure

if TYPE_CHECKING:
    from collections.abc import Sequence

    from flatten_github.config import MergeResult, TreeEntry


def warn(text: str) -> None:
    sys.stderr.write(f"WARNING: {text}\n")


def build_parser() -> argparse.ArgumentParser:
    # Unset options stay absent so that --config values are only overridden
    # by flags the user actually typed.
    p = argparse.ArgumentParser(
        prog="flatten-github",
        description="Merge a GitHub repository into a single LLM-ready document.",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("repo", nargs="?", help="GitHub URL or owner/repo.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", type=str, help="YAML file with default settings.")
    p.add_argument("--branch", type=str, help="Branch, tag or commit (default branch when omitted).")
    p.add_argument("--token", type=str, help="GitHub token (defaults to $GITHUB_TOKEN).")
    p.add_argument("--output", type=str, help="Output file (stdout when omitted).")
    p.add_argument("--log-file", type=str, help="Log file path.")

    p.add_argument(
        "--max-file-size-kb",
        type=int,
        help="Skip files larger than this (KiB, default 100).",
    )
    p.add_argument(
        "--ignore",
        action="append",
        help="Skip paths containing this substring (repeatable, comma lists allowed).",
    )
    p.add_argument(
        "--select",
        action="append",
        help="Keep only paths containing this substring (repeatable).",
    )
    p.add_argument(
        "--list",
        dest="list_only",
        action="store_true",
        help="Print the candidate paths and exit.",
    )

    p.add_argument(
        "--format",
        type=str,
        choices=[f.value for f in OutputFormat],
        help="Output format (default markdown).",
    )
    p.add_argument(
        "--strategy",
        type=str,
        choices=[s.value for s in AnalysisStrategy],
        help="Instruction preamble to prepend.",
    )
    p.add_argument("--prompt", type=str, help="Instructions for --strategy custom.")
    p.add_argument("--strip-comments", action="store_true", help="Strip // and /* */ comments.")
    p.add_argument("--minimal", action="store_true", help="Omit the header block.")
    p.add_argument(
        "--no-structure-map",
        action="store_true",
        help="Omit the directory tree.",
    )
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    parser = build_parser()
    values = vars(parser.parse_args(argv))
    config_path = values.pop("config", None)
    try:
        base = load_config_file(config_path) if config_path else {}
    except (OSError, ValueError, yaml.YAMLError) as e:
        parser.error(f"--config: {e}")
    if values.get("repo") is None:
        values.pop("repo", None)
    try:
        return Settings.model_validate({**base, **values})
    except ValidationError as e:
        parser.error(str(e))


def select_entries(entries: Sequence[TreeEntry], selectors: Sequence[str]) -> list[TreeEntry]:
    """Narrow the candidate list to paths containing one of `selectors`.

    An empty selector list keeps everything.
    """
    if not selectors:
        return list(entries)
    return [e for e in entries if any(s in e.path for s in selectors)]


def log_progress(processed: int, total: int, path: str) -> None:
    logger.info("fetching_file", processed=processed, total=total, path=path)


async def run(settings: Settings) -> MergeResult | None:
    """Fetch, filter and merge the repository described by `settings`.

    Returns:
        MergeResult | None: the merged document, or None in ``--list`` mode
    """
    async with GitHubClient(settings.token) as client:
        structure = await fetch_repo_structure(
            settings.repo,
            branch=settings.branch or None,
            filters=settings.filter_configuration(),
            client=client,
        )
        if structure.truncated:
            warn("GitHub truncated the tree listing; the repository is too large to list completely.")

        entries = select_entries(structure.entries, settings.select)
        if settings.list_only:
            sys.stdout.write("".join(f"{e.path}\n" for e in entries))
            return None
        if not entries:
            warn("No files left after filtering.")

        return await generate_merged_content(
            entries,
            repo_display_name=structure.repo_display_name,
            resolved_branch=structure.resolved_branch,
            config=settings.merge_configuration(),
            on_progress=log_progress,
            client=client,
        )


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    try:
        result = asyncio.run(run(settings))
    except FlattenGithubError as e:
        logger.error("run_failed", error_type=type(e).__name__, error=e.message)
        sys.stderr.write(f"ERROR: {e.message}\n")
        return 1

    if result is None:
        return 0
    if settings.output is None:
        sys.stdout.write(result.document)
        return 0

    settings.output.write_text(result.document, encoding="utf-8")
    sys.stderr.write(
        f"Wrote {settings.output} format={settings.format} files={result.included_file_count} "
        f"bytes={result.total_byte_size} tokens~{result.approximate_token_count}\n",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
