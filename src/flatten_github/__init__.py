"""Merge a GitHub repository into a single document for LLM context windows."""

from __future__ import annotations

__version__ = "0.1.0"

from flatten_github.config import (  # noqa: E402
    AnalysisStrategy,
    FilterConfiguration,
    MergeConfiguration,
    MergeResult,
    OutputFormat,
    RepositoryReference,
    RepoStructure,
    TreeEntry,
)
from flatten_github.github_client import GitHubClient, parse_repository_reference  # noqa: E402
from flatten_github.ignore_policy import is_ignored  # noqa: E402
from flatten_github.output_construction import generate_merged_content  # noqa: E402
from flatten_github.structure import fetch_repo_structure  # noqa: E402

__all__ = [
    "AnalysisStrategy",
    "FilterConfiguration",
    "GitHubClient",
    "MergeConfiguration",
    "MergeResult",
    "OutputFormat",
    "RepoStructure",
    "RepositoryReference",
    "TreeEntry",
    "__version__",
    "fetch_repo_structure",
    "generate_merged_content",
    "is_ignored",
    "parse_repository_reference",
]
