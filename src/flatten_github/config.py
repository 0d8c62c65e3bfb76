from __future__ import annotations

import math
from enum import StrEnum, auto
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "flatten-github"

# Blob requests in flight at once; batches run one after the other.
CONCURRENCY_LIMIT = 5

DEFAULT_MAX_FILE_SIZE_KB = 100

BINARY_PLACEHOLDER = "[Binary Content or Encoding Error]"

IGNORED_DIRECTORIES = frozenset(
    {
        "node_modules",
        ".git",
        ".github",
        ".idea",
        ".vscode",
        "dist",
        "build",
        "coverage",
        "vendor",
        "__pycache__",
        ".next",
        ".nuxt",
        "target",
        "bin",
        "obj",
        ".venv",
        "venv",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        ".ipynb_checkpoints",
        ".DS_Store",
    },
)

IGNORED_EXTENSIONS = frozenset(
    {
        # images
        "png",
        "jpg",
        "jpeg",
        "gif",
        "ico",
        "svg",
        "webp",
        "bmp",
        "tiff",
        # fonts
        "eot",
        "ttf",
        "woff",
        "woff2",
        "otf",
        # archives
        "zip",
        "tar",
        "gz",
        "rar",
        "7z",
        # audio / video
        "mp4",
        "mp3",
        "wav",
        "ogg",
        "webm",
        "mov",
        "avi",
        # documents
        "pdf",
        "doc",
        "docx",
        "xls",
        "xlsx",
        "ppt",
        "pptx",
        # binaries
        "exe",
        "dll",
        "so",
        "dylib",
        "bin",
        "dat",
        "db",
        "sqlite",
        "ds_store",
        # lock files, noisy for an LLM
        "lock",
        "tfstate",
    },
)


class OutputFormat(StrEnum):
    """Structural format of the merged document."""

    PLAIN = auto()
    MARKDOWN = auto()
    XML = auto()


class AnalysisStrategy(StrEnum):
    """Canned instruction preambles that can be prepended to the document."""

    NONE = auto()
    REFACTOR = auto()
    DEBUG = auto()
    EXPLAIN = auto()
    SECURITY = auto()
    CUSTOM = auto()


STRATEGY_PROMPTS: dict[AnalysisStrategy, str] = {
    AnalysisStrategy.NONE: "",
    AnalysisStrategy.REFACTOR: (
        "### ROLE: Principal Software Architect & Systems Designer\n"
        "### CONTEXT: You are performing a high-stakes architectural audit of a mission-critical codebase.\n"
        "### TASK:\n"
        "1. ANALYZE the global dependency graph and identify tightly coupled modules.\n"
        "2. IDENTIFY violations of SOLID, DRY, and KISS principles.\n"
        "3. PROPOSE a migration strategy for technical debt reduction.\n"
        "4. SUGGEST performance optimizations regarding time/space complexity.\n"
        "### CONSTRAINTS:\n"
        '- Prioritize maintainability over clever "one-liners".\n'
        "- Maintain backward compatibility where applicable.\n"
        "- Use Chain-of-Thought reasoning before suggesting specific code changes."
    ),
    AnalysisStrategy.DEBUG: (
        "### ROLE: Senior Systems Engineer & Formal Verification Specialist\n"
        "### CONTEXT: You are scanning a codebase for non-obvious failure modes in a high-concurrency environment.\n"
        "### TASK:\n"
        "1. EXECUTE a mental execution trace to find potential race conditions or deadlocks.\n"
        "2. AUDIT memory management and resource cleanup paths.\n"
        "3. SCAN for logical edge cases in complex conditional branches.\n"
        "4. IDENTIFY potential regressions in the current implementation.\n"
        "### METHODOLOGY:\n"
        'Use a "Failure Mode and Effects Analysis" (FMEA) approach. For every identified risk, '
        "provide an impact score and a robust mitigation strategy."
    ),
    AnalysisStrategy.EXPLAIN: (
        "### ROLE: Technical Lead & System Documentarian\n"
        "### CONTEXT: You are onboarding a senior engineer who needs to understand the project in 5 minutes.\n"
        "### TASK:\n"
        "1. MAP the lifecycle of a primary data object through the system.\n"
        "2. EXPLAIN the core design philosophy and why these specific libraries/patterns were chosen.\n"
        "3. DESCRIBE the entry points and critical execution paths.\n"
        "4. PROVIDE a high-level conceptual overview followed by granular module responsibilities.\n"
        "### GOAL: Maximize conceptual density while maintaining zero ambiguity."
    ),
    AnalysisStrategy.SECURITY: (
        "### ROLE: Senior Offensive Security Researcher & Red Teamer\n"
        "### CONTEXT: You are performing a white-box security audit. Assume a zero-trust environment.\n"
        "### TASK:\n"
        "1. AUDIT for OWASP Top 10 vulnerabilities (Injection, Broken Access Control, etc.).\n"
        "2. IDENTIFY insecure handling of PII or sensitive metadata.\n"
        "3. EVALUATE the attack surface of external API integrations and data ingestion points.\n"
        "4. SCAN for hardcoded secrets, weak cryptographic primitives, or insecure defaults.\n"
        "### OUTPUT:\n"
        'Provide a prioritized Vulnerability Report with "Exploitability" and "Impact" metrics '
        "for each finding, accompanied by secure-by-design remediation."
    ),
    AnalysisStrategy.CUSTOM: "",
}


def resolve_instructions(strategy: AnalysisStrategy | str, custom_prompt: str = "") -> str:
    """Return the preamble text for an analysis strategy.

    Args:
        strategy (AnalysisStrategy | str): the chosen strategy.
        custom_prompt (str): text used when the strategy is ``custom``.

    Returns:
        str: the instruction text, empty when no preamble should be emitted.
    """
    strategy = AnalysisStrategy(strategy)
    if strategy is AnalysisStrategy.CUSTOM:
        return custom_prompt.strip()
    return STRATEGY_PROMPTS[strategy]


class RepositoryReference(BaseModel):
    """Owner and name of a GitHub repository."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    owner: str = Field(..., min_length=1, description="Account or organization owning the repository")
    name: str = Field(..., min_length=1, description="Repository name")

    @property
    def display_name(self) -> str:
        return f"{self.owner}/{self.name}"


class RepositoryInfo(BaseModel):
    """Subset of the repository metadata returned by the API."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    full_name: str
    default_branch: str
    private: bool = False
    size_kb: int = Field(default=0, ge=0, description="Repository size as reported by GitHub (KiB)")


class TreeEntry(BaseModel):
    """One object of a recursive tree listing.

    Attributes:
        path: Repository-relative path with POSIX separators.
        kind: ``blob`` for files, ``tree`` for directories.
        content_id: Blob SHA used to retrieve the content.
        size_bytes: Size reported by the remote; advisory, may be absent.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1)
    kind: Literal["blob", "tree"]
    content_id: str = Field(..., min_length=1)
    size_bytes: int | None = Field(default=None, ge=0)


class TreeListing(BaseModel):
    """Recursive tree of a ref, flagged when GitHub capped the listing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sha: str = ""
    entries: tuple[TreeEntry, ...] = ()
    truncated: bool = False


class FilterConfiguration(BaseModel):
    """Per-request filtering options applied to the tree listing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_file_size_kb: int = Field(default=DEFAULT_MAX_FILE_SIZE_KB, gt=0)
    custom_ignore_patterns: tuple[str, ...] = ()

    @field_validator("custom_ignore_patterns", mode="before")
    @classmethod
    def _normalize_patterns(cls, value: object) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        return tuple(p.strip() for p in value if p and p.strip())  # type: ignore[union-attr]

    @computed_field
    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_kb * 1024


class RepoStructure(BaseModel):
    """Filtered candidate files of a repository at a resolved branch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    entries: tuple[TreeEntry, ...]
    resolved_branch: str
    repo_display_name: str
    truncated: bool = False


class MergeConfiguration(BaseModel):
    """Formatting options for the merged document."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    output_format: OutputFormat = OutputFormat.MARKDOWN
    instructions: str = Field(default="", description="Instruction preamble, omitted when blank")
    strip_comments: bool = False
    minimal_header: bool = False
    include_structure_map: bool = True


class MergeResult(BaseModel):
    """Merged document and its size statistics."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    document: str
    included_file_count: int = Field(..., ge=0)

    @computed_field
    @property
    def total_byte_size(self) -> int:
        return len(self.document.encode("utf-8"))

    @computed_field
    @property
    def approximate_token_count(self) -> int:
        """Crude estimate at four bytes per token, not a tokenizer."""
        return math.ceil(self.total_byte_size / 4)
