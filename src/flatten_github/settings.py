from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from flatten_github.config import (
    DEFAULT_MAX_FILE_SIZE_KB,
    AnalysisStrategy,
    FilterConfiguration,
    MergeConfiguration,
    OutputFormat,
    resolve_instructions,
)

ENV_FILE = find_dotenv(usecwd=True)
TOKEN_ENV_VAR = "GITHUB_TOKEN"


def default_token() -> str:
    """Read the GitHub token from the environment, then from the nearest ``.env`` file."""
    token = os.environ.get(TOKEN_ENV_VAR)
    if token:
        return token
    if not ENV_FILE:
        return ""
    return dotenv_values(ENV_FILE).get(TOKEN_ENV_VAR) or ""


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load CLI defaults from a YAML file whose keys are ``Settings`` fields.

    Args:
        path (str | Path): the YAML file to read

    Raises:
        ValueError: if the document is not a mapping.

    Returns:
        dict[str, Any]: the raw values, validated later by ``Settings``
    """
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        msg = f"{path}: expected a mapping of settings, got {type(data).__name__}"
        raise ValueError(msg)
    return {str(k).replace("-", "_"): v for k, v in data.items()}


class Settings(BaseModel):
    """Configuration settings for the flatten_github command line."""

    model_config = ConfigDict(extra="forbid")

    repo: str = Field(..., min_length=1, description="GitHub URL or owner/repo.")
    branch: str = Field(default="", description="Branch, tag or commit; default branch when empty.")
    token: str = Field(default_factory=default_token, repr=False, description="GitHub token.")
    log_file: str = Field(default="", description="Log file path.")
    output: Path | None = Field(default=None, description="Output file; stdout when unset.")

    max_file_size_kb: int = Field(
        default=DEFAULT_MAX_FILE_SIZE_KB,
        gt=0,
        description="Skip files whose reported size exceeds this many KiB.",
    )
    ignore: list[str] = Field(default_factory=list, description="Ignore substrings.")
    select: list[str] = Field(
        default_factory=list,
        description="Keep only paths containing one of these substrings.",
    )
    list_only: bool = Field(default=False, description="List candidate files and exit.")

    format: OutputFormat = Field(default=OutputFormat.MARKDOWN, description="Output format.")
    strategy: AnalysisStrategy = Field(default=AnalysisStrategy.NONE, description="Instruction preamble.")
    prompt: str = Field(default="", description="Instructions for the custom strategy.")
    strip_comments: bool = Field(default=False, description="Strip // and /* */ comments.")
    minimal: bool = Field(default=False, description="Omit the header block.")
    no_structure_map: bool = Field(default=False, description="Omit the directory tree.")

    @field_validator("ignore", "select", mode="before")
    @classmethod
    def _split_lists(cls, value: Any) -> list[str]:  # noqa: ANN401
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        out: list[str] = []
        for item in value:
            out.extend(p.strip() for p in str(item).split(",") if p.strip())
        return out

    def filter_configuration(self) -> FilterConfiguration:
        return FilterConfiguration(
            max_file_size_kb=self.max_file_size_kb,
            custom_ignore_patterns=tuple(self.ignore),
        )

    def merge_configuration(self) -> MergeConfiguration:
        return MergeConfiguration(
            output_format=self.format,
            instructions=resolve_instructions(self.strategy, self.prompt),
            strip_comments=self.strip_comments,
            minimal_header=self.minimal,
            include_structure_map=not self.no_structure_map,
        )
