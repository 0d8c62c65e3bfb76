"""Decide which repository paths are left out of the merged document.

Directories match on exact segment names and extensions through a lower-cased
lookup. User patterns are plain substrings; there is no glob or regex support.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flatten_github.config import IGNORED_DIRECTORIES, IGNORED_EXTENSIONS

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def normalize_patterns(patterns: Iterable[str] | None) -> list[str]:
    """Strip custom ignore patterns and drop the empty ones.

    Args:
        patterns (Iterable[str] | None): raw patterns as typed by the user

    Returns:
        list[str]: the trimmed, non-empty patterns in their original order
    """
    out: list[str] = []
    for p in patterns or ():
        p2 = (p or "").strip()
        if p2:
            out.append(p2)
    return out


def in_ignored_directory(path: str) -> bool:
    """Check whether any segment of `path` is a built-in ignored directory name."""
    return any(part in IGNORED_DIRECTORIES for part in path.split("/"))


def has_ignored_extension(path: str) -> bool:
    """Check the extension of the last path segment against the binary/media list.

    Dotfiles and names without a dot are treated as text and never match.
    """
    filename = path.rsplit("/", 1)[-1]
    if "." not in filename or filename.startswith("."):
        return False
    ext = filename.rsplit(".", 1)[-1].lower()
    return ext in IGNORED_EXTENSIONS


def matches_custom_pattern(path: str, patterns: Iterable[str]) -> bool:
    return any(p in path for p in normalize_patterns(patterns))


def is_ignored(path: str, custom_patterns: Sequence[str] = ()) -> bool:
    """Tell whether a repository path must be excluded.

    Args:
        path (str): repository-relative path with POSIX separators
        custom_patterns (Sequence[str]): user substrings, any match excludes the path

    Returns:
        bool: True if the path is excluded, False otherwise
    """
    if in_ignored_directory(path):
        return True
    if has_ignored_extension(path):
        return True
    return matches_custom_pattern(path, custom_patterns)
