from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_BLANK_RUN_RE = re.compile(r"\n\s*\n")


@dataclass
class _TreeNode:
    dirs: dict[str, _TreeNode] = field(default_factory=dict)
    files: set[str] = field(default_factory=set)


def strip_comments(code: str) -> str:
    """Remove C-style comments from source text.

    Drops ``//`` comments up to the end of the line and non-nested
    ``/* ... */`` blocks, collapses runs of blank lines into one blank line
    and trims the result.

    The scan is purely textual: a ``//`` or ``/*`` inside a string literal
    (a URL, for instance) is stripped as well. Languages using ``#`` comments
    are left untouched.

    Args:
        code (str): source text

    Returns:
        str: the text without comments
    """
    cleaned = _LINE_COMMENT_RE.sub("", code)
    cleaned = _BLOCK_COMMENT_RE.sub("", cleaned)
    cleaned = _BLANK_RUN_RE.sub("\n\n", cleaned)
    return cleaned.strip()


def file_extension(path: str) -> str:
    """Return the text after the last dot of the file name, or "" when it has none."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1]


def build_tree_lines(root_name: str, rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Directories are listed before files at every level; both are sorted
    case-insensitively. The last child of a directory uses ``└──`` and its
    subtree is indented with spaces instead of a vertical bar.

    Args:
        root_name (str): the name to use for the root of the tree
        rel_paths (Sequence[str]): repository-relative paths using POSIX separators

    Returns:
        list[str]: one string per rendered line, root first
    """
    rels = sorted({p.strip("/") for p in rel_paths if p.strip("/")}, key=str.lower)
    tree = _TreeNode()
    for rp in rels:
        cur = tree
        parts = [p for p in rp.split("/") if p]
        for i, part in enumerate(parts):
            if i == len(parts) - 1:
                cur.files.add(part)
            else:
                cur = cur.dirs.setdefault(part, _TreeNode())

    lines: list[str] = [root_name]

    def walk(node: _TreeNode, prefix: str) -> None:
        dirs = sorted(node.dirs, key=str.lower)
        files = sorted(node.files, key=str.lower)
        entries: list[tuple[str, str, _TreeNode | None]] = []
        entries.extend(("dir", d, node.dirs[d]) for d in dirs)
        entries.extend(("file", f, None) for f in files)
        for idx, (kind, name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name + ("/" if kind == "dir" else ""))
            if child is not None:
                ext = "    " if last else "│   "
                walk(child, prefix + ext)

    walk(tree, "")
    return lines
