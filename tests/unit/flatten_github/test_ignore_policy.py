import pytest

from flatten_github.config import IGNORED_DIRECTORIES, IGNORED_EXTENSIONS
from flatten_github.ignore_policy import (
    has_ignored_extension,
    in_ignored_directory,
    is_ignored,
    normalize_patterns,
)


@pytest.mark.unit
@pytest.mark.parametrize("name", sorted(IGNORED_DIRECTORIES))
def test_every_builtin_directory_is_ignored_at_any_depth(name: str) -> None:
    assert is_ignored(f"{name}/file.py", [])
    assert is_ignored(f"src/{name}/deep/file.py", [])


@pytest.mark.unit
@pytest.mark.parametrize("ext", sorted(IGNORED_EXTENSIONS))
def test_every_builtin_extension_is_ignored_case_insensitively(ext: str) -> None:
    assert is_ignored(f"assets/file.{ext}", [])
    assert is_ignored(f"assets/FILE.{ext.upper()}", [])


@pytest.mark.unit
@pytest.mark.parametrize(
    "path",
    [
        "README.md",
        "src/app.py",
        "src/components/Button.tsx",
        "Makefile",
        "Dockerfile",
        ".gitignore",
        ".env.lock",
        "builder/make.py",
        "src/binary_utils.ts",
        "docs/lock.md",
    ],
)
def test_text_paths_outside_ignored_directories_are_kept(path: str) -> None:
    assert is_ignored(path, []) is False


@pytest.mark.unit
def test_directory_match_is_exact_segment_not_prefix() -> None:
    assert in_ignored_directory("node_modules/react/index.js")
    assert not in_ignored_directory("node_modules_backup/index.js")
    assert not in_ignored_directory("src/distance.py")


@pytest.mark.unit
def test_dotfiles_and_extensionless_names_skip_extension_check() -> None:
    assert not has_ignored_extension(".lock")
    assert not has_ignored_extension("scripts/bin-wrapper")
    assert has_ignored_extension("poetry.lock")


@pytest.mark.unit
def test_custom_patterns_are_substrings_after_trimming() -> None:
    patterns = ["  fixtures ", "", "   ", "generated"]

    assert is_ignored("tests/fixtures/data.json", patterns)
    assert is_ignored("src/api/generated_client.ts", patterns)
    assert not is_ignored("src/api/client.ts", patterns)


@pytest.mark.unit
def test_custom_patterns_are_not_globs() -> None:
    assert not is_ignored("src/app.py", ["*.py"])
    assert is_ignored("src/*.py-notes.txt", ["*.py"])


@pytest.mark.unit
def test_blank_patterns_ignore_nothing() -> None:
    assert not is_ignored("src/app.py", ["", "  "])


@pytest.mark.unit
def test_normalize_patterns_keeps_order() -> None:
    assert normalize_patterns([" b ", "", "a", None]) == ["b", "a"]  # type: ignore[list-item]
    assert normalize_patterns(None) == []
