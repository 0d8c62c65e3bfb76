import pytest
from pydantic import ValidationError

from flatten_github.config import (
    STRATEGY_PROMPTS,
    AnalysisStrategy,
    FilterConfiguration,
    MergeConfiguration,
    MergeResult,
    OutputFormat,
    RepositoryReference,
    TreeEntry,
    resolve_instructions,
)


@pytest.mark.unit
def test_filter_configuration_defaults() -> None:
    cfg = FilterConfiguration()

    assert cfg.max_file_size_kb == 100
    assert cfg.max_file_size_bytes == 102_400
    assert cfg.custom_ignore_patterns == ()


@pytest.mark.unit
def test_filter_configuration_normalizes_patterns() -> None:
    assert FilterConfiguration(custom_ignore_patterns=" tests , ,docs ").custom_ignore_patterns == ("tests", "docs")
    assert FilterConfiguration(custom_ignore_patterns=["a ", "", "  ", "b"]).custom_ignore_patterns == ("a", "b")
    assert FilterConfiguration(custom_ignore_patterns=None).custom_ignore_patterns == ()


@pytest.mark.unit
@pytest.mark.parametrize("size", [0, -5])
def test_filter_configuration_rejects_non_positive_limit(size: int) -> None:
    with pytest.raises(ValidationError):
        FilterConfiguration(max_file_size_kb=size)


@pytest.mark.unit
def test_models_forbid_unknown_fields_and_are_frozen() -> None:
    with pytest.raises(ValidationError):
        MergeConfiguration(output_format="markdown", colour=True)  # type: ignore[call-arg]

    ref = RepositoryReference(owner="acme", name="widgets")
    with pytest.raises(ValidationError):
        ref.owner = "other"  # type: ignore[misc]


@pytest.mark.unit
def test_tree_entry_kind_is_restricted() -> None:
    with pytest.raises(ValidationError):
        TreeEntry(path="lib", kind="commit", content_id="abc")  # type: ignore[arg-type]


@pytest.mark.unit
def test_merge_configuration_accepts_format_strings() -> None:
    cfg = MergeConfiguration(output_format="xml")

    assert cfg.output_format is OutputFormat.XML
    assert cfg.include_structure_map is True
    assert cfg.instructions == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    ("document", "size", "tokens"),
    [
        ("", 0, 0),
        ("abcd", 4, 1),
        ("abcde", 5, 2),
        ("é", 2, 1),
    ],
)
def test_merge_result_statistics(document: str, size: int, tokens: int) -> None:
    result = MergeResult(document=document, included_file_count=0)

    assert result.total_byte_size == size
    assert result.approximate_token_count == tokens


@pytest.mark.unit
def test_merge_result_dump_includes_statistics() -> None:
    dumped = MergeResult(document="abcd", included_file_count=1).model_dump()

    assert dumped == {"document": "abcd", "included_file_count": 1, "total_byte_size": 4, "approximate_token_count": 1}


@pytest.mark.unit
def test_resolve_instructions() -> None:
    assert resolve_instructions(AnalysisStrategy.NONE) == ""
    assert resolve_instructions("refactor") == STRATEGY_PROMPTS[AnalysisStrategy.REFACTOR]
    assert resolve_instructions("custom", "  Summarize the API.  ") == "Summarize the API."
    assert resolve_instructions("custom") == ""


@pytest.mark.unit
@pytest.mark.parametrize("strategy", [AnalysisStrategy.REFACTOR, AnalysisStrategy.DEBUG, AnalysisStrategy.EXPLAIN, AnalysisStrategy.SECURITY])
def test_canned_strategies_have_prompts(strategy: AnalysisStrategy) -> None:
    assert resolve_instructions(strategy).startswith("### ROLE:")


@pytest.mark.unit
def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(ValueError, match="nope"):
        resolve_instructions("nope")
