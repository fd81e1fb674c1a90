"""Tests for review orchestration and response parsing."""

import json
from pathlib import Path

import pytest

from codereview_cli.cache import ContentCache
from codereview_cli.models import (
    CodeIssue,
    CodeMetadata,
    FunctionInfo,
    IssueLocation,
    Snippet,
    SnippetMetadata,
)
from codereview_cli.review import (
    AnalysisContext,
    ReviewAnalyzer,
    ReviewParseError,
    format_detected_issues,
    format_similar_patterns,
    parse_response,
)

CODE = "export async function load() {\n  return await fetchAll();\n}\n"


@pytest.fixture
def context() -> AnalysisContext:
    metadata = CodeMetadata(
        file_path="src/loader.ts",
        functions=(FunctionInfo(name="load", start_line=1, end_line=3, is_async=True),),
        complexity=1,
        lines_of_code=3,
    )
    return AnalysisContext(target_code=CODE, metadata=metadata)


@pytest.fixture
def events():
    return []


@pytest.fixture
def analyzer(mock_provider, temp_dir: Path, events):
    cache = ContentCache(temp_dir / "cache")
    return ReviewAnalyzer(
        mock_provider, "ollama", "codellama:13b", cache=cache,
        on_progress=lambda event, detail: events.append((event, detail)),
    )


# ===================================================================
# parse_response
# ===================================================================

def test_parse_plain_json(review_payload):
    review = parse_response(json.dumps(review_payload))
    assert review.summary == review_payload["summary"]
    assert len(review.performance_issues) == 1
    item = review.performance_issues[0]
    assert item.severity == "medium"
    assert item.line == 10
    assert item.example.startswith("const [user, orders]")
    assert review.maintainability_issues[0].example is None
    assert review.readability_issues == []
    assert review.positives == ["Errors are caught and reported."]


def test_parse_fenced_json_with_chatter(review_payload):
    text = "Here is my review:\n```json\n" + json.dumps(review_payload) + "\n```\nHope it helps!"
    assert parse_response(text).to_dict() == parse_response(json.dumps(review_payload)).to_dict()


def test_parse_object_surrounded_by_prose(review_payload):
    text = "Sure. " + json.dumps(review_payload) + " Let me know."
    assert parse_response(text).summary == review_payload["summary"]


def test_to_dict_matches_provider_schema(review_payload):
    assert parse_response(json.dumps(review_payload)).to_dict() == review_payload


@pytest.mark.parametrize("text", ["", "not json at all", "{\"summary\": ", "```json\n{oops}\n```"])
def test_invalid_json_raises(text):
    with pytest.raises(ReviewParseError):
        parse_response(text)


@pytest.mark.parametrize("mutate", [
    lambda p: p.pop("summary"),
    lambda p: p.update(positives="good"),
    lambda p: p.pop("readabilityIssues"),
    lambda p: p["performanceIssues"][0].update(severity="critical"),
    lambda p: p["performanceIssues"][0].pop("suggestion"),
    lambda p: p["performanceIssues"][0].update(location={"line": "ten", "snippet": "x"}),
    lambda p: p["performanceIssues"][0].update(location={"line": True, "snippet": "x"}),
    lambda p: p["performanceIssues"][0].update(example=42),
])
def test_schema_violations_raise(review_payload, mutate):
    mutate(review_payload)
    with pytest.raises(ReviewParseError):
        parse_response(json.dumps(review_payload))


def test_top_level_array_is_rejected():
    with pytest.raises(ReviewParseError):
        parse_response("[1, 2, 3]")


# ===================================================================
# Prompt sections
# ===================================================================

def test_format_detected_issues():
    assert format_detected_issues([]) == "None detected."
    issue = CodeIssue(
        kind="performance", severity="high",
        location=IssueLocation(file="a.ts", line=4, function_name="f"),
        title="Sequential awaits", description="Two awaits in a row",
        code_snippet="await a();",
    )
    assert format_detected_issues([issue]) == "- [high] Sequential awaits: Two awaits in a row (a.ts:4)"


def test_format_similar_patterns_truncates_preview():
    assert format_similar_patterns([]) == "No similar patterns found."
    code = "\n".join(f"line{i}" for i in range(15))
    snippet = Snippet(
        id="x", file_path="src/a.ts", function_name="doThing", code=code, category="service",
        metadata=SnippetMetadata(is_async=True, has_error_handling=False, uses_aws=True, complexity=3),
    )
    block = format_similar_patterns([snippet])
    assert "doThing (service) @ src/a.ts" in block
    assert "async: true, errorHandling: false, AWS: true, complexity: 3" in block
    assert "line9" in block
    assert "line10" not in block


def test_build_prompt_sections(analyzer, context):
    context.project_context = "Express API behind API Gateway"
    prompt = analyzer.build_prompt(context)
    assert "File: src/loader.ts" in prompt
    assert "Functions: 1" in prompt
    assert "None detected." in prompt
    assert "No similar patterns found." in prompt
    assert "=== PROJECT CONTEXT ===\nExpress API behind API Gateway" in prompt
    assert CODE in prompt
    assert '"performanceIssues"' in prompt


def test_build_prompt_without_project_context(analyzer, context):
    assert "PROJECT CONTEXT" not in analyzer.build_prompt(context)


# ===================================================================
# ReviewAnalyzer
# ===================================================================

def test_cache_miss_then_hit(analyzer, context, mock_provider, events):
    first = analyzer.analyze_code(context)
    assert len(mock_provider.prompts) == 1
    assert events == [("cache-miss", {"provider": "ollama", "model": "codellama:13b"})]

    second = analyzer.analyze_code(context)
    assert len(mock_provider.prompts) == 1
    assert events[-1] == ("cache-hit", {})
    assert second.to_dict() == first.to_dict()


def test_model_change_bypasses_cache(analyzer, context, mock_provider):
    analyzer.analyze_code(context)
    analyzer.model = "llama3:8b"
    analyzer.analyze_code(context)
    assert len(mock_provider.prompts) == 2


def test_invalid_cached_payload_is_replaced(analyzer, context, mock_provider):
    analyzer.cache.set(CODE, {"summary": 1}, "ollama", "codellama:13b")
    review = analyzer.analyze_code(context)
    assert len(mock_provider.prompts) == 1
    assert analyzer.cache.get(CODE, "ollama", "codellama:13b") == review.to_dict()


def test_unparseable_response_is_not_cached(analyzer, context, mock_provider):
    mock_provider.response = "I cannot review this."
    with pytest.raises(ReviewParseError):
        analyzer.analyze_code(context)
    assert analyzer.cache.get(CODE, "ollama", "codellama:13b") is None


def test_works_without_cache(mock_provider, context):
    review = ReviewAnalyzer(mock_provider, "ollama", "m").analyze_code(context)
    assert review.summary
