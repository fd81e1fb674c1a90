"""Review orchestration: prompt building, provider call, response parsing, caching."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .cache import ContentCache
from .llm import ReviewProvider
from .models import SEVERITIES, CodeIssue, CodeMetadata, Review, ReviewItem, Snippet
from .prompts import OUTPUT_SCHEMA_INSTRUCTION, REVIEW_PROMPT_TEMPLATE

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_SIMILAR_PREVIEW_LINES = 10

ProgressCallback = Callable[[str, Dict[str, str]], None]


class ReviewParseError(Exception):
    """The provider response is not a valid review object."""


@dataclass
class AnalysisContext:
    target_code: str
    metadata: CodeMetadata
    detected_issues: List[CodeIssue] = field(default_factory=list)
    similar_patterns: List[Snippet] = field(default_factory=list)
    project_context: Optional[str] = None


class ReviewAnalyzer:
    """Ask a :class:`ReviewProvider` for a review, going through the cache first.

    Cache entries are keyed by the reviewed code and scoped to
    ``(provider_name, model)``, so switching model never serves a stale review.
    """

    def __init__(
        self,
        provider: ReviewProvider,
        provider_name: str,
        model: str,
        cache: Optional[ContentCache] = None,
        on_progress: Optional[ProgressCallback] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.provider = provider
        self.provider_name = provider_name
        self.model = model
        self.cache = cache
        self.on_progress = on_progress
        self.logger = logger or logging.getLogger(__name__)

    def analyze_code(self, context: AnalysisContext) -> Review:
        """Review *context.target_code*.

        Raises:
            ProviderError: the provider call failed.
            ReviewParseError: the provider answered with something that is not a review.
        """
        if self.cache is not None:
            cached = self.cache.get(context.target_code, self.provider_name, self.model)
            if cached is not None:
                try:
                    review = review_from_dict(cached)
                except ReviewParseError as exc:
                    self.logger.debug("Discarding cached review: %s", exc)
                else:
                    self._emit("cache-hit", {})
                    return review

        self._emit("cache-miss", {"provider": self.provider_name, "model": self.model})
        raw = self.provider.analyze_code(self.build_prompt(context))
        review = parse_response(raw)
        if self.cache is not None:
            self.cache.set(context.target_code, review.to_dict(), self.provider_name, self.model)
        return review

    def build_prompt(self, context: AnalysisContext) -> str:
        meta = context.metadata
        return REVIEW_PROMPT_TEMPLATE.format(
            file_path=meta.file_path,
            lines_of_code=meta.lines_of_code,
            function_count=len(meta.functions),
            complexity=meta.complexity,
            issues=format_detected_issues(context.detected_issues),
            similar=format_similar_patterns(context.similar_patterns),
            project_context=(
                f"\n=== PROJECT CONTEXT ===\n{context.project_context}\n"
                if context.project_context else ""
            ),
            code=context.target_code,
            schema=OUTPUT_SCHEMA_INSTRUCTION,
        )

    def _emit(self, event: str, detail: Dict[str, str]) -> None:
        if self.on_progress is not None:
            self.on_progress(event, detail)


# ===================================================================
# Prompt sections
# ===================================================================

def format_detected_issues(issues: Sequence[CodeIssue]) -> str:
    if not issues:
        return "None detected."
    return "\n".join(
        f"- [{i.severity}] {i.title}: {i.description} ({i.location.file}:{i.location.line})"
        for i in issues
    )


def format_similar_patterns(patterns: Sequence[Snippet]) -> str:
    if not patterns:
        return "No similar patterns found."
    blocks = []
    for p in patterns:
        preview = "\n".join(p.code.split("\n")[:_SIMILAR_PREVIEW_LINES])
        m = p.metadata
        blocks.append(
            f"--- {p.function_name} ({p.category}) @ {p.file_path}\n"
            f"async: {_js_bool(m.is_async)}, errorHandling: {_js_bool(m.has_error_handling)}, "
            f"AWS: {_js_bool(m.uses_aws)}, complexity: {m.complexity}\n"
            f"```\n{preview}\n```"
        )
    return "\n\n".join(blocks)


def _js_bool(value: bool) -> str:
    return "true" if value else "false"


# ===================================================================
# Response parsing
# ===================================================================

def parse_response(text: str) -> Review:
    """Extract and validate the review JSON from a provider response.

    Tolerates a surrounding markdown fence and chatter around the object.
    """
    fenced = _CODE_FENCE_RE.search(text)
    candidate = fenced.group(1).strip() if fenced else text.strip()
    braces = _OBJECT_RE.search(candidate)
    if braces:
        candidate = braces.group(0)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ReviewParseError(f"Response is not valid JSON: {exc}") from exc
    return review_from_dict(payload)


def review_from_dict(payload: Any) -> Review:
    if not isinstance(payload, dict):
        raise ReviewParseError("Review must be a JSON object")
    summary = payload.get("summary")
    if not isinstance(summary, str):
        raise ReviewParseError("summary must be a string")
    positives = payload.get("positives")
    if not isinstance(positives, list) or not all(isinstance(p, str) for p in positives):
        raise ReviewParseError("positives must be a list of strings")
    return Review(
        summary=summary,
        performance_issues=_items(payload, "performanceIssues"),
        readability_issues=_items(payload, "readabilityIssues"),
        maintainability_issues=_items(payload, "maintainabilityIssues"),
        positives=list(positives),
    )


def _items(payload: Dict[str, Any], key: str) -> List[ReviewItem]:
    raw = payload.get(key)
    if not isinstance(raw, list):
        raise ReviewParseError(f"{key} must be a list")
    return [_item(entry, f"{key}[{idx}]") for idx, entry in enumerate(raw)]


def _item(entry: Any, where: str) -> ReviewItem:
    if not isinstance(entry, dict):
        raise ReviewParseError(f"{where} must be an object")
    severity = entry.get("severity")
    if severity not in SEVERITIES:
        raise ReviewParseError(f"{where}.severity must be one of {', '.join(SEVERITIES)}")
    for key in ("title", "explanation", "suggestion"):
        if not isinstance(entry.get(key), str):
            raise ReviewParseError(f"{where}.{key} must be a string")
    location = entry.get("location")
    if not isinstance(location, dict):
        raise ReviewParseError(f"{where}.location must be an object")
    line = location.get("line")
    if isinstance(line, bool) or not isinstance(line, (int, float)):
        raise ReviewParseError(f"{where}.location.line must be a number")
    if not isinstance(location.get("snippet"), str):
        raise ReviewParseError(f"{where}.location.snippet must be a string")
    example = entry.get("example")
    if example is not None and not isinstance(example, str):
        raise ReviewParseError(f"{where}.example must be a string")
    return ReviewItem(
        severity=severity,
        title=entry["title"],
        explanation=entry["explanation"],
        line=int(line),
        snippet=location["snippet"],
        suggestion=entry["suggestion"],
        example=example,
    )
