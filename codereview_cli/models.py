"""Core data models shared by the analyzer, indexer, cache and review layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")

ISSUE_KINDS: Tuple[str, ...] = ("performance", "readability", "maintainability")
SEVERITIES: Tuple[str, ...] = ("high", "medium", "low")
# Ordered by categorisation priority; "util" is the fallback.
SNIPPET_CATEGORIES: Tuple[str, ...] = (
    "controller", "service", "repository", "middleware", "util",
)


# ===================================================================
# Structural metadata (one analysis call, never persisted)
# ===================================================================

@dataclass(frozen=True)
class FunctionInfo:
    name: str
    start_line: int
    end_line: int
    parameters: Tuple[str, ...] = ()
    return_type: str = "void"
    is_async: bool = False
    body_length: int = 0
    complexity: int = 1


@dataclass(frozen=True)
class ClassInfo:
    name: str
    start_line: int
    methods: Tuple[str, ...] = ()
    is_exported: bool = False


@dataclass(frozen=True)
class ImportInfo:
    module_specifier: str
    named_imports: Tuple[str, ...] = ()
    default_import: Optional[str] = None
    line: int = 1


@dataclass(frozen=True)
class CodeMetadata:
    file_path: str
    functions: Tuple[FunctionInfo, ...] = ()
    classes: Tuple[ClassInfo, ...] = ()
    imports: Tuple[ImportInfo, ...] = ()
    complexity: int = 0
    lines_of_code: int = 0


# ===================================================================
# Issues
# ===================================================================

@dataclass(frozen=True)
class IssueLocation:
    file: str
    line: int
    function_name: Optional[str] = None


@dataclass(frozen=True)
class CodeIssue:
    kind: str
    severity: str
    location: IssueLocation
    title: str
    description: str
    code_snippet: str
    suggested_fix: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        location: Dict[str, Any] = {"file": self.location.file, "line": self.location.line}
        if self.location.function_name:
            location["functionName"] = self.location.function_name
        payload: Dict[str, Any] = {
            "type": self.kind,
            "severity": self.severity,
            "location": location,
            "title": self.title,
            "description": self.description,
            "codeSnippet": self.code_snippet,
        }
        if self.suggested_fix:
            payload["suggestedFix"] = self.suggested_fix
        return payload


# ===================================================================
# Snippets and snapshots (persisted)
# ===================================================================

@dataclass(frozen=True)
class SnippetMetadata:
    is_async: bool = False
    has_error_handling: bool = False
    uses_aws: bool = False
    complexity: int = 1


@dataclass(frozen=True)
class Snippet:
    id: str
    file_path: str
    function_name: str
    code: str
    category: str
    metadata: SnippetMetadata = field(default_factory=SnippetMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filePath": self.file_path,
            "functionName": self.function_name,
            "code": self.code,
            "category": self.category,
            "metadata": {
                "isAsync": self.metadata.is_async,
                "hasErrorHandling": self.metadata.has_error_handling,
                "usesAWS": self.metadata.uses_aws,
                "complexity": self.metadata.complexity,
            },
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Snippet":
        """Build a snippet from its on-disk form.

        Raises ``KeyError`` / ``TypeError`` / ``ValueError`` when the record
        does not match the schema.
        """
        category = payload["category"]
        if category not in SNIPPET_CATEGORIES:
            raise ValueError(f"unknown snippet category: {category!r}")
        meta = payload.get("metadata") or {}
        if not isinstance(meta, dict):
            raise TypeError("snippet metadata must be an object")
        return cls(
            id=_require_str(payload, "id"),
            file_path=_require_str(payload, "filePath"),
            function_name=_require_str(payload, "functionName"),
            code=_require_str(payload, "code"),
            category=category,
            metadata=SnippetMetadata(
                is_async=bool(meta.get("isAsync", False)),
                has_error_handling=bool(meta.get("hasErrorHandling", False)),
                uses_aws=bool(meta.get("usesAWS", False)),
                complexity=int(meta.get("complexity", 1)),
            ),
        )


@dataclass
class IndexStats:
    total_files: int = 0
    total_snippets: int = 0
    categories: Dict[str, int] = field(default_factory=dict)
    languages: List[str] = field(default_factory=list)


@dataclass
class IndexSnapshot:
    version: int
    indexed_at: str
    project_path: str
    snippets: List[Snippet] = field(default_factory=list)
    stats: IndexStats = field(default_factory=IndexStats)
    git_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "version": self.version,
            "indexedAt": self.indexed_at,
            "projectPath": self.project_path,
        }
        if self.git_hash:
            payload["gitHash"] = self.git_hash
        payload["snippets"] = [s.to_dict() for s in self.snippets]
        payload["metadata"] = {
            "totalFiles": self.stats.total_files,
            "totalSnippets": self.stats.total_snippets,
            "categories": dict(self.stats.categories),
            "languages": list(self.stats.languages),
        }
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "IndexSnapshot":
        raw_snippets = payload["snippets"]
        if not isinstance(raw_snippets, list):
            raise TypeError("snippets must be a list")
        meta = payload.get("metadata") or {}
        git_hash = payload.get("gitHash")
        if git_hash is not None and not isinstance(git_hash, str):
            raise TypeError("gitHash must be a string")
        return cls(
            version=int(payload["version"]),
            indexed_at=_require_str(payload, "indexedAt"),
            project_path=_require_str(payload, "projectPath"),
            git_hash=git_hash or None,
            snippets=[Snippet.from_dict(s) for s in raw_snippets],
            stats=IndexStats(
                total_files=int(meta.get("totalFiles", 0)),
                total_snippets=int(meta.get("totalSnippets", len(raw_snippets))),
                categories={str(k): int(v) for k, v in (meta.get("categories") or {}).items()},
                languages=[str(lang) for lang in meta.get("languages") or []],
            ),
        )


# ===================================================================
# Cache entries
# ===================================================================

@dataclass
class CacheEntry:
    code_hash: str
    payload: Any
    timestamp: float
    producer_id: str
    producer_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "codeHash": self.code_hash,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "producerId": self.producer_id,
            "producerVersion": self.producer_version,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CacheEntry":
        return cls(
            code_hash=_require_str(payload, "codeHash"),
            payload=payload["payload"],
            timestamp=float(payload["timestamp"]),
            producer_id=_require_str(payload, "producerId"),
            producer_version=_require_str(payload, "producerVersion"),
        )


# ===================================================================
# Best-effort lookups
# ===================================================================

@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Outcome of a best-effort external query: a value, or why there is none."""

    value: Optional[T] = None
    reason: str = ""
    available: bool = False

    @classmethod
    def of(cls, value: T) -> "Lookup[T]":
        return cls(value=value, available=True)

    @classmethod
    def unavailable(cls, reason: str) -> "Lookup[T]":
        return cls(reason=reason)


# ===================================================================
# Reviews (produced by the external review provider)
# ===================================================================

@dataclass
class ReviewItem:
    severity: str
    title: str
    explanation: str
    line: int
    snippet: str
    suggestion: str
    example: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "severity": self.severity,
            "title": self.title,
            "explanation": self.explanation,
            "location": {"line": self.line, "snippet": self.snippet},
            "suggestion": self.suggestion,
        }
        if self.example:
            payload["example"] = self.example
        return payload


@dataclass
class Review:
    summary: str
    performance_issues: List[ReviewItem] = field(default_factory=list)
    readability_issues: List[ReviewItem] = field(default_factory=list)
    maintainability_issues: List[ReviewItem] = field(default_factory=list)
    positives: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "performanceIssues": [i.to_dict() for i in self.performance_issues],
            "readabilityIssues": [i.to_dict() for i in self.readability_issues],
            "maintainabilityIssues": [i.to_dict() for i in self.maintainability_issues],
            "positives": list(self.positives),
        }


def _require_str(payload: Dict[str, Any], key: str) -> str:
    value = payload[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value
