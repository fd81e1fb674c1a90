"""Heuristic pattern detection over structural metadata.

Pure rule engine: the same ``(metadata, source)`` always yields the same
issues, in the same order. Rules run in a fixed sequence (performance,
readability, maintainability) and walk functions in declaration order.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .config_manager import Thresholds
from .models import CodeIssue, CodeMetadata, FunctionInfo, IssueLocation

# Textual approximation: also matches "await" inside strings and comments.
SUSPENSION_MARKER = re.compile(r"\bawait\b")


def count_suspension_lines(source_lines: List[str], start_line: int, end_line: int) -> int:
    """Count distinct lines in ``[start_line, end_line]`` holding a suspension marker.

    Two markers on one line count once.
    """
    start = max(0, start_line - 1)
    end = min(len(source_lines), end_line)
    return sum(1 for line in source_lines[start:end] if SUSPENSION_MARKER.search(line))


def extract_code_snippet(source_lines: List[str], line: int, context: int = 3) -> str:
    """Return ``context`` lines either side of *line* (1-based), clamped to the file."""
    start = max(0, line - 1 - context)
    end = min(len(source_lines), line + context)
    return "\n".join(source_lines[start:end])


class PatternDetector:
    """Detect performance, readability and maintainability smells."""

    def __init__(self, thresholds: Optional[Thresholds] = None) -> None:
        self.thresholds = thresholds or Thresholds()

    def detect_issues(self, metadata: CodeMetadata, source: str) -> List[CodeIssue]:
        lines = source.split("\n")
        return (
            self._detect_sequential_suspension(metadata, lines)
            + self._detect_long_functions(metadata, lines)
            + self._detect_file_complexity(metadata, lines)
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _detect_sequential_suspension(self, metadata: CodeMetadata, lines: List[str]) -> List[CodeIssue]:
        issues: List[CodeIssue] = []
        for fn in metadata.functions:
            if not fn.is_async:
                continue
            if count_suspension_lines(lines, fn.start_line, fn.end_line) < 2:
                continue
            issues.append(self._function_issue(
                metadata, fn, lines,
                kind="performance",
                severity="medium",
                title="Sequential async operations detected",
                description=(
                    "Multiple await statements execute sequentially. "
                    "Consider Promise.all() for parallel execution."
                ),
                suggested_fix="Use Promise.all() to run independent promises in parallel.",
            ))
        return issues

    def _detect_long_functions(self, metadata: CodeMetadata, lines: List[str]) -> List[CodeIssue]:
        t = self.thresholds
        issues: List[CodeIssue] = []
        for fn in metadata.functions:
            if fn.body_length <= t.max_statements and fn.complexity <= t.max_complexity:
                continue
            issues.append(self._function_issue(
                metadata, fn, lines,
                kind="readability",
                severity="high" if fn.complexity > t.high_complexity else "medium",
                title="Long or complex function",
                description=(
                    f"'{fn.name}' has {fn.body_length} statements and cyclomatic "
                    f"complexity {fn.complexity}. Consider splitting into smaller functions."
                ),
                suggested_fix="Extract logic into well-named helper functions.",
            ))
        return issues

    def _detect_file_complexity(self, metadata: CodeMetadata, lines: List[str]) -> List[CodeIssue]:
        t = self.thresholds
        if metadata.complexity <= t.file_complexity and len(metadata.functions) <= t.max_functions:
            return []
        return [CodeIssue(
            kind="maintainability",
            severity="low",
            location=IssueLocation(file=metadata.file_path, line=1),
            title="High file complexity",
            description=(
                f"File has {len(metadata.functions)} functions with total cyclomatic "
                f"complexity {metadata.complexity}. Consider splitting modules."
            ),
            suggested_fix="Split into smaller, focused modules.",
            code_snippet=extract_code_snippet(lines, 1, t.context_lines),
        )]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _function_issue(
        self,
        metadata: CodeMetadata,
        fn: FunctionInfo,
        lines: List[str],
        *,
        kind: str,
        severity: str,
        title: str,
        description: str,
        suggested_fix: str,
    ) -> CodeIssue:
        return CodeIssue(
            kind=kind,
            severity=severity,
            location=IssueLocation(file=metadata.file_path, line=fn.start_line, function_name=fn.name),
            title=title,
            description=description,
            suggested_fix=suggested_fix,
            code_snippet=extract_code_snippet(lines, fn.start_line, self.thresholds.context_lines),
        )
