"""Snippet extraction and keyword-overlap similarity search."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from .config import DEFAULT_IGNORE
from .models import SNIPPET_CATEGORIES, CodeMetadata, FunctionInfo, Snippet, SnippetMetadata
from .parser import ParseFailure, TypeScriptAnalyzer, iter_source_files

logger = logging.getLogger(__name__)

MIN_SNIPPET_STATEMENTS = 5

_IMPORT_RE = re.compile(r"import\s+.*?\s+from\s+['\"]([^'\"]+)['\"]")
_CALL_RE = re.compile(r"(\w+)\s*\(")
_AWS_MARKERS = ("AWS", "@aws-sdk", "aws-sdk")


# ------------------------------------------------------------------
# Textual heuristics (may false-positive inside strings and comments)
# ------------------------------------------------------------------

def has_error_handling(code: str) -> bool:
    return "try" in code and "catch" in code


def uses_aws(code: str) -> bool:
    return any(marker in code for marker in _AWS_MARKERS)


def categorize(file_path: str) -> str:
    """Pick a category from path substrings: controller > service > repository > middleware."""
    lower = file_path.lower()
    for category in SNIPPET_CATEGORIES[:-1]:
        if category in lower:
            return category
    return "util"


def extract_keywords(code: str) -> Set[str]:
    """Import specifiers plus identifiers that are immediately called."""
    keywords = {m.group(1) for m in _IMPORT_RE.finditer(code)}
    keywords.update(m.group(1) for m in _CALL_RE.finditer(code))
    return keywords


def keyword_overlap(keywords: Iterable[str], code: str) -> int:
    return sum(1 for kw in keywords if kw in code)


def snippet_id(file_path: str, function_name: str, start_line: int) -> str:
    return f"{file_path}:{function_name}:{start_line}"


class SnippetIndexer:
    """Extract representative function snippets from a project."""

    def __init__(
        self,
        ignore: Optional[Sequence[str]] = None,
        analyzer: Optional[TypeScriptAnalyzer] = None,
        min_statements: int = MIN_SNIPPET_STATEMENTS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.ignore = list(DEFAULT_IGNORE if ignore is None else ignore)
        self.min_statements = min_statements
        self.logger = logger or logging.getLogger(__name__)
        self.analyzer = analyzer or TypeScriptAnalyzer(logger=self.logger)
        self._snippets: List[Snippet] = []

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index_project(self, root: Path | str) -> List[Snippet]:
        """Index every eligible file under *root*; unparsable files are skipped."""
        root_path = Path(root).resolve()
        snippets: List[Snippet] = []
        for file_path in iter_source_files(root_path, self.ignore):
            try:
                snippets.extend(self.index_file(file_path))
            except ParseFailure as exc:
                self.logger.warning("Skipping %s: %s", exc.file_path, exc.reason)
        self._snippets = snippets
        self.logger.debug("Indexed %d snippet(s) under %s", len(snippets), root_path)
        return list(snippets)

    def index_file(self, file_path: Path | str) -> List[Snippet]:
        """Snippets for one file.

        Raises:
            ParseFailure: the file cannot be read or parsed.
        """
        path = Path(file_path).resolve()
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseFailure(str(path), f"cannot read file: {exc}") from exc
        metadata = self.analyzer.analyze_source(source, str(path))
        return self.extract_snippets(metadata, source)

    def extract_snippets(self, metadata: CodeMetadata, source: str) -> List[Snippet]:
        lines = source.split("\n")
        snippets: List[Snippet] = []
        for fn in metadata.functions:
            if fn.body_length < self.min_statements:
                continue
            code = _function_code(lines, fn)
            snippets.append(Snippet(
                id=snippet_id(metadata.file_path, fn.name, fn.start_line),
                file_path=metadata.file_path,
                function_name=fn.name,
                code=code,
                category=categorize(metadata.file_path),
                metadata=SnippetMetadata(
                    is_async=fn.is_async,
                    has_error_handling=has_error_handling(code),
                    uses_aws=uses_aws(code),
                    complexity=fn.complexity,
                ),
            ))
        return snippets

    def get_snippets(self) -> List[Snippet]:
        return list(self._snippets)

    # ------------------------------------------------------------------
    # Similarity
    # ------------------------------------------------------------------

    def find_similar(
        self,
        target_code: str,
        limit: int = 5,
        snippets: Optional[Sequence[Snippet]] = None,
    ) -> List[Snippet]:
        """Rank *snippets* by keyword overlap with *target_code*.

        Zero-overlap candidates are dropped; ties keep their pool order.
        """
        keywords = extract_keywords(target_code)
        if not keywords:
            return []
        pool = self._snippets if snippets is None else snippets
        scored = [(s, keyword_overlap(keywords, s.code)) for s in pool]
        ranked = sorted((pair for pair in scored if pair[1] > 0), key=lambda pair: -pair[1])
        return [s for s, _ in ranked[:max(limit, 0)]]


def _function_code(lines: List[str], fn: FunctionInfo) -> str:
    start = max(0, fn.start_line - 1)
    end = min(len(lines), fn.end_line)
    return "\n".join(lines[start:end])
