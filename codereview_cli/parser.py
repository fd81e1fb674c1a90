"""Structural analyzer for TypeScript / JavaScript sources built on Tree-sitter.

Extracts, per source file:
- top-level function declarations (parameters, return type, async flag,
  body statement count, cyclomatic complexity)
- class declarations and their method names
- import declarations

Complexity is a structural approximation: it starts at 1 and adds one per
branch construct found in the function body, without descending into nested
functions or classes.
"""

from __future__ import annotations

import fnmatch
import importlib
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import LANGUAGE_MAP
from .models import ClassInfo, CodeMetadata, FunctionInfo, ImportInfo

logger = logging.getLogger(__name__)

# language -> (grammar module, factory returning the Language capsule)
_GRAMMARS: Dict[str, Tuple[str, str]] = {
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "javascript": ("tree_sitter_javascript", "language"),
}

_FUNCTION_DECLS = {"function_declaration", "generator_function_declaration"}
_CLASS_DECLS = {"class_declaration", "abstract_class_declaration"}
_ANONYMOUS_FUNCTIONS = {"function_expression", "function", "generator_function"}
_METHOD_NODES = {"method_definition", "abstract_method_signature"}

# Nodes that open a new function/class scope; complexity never crosses them.
_SCOPE_BOUNDARIES = _FUNCTION_DECLS | _CLASS_DECLS | _ANONYMOUS_FUNCTIONS | {
    "arrow_function", "method_definition", "class",
}
_BRANCH_NODES = {
    "if_statement",
    "for_statement",
    "for_in_statement",  # covers for-in and for-of
    "while_statement",
    "switch_case",
    "ternary_expression",
}
_SHORT_CIRCUIT_OPERATORS = {"&&", "||"}


class ParseFailure(Exception):
    """A source file could not be read or parsed as valid syntax."""

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f"{file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason


def language_for(file_path: str) -> Optional[str]:
    return LANGUAGE_MAP.get(Path(file_path).suffix.lower())


def iter_source_files(root: Path, ignore: Sequence[str] = ()) -> Iterator[Path]:
    """Yield supported source files under *root*, sorted, skipping ignored paths.

    Hidden files and directories are always skipped. Each entry in *ignore*
    is a glob matched against every component of the path relative to
    *root* (``node_modules`` skips any ``node_modules`` directory).
    """
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file() or file_path.suffix.lower() not in LANGUAGE_MAP:
            continue
        rel_parts = file_path.relative_to(root).parts
        if is_ignored(rel_parts, ignore):
            continue
        yield file_path


def is_ignored(rel_parts: Iterable[str], ignore: Sequence[str]) -> bool:
    for part in rel_parts:
        if part.startswith(".") and part not in (".", ".."):
            return True
        if any(fnmatch.fnmatch(part, pattern) for pattern in ignore):
            return True
    return False


class TypeScriptAnalyzer:
    """Error-intolerant structural analyzer over Tree-sitter grammars.

    Tree-sitter recovers from syntax errors; this analyzer does not. Any
    ERROR or MISSING node in the tree is reported as :class:`ParseFailure`
    so callers can skip the file.
    """

    def __init__(
        self,
        languages: Optional[List[str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._parsers: Dict[str, Any] = {}
        self._requested_languages = languages or list(_GRAMMARS)
        self._init_parsers()

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def _init_parsers(self) -> None:
        from tree_sitter import Language, Parser as TSParser

        for lang in self._requested_languages:
            grammar = _GRAMMARS.get(lang)
            if grammar is None:
                self.logger.warning("No grammar module mapped for language '%s'", lang)
                continue
            mod_name, factory = grammar
            try:
                mod = importlib.import_module(mod_name)
            except ImportError:
                self.logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, lang, mod_name.replace("_", "-"),
                )
                continue
            self._parsers[lang] = TSParser(Language(getattr(mod, factory)()))
            self.logger.debug("Loaded tree-sitter parser for %s", lang)

    def supports_language(self, language: str) -> bool:
        return language in self._parsers

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def analyze_file(self, file_path: Path | str) -> CodeMetadata:
        """Parse one source file into :class:`CodeMetadata`.

        Raises:
            ParseFailure: unreadable file, unsupported extension, or syntax errors.
        """
        path = Path(file_path)
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseFailure(str(path), f"cannot read file: {exc}") from exc
        return self.analyze_source(source, str(path))

    def analyze_source(self, source: str, file_path: str) -> CodeMetadata:
        lang = language_for(file_path)
        if lang is None:
            raise ParseFailure(file_path, "unsupported file type")
        parser = self._parsers.get(lang)
        if parser is None:
            raise ParseFailure(file_path, f"no parser available for {lang}")

        tree = parser.parse(source.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            line = _first_error_line(root)
            raise ParseFailure(file_path, f"syntax error near line {line}")

        functions: List[FunctionInfo] = []
        classes: List[ClassInfo] = []
        imports: List[ImportInfo] = []

        for child in root.named_children:
            outer = child
            decl = child
            exported = False
            if child.type == "export_statement":
                exported = True
                decl = child.child_by_field_name("declaration") or child.child_by_field_name("value")
                if decl is None:
                    continue

            if decl.type in _FUNCTION_DECLS or (exported and decl.type in _ANONYMOUS_FUNCTIONS):
                functions.append(_function_info(outer, decl))
            elif decl.type in _CLASS_DECLS:
                classes.append(_class_info(outer, decl, exported))
            elif decl.type == "import_statement":
                imports.append(_import_info(decl))

        return CodeMetadata(
            file_path=file_path,
            functions=tuple(functions),
            classes=tuple(classes),
            imports=tuple(imports),
            complexity=sum(f.complexity for f in functions),
            lines_of_code=len(source.split("\n")),
        )


# ===================================================================
# Extraction helpers
# ===================================================================

def _text(node: Any) -> str:
    return node.text.decode("utf-8")


def _line(node: Any) -> int:
    return node.start_point[0] + 1


def _end_line(node: Any) -> int:
    return node.end_point[0] + 1


def _function_info(outer: Any, fn: Any) -> FunctionInfo:
    name_node = fn.child_by_field_name("name")
    body = fn.child_by_field_name("body")
    is_async = any(ch.type == "async" for ch in fn.children)
    return FunctionInfo(
        name=_text(name_node) if name_node is not None else "anonymous",
        start_line=_line(outer),
        end_line=_end_line(outer),
        parameters=tuple(_parameter_names(fn.child_by_field_name("parameters"))),
        return_type=_return_type(fn, body, is_async),
        is_async=is_async,
        body_length=statement_count(body),
        complexity=cyclomatic_complexity(body),
    )


def _parameter_names(params: Any) -> List[str]:
    if params is None:
        return []
    names: List[str] = []
    for param in params.named_children:
        if param.type == "comment":
            continue
        pattern = param
        if param.type in ("required_parameter", "optional_parameter"):
            pattern = param.child_by_field_name("pattern") or param
        if pattern.type == "assignment_pattern":
            pattern = pattern.child_by_field_name("left") or pattern
        if pattern.type == "rest_pattern":
            inner = [c for c in pattern.named_children if c.type == "identifier"]
            names.append(_text(inner[0]) if inner else _text(pattern).lstrip("."))
            continue
        names.append(_text(pattern))
    return names


def _return_type(fn: Any, body: Any, is_async: bool) -> str:
    annotation = fn.child_by_field_name("return_type")
    if annotation is not None:
        return _text(annotation).lstrip(":").strip()
    inferred = "unknown" if _returns_value(body) else "void"
    return f"Promise<{inferred}>" if is_async else inferred


def _returns_value(body: Any) -> bool:
    if body is None:
        return False
    stack = list(body.children)
    while stack:
        node = stack.pop()
        if node.type in _SCOPE_BOUNDARIES:
            continue
        if node.type == "return_statement" and node.named_child_count > 0:
            return True
        stack.extend(node.children)
    return False


def statement_count(body: Any) -> int:
    """Number of direct statements in a function's top-level block."""
    if body is None:
        return 0
    return sum(1 for ch in body.named_children if ch.type != "comment")


def cyclomatic_complexity(body: Any) -> int:
    complexity = 1
    if body is None:
        return complexity
    stack = list(body.children)
    while stack:
        node = stack.pop()
        if node.type in _SCOPE_BOUNDARIES:
            continue
        if node.type in _BRANCH_NODES:
            complexity += 1
        elif node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in _SHORT_CIRCUIT_OPERATORS:
                complexity += 1
        stack.extend(node.children)
    return complexity


def _class_info(outer: Any, cls: Any, exported: bool) -> ClassInfo:
    name_node = cls.child_by_field_name("name")
    methods: List[str] = []
    body = cls.child_by_field_name("body")
    if body is not None:
        for member in body.named_children:
            if member.type in _METHOD_NODES:
                method_name = member.child_by_field_name("name")
                if method_name is not None:
                    methods.append(_text(method_name))
    return ClassInfo(
        name=_text(name_node) if name_node is not None else "Anonymous",
        start_line=_line(outer),
        methods=tuple(methods),
        is_exported=exported,
    )


def _import_info(node: Any) -> ImportInfo:
    source = node.child_by_field_name("source")
    specifier = _text(source).strip("'\"`") if source is not None else ""
    default_import: Optional[str] = None
    named: List[str] = []
    for clause in node.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                default_import = _text(part)
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    if name_node is not None:
                        named.append(_text(name_node))
    return ImportInfo(
        module_specifier=specifier,
        named_imports=tuple(named),
        default_import=default_import,
        line=_line(node),
    )


def _first_error_line(root: Any) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return _line(node)
        if node.has_error:
            stack.extend(reversed(node.children))
    return _line(root)
