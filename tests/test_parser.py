"""Tests for the Tree-sitter structural analyzer."""

from pathlib import Path

import pytest

from codereview_cli.parser import ParseFailure, TypeScriptAnalyzer, is_ignored, iter_source_files, language_for


def test_language_for_extensions():
    assert language_for("a/b.ts") == "typescript"
    assert language_for("a/b.tsx") == "tsx"
    assert language_for("a/b.js") == "javascript"
    assert language_for("a/b.mjs") == "javascript"
    assert language_for("a/b.py") is None


def test_analyzer_loads_all_grammars(ts_analyzer: TypeScriptAnalyzer):
    for lang in ("typescript", "tsx", "javascript"):
        assert ts_analyzer.supports_language(lang)


def test_analyze_controller_file(ts_analyzer: TypeScriptAnalyzer, sample_project_path: Path):
    path = sample_project_path / "src" / "controllers" / "userController.ts"
    meta = ts_analyzer.analyze_file(path)

    assert [f.name for f in meta.functions] == ["getUser", "health"]
    get_user = meta.functions[0]
    assert get_user.start_line == 4
    assert get_user.end_line == 17
    assert get_user.is_async is True
    assert get_user.parameters == ("req", "res")
    assert get_user.return_type == "Promise<void>"
    assert get_user.body_length == 6
    assert get_user.complexity == 1

    assert [i.module_specifier for i in meta.imports] == ["express", "../services/userService"]
    assert meta.imports[0].named_imports == ("Request", "Response")
    assert meta.lines_of_code == len(path.read_text().split("\n"))


def test_analyze_classes_and_complexity(ts_analyzer: TypeScriptAnalyzer, sample_project_path: Path):
    meta = ts_analyzer.analyze_file(sample_project_path / "src" / "services" / "orderService.ts")

    assert len(meta.classes) == 1
    repo = meta.classes[0]
    assert repo.name == "OrderRepository"
    assert repo.methods == ("save", "find")
    assert repo.is_exported is True

    by_name = {f.name: f for f in meta.functions}
    assert set(by_name) == {"calculateTotal", "archiveOrder"}
    # for-of + if + &&
    assert by_name["calculateTotal"].complexity == 4
    assert by_name["calculateTotal"].parameters == ("order", "discount")
    assert by_name["calculateTotal"].return_type == "number"
    assert meta.complexity == 4 + by_name["archiveOrder"].complexity


def test_analyze_javascript(ts_analyzer: TypeScriptAnalyzer, sample_project_path: Path):
    meta = ts_analyzer.analyze_file(sample_project_path / "src" / "utils" / "legacy.js")
    retry = meta.functions[0]
    assert retry.name == "retry"
    # while + ternary + ||
    assert retry.complexity == 4
    assert retry.body_length == 5
    assert retry.return_type == "unknown"


def test_complexity_counts_each_branch_kind(ts_analyzer: TypeScriptAnalyzer):
    source = """function branchy(x: number, items: string[]): number {
  if (x > 0) {
    x -= 1;
  }
  for (let i = 0; i < 3; i++) {
    x += i;
  }
  for (const k in items) {
    x += 1;
  }
  while (x > 100) {
    x /= 2;
  }
  switch (x) {
    case 1:
      break;
    case 2:
      break;
    default:
      break;
  }
  return x > 1 || x < -1 ? 1 : 0;
}
"""
    meta = ts_analyzer.analyze_source(source, "branchy.ts")
    # 1 + if + for + for-in + while + 2 cases + || + ternary
    assert meta.functions[0].complexity == 9


def test_nested_functions_do_not_fold_into_parent(ts_analyzer: TypeScriptAnalyzer):
    source = """export function outer(values: number[]): number[] {
  const inner = (v: number) => (v > 0 && v < 10 ? v : 0);
  function helper(v: number): number {
    if (v) {
      return v;
    }
    return 0;
  }
  return values.map(inner).map(helper);
}
"""
    meta = ts_analyzer.analyze_source(source, "outer.ts")
    assert [f.name for f in meta.functions] == ["outer"]
    assert meta.functions[0].complexity == 1
    assert meta.functions[0].body_length == 3


def test_syntax_error_raises_parse_failure(ts_analyzer: TypeScriptAnalyzer, sample_project_path: Path):
    with pytest.raises(ParseFailure) as excinfo:
        ts_analyzer.analyze_file(sample_project_path / "src" / "utils" / "broken.ts")
    assert "syntax error" in excinfo.value.reason


def test_unreadable_file_raises_parse_failure(ts_analyzer: TypeScriptAnalyzer, temp_dir: Path):
    with pytest.raises(ParseFailure):
        ts_analyzer.analyze_file(temp_dir / "missing.ts")


def test_unsupported_extension(ts_analyzer: TypeScriptAnalyzer):
    with pytest.raises(ParseFailure):
        ts_analyzer.analyze_source("x = 1", "script.py")


def test_iter_source_files_skips_ignored(sample_project_path: Path):
    files = [p.relative_to(sample_project_path).as_posix()
             for p in iter_source_files(sample_project_path, ["node_modules"])]
    assert "node_modules/lib/index.ts" not in files
    assert files == sorted(files)
    assert "src/utils/legacy.js" in files
    assert "src/controllers/userController.ts" in files


def test_is_ignored_hidden_and_globs():
    assert is_ignored((".code-reviewer", "x.ts"), [])
    assert is_ignored(("dist", "x.ts"), ["dist"])
    assert is_ignored(("src", "x.spec.ts"), ["*.spec.ts"])
    assert not is_ignored(("src", "x.ts"), ["dist"])
