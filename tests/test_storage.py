"""Tests for the snapshot store."""

import json
from pathlib import Path

import pytest

from codereview_cli.indexer import SnippetIndexer
from codereview_cli.storage import IndexStore, compute_stats, parse_timestamp


@pytest.fixture
def store(temp_dir: Path, fake_git) -> IndexStore:
    return IndexStore(temp_dir / "state" / "index.json", revision_control=fake_git, clock=lambda: 1_700_000_000.0)


def test_missing_snapshot_reads_as_absent(store: IndexStore):
    assert store.exists() is False
    assert store.load_snapshot() is None
    assert store.load_snippets() == []
    assert store.age() is None


def test_save_and_load_round_trip(store: IndexStore, sample_project_path: Path):
    snippets = SnippetIndexer().index_project(sample_project_path)
    saved = store.save(snippets, sample_project_path)

    assert store.exists()
    assert saved.git_hash == "abc123"
    loaded = store.load_snapshot()
    assert loaded is not None
    assert loaded.version == 1
    assert loaded.project_path == str(sample_project_path.resolve())
    assert loaded.git_hash == "abc123"
    assert loaded.snippets == snippets
    assert loaded.stats.total_snippets == 5
    assert loaded.stats.total_files == 4
    assert loaded.stats.categories == {"controller": 1, "service": 2, "util": 2}
    assert loaded.stats.languages == ["javascript", "typescript"]


def test_snapshot_json_layout(store: IndexStore, sample_project_path: Path):
    store.save(SnippetIndexer().index_project(sample_project_path), sample_project_path)
    payload = json.loads(store.index_file.read_text())

    assert set(payload) == {"version", "indexedAt", "projectPath", "gitHash", "snippets", "metadata"}
    assert set(payload["metadata"]) == {"totalFiles", "totalSnippets", "categories", "languages"}
    snippet = payload["snippets"][0]
    assert set(snippet) == {"id", "filePath", "functionName", "code", "category", "metadata"}
    assert set(snippet["metadata"]) == {"isAsync", "hasErrorHandling", "usesAWS", "complexity"}


def test_save_without_revision_omits_baseline(temp_dir: Path, make_git):
    store = IndexStore(temp_dir / "index.json", revision_control=make_git(revision=None))
    snapshot = store.save([], temp_dir)
    assert snapshot.git_hash is None
    assert "gitHash" not in json.loads(store.index_file.read_text())
    assert store.load_snapshot().git_hash is None


def test_save_overwrites_previous_snapshot(store: IndexStore, sample_project_path: Path):
    snippets = SnippetIndexer().index_project(sample_project_path)
    store.save(snippets, sample_project_path)
    store.save(snippets[:1], sample_project_path)
    assert len(store.load_snippets()) == 1


@pytest.mark.parametrize("content", [
    "{not json",
    json.dumps({"version": 2, "indexedAt": "x", "projectPath": "/p", "snippets": []}),
    json.dumps({"version": 1, "indexedAt": "x", "projectPath": "/p"}),
    json.dumps({"version": 1, "indexedAt": "x", "projectPath": "/p",
                "snippets": [{"id": "a", "filePath": "/p/a.ts", "functionName": "a",
                              "code": "", "category": "bogus"}]}),
    json.dumps(["not", "an", "object"]),
])
def test_corrupt_snapshot_reads_as_absent(store: IndexStore, content: str):
    store.index_file.parent.mkdir(parents=True, exist_ok=True)
    store.index_file.write_text(content)
    assert store.load_snapshot() is None
    assert store.load_snippets() == []
    assert store.age() is None


def test_age_uses_clock(temp_dir: Path, fake_git):
    now = [1_700_000_000.0]
    store = IndexStore(temp_dir / "index.json", revision_control=fake_git, clock=lambda: now[0])
    store.save([], temp_dir)
    now[0] += 90
    assert store.age() == pytest.approx(90.0)


def test_compute_stats_counts_distinct_files():
    assert compute_stats([]).total_files == 0


def test_parse_timestamp():
    assert parse_timestamp("2023-11-14T22:13:20Z") == 1_700_000_000.0
    assert parse_timestamp("2023-11-14T22:13:20+00:00") == 1_700_000_000.0
    assert parse_timestamp("yesterday") is None
