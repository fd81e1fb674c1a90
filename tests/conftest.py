"""Pytest configuration and fixtures for code reviewer tests."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Generator, List, Optional

import pytest
import requests

from codereview_cli.llm import ReviewProvider
from codereview_cli.models import Lookup
from codereview_cli.parser import TypeScriptAnalyzer


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path_factory):
    """Keep tests away from the network, the user's config and provider env vars.

    Any provider call that is not explicitly mocked fails fast with a
    connection error instead of trying localhost:11434 or a cloud API.
    """
    def _no_network(*args, **kwargs):
        raise requests.ConnectionError("network disabled in tests")

    monkeypatch.setattr("codereview_cli.llm.requests.post", _no_network)
    monkeypatch.setattr("codereview_cli.llm.requests.get", _no_network)

    fake_home = tmp_path_factory.mktemp("home")
    monkeypatch.setattr(
        "codereview_cli.config_manager.USER_CONFIG_FILE",
        fake_home / ".code-reviewer" / "config.toml",
    )
    for var in ("ANTHROPIC_API_KEY", "GEMINI_API_KEY", "OLLAMA_HOST", "AI_PROVIDER"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def project_copy(temp_dir: Path, sample_project_path: Path) -> Path:
    """A writable copy of the sample project."""
    target = temp_dir / "project"
    shutil.copytree(sample_project_path, target)
    return target.resolve()


@pytest.fixture(scope="session")
def ts_analyzer() -> TypeScriptAnalyzer:
    return TypeScriptAnalyzer()


class FakeRevisionControl:
    """Scriptable stand-in for :class:`GitRevisionControl`.

    ``revision=None`` makes the revision lookup unavailable; ``changed=None``
    makes the diff unavailable.
    """

    def __init__(self, revision: Optional[str] = "abc123", changed: Optional[List[str]] = None):
        self.revision = revision
        self.changed = changed
        self.diff_calls: List[str] = []

    def current_revision(self, root: Path) -> Lookup:
        if self.revision is None:
            return Lookup.unavailable("not a git repository")
        return Lookup.of(self.revision)

    def changed_files(self, root: Path, since: str) -> Lookup:
        self.diff_calls.append(since)
        if self.changed is None:
            return Lookup.unavailable(f"unknown revision {since}")
        return Lookup.of(list(self.changed))


@pytest.fixture
def fake_git() -> FakeRevisionControl:
    return FakeRevisionControl()


@pytest.fixture
def make_git():
    """Factory for :class:`FakeRevisionControl` with custom answers."""
    return FakeRevisionControl


class MockProvider(ReviewProvider):
    """Review provider that returns a canned response and records prompts."""

    name = "Mock"

    def __init__(self, response: str):
        self.response = response
        self.prompts: List[str] = []

    def analyze_code(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.response


@pytest.fixture
def review_payload() -> dict:
    return {
        "summary": "Sequential awaits slow down the handler.",
        "performanceIssues": [
            {
                "severity": "medium",
                "title": "Sequential awaits",
                "explanation": "findById and findOrders do not depend on each other.",
                "location": {"line": 10, "snippet": "await service.findById(id)"},
                "suggestion": "Run both lookups with Promise.all().",
                "example": "const [user, orders] = await Promise.all([a, b]);",
            }
        ],
        "readabilityIssues": [],
        "maintainabilityIssues": [
            {
                "severity": "low",
                "title": "Magic status code",
                "explanation": "500 is repeated inline.",
                "location": {"line": 14, "snippet": "res.status(500)"},
                "suggestion": "Use a named constant.",
            }
        ],
        "positives": ["Errors are caught and reported."],
    }


@pytest.fixture
def mock_provider(review_payload: dict) -> MockProvider:
    return MockProvider(json.dumps(review_payload))
