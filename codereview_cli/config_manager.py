"""Configuration manager for the code reviewer using TOML files."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import toml

from .config import (
    DEFAULT_CACHE_TTL_DAYS,
    DEFAULT_IGNORE,
    DEFAULT_MODELS,
    DEFAULT_OLLAMA_HOST,
    PROJECT_CONFIG_NAME,
    USER_CONFIG_FILE,
)

PROVIDERS = ("ollama", "claude", "gemini")


class ConfigurationError(Exception):
    """Raised for configuration that cannot be used. Never retried."""


@dataclass
class ProviderSettings:
    model: str
    host: str = ""
    api_key: str = ""


@dataclass
class AIConfig:
    provider: str = "ollama"
    ollama: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(model=DEFAULT_MODELS["ollama"], host=DEFAULT_OLLAMA_HOST)
    )
    claude: ProviderSettings = field(default_factory=lambda: ProviderSettings(model=DEFAULT_MODELS["claude"]))
    gemini: ProviderSettings = field(default_factory=lambda: ProviderSettings(model=DEFAULT_MODELS["gemini"]))

    def settings(self) -> ProviderSettings:
        return getattr(self, self.provider)


@dataclass
class RulesConfig:
    performance: bool = True
    readability: bool = True
    maintainability: bool = True

    def enabled(self, kind: str) -> bool:
        return bool(getattr(self, kind, False))


@dataclass
class Thresholds:
    """Limits used by the pattern detector and the snippet indexer."""

    max_statements: int = 25
    max_complexity: int = 10
    high_complexity: int = 15
    file_complexity: int = 50
    max_functions: int = 15
    min_snippet_statements: int = 5
    context_lines: int = 3


@dataclass
class ReviewConfig:
    ai: AIConfig = field(default_factory=AIConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    ignore: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    indexing_enabled: bool = True
    thresholds: Thresholds = field(default_factory=Thresholds)
    cache_ttl_days: int = DEFAULT_CACHE_TTL_DAYS
    project_context: str = ""

    @property
    def cache_ttl_seconds(self) -> float:
        return float(self.cache_ttl_days) * 24 * 60 * 60


# ------------------------------------------------------------------
# Discovery
# ------------------------------------------------------------------

def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """Return the nearest project config walking up from *start*, else the user config."""
    current = (start or Path.cwd()).resolve()
    for directory in [current, *current.parents]:
        candidate = directory / PROJECT_CONFIG_NAME
        if candidate.is_file():
            return candidate
    if USER_CONFIG_FILE.is_file():
        return USER_CONFIG_FILE
    return None


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    start: Optional[Path] = None,
) -> ReviewConfig:
    """Load configuration from TOML and apply environment overrides.

    Args:
        path: Explicit config file. When omitted the file is discovered with
            :func:`find_config_file`; no file at all means defaults.
        env: Environment mapping (defaults to ``os.environ``).
        start: Directory to start discovery from (defaults to the cwd).

    Raises:
        ConfigurationError: The file is malformed or holds invalid values.
    """
    env = os.environ if env is None else env
    config_path = path or find_config_file(start)

    raw: Dict[str, Any] = {}
    if config_path is not None:
        try:
            raw = toml.load(str(config_path))
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {config_path}")
        except toml.TomlDecodeError as exc:
            raise ConfigurationError(f"Malformed config file {config_path}: {exc}") from exc

    config = parse_config(raw)
    _apply_env(config, env)
    if config.ai.provider not in PROVIDERS:
        raise ConfigurationError(
            f"Unknown AI provider '{config.ai.provider}' (expected one of: {', '.join(PROVIDERS)})"
        )
    return config


def parse_config(raw: Mapping[str, Any]) -> ReviewConfig:
    """Validate a raw config mapping into a :class:`ReviewConfig`."""
    config = ReviewConfig()

    ai = _section(raw, "ai")
    if "provider" in ai:
        config.ai.provider = str(ai["provider"]).lower()
    for name in PROVIDERS:
        sub = _section(ai, name)
        settings: ProviderSettings = getattr(config.ai, name)
        if "model" in sub:
            settings.model = str(sub["model"])
        if "host" in sub:
            settings.host = str(sub["host"])
        if "api_key" in sub:
            settings.api_key = str(sub["api_key"])

    rules = _section(raw, "rules")
    for kind in ("performance", "readability", "maintainability"):
        if kind in rules:
            value = rules[kind]
            if not isinstance(value, bool):
                raise ConfigurationError(f"rules.{kind} must be true or false, got {value!r}")
            setattr(config.rules, kind, value)

    if "ignore" in raw:
        ignore = raw["ignore"]
        if not isinstance(ignore, list) or not all(isinstance(p, str) for p in ignore):
            raise ConfigurationError("ignore must be a list of strings")
        config.ignore = list(ignore)

    indexing = _section(raw, "indexing")
    if "enabled" in indexing:
        if not isinstance(indexing["enabled"], bool):
            raise ConfigurationError("indexing.enabled must be true or false")
        config.indexing_enabled = indexing["enabled"]

    thresholds = _section(raw, "thresholds")
    for key, value in thresholds.items():
        if not hasattr(config.thresholds, key):
            raise ConfigurationError(f"Unknown threshold '{key}'")
        setattr(config.thresholds, key, _non_negative_int(f"thresholds.{key}", value))

    cache = _section(raw, "cache")
    if "ttl_days" in cache:
        config.cache_ttl_days = _non_negative_int("cache.ttl_days", cache["ttl_days"])

    review = _section(raw, "review")
    if "context" in review:
        if not isinstance(review["context"], str):
            raise ConfigurationError("review.context must be a string")
        config.project_context = review["context"]

    return config


def save_config(config: ReviewConfig, path: Path) -> None:
    """Write *config* to *path* as TOML (API keys are never written)."""
    ai: Dict[str, Any] = {"provider": config.ai.provider}
    for name in PROVIDERS:
        settings = asdict(getattr(config.ai, name))
        settings.pop("api_key", None)
        ai[name] = {k: v for k, v in settings.items() if v}
    payload = {
        "ai": ai,
        "rules": asdict(config.rules),
        "ignore": list(config.ignore),
        "indexing": {"enabled": config.indexing_enabled},
        "thresholds": asdict(config.thresholds),
        "cache": {"ttl_days": config.cache_ttl_days},
    }
    if config.project_context:
        payload["review"] = {"context": config.project_context}
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(payload, f)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _apply_env(config: ReviewConfig, env: Mapping[str, str]) -> None:
    if env.get("ANTHROPIC_API_KEY"):
        config.ai.claude.api_key = env["ANTHROPIC_API_KEY"]
    if env.get("GEMINI_API_KEY"):
        config.ai.gemini.api_key = env["GEMINI_API_KEY"]
    if env.get("OLLAMA_HOST"):
        config.ai.ollama.host = env["OLLAMA_HOST"]
    if env.get("AI_PROVIDER"):
        config.ai.provider = env["AI_PROVIDER"].lower()


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key, {})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"[{key}] must be a table")
    return value


def _non_negative_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")
    return value
