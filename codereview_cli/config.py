"""Configuration paths and defaults for local code-review state."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Set

BASE_DIR = Path(os.environ.get("CODEREVIEW_HOME", ".code-reviewer")).expanduser()
INDEX_FILE = BASE_DIR / "index.json"
CACHE_DIR = BASE_DIR / "cache"
USER_CONFIG_FILE = Path.home() / ".code-reviewer" / "config.toml"
PROJECT_CONFIG_NAME = ".codereviewer.toml"

INDEX_VERSION = 1
DEFAULT_CACHE_TTL_DAYS = 7
DEFAULT_CACHE_TTL = DEFAULT_CACHE_TTL_DAYS * 24 * 60 * 60

LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}
SUPPORTED_EXTENSIONS: Set[str] = set(LANGUAGE_MAP)
DEFAULT_IGNORE: List[str] = ["node_modules", "dist", "build"]

DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_MODELS: Dict[str, str] = {
    "ollama": "codellama:13b",
    "claude": "claude-sonnet-4-5-20250929",
    "gemini": "gemini-2.0-flash",
}
