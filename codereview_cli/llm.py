"""Review providers for Ollama, Anthropic Claude and Google Gemini.

Each provider turns a prompt into raw response text (expected to be the
review JSON). Selection happens once, in :func:`create_provider`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

import requests

from .config_manager import PROVIDERS, AIConfig, ConfigurationError
from .prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

TEMPERATURE = 0.3
MAX_TOKENS = 4096


class ProviderError(Exception):
    """The review provider could not be reached or answered unexpectedly."""


class ReviewProvider:
    """Base class for review providers."""

    name = "provider"

    def analyze_code(self, prompt: str) -> str:
        """Send *prompt* and return the raw response text."""
        raise NotImplementedError


class OllamaProvider(ReviewProvider):
    """Local Ollama server."""

    name = "Ollama"

    def __init__(self, host: str, model: str, timeout: float = 300.0):
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout

    def analyze_code(self, prompt: str) -> str:
        data = _post_json(
            f"{self.host}/api/chat",
            headers={"Content-Type": "application/json"},
            payload={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "format": "json",
                "stream": False,
                "options": {"temperature": TEMPERATURE, "num_predict": MAX_TOKENS},
            },
            timeout=self.timeout,
            provider=self.name,
        )
        content = (data.get("message") or {}).get("content")
        if isinstance(content, list):
            return "".join(c if isinstance(c, str) else str(c.get("text", "")) for c in content)
        return "" if content is None else str(content)

    def health_check(self) -> bool:
        try:
            self.list_models()
            return True
        except ProviderError:
            return False

    def is_model_available(self) -> bool:
        try:
            models = self.list_models()
        except ProviderError:
            return False
        return any(m["name"] == self.model or m["name"].startswith(self.model + ":") for m in models)

    def list_models(self) -> List[Dict[str, Any]]:
        """Installed models as ``{"name", "size", "modified_at"}`` dicts."""
        try:
            response = requests.get(f"{self.host}/api/tags", timeout=10)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ProviderError(f"Cannot reach Ollama at {self.host}: {exc}") from exc
        return [
            {
                "name": m.get("name", ""),
                "size": int(m.get("size") or 0),
                "modified_at": m.get("modified_at", ""),
            }
            for m in data.get("models") or []
        ]


class ClaudeProvider(ReviewProvider):
    """Anthropic Messages API."""

    name = "Claude"
    endpoint = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def analyze_code(self, prompt: str) -> str:
        data = _post_json(
            self.endpoint,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self.api_key,
                "anthropic-version": "2023-06-01",
            },
            payload={
                "model": self.model,
                "max_tokens": MAX_TOKENS,
                "temperature": TEMPERATURE,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
            },
            timeout=self.timeout,
            provider=self.name,
        )
        content = data.get("content") or []
        first = content[0] if content else {}
        if first.get("type") == "text":
            return first.get("text", "")
        raise ProviderError("Unexpected Claude response: no text content")


class GeminiProvider(ReviewProvider):
    """Google Gemini ``generateContent`` API."""

    name = "Gemini"

    def __init__(self, api_key: str, model: str, timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.endpoint = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def analyze_code(self, prompt: str) -> str:
        data = _post_json(
            f"{self.endpoint}?key={self.api_key}",
            headers={"Content-Type": "application/json"},
            payload={
                "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": TEMPERATURE,
                    "maxOutputTokens": MAX_TOKENS,
                    "responseMimeType": "application/json",
                },
            },
            timeout=self.timeout,
            provider=self.name,
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        return "".join(p.get("text", "") for p in parts)


def create_provider(ai: AIConfig) -> Tuple[ReviewProvider, str]:
    """Build the configured provider and return it with its model name.

    Raises:
        ConfigurationError: unknown provider or missing API key.
    """
    if ai.provider not in PROVIDERS:
        raise ConfigurationError(f"Unknown AI provider: {ai.provider}")
    settings = ai.settings()
    if ai.provider == "ollama":
        return OllamaProvider(settings.host, settings.model), settings.model

    key_env = {"claude": "ANTHROPIC_API_KEY", "gemini": "GEMINI_API_KEY"}[ai.provider]
    if not settings.api_key:
        raise ConfigurationError(
            f"{ai.provider.capitalize()} requires {key_env} or ai.{ai.provider}.api_key"
        )
    cls = ClaudeProvider if ai.provider == "claude" else GeminiProvider
    return cls(settings.api_key, settings.model), settings.model


def _post_json(
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
    provider: str,
) -> Dict[str, Any]:
    try:
        response = requests.post(url, headers=headers, json=payload, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise ProviderError(f"{provider} request failed: {exc}") from exc
    # requests.JSONDecodeError is also a RequestException
    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderError(f"{provider} returned a non-JSON body") from exc
    if not isinstance(data, dict):
        raise ProviderError(f"{provider} returned an unexpected body")
    logger.debug("%s responded (%d bytes)", provider, len(response.content))
    return data
