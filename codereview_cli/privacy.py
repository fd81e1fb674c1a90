"""Strip identifying details from snippets before they leave the machine."""

from __future__ import annotations

import dataclasses
import re

from .models import Snippet

_DOUBLE_QUOTED = re.compile(r'"[^"]*"')
_SINGLE_QUOTED = re.compile(r"'[^']*'")
_TEMPLATE = re.compile(r"`[^`]*`")


def anonymize_path(path: str) -> str:
    """Keep only the last three path components, joined with ``/``."""
    parts = re.split(r"[/\\]", path)
    return "/".join(parts[-3:])


def remove_literals(code: str) -> str:
    code = _DOUBLE_QUOTED.sub('"***"', code)
    code = _SINGLE_QUOTED.sub("'***'", code)
    return _TEMPLATE.sub("`***`", code)


class PrivacyManager:
    def sanitize_for_sharing(self, snippet: Snippet) -> Snippet:
        return dataclasses.replace(
            snippet,
            file_path=anonymize_path(snippet.file_path),
            code=remove_literals(snippet.code),
        )
