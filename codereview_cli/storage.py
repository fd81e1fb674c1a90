"""Persistence for the project snippet index.

The whole index lives in one JSON snapshot (``.code-reviewer/index.json``)
that is rewritten wholesale on every save. Reads never raise: a missing,
unreadable or schema-invalid snapshot is reported as absent.
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .config import INDEX_FILE, INDEX_VERSION
from .models import IndexSnapshot, IndexStats, Snippet
from .parser import language_for
from .revision import GitRevisionControl

logger = logging.getLogger(__name__)


# ===================================================================
# IndexStore
# ===================================================================

class IndexStore:
    """Save and load the versioned snippet snapshot."""

    def __init__(
        self,
        index_file: Path = INDEX_FILE,
        revision_control: Optional[GitRevisionControl] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.index_file = Path(index_file)
        self.revision_control = revision_control or GitRevisionControl()
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, snippets: Sequence[Snippet], project_path: Path | str) -> IndexSnapshot:
        """Overwrite the snapshot with *snippets*.

        The current revision is recorded as the new baseline when it can be
        determined; otherwise the baseline is left out.
        """
        root = Path(project_path).resolve()
        revision = self.revision_control.current_revision(root)
        if not revision.available:
            self.logger.debug("No baseline revision recorded: %s", revision.reason)

        snapshot = IndexSnapshot(
            version=INDEX_VERSION,
            indexed_at=datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat(),
            project_path=str(root),
            git_hash=revision.value if revision.available else None,
            snippets=list(snippets),
            stats=compute_stats(snippets),
        )
        self.index_file.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.index_file.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")
        tmp.replace(self.index_file)
        self.logger.debug(
            "Saved %d snippet(s) from %d file(s) to %s",
            snapshot.stats.total_snippets, snapshot.stats.total_files, self.index_file,
        )
        return snapshot

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_snapshot(self) -> Optional[IndexSnapshot]:
        if not self.index_file.exists():
            return None
        try:
            payload = json.loads(self.index_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self.logger.warning("Ignoring unreadable index %s: %s", self.index_file, exc)
            return None
        if not isinstance(payload, dict) or payload.get("version") != INDEX_VERSION:
            self.logger.warning("Ignoring index %s with unsupported format", self.index_file)
            return None
        try:
            return IndexSnapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            self.logger.warning("Ignoring malformed index %s: %s", self.index_file, exc)
            return None

    def load_snippets(self) -> List[Snippet]:
        snapshot = self.load_snapshot()
        return list(snapshot.snippets) if snapshot else []

    def exists(self) -> bool:
        return self.index_file.is_file()

    def age(self) -> Optional[float]:
        """Seconds since the snapshot was written, or ``None`` if there is none."""
        snapshot = self.load_snapshot()
        if snapshot is None:
            return None
        indexed_at = parse_timestamp(snapshot.indexed_at)
        if indexed_at is None:
            return None
        return max(0.0, self.clock() - indexed_at)


# ===================================================================
# Helpers
# ===================================================================

def compute_stats(snippets: Sequence[Snippet]) -> IndexStats:
    files = {s.file_path for s in snippets}
    languages = {lang for lang in (language_for(f) for f in files) if lang}
    return IndexStats(
        total_files=len(files),
        total_snippets=len(snippets),
        categories=dict(Counter(s.category for s in snippets)),
        languages=sorted(languages),
    )


def parse_timestamp(value: str) -> Optional[float]:
    """Epoch seconds for an ISO-8601 timestamp (``Z`` suffix accepted)."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
