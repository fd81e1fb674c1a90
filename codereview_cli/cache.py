"""Content-addressed result cache with TTL and producer-keyed invalidation.

One JSON file per SHA-256 of the cached input. An entry only counts as a hit
while it is younger than the TTL *and* was written by the same producer and
producer version as the reader asks for; anything else is deleted on read.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .config import CACHE_DIR, DEFAULT_CACHE_TTL
from .models import CacheEntry

logger = logging.getLogger(__name__)


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class ContentCache:
    """File-backed cache keyed by ``sha256(content)`` plus producer identity."""

    def __init__(
        self,
        cache_dir: Path = CACHE_DIR,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    def _entry_path(self, code_hash: str) -> Path:
        return self.cache_dir / f"{code_hash}.json"

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, content: str, producer_id: str, producer_version: str) -> Optional[Any]:
        """Cached payload for *content*, or ``None`` on a miss."""
        code_hash = content_hash(content)
        path = self._entry_path(code_hash)
        if not path.exists():
            return None
        try:
            entry = CacheEntry.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError,
                KeyError, TypeError, ValueError) as exc:
            self.logger.debug("Unreadable cache entry %s: %s", path.name, exc)
            return None

        expired = self.clock() - entry.timestamp >= self.ttl
        mismatch = entry.producer_id != producer_id or entry.producer_version != producer_version
        if expired or mismatch:
            self.logger.debug(
                "Evicting cache entry %s (%s)",
                code_hash[:12], "expired" if expired else "producer mismatch",
            )
            self.delete(code_hash)
            return None
        return entry.payload

    def set(self, content: str, payload: Any, producer_id: str, producer_version: str) -> str:
        """Store *payload* for *content*; returns the content hash."""
        code_hash = content_hash(content)
        entry = CacheEntry(
            code_hash=code_hash,
            payload=payload,
            timestamp=self.clock(),
            producer_id=producer_id,
            producer_version=producer_version,
        )
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._entry_path(code_hash).write_text(
            json.dumps(entry.to_dict(), indent=2), encoding="utf-8",
        )
        return code_hash

    def delete(self, code_hash: str) -> None:
        try:
            self._entry_path(code_hash).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            self.logger.warning("Cannot delete cache entry %s: %s", code_hash[:12], exc)

    def clear(self) -> int:
        """Remove every entry; returns how many were deleted."""
        if not self.cache_dir.is_dir():
            return 0
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            try:
                path.unlink()
                removed += 1
            except OSError as exc:
                self.logger.warning("Cannot delete cache entry %s: %s", path.name, exc)
        return removed

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        """``count``, ``size`` (bytes) and ``oldest_age`` (seconds, or ``None``)."""
        count = 0
        size = 0
        oldest: Optional[float] = None
        if self.cache_dir.is_dir():
            for path in self.cache_dir.glob("*.json"):
                try:
                    st = path.stat()
                except OSError:
                    continue
                count += 1
                size += st.st_size
                if oldest is None or st.st_mtime < oldest:
                    oldest = st.st_mtime
        return {
            "count": count,
            "size": size,
            "oldest_age": None if oldest is None else max(0.0, self.clock() - oldest),
        }
