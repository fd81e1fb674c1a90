"""Diff-based incremental re-indexing.

Snippets are replaced per file: every snippet of a changed file is dropped
and the file is re-indexed from scratch, even when only one function moved.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .config import DEFAULT_IGNORE, SUPPORTED_EXTENSIONS
from .indexer import SnippetIndexer
from .models import IndexSnapshot, Snippet
from .parser import ParseFailure, is_ignored, iter_source_files
from .revision import GitRevisionControl
from .storage import IndexStore

logger = logging.getLogger(__name__)


class IncrementalUpdater:
    """Bring a stored snapshot up to date with the working tree."""

    def __init__(
        self,
        store: IndexStore,
        indexer: SnippetIndexer,
        project_path: Path | str,
        ignore: Optional[Sequence[str]] = None,
        revision_control: Optional[GitRevisionControl] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.indexer = indexer
        self.project_path = Path(project_path).resolve()
        self.ignore = list(DEFAULT_IGNORE if ignore is None else ignore)
        self.revision_control = revision_control or store.revision_control
        self.logger = logger or logging.getLogger(__name__)

    def load_baseline(self) -> Optional[IndexSnapshot]:
        """The stored snapshot, or ``None`` when it indexes a different root."""
        snapshot = self.store.load_snapshot()
        if snapshot is not None and not self._belongs_here(snapshot):
            self.logger.warning(
                "Stored index belongs to %s, not %s; rebuilding from scratch",
                snapshot.project_path, self.project_path,
            )
            return None
        return snapshot

    def changed_files_since_baseline(
        self, snapshot: Optional[IndexSnapshot] = None,
    ) -> List[Path]:
        """Files changed since the snapshot's baseline revision.

        Without a baseline, or when the revision-control query is
        unavailable, every eligible source file counts as changed. Diff
        paths are relative to the project root, which may sit below the
        repository's top level.
        """
        if snapshot is None:
            snapshot = self.store.load_snapshot()
        if snapshot is None or not snapshot.git_hash or not self._belongs_here(snapshot):
            return self._all_source_files()

        diff = self.revision_control.changed_files(self.project_path, snapshot.git_hash)
        if not diff.available:
            self.logger.warning(
                "Cannot diff against %s (%s); rescanning all files",
                snapshot.git_hash[:12], diff.reason,
            )
            return self._all_source_files()

        changed: List[Path] = []
        for rel in diff.value or []:
            rel_path = Path(rel)
            if rel_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
                continue
            if is_ignored(rel_path.parts, self.ignore):
                continue
            changed.append((self.project_path / rel_path).resolve())
        return changed

    def merge_update(
        self,
        changed_files: Sequence[Path | str],
        previous: Sequence[Snippet],
    ) -> List[Snippet]:
        """Carry over snippets of unchanged files and re-index changed ones.

        A changed file that was deleted or no longer parses contributes no
        snippets.
        """
        changed = [Path(p).resolve() for p in changed_files]
        changed_set = {str(p) for p in changed}
        unchanged = [s for s in previous if str(Path(s.file_path).resolve()) not in changed_set]

        fresh: List[Snippet] = []
        for file_path in changed:
            if not file_path.exists():
                self.logger.debug("Dropping snippets of removed file %s", file_path)
                continue
            try:
                fresh.extend(self.indexer.index_file(file_path))
            except ParseFailure as exc:
                self.logger.warning("Skipping %s: %s", exc.file_path, exc.reason)
        return unchanged + fresh

    def update(self) -> IndexSnapshot:
        """Compute the changed set, merge, and save the new snapshot."""
        snapshot = self.load_baseline()
        changed = self.changed_files_since_baseline(snapshot)
        previous = snapshot.snippets if snapshot else []
        self.logger.debug("%d changed file(s) since last index", len(changed))
        merged = self.merge_update(changed, previous)
        return self.store.save(merged, self.project_path)

    def _belongs_here(self, snapshot: IndexSnapshot) -> bool:
        return Path(snapshot.project_path).resolve() == self.project_path

    def _all_source_files(self) -> List[Path]:
        return [p.resolve() for p in iter_source_files(self.project_path, self.ignore)]
