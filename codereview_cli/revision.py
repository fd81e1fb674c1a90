"""Best-effort git queries used to compute incremental index baselines.

Every query returns a :class:`~codereview_cli.models.Lookup`; a missing git
binary, a non-repository, a bad revision or a timeout all come back as
``Lookup.unavailable`` instead of raising.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from .models import Lookup

logger = logging.getLogger(__name__)


class GitRevisionControl:
    """Thin wrapper over the ``git`` command line."""

    def __init__(self, timeout: float = 10.0, logger: Optional[logging.Logger] = None) -> None:
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def current_revision(self, root: Path) -> Lookup[str]:
        result = self._run(["rev-parse", "HEAD"], root)
        if not result.available:
            return Lookup.unavailable(result.reason)
        revision = (result.value or "").strip()
        if not revision:
            return Lookup.unavailable("git rev-parse returned no revision")
        return Lookup.of(revision)

    def changed_files(self, root: Path, since: str) -> Lookup[List[str]]:
        """Paths (relative to *root*) changed between *since* and ``HEAD``.

        ``--relative`` keeps paths relative to *root* and drops changes
        outside it when *root* is a subdirectory of the repository.
        """
        result = self._run(["diff", "--name-only", "--relative", since, "HEAD"], root)
        if not result.available:
            return Lookup.unavailable(result.reason)
        paths = [line.strip() for line in (result.value or "").splitlines() if line.strip()]
        return Lookup.of(paths)

    def _run(self, args: Sequence[str], cwd: Path) -> Lookup[str]:
        try:
            proc = subprocess.run(
                ["git", *args],
                cwd=cwd, capture_output=True, text=True, timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            self.logger.debug("git %s failed: %s", " ".join(args), exc)
            return Lookup.unavailable(str(exc))
        if proc.returncode != 0:
            reason = proc.stderr.strip() or f"git exited with status {proc.returncode}"
            self.logger.debug("git %s failed: %s", " ".join(args), reason)
            return Lookup.unavailable(reason)
        return Lookup.of(proc.stdout)
