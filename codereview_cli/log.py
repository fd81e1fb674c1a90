"""Explicit logging configuration handed to components at construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "codereview_cli"


@dataclass
class LoggingConfig:
    """Where and how verbosely the code reviewer logs.

    ``verbose`` switches the package logger to DEBUG; otherwise only
    warnings (per-file skips, degraded lookups) are shown.
    """

    verbose: bool = False
    console: Console = field(default_factory=lambda: Console(stderr=True))
    _handler: Optional[logging.Handler] = field(default=None, init=False, repr=False)

    @property
    def level(self) -> int:
        return logging.DEBUG if self.verbose else logging.WARNING

    def configure(self) -> logging.Logger:
        """Attach a rich handler to the package logger.

        Handlers installed by an earlier configuration are replaced, so
        repeated CLI invocations in one process never double-log.
        """
        logger = logging.getLogger(ROOT_LOGGER)
        logger.setLevel(self.level)
        for handler in list(logger.handlers):
            if isinstance(handler, RichHandler):
                logger.removeHandler(handler)
        self._handler = RichHandler(
            console=self.console,
            show_time=False,
            show_path=False,
            markup=False,
        )
        self._handler.setLevel(self.level)
        logger.addHandler(self._handler)
        return logger

    def logger_for(self, component: str) -> logging.Logger:
        return logging.getLogger(f"{ROOT_LOGGER}.{component}")
