"""Logging setup for the engine and CLI."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional


def setup_logging(
    *,
    environment: str,
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """Configure engine logging.

    - Dev: console logs, DEBUG level.
    - Prod: console logs at INFO, plus rotating file logs when log_dir is set.
    - An explicit level overrides the environment default.

    Safe to call multiple times (won't double-add handlers).
    """

    root = logging.getLogger()
    if root.handlers:
        return

    env = (environment or "development").lower().strip()
    default_level = logging.INFO if env == "production" else logging.DEBUG
    resolved = logging.getLevelName(level.upper()) if level else default_level
    if not isinstance(resolved, int):
        resolved = default_level

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler()
    console.setLevel(resolved)
    console.setFormatter(formatter)
    handlers.append(console)

    if env == "production" and log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "timetabler.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(resolved)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=resolved, handlers=handlers)
