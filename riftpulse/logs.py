"""Logging setup for the CLI and the API process."""
from __future__ import annotations

import logging
from typing import Optional

from rich.logging import RichHandler


def setup_logging(level: Optional[str] = None) -> None:
    log_level = getattr(logging, level.upper()) if level else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Suppress chatty transport loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("riftpulse").setLevel(log_level)
