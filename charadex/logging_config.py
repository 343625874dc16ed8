"""
Centralized logging configuration for charadex.

Call setup_logging() once at process startup (the CLI does this).
Every source module then gets its own logger via:

    import logging
    logger = logging.getLogger(__name__)

Level mapping:
  DEBUG   - rate-limit waits, per-page progress, crawl state saves
  INFO    - import, crawl and ranking progress
  WARNING - retries, corrupt state or cache files, works skipped while
            ranking or indexing, a missing RAWG key
  ERROR   - failed crawl items, imports and updates, unwritable data files
"""

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Configure root logger and quiet noisy third-party loggers."""
    fmt = "[%(name)s] %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        stream=sys.stdout,
        force=True,
    )

    # Quiet noisy third-party loggers
    for name in (
        "urllib3",
        "requests",
    ):
        logging.getLogger(name).setLevel(logging.WARNING)
