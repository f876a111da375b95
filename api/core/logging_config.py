"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)` with `key=value` messages;
this only decides where the records go and at which level.
"""

from __future__ import annotations

import logging

from . import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved = (level or settings.log_level()).upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format=LOG_FORMAT,
    )
    # Keep asyncpg's own chatter out of INFO output.
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
