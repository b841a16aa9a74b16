"""Logging setup for the API process and operator scripts."""

from __future__ import annotations

import logging
from typing import Optional

from config.settings import get_settings

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once.

    Modules log through `logging.getLogger(__name__)` and attach context with
    `extra={...}`; this only decides format and level.
    """

    resolved = (level or get_settings().log_level).upper()
    logging.basicConfig(level=resolved, format=_LOG_FORMAT)
    logging.getLogger().setLevel(resolved)

    # supabase-py logs every request through httpx at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
