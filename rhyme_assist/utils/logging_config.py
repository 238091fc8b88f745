"""Logging setup shared by the CLI and embedding hosts."""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

from rhyme_assist.config import LOG_LEVEL_ENV

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_ROOT_LOGGER = "rhyme_assist"
_configured = False


def resolve_level(level: Union[str, int, None]) -> int:
    """Map a level name, numeric string or int to a ``logging`` level.

    Anything unrecognised falls back to ``INFO``.
    """

    if isinstance(level, int):
        return level
    text = (level or "").strip()
    if text.isdigit():
        return int(text)
    named = logging.getLevelName(text.upper()) if text else None
    return named if isinstance(named, int) else logging.INFO


def configure_logging(level: Optional[Union[str, int]] = None, *, force: bool = False) -> None:
    """Send ``rhyme_assist`` logs to stderr at ``level``.

    Without an explicit level the ``RHYME_ASSIST_LOG_LEVEL`` environment
    variable is consulted. Repeat calls do nothing unless ``force`` is set.
    """

    global _configured

    if _configured and not force:
        return

    resolved = resolve_level(level if level is not None else os.environ.get(LOG_LEVEL_ENV))
    logging.basicConfig(level=resolved, format=LOG_FORMAT, force=force)
    logging.getLogger(_ROOT_LOGGER).setLevel(resolved)
    _configured = True


__all__ = ["LOG_FORMAT", "configure_logging", "resolve_level"]
