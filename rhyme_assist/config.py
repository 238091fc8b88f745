"""Environment-driven settings for the rhyme engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DICT_PATH_ENV = "RHYME_ASSIST_DICT_PATH"
CACHE_PATH_ENV = "RHYME_ASSIST_CACHE_PATH"
CACHE_ENABLED_ENV = "RHYME_ASSIST_CACHE"
LOG_LEVEL_ENV = "RHYME_ASSIST_LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def default_cache_path() -> Path:
    return Path.home() / ".cache" / "rhyme_assist" / "pronunciation-index.json"


def _optional_path(value: Optional[str]) -> Optional[Path]:
    if value is None or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    return default


@dataclass(frozen=True)
class EngineSettings:
    """Where the dictionary and its cache live, and how chatty logging is."""

    dict_path: Optional[Path] = None
    cache_path: Path = default_cache_path()
    cache_enabled: bool = True
    log_level: Optional[str] = None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """Build :class:`EngineSettings` from ``environ`` (defaults to ``os.environ``)."""

    env = os.environ if environ is None else environ
    return EngineSettings(
        dict_path=_optional_path(env.get(DICT_PATH_ENV)),
        cache_path=_optional_path(env.get(CACHE_PATH_ENV)) or default_cache_path(),
        cache_enabled=_flag(env.get(CACHE_ENABLED_ENV), True),
        log_level=(env.get(LOG_LEVEL_ENV) or None),
    )


__all__ = [
    "EngineSettings",
    "load_settings",
    "default_cache_path",
    "DICT_PATH_ENV",
    "CACHE_PATH_ENV",
    "CACHE_ENABLED_ENV",
    "LOG_LEVEL_ENV",
]
