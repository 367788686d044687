from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None or value.strip() == "" else value.strip()


def _getenv_int(name: str, default: int, *, min_value: int, max_value: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(min_value, min(max_value, value))


def _getenv_float(name: str, default: float, *, min_value: float, max_value: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(min_value, min(max_value, value))


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass(frozen=True)
class TriageConfig:
    TRIAGE_NEGATION_WINDOW_CHARS: int = 40
    TRIAGE_NEGATION_WINDOW_WORDS: int = 5
    TRIAGE_CACHE_MAX_SIZE: int = 200
    TRIAGE_CACHE_TTL_MS: int = 10 * 60 * 1000
    TRIAGE_CACHE_EVICTION_RATIO: float = 0.2
    TRIAGE_CACHE_CLEANUP_INTERVAL_MS: int = 2 * 60 * 1000
    TRIAGE_ANALYTICS_ALPHA: float = 0.1
    TRIAGE_ANALYTICS_SUCCESS_THRESHOLD: int = 7
    TRIAGE_MAX_FOLLOW_UP: int = 5
    TRIAGE_STRICT_VALIDATION: bool = False
    TRIAGE_DEFAULT_REGION: str = "US"
    TRIAGE_LOG_LEVEL: str = "INFO"


def load_config() -> TriageConfig:
    return TriageConfig(
        TRIAGE_NEGATION_WINDOW_CHARS=_getenv_int(
            "TRIAGE_NEGATION_WINDOW_CHARS", 40, min_value=5, max_value=400
        ),
        TRIAGE_NEGATION_WINDOW_WORDS=_getenv_int(
            "TRIAGE_NEGATION_WINDOW_WORDS", 5, min_value=1, max_value=50
        ),
        TRIAGE_CACHE_MAX_SIZE=_getenv_int("TRIAGE_CACHE_MAX_SIZE", 200, min_value=1, max_value=1_000_000),
        TRIAGE_CACHE_TTL_MS=_getenv_int(
            "TRIAGE_CACHE_TTL_MS", 10 * 60 * 1000, min_value=1, max_value=24 * 60 * 60 * 1000
        ),
        TRIAGE_CACHE_EVICTION_RATIO=_getenv_float(
            "TRIAGE_CACHE_EVICTION_RATIO", 0.2, min_value=0.01, max_value=1.0
        ),
        TRIAGE_CACHE_CLEANUP_INTERVAL_MS=_getenv_int(
            "TRIAGE_CACHE_CLEANUP_INTERVAL_MS", 2 * 60 * 1000, min_value=10, max_value=24 * 60 * 60 * 1000
        ),
        TRIAGE_ANALYTICS_ALPHA=_getenv_float("TRIAGE_ANALYTICS_ALPHA", 0.1, min_value=0.001, max_value=1.0),
        TRIAGE_ANALYTICS_SUCCESS_THRESHOLD=_getenv_int(
            "TRIAGE_ANALYTICS_SUCCESS_THRESHOLD", 7, min_value=1, max_value=10
        ),
        TRIAGE_MAX_FOLLOW_UP=_getenv_int("TRIAGE_MAX_FOLLOW_UP", 5, min_value=1, max_value=20),
        TRIAGE_STRICT_VALIDATION=_getenv_bool("TRIAGE_STRICT_VALIDATION", False),
        TRIAGE_DEFAULT_REGION=_getenv_str("TRIAGE_DEFAULT_REGION", "US").upper(),
        TRIAGE_LOG_LEVEL=_getenv_str("TRIAGE_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    resolved = (level or load_config().TRIAGE_LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
