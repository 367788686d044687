from __future__ import annotations

import re
from typing import Optional

from ..internal_core.contracts import Demographics

_AGE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\b(?:i am|i'm)\s+(\d{1,3})\s+years?\s+old\b", re.IGNORECASE),
    re.compile(r"\b(?:age|aged)\s*:?\s*(\d{1,3})\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,3})[\s-]*(?:yo|y\.o\.|year[\s-]old|years[\s-]old)\b", re.IGNORECASE),
]
_MONTHS_OLD_RE = re.compile(r"\b(\d{1,2})[\s-]*(?:month|months)[\s-]old\b", re.IGNORECASE)
_WEEKS_OLD_RE = re.compile(r"\b(\d{1,2})[\s-]*(?:week|weeks)[\s-]old\b", re.IGNORECASE)

_SEX_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("female", re.compile(r"\b(i am a woman|i'm a woman|female|pregnant)\b", re.IGNORECASE)),
    ("male", re.compile(r"\b(i am a man|i'm a man|male)\b", re.IGNORECASE)),
    ("other", re.compile(r"\b(non-binary|nonbinary|transgender|other gender)\b", re.IGNORECASE)),
]

SOCIOECONOMIC_INDICATORS: tuple[str, ...] = (
    "no insurance",
    "uninsured",
    "can't afford",
    "cannot afford",
    "no money",
    "medicaid",
    "medicare",
    "rural area",
    "no transportation",
    "no car",
    "live alone",
    "retired",
    "unemployed",
    "on disability",
    "food stamps",
    "housing assistance",
)

CULTURAL_MARKERS: tuple[str, ...] = (
    "english is not my first language",
    "speak spanish",
    "speak mandarin",
    "traditional medicine",
    "home remedies",
    "cultural beliefs",
    "religious concerns",
    "family traditions",
)


def extract_age(text: str) -> Optional[float]:
    for pattern in _AGE_PATTERNS:
        match = pattern.search(text)
        if match:
            age = int(match.group(1))
            return float(age) if 0 <= age <= 130 else None
    match = _MONTHS_OLD_RE.search(text)
    if match:
        return round(int(match.group(1)) / 12.0, 3)
    match = _WEEKS_OLD_RE.search(text)
    if match:
        return round(int(match.group(1)) / 52.0, 3)
    return None


def extract_sex(text: str) -> Optional[str]:
    for sex, pattern in _SEX_PATTERNS:
        if pattern.search(text):
            return sex
    return None


def extract_demographic_indicators(text: str) -> Demographics:
    if not isinstance(text, str) or not text.strip():
        return Demographics()
    lowered = text.lower().replace("’", "'")
    return Demographics(
        age=extract_age(lowered),
        sex=extract_sex(lowered),
        socioeconomic_factors={item for item in SOCIOECONOMIC_INDICATORS if item in lowered},
        cultural_markers={item for item in CULTURAL_MARKERS if item in lowered},
    )


def merge_demographics(explicit: Optional[Demographics], inferred: Demographics) -> Demographics:
    """Explicit hints win over values inferred from text; sets are unioned."""
    if explicit is None:
        return inferred
    return Demographics(
        age=explicit.age if explicit.age is not None else inferred.age,
        sex=explicit.sex if explicit.sex is not None else inferred.sex,
        socioeconomic_factors=set(explicit.socioeconomic_factors) | set(inferred.socioeconomic_factors),
        cultural_markers=set(explicit.cultural_markers) | set(inferred.cultural_markers),
    )
