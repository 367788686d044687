from __future__ import annotations

import re
from typing import Optional

from ..internal_core.contracts import Duration

_NUMERIC_RE = re.compile(r"\b(\d+)\s*(minute|hour|day|week|month|year)s?\b", re.IGNORECASE)
_WORD_AMOUNT_RE = re.compile(
    r"\b(an?|one|two|three|a\s+couple\s+of|couple\s+of|a\s+few|few|several)\s+"
    r"(minute|hour|day|week|month|year)s?\b",
    re.IGNORECASE,
)
_RELATIVE_RE = re.compile(r"\b(?:since\s+)?(yesterday|today|last\s+night|this\s+morning)\b", re.IGNORECASE)
_VAGUE_RE = re.compile(r"\b(recently|lately|ongoing|chronic|persistent)\b", re.IGNORECASE)

_WORD_VALUES: dict[str, Optional[int]] = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "a couple of": 2,
    "couple of": 2,
    "a few": None,
    "few": None,
    "several": None,
}


def _collapse(value: str) -> str:
    return " ".join(value.lower().split())


def parse_duration(text: str) -> Optional[Duration]:
    """Return the first duration mention (numeric, then relative, then vague), or None."""
    if not isinstance(text, str) or not text.strip():
        return None

    match = _NUMERIC_RE.search(text)
    if match:
        return Duration(value=int(match.group(1)), unit=match.group(2).lower(), raw=match.group(0))

    match = _WORD_AMOUNT_RE.search(text)
    if match:
        return Duration(
            value=_WORD_VALUES.get(_collapse(match.group(1))),
            unit=match.group(2).lower(),
            raw=match.group(0),
        )

    match = _RELATIVE_RE.search(text)
    if match:
        return Duration(value=None, unit=_collapse(match.group(1)), raw=match.group(0))

    match = _VAGUE_RE.search(text)
    if match:
        return Duration(value=None, unit=match.group(1).lower(), raw=match.group(0))
    return None
