from __future__ import annotations

"""
Single escalation primitive shared by triage and calibration.

Design intent:
- Urgency only moves NON_URGENT -> URGENT -> EMERGENCY within a pass.
- Every stage that proposes a level goes through escalate_only.
"""

from typing import Any

from .contracts import TriageLevel

_LEVEL_ORDER: tuple[TriageLevel, ...] = ("NON_URGENT", "URGENT", "EMERGENCY")


def level_rank(level: str) -> int:
    return _LEVEL_ORDER.index(normalize_level(level))


def normalize_level(value: Any) -> TriageLevel:
    normalized = str(value or "").strip().upper().replace("-", "_").replace(" ", "_")
    if normalized == "NONURGENT":
        normalized = "NON_URGENT"
    if normalized in _LEVEL_ORDER:
        return normalized  # type: ignore[return-value]
    return "NON_URGENT"


def escalate_only(current: Any, proposed: Any) -> TriageLevel:
    current_level = normalize_level(current)
    proposed_level = normalize_level(proposed)
    if _LEVEL_ORDER.index(proposed_level) > _LEVEL_ORDER.index(current_level):
        return proposed_level
    return current_level


def max_level(*levels: Any) -> TriageLevel:
    result: TriageLevel = "NON_URGENT"
    for level in levels:
        result = escalate_only(result, level)
    return result


def step_up(level: Any) -> TriageLevel:
    """One step higher; EMERGENCY stays EMERGENCY."""
    rank = _LEVEL_ORDER.index(normalize_level(level))
    return _LEVEL_ORDER[min(rank + 1, len(_LEVEL_ORDER) - 1)]
