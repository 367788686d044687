from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Sequence

from ..internal_core.contracts import Demographics, TriageLevel
from ..internal_core.escalation import escalate_only

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConditionRule:
    name: str
    patterns: tuple[re.Pattern[str], ...]
    symptom_keywords: tuple[str, ...] = ()
    risk_factor_keywords: tuple[str, ...] = ()
    urgency_modifier_keywords: tuple[str, ...] = ()
    red_flags: tuple[str, ...] = ()
    complications: tuple[str, ...] = ()
    follow_up: tuple[str, ...] = ()
    urgency: TriageLevel = "NON_URGENT"
    age_urgency: Mapping[str, TriageLevel] = field(default_factory=dict)


@dataclass(frozen=True)
class ConditionMatch:
    domain: str
    condition: Optional[str]
    symptoms: list[str] = field(default_factory=list)
    risk_factors: list[str] = field(default_factory=list)
    urgency: TriageLevel = "NON_URGENT"
    complications: list[str] = field(default_factory=list)
    follow_up: list[str] = field(default_factory=list)
    red_flags: list[str] = field(default_factory=list)
    age_group: Optional[str] = None
    recommendations: list[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.condition is not None


NO_MATCH = ConditionMatch(domain="none", condition=None)

Detector = Callable[[str, Optional[Demographics]], ConditionMatch]


def compile_patterns(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<![a-z]){re.escape(phrase.lower())}(?![a-z])", text) is not None


def keyword_hits(text: str, keywords: Sequence[str]) -> list[str]:
    return [keyword for keyword in keywords if contains_phrase(text, keyword)]


def no_match(domain: str, age_group: Optional[str] = None) -> ConditionMatch:
    return ConditionMatch(domain=domain, condition=None, age_group=age_group)


def match_rules(
    domain: str,
    rules: Sequence[ConditionRule],
    text: str,
    *,
    symptom_threshold: int,
    risk_factor_threshold: int = 0,
    red_flag_fires: bool = False,
    red_flag_forces_emergency: bool = False,
    age_group: Optional[str] = None,
) -> ConditionMatch:
    """Return the first rule that fires; rules are evaluated in table order.

    A rule fires on any regex match, on `symptom_threshold` symptom keywords,
    on `risk_factor_threshold` risk factors (0 disables), or on any red flag
    when `red_flag_fires` is set.
    """
    lowered = str(text or "").lower().replace("’", "'")
    for rule in rules:
        pattern_hit = any(pattern.search(lowered) for pattern in rule.patterns)
        symptoms = keyword_hits(lowered, rule.symptom_keywords)
        risk_factors = keyword_hits(lowered, rule.risk_factor_keywords)
        modifiers = keyword_hits(lowered, rule.urgency_modifier_keywords)
        red_flags = keyword_hits(lowered, rule.red_flags)

        fired = (
            pattern_hit
            or len(symptoms) >= symptom_threshold
            or (risk_factor_threshold > 0 and len(risk_factors) >= risk_factor_threshold)
            or (red_flag_fires and bool(red_flags))
        )
        if not fired:
            continue

        urgency: TriageLevel = rule.urgency
        if rule.age_urgency:
            urgency = rule.age_urgency.get(age_group or "", "NON_URGENT")
        if modifiers:
            urgency = escalate_only(urgency, "URGENT")
        if red_flags and red_flag_forces_emergency:
            urgency = "EMERGENCY"

        return ConditionMatch(
            domain=domain,
            condition=rule.name,
            symptoms=symptoms,
            risk_factors=risk_factors,
            urgency=urgency,
            complications=list(rule.complications),
            follow_up=list(rule.follow_up),
            red_flags=[*red_flags, *modifiers],
            age_group=age_group,
        )
    return no_match(domain, age_group)


def run_detector(
    detector: Detector,
    text: str,
    demographics: Optional[Demographics] = None,
    *,
    domain: str = "unknown",
) -> ConditionMatch:
    try:
        return detector(text, demographics)
    except Exception as exc:
        # A single failing domain heuristic must not block triage.
        try:
            logger.warning("detector_failed domain=%s error=%s", domain, type(exc).__name__)
        except Exception:
            pass
        return no_match(domain)
