from __future__ import annotations

"""
Geriatric conditions (falls, confusion, medication issues, frailty, ...).

Design intent:
- Apply only for 65+ or explicit older-adult phrasing.
- Fire on a pattern, one symptom keyword, or two risk factors.
- Urgency modifiers promote to URGENT; this domain never forces EMERGENCY.
"""

import re
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from ..internal_core.contracts import Demographics
from ..internal_core.escalation import escalate_only
from .base import ConditionMatch, ConditionRule, compile_patterns, match_rules, no_match

DOMAIN = "geriatric"
GERIATRIC_AGE = 65

_OLDER_ADULT_RE = re.compile(
    r"\b(elderly|older adult|senior|grand(?:ma|pa|mother|father)|nursing home|assisted living|"
    r"(?:6[5-9]|[7-9]\d|1[01]\d)[\s-]*(?:years?[\s-]old|yo))\b",
    re.IGNORECASE,
)

GERIATRIC_RULES: list[ConditionRule] = [
    ConditionRule(
        name="falls",
        patterns=compile_patterns(r"\bfell\b", r"\bfall(?:s|en)?\b(?!\s+asleep)", r"\btripped\b", r"\blost\s+(?:my\s+)?balance\b", r"\btumbled\b"),
        symptom_keywords=("bruising", "pain after fall", "difficulty walking", "confusion", "head injury"),
        risk_factor_keywords=("medications", "dizziness", "weakness", "poor vision", "home hazards"),
        urgency_modifier_keywords=("head trauma", "inability to bear weight", "can't bear weight", "severe pain"),
        complications=("hip fracture", "head injury", "loss of confidence", "functional decline"),
        follow_up=(
            "Did you hit your head when you fell?",
            "Are you able to walk normally after the fall?",
            "Any new pain, especially in your hip or back?",
            "Have you been having more falls recently?",
        ),
    ),
    ConditionRule(
        name="confusion",
        patterns=compile_patterns(
            r"\bconfused\b", r"\bmemory\s+problems?\b", r"\bdisoriented\b", r"\bnot\s+thinking\s+clearly\b", r"\bdementia\b"
        ),
        symptom_keywords=("memory loss", "disorientation", "personality changes", "difficulty concentrating", "wandering"),
        risk_factor_keywords=("medications", "infection", "dehydration", "sleep disruption", "new environment"),
        urgency_modifier_keywords=("sudden onset", "suddenly", "fever", "severe agitation", "safety concerns"),
        complications=("safety risks", "functional decline", "social isolation", "caregiver burden"),
        follow_up=(
            "When did you first notice the confusion?",
            "Has this come on suddenly or gradually?",
            "Any recent changes in medications or health?",
            "Are there any safety concerns at home?",
        ),
    ),
    ConditionRule(
        name="medication_issues",
        patterns=compile_patterns(
            r"\bmedication\s+problems?\b", r"\bside\s+effects?\b", r"\bdrug\s+interactions?\b", r"\btoo\s+many\s+pills\b"
        ),
        symptom_keywords=("dizziness", "nausea", "confusion", "falls", "new symptoms"),
        risk_factor_keywords=("multiple medications", "multiple doctors", "kidney problems", "liver problems"),
        urgency_modifier_keywords=("severe reaction", "breathing problems", "chest pain", "loss of consciousness"),
        complications=("adverse reactions", "drug interactions", "non-adherence", "hospitalization"),
        follow_up=(
            "What medications are you currently taking?",
            "Have you started any new medications recently?",
            "Are you seeing multiple doctors who prescribe medications?",
            "Do you use a pill organizer or have help managing medications?",
        ),
    ),
    ConditionRule(
        name="frailty",
        patterns=compile_patterns(
            r"\bweak\b", r"\bfrail\b", r"\blosing\s+(?:my\s+)?strength\b", r"\bcan(?:'|no)?t\s+do\s+things\b", r"\bdeclining\b"
        ),
        symptom_keywords=("weakness", "weight loss", "fatigue", "slow walking", "difficulty with activities"),
        risk_factor_keywords=("advanced age", "multiple conditions", "poor nutrition", "social isolation"),
        urgency_modifier_keywords=("rapid decline", "inability to care for self", "severe weakness"),
        complications=("functional decline", "increased falls", "hospitalization", "loss of independence"),
        follow_up=(
            "How long have you been experiencing this weakness?",
            "Are you having trouble with daily activities like bathing or dressing?",
            "Have you lost weight recently without trying?",
            "Do you have support at home or family nearby?",
        ),
    ),
    ConditionRule(
        name="multiple_comorbidities",
        patterns=compile_patterns(r"\bmultiple\s+conditions\b", r"\bmany\s+health\s+problems\b", r"\bchronic\s+diseases\b"),
        symptom_keywords=("multiple symptoms", "frequent appointments", "many medications", "declining health"),
        risk_factor_keywords=("diabetes", "heart disease", "kidney disease", "copd", "arthritis"),
        urgency_modifier_keywords=("worsening of multiple conditions", "new symptoms", "medication conflicts"),
        complications=("drug interactions", "treatment conflicts", "functional decline", "frequent hospitalizations"),
        follow_up=(
            "What chronic conditions are you managing?",
            "Are you working with multiple specialists?",
            "How are you managing all your medications?",
            "Have any of your conditions gotten worse recently?",
        ),
    ),
    ConditionRule(
        name="social_isolation",
        patterns=compile_patterns(
            r"\blonely\b", r"\bisolated\b", r"\bno\s+one\s+to\s+talk\s+to\b", r"\bdepress(?:ed|ion)\b", r"\bsad\b"
        ),
        symptom_keywords=("loneliness", "depression", "anxiety", "poor self-care", "cognitive decline"),
        risk_factor_keywords=("living alone", "live alone", "limited mobility", "loss of spouse", "financial constraints"),
        urgency_modifier_keywords=("suicidal thoughts", "severe depression", "self-neglect", "safety concerns"),
        complications=("mental health decline", "poor medication adherence", "safety risks", "functional decline"),
        follow_up=(
            "Do you live alone or have family nearby?",
            "How often do you get out or see other people?",
            "Are you feeling sad or depressed?",
            "Do you have support for daily activities if needed?",
        ),
    ),
]

_FRAILTY_INDICATORS: list[tuple[str, re.Pattern[str]]] = [
    ("unintentional weight loss", re.compile(r"\bweight\s+loss\b|\blost\s+weight\b", re.IGNORECASE)),
    ("exhaustion", re.compile(r"\btired\b|\bexhausted\b|\bno\s+energy\b", re.IGNORECASE)),
    ("weakness", re.compile(r"\bweak|\bstrength\s+loss\b|\bcan(?:'|no)?t\s+lift\b", re.IGNORECASE)),
    ("slow walking speed", re.compile(r"\bwalk(?:ing)?\s+slow|\bdifficulty\s+walking\b|\bshuffl", re.IGNORECASE)),
    ("low physical activity", re.compile(r"\bnot\s+active\b|\bcan(?:'|no)?t\s+exercise\b|\bsedentary\b", re.IGNORECASE)),
]


@dataclass(frozen=True)
class FrailtyAssessment:
    score: int
    indicators: list[str]
    risk_level: str


def assess_frailty(text: str) -> FrailtyAssessment:
    lowered = str(text or "").lower()
    indicators = [name for name, pattern in _FRAILTY_INDICATORS if pattern.search(lowered)]
    score = len(indicators)
    if score >= 3:
        risk_level = "high"
    elif score >= 1:
        risk_level = "moderate"
    else:
        risk_level = "low"
    return FrailtyAssessment(score=score, indicators=indicators, risk_level=risk_level)


def medication_considerations(symptoms: Sequence[str], risk_factors: Sequence[str]) -> list[str]:
    out: list[str] = []
    if "dizziness" in symptoms or "falls" in symptoms:
        out.append("Review medications that may cause dizziness or increase fall risk")
    if "confusion" in symptoms or "memory loss" in symptoms:
        out.append("Evaluate medications with anticholinergic effects")
    if "kidney problems" in risk_factors:
        out.append("Adjust medication doses for reduced kidney function")
    if "liver problems" in risk_factors:
        out.append("Consider hepatic metabolism changes in older adults")
    if "multiple medications" in risk_factors:
        out.append("Conduct comprehensive medication review for interactions")
    return out


def recommendations(match: ConditionMatch, age: Optional[float]) -> list[str]:
    out: list[str] = []
    if match.condition == "falls":
        out.append("Falls in older adults require careful evaluation even if no obvious injury")
        if "head injury" in match.symptoms:
            out.append("Head injuries in older adults may have delayed complications")
    elif match.condition == "confusion":
        out.append("New confusion in older adults often indicates underlying medical issue")
        if "fever" in match.red_flags:
            out.append("Confusion with fever may indicate serious infection")
        if "medications" in match.risk_factors:
            out.append("Medication-related confusion requires urgent review")
    elif match.condition == "medication_issues":
        out.append("Medication problems in older adults can have serious consequences")
        if "falls" in match.symptoms or "dizziness" in match.symptoms:
            out.append("Medication-related falls require immediate intervention")
    elif match.condition == "frailty":
        out.append("Frailty requires comprehensive geriatric assessment")
        if "weight loss" in match.symptoms:
            out.append("Unintentional weight loss in older adults needs evaluation")
    out.extend(medication_considerations(match.symptoms, match.risk_factors))
    if age is not None and age >= 85:
        out.append("Patients over 85 may need more intensive monitoring and support")
    return out


def is_geriatric(text: str, age: Optional[float]) -> bool:
    if age is not None:
        return age >= GERIATRIC_AGE
    return _OLDER_ADULT_RE.search(str(text or "")) is not None


def detect(text: str, demographics: Optional[Demographics] = None) -> ConditionMatch:
    age = demographics.age if demographics is not None else None
    if not is_geriatric(text, age):
        return no_match(DOMAIN)
    match = match_rules(
        DOMAIN,
        GERIATRIC_RULES,
        text,
        symptom_threshold=1,
        risk_factor_threshold=2,
    )
    if not match.matched:
        return match
    urgency = match.urgency
    if match.condition == "falls" and "head injury" in match.symptoms:
        urgency = escalate_only(urgency, "URGENT")
    return replace(match, urgency=urgency, recommendations=recommendations(match, age))
