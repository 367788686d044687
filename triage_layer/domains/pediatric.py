from __future__ import annotations

"""
Pediatric conditions with age-bracket urgency.

Design intent:
- Resolve an age bracket first (explicit age, then child phrasing).
- Apply pediatric rules only when a pediatric bracket is resolved.
- Any red flag forces EMERGENCY regardless of bracket.
"""

import re
from dataclasses import replace
from typing import Optional

from ..internal_core.contracts import Demographics
from .base import ConditionMatch, ConditionRule, compile_patterns, match_rules, no_match

DOMAIN = "pediatric"

# (group, min_age_years, max_age_years); upper bound exclusive except neonate.
AGE_GROUPS: list[tuple[str, float, float]] = [
    ("neonate", 0.0, 0.08),
    ("infant", 0.08, 1.0),
    ("toddler", 1.0, 3.0),
    ("preschool", 3.0, 6.0),
    ("school_age", 6.0, 12.0),
    ("adolescent", 12.0, 18.0),
]

_AGE_PHRASES: list[tuple[str, tuple[re.Pattern[str], ...]]] = [
    ("neonate", compile_patterns(r"\bnewborn\b", r"\bbaby\b.*\bdays?\s+old\b", r"\bjust\s+born\b")),
    ("infant", compile_patterns(r"\bbaby\b", r"\binfant\b", r"\b\d{1,2}[\s-]*months?[\s-]old\b")),
    ("toddler", compile_patterns(r"\btoddler\b", r"\b[12][\s-]*years?[\s-]old\b")),
    ("preschool", compile_patterns(r"\bpreschooler\b", r"\b[345][\s-]*years?[\s-]old\b")),
    (
        "adolescent",
        compile_patterns(r"\bteen(?:ager)?s?\b", r"\badolescent\b", r"\b1[2-7][\s-]*years?[\s-]old\b"),
    ),
    (
        "school_age",
        compile_patterns(
            r"\bschool[\s-]age\b",
            r"\bmy\s+(?:child|kid|son|daughter)\b",
            r"\b(?:[6-9]|1[01])[\s-]*years?[\s-]old\b",
        ),
    ),
]


def _ages(emergency_neonate: str = "EMERGENCY", **overrides: str) -> dict[str, str]:
    table = {
        "neonate": emergency_neonate,
        "infant": "NON_URGENT",
        "toddler": "NON_URGENT",
        "preschool": "NON_URGENT",
        "school_age": "NON_URGENT",
        "adolescent": "NON_URGENT",
    }
    table.update(overrides)
    return table


PEDIATRIC_RULES: list[ConditionRule] = [
    ConditionRule(
        name="fever",
        patterns=compile_patterns(r"\bfever", r"\btemperature\b", r"\bburning\s*up\b"),
        symptom_keywords=("high temperature", "chills", "flushed", "irritability", "poor feeding"),
        red_flags=("febrile seizure", "lethargy", "lethargic", "poor feeding", "rash with fever"),
        follow_up=(
            "What is the child's age?",
            "What was the highest temperature recorded?",
            "Is the child eating/drinking normally?",
            "Any signs of difficulty breathing or unusual sleepiness?",
        ),
        age_urgency=_ages(infant="URGENT"),
    ),
    ConditionRule(
        name="respiratory_distress",
        patterns=compile_patterns(
            r"\bdifficulty\s+breathing\b", r"\bcan(?:'|no)?t\s+breathe\b", r"\bwheez", r"\bcough"
        ),
        symptom_keywords=("difficulty breathing", "wheezing", "retractions", "blue lips", "rapid breathing"),
        red_flags=("cyanosis", "severe retractions", "inability to speak", "stridor", "blue lips"),
        follow_up=(
            "Is the child able to speak in full sentences?",
            "Are you seeing any blue color around the lips or face?",
            "Is the child using extra muscles to breathe?",
            "When did the breathing difficulty start?",
        ),
        age_urgency=_ages(
            infant="EMERGENCY", toddler="URGENT", preschool="URGENT", school_age="URGENT", adolescent="URGENT"
        ),
    ),
    ConditionRule(
        name="dehydration",
        patterns=compile_patterns(
            r"\bdehydrat", r"\bnot\s+drinking\b", r"\bdry\s+mouth\b", r"\bno\s+wet\s+diapers?\b"
        ),
        symptom_keywords=("poor feeding", "dry mouth", "sunken eyes", "lethargy", "decreased urination"),
        red_flags=("sunken fontanelle", "no tears when crying", "severe lethargy"),
        follow_up=(
            "How long has the child been refusing fluids?",
            "When was the last wet diaper or urination?",
            "Is the child unusually sleepy or difficult to wake?",
            "Any ongoing vomiting or diarrhea?",
        ),
        age_urgency=_ages(infant="URGENT", toddler="URGENT"),
    ),
    ConditionRule(
        name="growth_concerns",
        patterns=compile_patterns(
            r"\bnot\s+growing\b", r"\bweight\s+loss\b", r"\bfailure\s+to\s+thrive\b", r"\bdevelopmental\s+delay"
        ),
        symptom_keywords=("poor weight gain", "developmental delays", "feeding difficulties", "short stature"),
        red_flags=("significant weight loss", "loss of milestones", "feeding refusal"),
        follow_up=(
            "What specific growth or developmental concerns do you have?",
            "Has the child lost any previously acquired skills?",
            "Are there feeding difficulties or food refusal?",
            "When was the last pediatric checkup?",
        ),
        age_urgency=_ages(emergency_neonate="URGENT", infant="URGENT"),
    ),
    ConditionRule(
        name="rash",
        patterns=compile_patterns(r"\brash", r"\bspots\b", r"\bred\s+patches\b", r"\bskin\s+irritation\b"),
        symptom_keywords=("red spots", "itching", "fever with rash", "spreading rash", "blistering"),
        red_flags=("petechial rash", "rapidly spreading", "difficulty breathing"),
        follow_up=(
            "When did the rash first appear?",
            "Is the rash accompanied by fever?",
            "Is the rash spreading or getting worse?",
            "Any recent new medications or exposures?",
        ),
        age_urgency=_ages(emergency_neonate="URGENT", infant="URGENT"),
    ),
]

VITAL_THRESHOLDS: dict[str, dict[str, dict[str, str]]] = {
    "neonate": {
        "heart_rate": {"normal": "120-160 bpm", "concerning": ">180 or <100 bpm"},
        "temperature": {"fever": ">100.4F (38C)", "high_fever": ">102F (38.9C)"},
        "respiratory_rate": {"normal": "30-60/min", "concerning": ">60/min"},
    },
    "infant": {
        "heart_rate": {"normal": "80-140 bpm", "concerning": ">160 or <80 bpm"},
        "temperature": {"fever": ">100.4F (38C)", "high_fever": ">102F (38.9C)"},
        "respiratory_rate": {"normal": "20-40/min", "concerning": ">50/min"},
    },
    "toddler": {
        "heart_rate": {"normal": "80-130 bpm", "concerning": ">150 or <70 bpm"},
        "temperature": {"fever": ">100.4F (38C)", "high_fever": ">103F (39.4C)"},
        "respiratory_rate": {"normal": "20-30/min", "concerning": ">40/min"},
    },
    "preschool": {
        "heart_rate": {"normal": "80-120 bpm", "concerning": ">140 or <70 bpm"},
        "temperature": {"fever": ">100.4F (38C)", "high_fever": ">103F (39.4C)"},
        "respiratory_rate": {"normal": "20-25/min", "concerning": ">35/min"},
    },
    "school_age": {
        "heart_rate": {"normal": "70-110 bpm", "concerning": ">130 or <60 bpm"},
        "temperature": {"fever": ">100.4F (38C)", "high_fever": ">103F (39.4C)"},
        "respiratory_rate": {"normal": "15-20/min", "concerning": ">30/min"},
    },
    "adolescent": {
        "heart_rate": {"normal": "60-100 bpm", "concerning": ">120 or <50 bpm"},
        "temperature": {"fever": ">100.4F (38C)", "high_fever": ">103F (39.4C)"},
        "respiratory_rate": {"normal": "12-18/min", "concerning": ">25/min"},
    },
}


def determine_age_group(text: str, age: Optional[float] = None) -> Optional[str]:
    if age is not None:
        if age >= 18:
            return None
        for group, min_age, max_age in AGE_GROUPS:
            if min_age <= age < max_age or (group == "neonate" and age <= max_age):
                return group
        return None
    lowered = str(text or "").lower()
    for group, patterns in _AGE_PHRASES:
        if any(pattern.search(lowered) for pattern in patterns):
            return group
    return None


def vital_thresholds(age_group: Optional[str]) -> dict[str, dict[str, str]]:
    return VITAL_THRESHOLDS.get(age_group or "", VITAL_THRESHOLDS["school_age"])


def recommendations(match: ConditionMatch) -> list[str]:
    out: list[str] = []
    young = match.age_group in {"neonate", "infant"}
    if match.condition == "fever":
        if match.age_group == "neonate":
            out.append("Any fever in a newborn (0-28 days) requires immediate emergency evaluation")
        elif match.age_group == "infant":
            out.append("Fever in infants under 3 months requires urgent medical assessment")
        if "febrile seizure" in match.red_flags:
            out.append("Febrile seizures require immediate medical evaluation")
    elif match.condition == "respiratory_distress":
        if young:
            out.append("Breathing difficulties in infants are always concerning - seek immediate care")
        if "blue lips" in match.symptoms or "cyanosis" in match.red_flags:
            out.append("Blue discoloration indicates oxygen deficiency - call emergency services")
    elif match.condition == "dehydration":
        if young:
            out.append("Dehydration progresses rapidly in young children - seek urgent care")
        if "sunken fontanelle" in match.red_flags:
            out.append("Sunken soft spot indicates significant dehydration requiring immediate care")
    return out


def detect(text: str, demographics: Optional[Demographics] = None) -> ConditionMatch:
    age = demographics.age if demographics is not None else None
    age_group = determine_age_group(text, age)
    if age_group is None:
        return no_match(DOMAIN)
    match = match_rules(
        DOMAIN,
        PEDIATRIC_RULES,
        text,
        symptom_threshold=1,
        red_flag_fires=True,
        red_flag_forces_emergency=True,
        age_group=age_group,
    )
    if not match.matched:
        return match
    return replace(match, recommendations=recommendations(match))
