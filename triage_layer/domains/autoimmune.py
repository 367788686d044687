from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ..internal_core.contracts import Demographics
from .base import ConditionMatch, ConditionRule, compile_patterns, match_rules

DOMAIN = "autoimmune"


def _abbreviation(abbr: str) -> str:
    # Bare "ms"/"ra" collide with units and titles; require diagnosis phrasing.
    return (
        rf"\b(?:diagnosed\s+with|history\s+of|i\s+have|has|my|for)\s+{abbr}\b"
        rf"|\b{abbr}\s+(?:flares?|relapses?|diagnosis|symptoms)\b"
    )

AUTOIMMUNE_RULES: list[ConditionRule] = [
    ConditionRule(
        name="lupus",
        patterns=compile_patterns(r"\bsystemic\s+lupus\b", r"\blupus\b", r"\bsle\b"),
        symptom_keywords=("joint pain", "facial rash", "butterfly rash", "kidney problems", "fatigue"),
        urgency="URGENT",
        follow_up=(
            "Are you experiencing joint pain or swelling?",
            "Have you noticed any skin rashes, especially on your face?",
            "Any changes in urination or kidney function?",
        ),
    ),
    ConditionRule(
        name="rheumatoid_arthritis",
        patterns=compile_patterns(r"\brheumatoid\s+arthritis\b", _abbreviation("ra"), r"\bjoint\s+inflammation\b"),
        symptom_keywords=("joint pain", "morning stiffness", "swollen joints", "symmetric joint involvement"),
        urgency="NON_URGENT",
        follow_up=(
            "How long does your morning stiffness typically last?",
            "Are the same joints affected on both sides of your body?",
            "Have you noticed any joint deformity or reduced range of motion?",
        ),
    ),
    ConditionRule(
        name="multiple_sclerosis",
        patterns=compile_patterns(r"\bmultiple\s+sclerosis\b", _abbreviation("ms"), r"\bdemyelinating\b"),
        symptom_keywords=("vision problems", "weakness", "numbness", "balance issues", "cognitive changes"),
        urgency="URGENT",
        follow_up=(
            "Are you experiencing any vision changes or double vision?",
            "Have you noticed weakness or numbness in your limbs?",
            "Any problems with balance, coordination, or walking?",
        ),
    ),
    ConditionRule(
        name="inflammatory_bowel_disease",
        patterns=compile_patterns(
            r"\bcrohn'?s?\b", r"\bulcerative\s+colitis\b", r"\bibd\b", r"\binflammatory\s+bowel\b"
        ),
        symptom_keywords=("abdominal pain", "diarrhea", "blood in stool", "weight loss", "fatigue"),
        urgency="URGENT",
        follow_up=(
            "Are you experiencing persistent abdominal pain or cramping?",
            "Have you noticed blood or mucus in your stool?",
            "Any unexplained weight loss or changes in appetite?",
        ),
    ),
    ConditionRule(
        name="psoriasis",
        patterns=compile_patterns(r"\bpsoriasis\b", r"\bpsoriatic\s+arthritis\b"),
        symptom_keywords=("skin plaques", "red patches", "scaling", "joint pain", "nail changes"),
        urgency="NON_URGENT",
        follow_up=(
            "Are you experiencing red, scaly patches on your skin?",
            "Any joint pain or stiffness along with skin symptoms?",
            "Have you noticed changes in your fingernails or toenails?",
        ),
    ),
]


def recommendations(match: ConditionMatch) -> list[str]:
    out: list[str] = []
    if match.condition == "lupus":
        if "kidney problems" in match.symptoms:
            out.append("Kidney involvement in lupus requires urgent evaluation")
        if "butterfly rash" in match.symptoms:
            out.append("New or worsening facial rash may indicate disease flare")
    elif match.condition == "multiple_sclerosis":
        if "vision problems" in match.symptoms:
            out.append("New vision changes in MS require urgent neurological assessment")
        if "weakness" in match.symptoms:
            out.append("New weakness may indicate relapse requiring prompt treatment")
    elif match.condition == "inflammatory_bowel_disease":
        if "blood in stool" in match.symptoms:
            out.append("Blood in stool with IBD history requires urgent evaluation")
    return out


def detect(text: str, demographics: Optional[Demographics] = None) -> ConditionMatch:
    match = match_rules(DOMAIN, AUTOIMMUNE_RULES, text, symptom_threshold=2)
    if not match.matched:
        return match
    return replace(match, recommendations=recommendations(match))
