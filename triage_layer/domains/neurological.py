from __future__ import annotations

"""
Neurological conditions plus FAST stroke screening.

Design intent:
- Fire on a pattern, two symptom keywords, or any red flag.
- Red flags force EMERGENCY; a positive FAST screen is folded in the same way.
"""

from dataclasses import dataclass, replace
from typing import Optional

from ..internal_core.contracts import Demographics, TriageLevel
from .base import ConditionMatch, ConditionRule, compile_patterns, contains_phrase, match_rules

DOMAIN = "neurological"

NEUROLOGICAL_RULES: list[ConditionRule] = [
    ConditionRule(
        name="seizure",
        patterns=compile_patterns(r"\bseizures?\b", r"\bconvulsions?\b", r"\bepileptic\s+fit\b", r"\bgrand\s+mal\b", r"\bpetit\s+mal\b"),
        symptom_keywords=("loss of consciousness", "jerking movements", "confusion", "tongue biting", "incontinence"),
        red_flags=("status epilepticus", "prolonged seizure", "first seizure", "head trauma"),
        urgency="EMERGENCY",
        follow_up=(
            "How long did the seizure last?",
            "Was there loss of consciousness or memory gaps?",
            "Any recent head trauma or changes in medication?",
        ),
    ),
    ConditionRule(
        name="stroke",
        patterns=compile_patterns(r"\bstroke\b", r"\btia\b", r"\btransient\s+ischemic\b", r"\bmini[\s-]stroke\b"),
        symptom_keywords=("facial weakness", "arm weakness", "speech problems", "sudden confusion", "vision loss"),
        red_flags=("fast symptoms", "speech slurring", "slurred speech", "facial drooping", "face drooping"),
        urgency="EMERGENCY",
        follow_up=(
            "When did the symptoms start exactly?",
            "Are you experiencing facial drooping or arm weakness?",
            "Any problems with speech or understanding?",
        ),
    ),
    ConditionRule(
        name="migraine",
        patterns=compile_patterns(r"\bmigraines?\b", r"\bsevere\s+headache\b", r"\bthrobbing\s+headache\b"),
        symptom_keywords=("severe headache", "nausea", "light sensitivity", "sound sensitivity", "visual aura"),
        red_flags=("worst headache of my life", "worst headache of life", "thunderclap", "fever with headache", "neck stiffness", "stiff neck"),
        urgency="NON_URGENT",
        follow_up=(
            "Did the headache come on suddenly or gradually?",
            "Any nausea, vomiting, or sensitivity to light?",
            "Have you experienced similar headaches before?",
        ),
    ),
    ConditionRule(
        name="vertigo",
        patterns=compile_patterns(r"\bvertigo\b", r"\bspinning\s+sensation\b", r"\broom\s+(?:is\s+)?spinning\b", r"\bbalance\s+problems\b"),
        symptom_keywords=("spinning sensation", "nausea", "balance problems", "hearing changes", "tinnitus"),
        red_flags=("sudden hearing loss",),
        urgency="NON_URGENT",
        follow_up=(
            "Does the room feel like it's spinning around you?",
            "Any hearing changes or ringing in your ears?",
            "What triggers or worsens the symptoms?",
        ),
    ),
    ConditionRule(
        name="neuropathy",
        patterns=compile_patterns(r"\bneuropathy\b", r"\bnerve\s+damage\b", r"\bperipheral\s+nerve", r"\bnumbness\s+and\s+tingling\b"),
        symptom_keywords=("numbness", "tingling", "burning pain", "weakness", "loss of sensation"),
        red_flags=("rapid progression", "loss of bladder control", "loss of bowel control"),
        urgency="NON_URGENT",
        follow_up=(
            "Where exactly are you experiencing numbness or tingling?",
            "Is the sensation constant or intermittent?",
            "Any weakness or difficulty with fine motor tasks?",
        ),
    ),
    ConditionRule(
        name="neuralgia",
        patterns=compile_patterns(r"\bneuralgia\b", r"\bnerve\s+pain\b", r"\bsharp\s+shooting\s+pain\b"),
        symptom_keywords=("electric shock sensation", "shooting pain", "face pain", "facial pain", "jaw pain"),
        red_flags=("facial weakness",),
        urgency="URGENT",
        follow_up=(
            "Can you describe the exact nature of the pain?",
            "What triggers the pain episodes?",
            "How long do the pain episodes typically last?",
        ),
    ),
]


@dataclass(frozen=True)
class FastAssessment:
    positive: bool
    components: list[str]
    urgency: TriageLevel


def assess_fast_criteria(text: str) -> FastAssessment:
    """Face, Arm, Speech, Time screen for stroke.

    Sudden onset only counts alongside at least one focal sign, so a sudden
    stomach ache does not screen positive on its own.
    """
    lowered = str(text or "").lower().replace("’", "'")
    components: list[str] = []
    if contains_phrase(lowered, "face") and any(w in lowered for w in ("droop", "asymmetric", "lopsided")):
        components.append("Face drooping detected")
    if (contains_phrase(lowered, "arm") or contains_phrase(lowered, "hand")) and any(
        w in lowered for w in ("weak", "numb", "can't move")
    ):
        components.append("Arm weakness detected")
    if ("speech" in lowered or "talk" in lowered) and any(
        w in lowered for w in ("slurred", "slurring", "garbled", "can't speak")
    ):
        components.append("Speech problems detected")
    focal = bool(components)
    if focal and any(w in lowered for w in ("sudden", "all of a sudden", "came on quickly")):
        components.append("Sudden onset - time critical")
    return FastAssessment(positive=focal, components=components, urgency="EMERGENCY" if focal else "NON_URGENT")


def recommendations(match: ConditionMatch) -> list[str]:
    out: list[str] = []
    if match.condition == "seizure":
        out.append("Seizures require immediate medical evaluation")
        if "first seizure" in match.red_flags:
            out.append("First-time seizures need urgent neurological assessment")
    elif match.condition == "stroke":
        out.append("Call emergency services immediately - stroke is a medical emergency")
        out.append("Time is critical - every minute counts for stroke treatment")
    elif match.condition == "migraine" and match.red_flags:
        out.append("Red flag headache symptoms require urgent evaluation")
        if any("worst headache" in flag for flag in match.red_flags):
            out.append("'Worst headache of life' may indicate serious underlying condition")
    elif match.condition == "neuralgia":
        out.append("Severe nerve pain may require specialized neurological care")
        if "facial weakness" in match.red_flags:
            out.append("Facial weakness with pain requires urgent assessment")
    return out


def detect(text: str, demographics: Optional[Demographics] = None) -> ConditionMatch:
    match = match_rules(
        DOMAIN,
        NEUROLOGICAL_RULES,
        text,
        symptom_threshold=2,
        red_flag_fires=True,
        red_flag_forces_emergency=True,
    )
    fast = assess_fast_criteria(text)
    if fast.positive:
        if match.condition != "stroke":
            match = replace(match, condition="stroke", follow_up=list(NEUROLOGICAL_RULES[1].follow_up))
        match = replace(match, urgency="EMERGENCY", red_flags=[*match.red_flags, *fast.components])
    if not match.matched:
        return match
    return replace(match, recommendations=recommendations(match))
