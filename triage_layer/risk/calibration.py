from __future__ import annotations

"""
Demographic risk calibration.

Design intent:
- Adjust a triage verdict with age, sex, and access-to-care signals.
- Sex only adds advisory text; age brackets and access barriers move the multiplier.
- Raise-only: the adjusted urgency goes through escalate_only like the engine.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from ..internal_core.contracts import TriageLevel
from ..internal_core.escalation import escalate_only, normalize_level

URGENT_MULTIPLIER_THRESHOLD = 1.5
EMERGENCY_MULTIPLIER_THRESHOLD = 2.0
LOW_ACCESS_FACTOR = 1.2


@dataclass(frozen=True)
class AgeRiskProfile:
    # (label, min_age, max_age) inclusive
    brackets: tuple[tuple[str, float, float], ...]
    multipliers: dict[str, dict[str, float]]
    considerations: dict[str, tuple[str, ...]]

    def bracket_for(self, age: float) -> Optional[str]:
        selected: Optional[str] = None
        for label, min_age, max_age in self.brackets:
            if age >= min_age:
                selected = label
            if min_age <= age <= max_age:
                return label
        # Fractional ages fall between integer brackets; use the last lower bound reached.
        if selected is not None and age <= self.brackets[-1][2]:
            return selected
        return None


@dataclass(frozen=True)
class CalibrationResult:
    adjusted_urgency: TriageLevel
    risk_multiplier: float
    considerations: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    age_bracket: Optional[str] = None


AGE_RISK_PROFILES: dict[str, AgeRiskProfile] = {
    "cardiovascular": AgeRiskProfile(
        brackets=(("0-40", 0, 40), ("41-65", 41, 65), ("66+", 66, 130)),
        multipliers={
            "chest_pain": {"0-40": 0.5, "41-65": 1.0, "66+": 1.5},
            "hypertension": {"0-40": 0.3, "41-65": 1.0, "66+": 2.0},
            "heart_attack": {"0-40": 0.1, "41-65": 1.0, "66+": 3.0},
        },
        considerations={
            "0-40": ("Consider recreational drug use", "Evaluate for congenital conditions"),
            "41-65": ("Assess cardiovascular risk factors", "Consider stress testing"),
            "66+": ("High index of suspicion", "Consider atypical presentations"),
        },
    ),
    "neurological": AgeRiskProfile(
        brackets=(("0-50", 0, 50), ("51-75", 51, 75), ("76+", 76, 130)),
        multipliers={
            "stroke": {"0-50": 0.2, "51-75": 1.0, "76+": 2.5},
            "dementia": {"0-50": 0.1, "51-75": 0.5, "76+": 2.0},
            "seizure": {"0-50": 1.0, "51-75": 1.2, "76+": 1.5},
        },
        considerations={
            "0-50": ("Consider metabolic causes", "Evaluate for substance use"),
            "51-75": ("Assess vascular risk factors", "Consider degenerative changes"),
            "76+": ("High stroke risk", "Consider medication effects", "Assess cognitive baseline"),
        },
    ),
    "mental_health": AgeRiskProfile(
        brackets=(("12-25", 12, 25), ("26-65", 26, 65), ("66+", 66, 130)),
        multipliers={
            "depression": {"12-25": 1.5, "26-65": 1.0, "66+": 1.3},
            "anxiety": {"12-25": 2.0, "26-65": 1.0, "66+": 0.8},
            "suicidal_ideation": {"12-25": 2.5, "26-65": 1.0, "66+": 1.8},
        },
        considerations={
            "12-25": ("Higher suicide risk", "Academic/social stressors", "Identity formation"),
            "26-65": ("Work/family stressors", "Life transitions", "Substance use assessment"),
            "66+": ("Social isolation", "Medical comorbidities", "Medication effects"),
        },
    ),
}

# category -> sex -> (risk_factors, typical_symptoms, considerations)
SEX_CONSIDERATIONS: dict[str, dict[str, tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]]] = {
    "cardiovascular": {
        "male": (
            ("family history", "smoking", "diabetes", "hypertension"),
            ("classic chest pain", "left arm radiation", "jaw pain"),
            ("Higher risk after age 45", "Classic presentation more common"),
        ),
        "female": (
            ("diabetes", "hypertension", "family history", "pregnancy complications"),
            ("atypical chest pain", "nausea", "fatigue", "back pain"),
            ("Risk increases after menopause", "Atypical presentations common", "Pregnancy-related risks"),
        ),
        "other": (
            ("hormone therapy effects", "baseline medical conditions"),
            ("variable presentation patterns",),
            ("Individual risk assessment needed", "Consider hormone effects"),
        ),
    },
    "mental_health": {
        "male": (
            ("social isolation", "substance use", "job stress"),
            ("anger", "irritability", "substance use", "risk-taking"),
            ("Less likely to seek help", "Higher suicide completion rate", "Masked depression"),
        ),
        "female": (
            ("hormonal changes", "pregnancy/postpartum", "domestic violence"),
            ("tearfulness", "anxiety", "mood swings", "eating changes"),
            ("Hormonal influences", "Perinatal mental health", "Higher anxiety rates"),
        ),
        "other": (
            ("discrimination", "identity stress", "social support"),
            ("anxiety", "depression", "identity concerns"),
            ("Unique stressors", "Support system assessment", "Cultural sensitivity"),
        ),
    },
    "autoimmune": {
        "male": (
            ("later onset", "more severe disease"),
            ("joint involvement", "systemic features"),
            ("Later diagnosis common", "Different disease patterns"),
        ),
        "female": (
            ("hormonal influences", "pregnancy effects", "earlier onset"),
            ("fatigue", "joint pain", "skin involvement"),
            ("Higher prevalence", "Hormonal fluctuations", "Pregnancy planning"),
        ),
        "other": (
            ("individual assessment needed",),
            ("variable presentations",),
            ("Personalized approach required",),
        ),
    },
}

# name -> (indicators, raises_multiplier, considerations)
SOCIOECONOMIC_MODIFIERS: list[tuple[str, tuple[str, ...], bool, tuple[str, ...]]] = [
    (
        "low_access",
        ("no insurance", "uninsured", "can't afford", "cannot afford", "no transportation", "no car", "rural area"),
        True,
        (
            "Emphasize free/low-cost resources",
            "Provide telemedicine options",
            "Consider transportation barriers",
            "Lower threshold for urgent care recommendations",
        ),
    ),
    (
        "high_access",
        ("private insurance", "regular doctor", "specialist care"),
        False,
        (
            "Coordinate with existing providers",
            "Consider specialist referrals",
            "Emphasize continuity of care",
        ),
    ),
    (
        "cultural_barriers",
        ("language barrier", "english is not my first language", "cultural concerns", "cultural beliefs", "traditional medicine"),
        False,
        (
            "Use culturally appropriate language",
            "Acknowledge traditional healing practices",
            "Provide interpreter resources",
            "Respect cultural beliefs while ensuring safety",
        ),
    ),
]

_FOCUS_BY_SYMPTOM: dict[str, tuple[str, str]] = {
    "chest pain": ("cardiovascular", "chest_pain"),
    "radiating pain": ("cardiovascular", "chest_pain"),
    "heart attack": ("cardiovascular", "heart_attack"),
    "cardiac arrest": ("cardiovascular", "heart_attack"),
    "stroke": ("neurological", "stroke"),
    "seizure": ("neurological", "seizure"),
    "suicidal ideation": ("mental_health", "suicidal_ideation"),
    "self-harm": ("mental_health", "suicidal_ideation"),
    "depression": ("mental_health", "depression"),
    "anxiety": ("mental_health", "anxiety"),
}


def condition_category(
    symptom_names: Iterable[str],
    categories: Sequence[str] = (),
) -> tuple[Optional[str], Optional[str]]:
    """Resolve (category, focus) for calibration from flagged symptoms and triage categories."""
    for name in symptom_names:
        hit = _FOCUS_BY_SYMPTOM.get(str(name).strip().lower())
        if hit is not None:
            return hit
    for category in categories:
        if category in AGE_RISK_PROFILES or category in SEX_CONSIDERATIONS:
            return category, None
    return None, None


def _push_all(target: list[str], values: Iterable[str]) -> None:
    for value in values:
        if value and value not in target:
            target.append(value)


def calibrate(
    condition: Optional[str],
    age: Optional[float],
    sex: Optional[str],
    socioeconomic_indicators: Iterable[str],
    base_urgency: str,
    *,
    focus: Optional[str] = None,
) -> CalibrationResult:
    base: TriageLevel = normalize_level(base_urgency)
    multiplier = 1.0
    considerations: list[str] = []
    recommendations: list[str] = []
    bracket: Optional[str] = None

    profile = AGE_RISK_PROFILES.get(condition or "")
    if age is not None and profile is not None:
        bracket = profile.bracket_for(float(age))
        if bracket is not None:
            table = profile.multipliers.get(focus or "") or next(iter(profile.multipliers.values()))
            multiplier *= table.get(bracket, 1.0)
            _push_all(considerations, profile.considerations.get(bracket, ()))

    sex_profile = SEX_CONSIDERATIONS.get(condition or "", {}).get(sex or "")
    if sex_profile is not None:
        risk_factors, typical_symptoms, sex_notes = sex_profile
        _push_all(considerations, sex_notes)
        recommendations.append(f"Consider {sex}-specific risk factors: {', '.join(risk_factors)}")
        if typical_symptoms:
            recommendations.append(f"Watch for {sex}-typical symptoms: {', '.join(typical_symptoms)}")

    for indicator in socioeconomic_indicators:
        lowered = str(indicator or "").lower()
        for _name, indicators, raises, notes in SOCIOECONOMIC_MODIFIERS:
            if not any(item in lowered for item in indicators):
                continue
            _push_all(considerations, notes)
            if raises and base == "NON_URGENT":
                multiplier *= LOW_ACCESS_FACTOR

    adjusted = base
    if base == "NON_URGENT" and multiplier >= URGENT_MULTIPLIER_THRESHOLD:
        adjusted = escalate_only(base, "URGENT")
    elif base == "URGENT" and multiplier >= EMERGENCY_MULTIPLIER_THRESHOLD:
        adjusted = escalate_only(base, "EMERGENCY")

    return CalibrationResult(
        adjusted_urgency=adjusted,
        risk_multiplier=round(multiplier, 4),
        considerations=considerations,
        recommendations=recommendations,
        age_bracket=bracket,
    )


def follow_up_recommendations(
    age: Optional[float],
    sex: Optional[str],
    condition: Optional[str],
    socioeconomic_factors: Iterable[str],
) -> list[str]:
    out: list[str] = []
    if age is not None:
        if age < 18:
            out.append("Pediatric patients require specialized care - consider pediatric emergency services if needed")
        elif age >= 65:
            out.append("Older adults may have atypical symptom presentations - maintain high index of suspicion")
            out.append("Consider medication interactions and multiple comorbidities")

    if sex == "female" and condition in {"cardiovascular", "mental_health"}:
        out.append("Consider pregnancy status and hormonal influences on symptoms")
        if condition == "cardiovascular":
            out.append("Women may present with atypical cardiac symptoms - consider non-chest pain presentations")
    if sex == "male" and condition == "mental_health":
        out.append("Men may underreport emotional symptoms - consider indirect indicators of distress")

    access_markers = ("no insurance", "uninsured", "can't afford", "cannot afford", "transportation")
    if any(marker in str(factor).lower() for factor in socioeconomic_factors for marker in access_markers):
        out.append("Consider community health centers, free clinics, or telemedicine options")
        out.append("Provide resource information for low-cost healthcare access")
    return out
