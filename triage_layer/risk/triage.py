from __future__ import annotations

"""
Rule-based triage engine.

Design intent:
- Start at NON_URGENT and only escalate (escalate_only), never downgrade.
- Red-flag table first, then compound/demographic/domain rules, then crisis rules.
- Conservative bias last: ambiguous chest or breathing mentions step the level up once.
- Only a direct denial ("no chest pain") silences an EMERGENCY rule.
- Every fired rule leaves a human-readable reason for audit and UI.
- Never raise: a failure keeps the best level reached so far.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from ..domains.base import ConditionMatch
from ..domains.registry import detect_all
from ..extraction.extractor import extract, symptom_mention
from ..extraction.negation import make_denial_predicate, make_negation_predicate
from ..internal_core.context import create_context
from ..internal_core.contracts import Context, Demographics, Symptom, Triage, TriageLevel
from ..internal_core.escalation import escalate_only, step_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedFlagRule:
    pattern: re.Pattern[str]
    level: TriageLevel
    category: str
    description: str
    symptom_name: str


def _flag(pattern: str, level: TriageLevel, category: str, description: str, symptom_name: str) -> RedFlagRule:
    return RedFlagRule(re.compile(pattern, re.IGNORECASE), level, category, description, symptom_name)


# Priority order: the first EMERGENCY match ends the scan.
RED_FLAG_RULES: list[RedFlagRule] = [
    _flag(r"\bcardiac\s+arrest\b", "EMERGENCY", "cardiovascular", "Life-threatening emergency", "cardiac arrest"),
    _flag(r"\bheart\s+attack\b", "EMERGENCY", "cardiovascular", "Possible heart attack", "heart attack"),
    _flag(r"\bcrushing\s+chest\s+pain\b", "EMERGENCY", "cardiovascular", "Severe cardiac symptoms", "chest pain"),
    _flag(r"\bchest\s+(?:pain|pressure|tightness)\b", "EMERGENCY", "cardiovascular", "Potential cardiac event", "chest pain"),
    _flag(r"\bradiating\s+pain\b|\bpain\s+radiating\b", "EMERGENCY", "cardiovascular", "Radiating pain pattern", "radiating pain"),
    _flag(r"\bcan(?:'|no)?t\s+breathe\b", "EMERGENCY", "respiratory", "Severe respiratory distress", "difficulty breathing"),
    _flag(r"\b(?:difficulty|trouble)\s+breathing\b", "EMERGENCY", "respiratory", "Respiratory compromise", "difficulty breathing"),
    _flag(r"\bshort(?:ness)?\s+of\s+breath\b", "EMERGENCY", "respiratory", "Shortness of breath", "shortness of breath"),
    _flag(r"\bchoking\b", "EMERGENCY", "respiratory", "Airway obstruction", "choking"),
    _flag(r"\bblue\s+lips\b|\bcyanosis\b", "EMERGENCY", "respiratory", "Cyanosis indicating low oxygen", "cyanosis"),
    _flag(r"\bloss\s+of\s+consciousness\b|\bunconscious\b|\bpassed\s+out\b|\bfainted\b", "EMERGENCY", "neurological", "Loss of consciousness", "loss of consciousness"),
    _flag(r"\bworst\s+headache\b", "EMERGENCY", "neurological", "Worst-ever headache", "headache"),
    _flag(r"\bsevere\s+headache\b", "EMERGENCY", "neurological", "Potential intracranial issue", "headache"),
    _flag(r"\bstroke\b", "EMERGENCY", "neurological", "Cerebrovascular emergency", "stroke"),
    _flag(r"\bseizures?\b", "EMERGENCY", "neurological", "Seizure", "seizure"),
    _flag(r"\bparalysis\b|\bparalyzed\b", "EMERGENCY", "neurological", "Acute neurological deficit", "paralysis"),
    _flag(r"\boverdose\b|\boverdosed\b", "EMERGENCY", "mental_health", "Potential poisoning", "overdose"),
    _flag(r"\bsevere\s+bleeding\b|\bwon'?t\s+stop\s+bleeding\b", "EMERGENCY", "trauma", "Severe bleeding", "severe bleeding"),
    _flag(r"\bhead\s+injury\b|\bhit\s+my\s+head\b", "EMERGENCY", "trauma", "Potential head injury", "head injury"),
    _flag(r"\bbroken\s+bone\b", "EMERGENCY", "trauma", "Potential fracture", "broken bone"),
    _flag(r"\bhigh\s+fever\b", "URGENT", "infection", "Fever requiring evaluation", "fever"),
    _flag(r"\bpersistent\s+vomiting\b|\bcan'?t\s+stop\s+vomiting\b", "URGENT", "gastrointestinal", "Risk of dehydration", "nausea"),
    _flag(r"\bsevere\s+pain\b", "URGENT", "pain", "Severe pain", "severe pain"),
    _flag(r"\bvision\s+changes?\b|\bblurry\s+vision\b|\bblurred\s+vision\b", "URGENT", "neurological", "Visual disturbance", "vision changes"),
    _flag(r"\brash\s+with\s+(?:a\s+)?fever\b", "URGENT", "dermatological", "Rash with fever", "rash"),
]

_SUICIDAL_RE = re.compile(
    r"\b(suicid\w*|kill\s+myself|end\s+it\s+all|end(?:ing)?\s+my\s+life|take\s+my\s+own\s+life|"
    r"want\s+to\s+die|better\s+off\s+dead|don'?t\s+want\s+to\s+live|no\s+reason\s+to\s+live|"
    r"wish\s+i\s+(?:wouldn'?t|would\s+not)\s+wake\s+up)\b",
    re.IGNORECASE,
)
_SELF_HARM_RE = re.compile(
    r"\b(self[\s-]?harm\w*|cutting\s+myself|hurting\s+myself|hurt\s+myself|harm\s+myself)\b",
    re.IGNORECASE,
)
_DEPRESSION_RE = re.compile(r"\b(depress(?:ed|ion)|hopeless(?:ness)?|can'?t\s+go\s+on)\b", re.IGNORECASE)
_ANXIETY_RE = re.compile(r"\b(anxiety|anxious|panic)\b", re.IGNORECASE)
_ANXIETY_SEVERITY_RE = re.compile(r"\b(attacks?|racing|can'?t|heart)\b", re.IGNORECASE)

_HEADACHE_RE = re.compile(r"\bhead\s*aches?\b|\bmigraines?\b", re.IGNORECASE)
_HEADACHE_SEVERE_RE = re.compile(r"\b(worst|severe|excruciating|thunderclap)\b", re.IGNORECASE)
_VISION_RE = re.compile(r"\b(vision|blurry|blurred|seeing\s+double|double\s+vision)\b", re.IGNORECASE)
_VERY_HIGH_FEVER_RE = re.compile(r"\b(10[4-9]|11\d)(?:\.\d)?\s*(?:°|degrees?|f\b)?|\b(?:40|41|42)(?:\.\d)?\s*(?:°\s*c|degrees?\s+c)", re.IGNORECASE)
_FEVER_WORD_RE = re.compile(r"\b(fever\w*|temp\w*)\b", re.IGNORECASE)
_HIGH_FEVER_RE = re.compile(r"\bhigh\s+fever\b", re.IGNORECASE)
_FEVER_COMPLICATION_RE = re.compile(r"\b(confus\w*|severe|stiff\s+neck|lethargic)\b", re.IGNORECASE)
_CHEST_RADIATION_RE = re.compile(r"\b(radiat\w*|left\s+arm|jaw|sweating|diaphoresis|cold\s+sweat)\b", re.IGNORECASE)
_LONG_DURATION_RE = re.compile(r"\b(?:over|more\s+than)\s+(?:2|two)\s+weeks\b", re.IGNORECASE)
_CHEST_WORD_RE = re.compile(r"\bchest\b", re.IGNORECASE)
_CHEST_PAIN_RE = re.compile(r"\bchest\s+pain\b", re.IGNORECASE)
_BREATH_WORD_RE = re.compile(r"\bbreath", re.IGNORECASE)

PEDIATRIC_AGE = 18
GERIATRIC_AGE = 65
MULTI_SYMPTOM_THRESHOLD = 3

_EMERGENCY_SYMPTOMS: dict[str, tuple[str, str]] = {
    "chest pain": ("Chest pain reported", "cardiovascular"),
    "shortness of breath": ("Breathing difficulty reported", "respiratory"),
}

EMERGENCY_CONTACTS: dict[str, dict[str, str]] = {
    "US": {"emergency": "911", "crisis": "988", "poison": "1-800-222-1222"},
    "UK": {"emergency": "999", "crisis": "116 123", "poison": "0344 892 0111"},
    "EU": {"emergency": "112", "crisis": "116 123", "poison": "Local poison control"},
    "AU": {"emergency": "000", "crisis": "13 11 14", "poison": "13 11 26"},
    "CA": {"emergency": "911", "crisis": "1-833-456-4566", "poison": "1-844-764-7669"},
}


@dataclass
class _Accumulator:
    level: TriageLevel = "NON_URGENT"
    reasons: list[str] = field(default_factory=list)
    symptom_names: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    mental_health_crisis: bool = False

    def raise_to(self, level: TriageLevel, reason: str, names: Iterable[str] = (), category: str = "") -> None:
        self.level = escalate_only(self.level, level)
        _push(self.reasons, reason)
        for name in names:
            _push(self.symptom_names, name)
        if category:
            _push(self.categories, category)

    def to_triage(self) -> Triage:
        return Triage(level=self.level, reasons=list(self.reasons), symptom_names=list(self.symptom_names))


@dataclass(frozen=True)
class TriageAssessment:
    triage: Triage
    categories: list[str]
    mental_health_crisis: bool
    condition_matches: list[ConditionMatch]
    debug: dict[str, Any] = field(default_factory=dict)

    @property
    def primary_category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None


def _push(target: list[str], value: str) -> None:
    normalized = str(value or "").strip()
    if normalized and normalized not in target:
        target.append(normalized)


def _scan_red_flags(text: str, acc: _Accumulator, is_negated: Any, is_denied: Any) -> int:
    fired = 0
    for rule in RED_FLAG_RULES:
        match = rule.pattern.search(text)
        if match is None:
            continue
        if rule.level == "EMERGENCY":
            if is_denied(match.group(0)):
                continue
            fired += 1
            acc.raise_to("EMERGENCY", f"Red flag: {rule.description}", [rule.symptom_name], rule.category)
            break
        if is_negated(match.group(0)):
            continue
        fired += 1
        acc.raise_to("URGENT", f"Red flag: {rule.description}", [rule.symptom_name], rule.category)
    return fired


def _apply_compound_rules(text: str, acc: _Accumulator, is_negated: Any, is_denied: Any) -> None:
    headache = _HEADACHE_RE.search(text)
    if headache and not is_negated(headache.group(0)):
        if _HEADACHE_SEVERE_RE.search(text) and _VISION_RE.search(text):
            acc.raise_to(
                "URGENT",
                "Severe headache with vision changes",
                ["headache", "vision changes"],
                "neurological",
            )

    fever_context = _FEVER_WORD_RE.search(text) is not None
    if fever_context and _VERY_HIGH_FEVER_RE.search(text):
        acc.raise_to("URGENT", "Very high fever reported", ["fever"], "infection")
    elif _HIGH_FEVER_RE.search(text) and _FEVER_COMPLICATION_RE.search(text):
        acc.raise_to("URGENT", "High fever with concerning features", ["fever"], "infection")

    chest = _CHEST_WORD_RE.search(text)
    if chest and _CHEST_RADIATION_RE.search(text) and not is_denied(chest.group(0)):
        acc.raise_to("EMERGENCY", "Chest symptoms with radiation or sweating", ["chest pain"], "cardiovascular")

    if _LONG_DURATION_RE.search(text):
        # Informational only; does not change the level.
        _push(acc.reasons, "Symptoms persisting over 2 weeks")


def _apply_symptom_rules(symptoms: Sequence[Symptom], acc: _Accumulator, is_denied: Any) -> None:
    for symptom in symptoms:
        # A loosely negated emergency symptom still counts unless it was denied outright.
        if symptom.negated and (symptom.name not in _EMERGENCY_SYMPTOMS or is_denied(symptom.name)):
            continue
        if symptom.name in _EMERGENCY_SYMPTOMS:
            reason, category = _EMERGENCY_SYMPTOMS[symptom.name]
            acc.raise_to("EMERGENCY", reason, [symptom.name], category)
        elif symptom.severity == "severe":
            acc.raise_to("URGENT", f"Severe {symptom.name}", [symptom.name])
    present = [s for s in symptoms if not s.negated]
    if len(present) >= MULTI_SYMPTOM_THRESHOLD:
        acc.raise_to(
            "URGENT",
            f"Multiple concurrent symptoms ({len(present)})",
            [s.name for s in present],
        )


def _apply_demographic_rules(symptoms: Sequence[Symptom], demographics: Optional[Demographics], acc: _Accumulator) -> None:
    if demographics is None or demographics.age is None:
        return
    present = [s for s in symptoms if not s.negated]
    if demographics.age < PEDIATRIC_AGE and present:
        acc.raise_to("URGENT", "Pediatric patient with symptoms", [s.name for s in present], "pediatric")
    elif demographics.age >= GERIATRIC_AGE and len(present) > 1:
        acc.raise_to("URGENT", "Older adult with multiple symptoms", [s.name for s in present], "geriatric")


def _apply_domain_matches(matches: Sequence[ConditionMatch], acc: _Accumulator) -> None:
    for match in matches:
        if not match.matched:
            continue
        label = str(match.condition).replace("_", " ")
        reason = f"{match.domain.capitalize()} condition: {label}"
        if match.urgency == "NON_URGENT":
            _push(acc.reasons, reason)
            continue
        acc.raise_to(match.urgency, reason, match.symptoms or [label], match.domain)


def _apply_crisis_rules(text: str, acc: _Accumulator) -> None:
    if _SELF_HARM_RE.search(text):
        acc.raise_to("URGENT", "Self-harm indicators", ["self-harm"], "mental_health")
        acc.mental_health_crisis = True
    if _DEPRESSION_RE.search(text):
        acc.raise_to("URGENT", "Depression or hopelessness indicators", ["depression"], "mental_health")
    if _ANXIETY_RE.search(text) and _ANXIETY_SEVERITY_RE.search(text):
        acc.raise_to("URGENT", "Severe anxiety or panic symptoms", ["anxiety"], "mental_health")
    # Suicidal ideation overrides everything, including negation heuristics.
    if _SUICIDAL_RE.search(text):
        acc.raise_to("EMERGENCY", "Suicidal ideation", ["suicidal ideation"], "mental_health")
        acc.mental_health_crisis = True
        if "mental_health" in acc.categories:
            acc.categories.remove("mental_health")
        acc.categories.insert(0, "mental_health")


def _apply_conservative_bias(text: str, acc: _Accumulator) -> None:
    # Each rule moves the level one step; negation is not consulted here.
    if _CHEST_WORD_RE.search(text) and not _CHEST_PAIN_RE.search(text):
        acc.raise_to(step_up(acc.level), "Conservative bias: ambiguous chest symptoms", category="cardiovascular")
    if _BREATH_WORD_RE.search(text):
        acc.raise_to(step_up(acc.level), "Conservative bias: breathing concerns", category="respiratory")


def evaluate(
    context: Context,
    matches: Optional[Sequence[ConditionMatch]] = None,
    *,
    negation_window_chars: int = 40,
    negation_window_words: int = 5,
) -> TriageAssessment:
    acc = _Accumulator()
    resolved: list[ConditionMatch] = list(matches or [])
    debug: dict[str, Any] = {"status": "ok"}
    text = context.raw_input if isinstance(getattr(context, "raw_input", None), str) else ""
    is_denied = make_denial_predicate(text)

    def is_symptom_denied(name: str) -> bool:
        return is_denied(symptom_mention(text, name) or name)

    try:
        if text.strip():
            is_negated = make_negation_predicate(
                text, window_chars=negation_window_chars, window_words=negation_window_words
            )
            debug["red_flags_fired"] = _scan_red_flags(text, acc, is_negated, is_denied)
            _apply_compound_rules(text, acc, is_negated, is_denied)
        _apply_symptom_rules(context.symptoms, acc, is_symptom_denied)
        _apply_demographic_rules(context.symptoms, context.demographics, acc)
        if matches is None:
            resolved = detect_all(text, context.demographics)
        _apply_domain_matches(resolved, acc)
        if text.strip():
            _apply_crisis_rules(text, acc)
            _apply_conservative_bias(text, acc)
    except Exception as exc:
        debug = {"status": "error", "error": type(exc).__name__}
        try:
            logger.warning("triage_failed error=%s level_so_far=%s", type(exc).__name__, acc.level)
        except Exception:
            pass

    return TriageAssessment(
        triage=acc.to_triage(),
        categories=list(acc.categories),
        mental_health_crisis=acc.mental_health_crisis,
        condition_matches=resolved,
        debug=debug,
    )


def triage(context: Context, matches: Optional[Sequence[ConditionMatch]] = None) -> Triage:
    return evaluate(context, matches).triage


def triage_text(text: str, demographics: Optional[Demographics] = None) -> Triage:
    """Extract and triage bare text without the rest of the pipeline."""
    context = create_context(text, demographics)
    context.symptoms = extract(text).symptoms
    return evaluate(context).triage


def recommended_actions(
    level: TriageLevel,
    *,
    mental_health_crisis: bool = False,
    categories: Sequence[str] = (),
) -> list[str]:
    actions: list[str] = []
    if level == "EMERGENCY":
        if mental_health_crisis:
            actions.extend(
                [
                    "Call emergency services or a crisis line immediately",
                    "Do not stay alone; reach out to someone you trust",
                    "Remove any potential means of self-harm",
                ]
            )
        else:
            actions.extend(
                [
                    "Call emergency services immediately",
                    "Do not drive yourself to hospital",
                    "Bring a list of current medications",
                    "Have someone accompany you if possible",
                ]
            )
    elif level == "URGENT":
        actions.extend(
            [
                "Seek medical attention within 2-4 hours",
                "Monitor symptoms for worsening",
                "Prepare a list of symptoms and medications",
                "Consider urgent care or an emergency room",
            ]
        )
        if mental_health_crisis:
            actions.append("Contact a crisis line if you feel unsafe")
    else:
        actions.extend(
            [
                "Schedule an appointment with a healthcare provider",
                "Monitor symptoms and seek care if they worsen",
                "Document symptom progression",
            ]
        )

    if "cardiovascular" in categories:
        actions.append("Avoid physical exertion")
    if "respiratory" in categories:
        actions.append("Sit upright and rest")
        actions.append("Use a prescribed inhaler if available")
    return actions


def emergency_contacts(region: str = "US") -> dict[str, str]:
    return dict(EMERGENCY_CONTACTS.get(str(region or "").upper(), EMERGENCY_CONTACTS["US"]))


def triage_summary(assessment: TriageAssessment) -> dict[str, Any]:
    verdict = assessment.triage
    return {
        "triage_level": verdict.level,
        "is_high_risk": verdict.is_high_risk,
        "mental_health_crisis": assessment.mental_health_crisis,
        "categories": list(assessment.categories),
        "flagged_symptoms": list(verdict.symptom_names),
        "reasons": list(verdict.reasons),
        "conditions": [f"{m.domain}:{m.condition}" for m in assessment.condition_matches if m.matched],
        "recommended_actions": recommended_actions(
            verdict.level,
            mental_health_crisis=assessment.mental_health_crisis,
            categories=assessment.categories,
        ),
    }
