from __future__ import annotations

"""
Extract intent and symptoms from a single user turn.

Each extracted symptom carries:
- canonical name
- body location (closed set)
- negated flag (always present)

Design intent:
- Keep extraction pure and deterministic (regex tables, no models).
- Tolerate empty or garbage input: default intent, no symptoms, no exceptions.
- Emergency phrasing wins over every other intent classification.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from ..internal_core.config import TriageConfig
from ..internal_core.contracts import ConditionType, Duration, Intent, Symptom, normalize_location
from .duration import parse_duration
from .negation import make_negation_predicate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymptomRule:
    name: str
    location: str
    patterns: tuple[re.Pattern[str], ...]
    synonyms: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractionResult:
    intent: Intent
    symptoms: list[Symptom]
    condition_type: ConditionType = "GENERAL"
    duration: Optional[Duration] = None
    debug: dict[str, Any] = field(default_factory=dict)


def _rule(name: str, location: str, *patterns: str, synonyms: Sequence[str] = ()) -> SymptomRule:
    return SymptomRule(
        name=name,
        location=location,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        synonyms=tuple(synonyms),
    )


SYMPTOM_RULES: list[SymptomRule] = [
    _rule(
        "headache",
        "HEAD",
        r"\bhead\s*aches?\b",
        r"\bmigraines?\b",
        r"\bhead\s*pain\b",
        r"\bhead\s*hurts?\b",
        synonyms=("migraine", "head pain"),
    ),
    _rule(
        "chest pain",
        "CHEST",
        r"\bchest\s*pain\b",
        r"\bchest\s*hurts?\b",
        r"\bheart\s*pain\b",
        r"\bchest\s*(?:tight(?:ness)?|pressure)\b",
        r"\btight(?:ness)?\s+in\s+(?:my|the)\s+chest\b",
        synonyms=("chest tightness", "chest pressure"),
    ),
    _rule(
        "shortness of breath",
        "CHEST",
        r"\bshort(?:ness)?\s+of\s+breath\b",
        r"\b(?:difficulty|trouble|hard)\s+breathing\b",
        r"\bcan(?:'|no)?t\s+breathe\b",
        r"\bbreathless(?:ness)?\b",
        synonyms=("difficulty breathing", "breathlessness"),
    ),
    _rule(
        "stomach pain",
        "ABDOMEN",
        r"\b(?:stomach|belly|abdomen|abdominal|tummy)\s*(?:pain|ache|aches|hurts?|cramps?)\b",
        r"\bstomach\s*ache\b",
        synonyms=("abdominal pain", "belly ache"),
    ),
    _rule("back pain", "UNSPECIFIED", r"\bback\s*(?:pain|ache|hurts?)\b", r"\bbackache\b"),
    _rule(
        "fatigue",
        "GENERAL",
        r"\btired(?:ness)?\b",
        r"\bfatigue[d]?\b",
        r"\bexhausted\b",
        r"\bweak(?:ness)?\b",
        r"\b(?:no|low)\s+energy\b",
    ),
    _rule(
        "fever",
        "GENERAL",
        r"\bfevers?\b",
        r"\bfeverish\b",
        r"\b(?:high|running\s+a)\s+temperature\b",
        r"\bburning\s*up\b",
    ),
    _rule("chills", "GENERAL", r"\bchills?\b", r"\bshivering\b", r"\brigors\b"),
    _rule(
        "nausea",
        "GENERAL",
        r"\bnause(?:a|ated|ous)\b",
        r"\bvomit(?:ing|ed|s)?\b",
        r"\bthrow(?:ing)?\s*up\b",
        r"\bthrew\s+up\b",
        r"\bfeel(?:ing)?\s+sick\b",
    ),
    _rule("dizziness", "HEAD", r"\bdizz(?:y|iness)\b", r"\blight[\s-]?headed(?:ness)?\b"),
    _rule("cough", "CHEST", r"\bcough(?:ing|s)?\b"),
    _rule("sore throat", "HEAD", r"\bsore\s+throat\b", r"\bthroat\s+(?:pain|hurts?)\b"),
    _rule("rash", "GENERAL", r"\brash(?:es)?\b", r"\bhives\b"),
]

_LOCATION_WORDS: list[tuple[str, tuple[str, ...]]] = [
    ("CHEST", ("chest", "heart", "rib", "ribs")),
    ("HEAD", ("head", "forehead", "temple", "jaw", "ear", "eye", "neck")),
    ("ABDOMEN", ("stomach", "belly", "abdomen", "abdominal", "side", "groin")),
    ("LIMB", ("arm", "leg", "knee", "ankle", "wrist", "shoulder", "hand", "foot", "elbow", "hip", "finger", "toe")),
]
_PAIN_WORD_RE = re.compile(r"\b(pain|painful|hurts?|hurting|ache|aches|aching|sore|tender|discomfort)\b", re.IGNORECASE)

_CONDITION_BUCKETS: list[tuple[ConditionType, tuple[str, ...]]] = [
    ("ACUTE", ("sudden", "sharp", "severe", "intense", "stabbing", "emergency")),
    ("CHRONIC", ("ongoing", "persistent", "long-term", "months", "years", "chronic")),
    ("PREVENTIVE", ("prevent", "avoid", "screening", "checkup", "vaccine", "healthy")),
    ("INFORMATIONAL", ("what is", "how does", "explain", "tell me about", "learn")),
    ("MEDICATION", ("prescription", "medication", "medicine", "drug", "dosage", "pills")),
]

_EMERGENCY_INTENT_RE = re.compile(r"\b(emergency|urgent|serious|911|help|critical)\b", re.IGNORECASE)
_INFO_INTENT_RE = re.compile(r"\b(what\s+is|tell\s+me|explain|how\s+does|why)\b", re.IGNORECASE)

_SEVERITY_WORDS: list[tuple[str, tuple[str, ...]]] = [
    ("severe", ("worst", "severe", "excruciating", "unbearable", "intense", "terrible", "extreme")),
    ("sharp", ("sharp", "stabbing", "shooting")),
    ("dull", ("dull", "throbbing", "aching")),
    ("moderate", ("moderate",)),
    ("mild", ("mild", "slight", "minor", "little")),
]
_SEVERITY_WINDOW_CHARS = 30


def detect_condition_type(text: str) -> ConditionType:
    lowered = str(text or "").lower()
    for bucket, keywords in _CONDITION_BUCKETS:
        if any(keyword in lowered for keyword in keywords):
            return bucket
    return "GENERAL"


def _detect_severity(lowered: str, start: int) -> Optional[str]:
    window = lowered[max(0, start - _SEVERITY_WINDOW_CHARS) : start]
    words = set(re.findall(r"[a-z']+", window))
    for severity, keywords in _SEVERITY_WORDS:
        if words.intersection(keywords):
            return severity
    return None


def symptom_mention(text: str, name: str) -> Optional[str]:
    """Return the wording that produced the canonical symptom `name`, if any."""
    source = str(text or "")
    for rule in SYMPTOM_RULES:
        if rule.name != name:
            continue
        for pattern in rule.patterns:
            match = pattern.search(source)
            if match is not None:
                return match.group(0)
    return None


def _match_primary(
    text: str,
    *,
    is_negated: Any,
    duration: Optional[Duration],
) -> list[Symptom]:
    lowered = text.lower()
    symptoms: list[Symptom] = []
    for rule in SYMPTOM_RULES:
        for pattern in rule.patterns:
            match = pattern.search(text)
            if match is None:
                continue
            negated = bool(is_negated(match.group(0)))
            symptoms.append(
                Symptom(
                    name=rule.name,
                    location=rule.location,
                    severity=_detect_severity(lowered, match.start()),
                    duration=None if negated else duration,
                    negated=negated,
                )
            )
            break
    return symptoms


def _match_fallback(
    text: str,
    *,
    is_negated: Any,
    duration: Optional[Duration],
) -> list[Symptom]:
    if not _PAIN_WORD_RE.search(text):
        return []
    lowered = text.lower()
    symptoms: list[Symptom] = []
    for location, words in _LOCATION_WORDS:
        for word in words:
            match = re.search(rf"\b{re.escape(word)}\b", lowered)
            if match is None:
                continue
            negated = bool(is_negated(word))
            symptoms.append(
                Symptom(
                    name=f"{word} pain",
                    location=location,
                    severity=_detect_severity(lowered, match.start()),
                    duration=None if negated else duration,
                    negated=negated,
                )
            )
            break
    return symptoms


def classify_intent(text: str, symptoms: Sequence[Symptom], condition_type: ConditionType) -> Intent:
    """Classify intent; later overrides win, emergency phrasing is applied last."""
    intent_type = "general_inquiry"
    confidence = 0.3

    present = [s for s in symptoms if not s.negated]
    if present:
        intent_type = "symptom_check"
        confidence = 0.7 + 0.1 * len(present)

    if _INFO_INTENT_RE.search(text):
        intent_type = "information_request"
        confidence = 0.6

    if condition_type == "PREVENTIVE":
        intent_type = "prevention_inquiry"
        confidence = 0.8
    elif condition_type == "MEDICATION":
        intent_type = "medication_inquiry"
        confidence = 0.7

    if _EMERGENCY_INTENT_RE.search(text):
        intent_type = "emergency"
        confidence = 0.9

    return Intent(type=intent_type, confidence=round(min(confidence, 0.95), 4))


def correct_symptoms(symptoms: Sequence[Symptom]) -> list[Symptom]:
    """De-duplicate by (name, location); the first occurrence wins."""
    out: list[Symptom] = []
    seen: set[tuple[str, str]] = set()
    for symptom in symptoms:
        name = str(symptom.name or "").strip().lower()
        if not name:
            continue
        location = normalize_location(symptom.location)
        key = (name, location)
        if key in seen:
            continue
        seen.add(key)
        out.append(
            Symptom(
                name=name,
                location=location,
                severity=symptom.severity,
                duration=symptom.duration,
                negated=bool(symptom.negated),
            )
        )
    return out


def extract(text: Any, *, config: Optional[TriageConfig] = None) -> ExtractionResult:
    if not isinstance(text, str) or not text.strip():
        return ExtractionResult(intent=Intent(), symptoms=[], debug={"status": "empty_input"})

    cfg = config or TriageConfig()
    try:
        is_negated = make_negation_predicate(
            text,
            window_chars=cfg.TRIAGE_NEGATION_WINDOW_CHARS,
            window_words=cfg.TRIAGE_NEGATION_WINDOW_WORDS,
        )
        duration = parse_duration(text)
        condition_type = detect_condition_type(text)
        symptoms = _match_primary(text, is_negated=is_negated, duration=duration)
        used_fallback = False
        if not symptoms:
            symptoms = _match_fallback(text, is_negated=is_negated, duration=duration)
            used_fallback = bool(symptoms)
        symptoms = correct_symptoms(symptoms)
        intent = classify_intent(text, symptoms, condition_type)
    except Exception as exc:
        try:
            logger.warning("extract_failed error=%s", type(exc).__name__)
        except Exception:
            # Logging must never break extraction.
            pass
        return ExtractionResult(intent=Intent(), symptoms=[], debug={"status": "error", "error": type(exc).__name__})

    return ExtractionResult(
        intent=intent,
        symptoms=symptoms,
        condition_type=condition_type,
        duration=duration,
        debug={
            "status": "ok",
            "symptom_count": len(symptoms),
            "negated_count": sum(1 for s in symptoms if s.negated),
            "used_fallback": used_fallback,
        },
    )
