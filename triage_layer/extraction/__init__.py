"""
Text extraction boundary for the triage pipeline.

Design intent:
- Convert raw user text into intent, symptoms, duration and demographic hints.
- Stay pure and tolerant: garbage input yields safe defaults, never exceptions.
- Keep negation/duration heuristics small and replaceable.
"""

from .demographics import extract_demographic_indicators, merge_demographics
from .duration import parse_duration
from .extractor import ExtractionResult, classify_intent, correct_symptoms, detect_condition_type, extract
from .negation import make_denial_predicate, make_negation_predicate

__all__ = [
    "ExtractionResult",
    "classify_intent",
    "correct_symptoms",
    "detect_condition_type",
    "extract",
    "extract_demographic_indicators",
    "make_denial_predicate",
    "make_negation_predicate",
    "merge_demographics",
    "parse_duration",
]
