from __future__ import annotations

from typing import Optional

from ..internal_core.contracts import Demographics
from . import autoimmune, geriatric, neurological, pediatric
from .base import ConditionMatch, Detector, run_detector

DETECTORS: list[tuple[str, Detector]] = [
    (pediatric.DOMAIN, pediatric.detect),
    (geriatric.DOMAIN, geriatric.detect),
    (neurological.DOMAIN, neurological.detect),
    (autoimmune.DOMAIN, autoimmune.detect),
]


def detect_all(
    text: str,
    demographics: Optional[Demographics] = None,
    detectors: Optional[list[tuple[str, Detector]]] = None,
) -> list[ConditionMatch]:
    """Run every detector behind the failure boundary; return only matches."""
    matches: list[ConditionMatch] = []
    for domain, detector in detectors if detectors is not None else DETECTORS:
        match = run_detector(detector, text, demographics, domain=domain)
        if match.matched:
            matches.append(match)
    return matches
