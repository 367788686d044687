"""
Domain condition detectors (pediatric, geriatric, autoimmune, neurological).

Design intent:
- Express each domain as a table of condition rules, iterated explicitly.
- Return ephemeral condition matches; never mutate the pipeline context.
- Treat a failing detector as "no match" so triage is never blocked.
"""

from .base import ConditionMatch, ConditionRule, NO_MATCH, run_detector
from .registry import detect_all

__all__ = ["ConditionMatch", "ConditionRule", "NO_MATCH", "detect_all", "run_detector"]
