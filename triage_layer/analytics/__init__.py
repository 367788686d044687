"""
Usage analytics and learning loop.

Design intent:
- Observe verdicts and feedback; never feed back into triage automatically.
- Keep state in an injectable service object, not a module singleton.
"""

from .usage import UsageAnalytics

__all__ = ["UsageAnalytics"]
