"""
Risk interpretation boundary for the triage pipeline.

Design intent:
- Convert extracted symptoms and condition matches into a triage verdict.
- Escalate only; ambiguity resolves toward higher urgency.
- Produce conservative, advisory language (seek care, consider, ask).
"""
