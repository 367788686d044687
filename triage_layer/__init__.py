"""
Interpretation and safety-triage pipeline package.

Design intent:
- Turn a free-text symptom description into a typed, conservative triage context.
- Keep every stage deterministic and explainable (rule tables, not models).
- Hand the enriched context to downstream prompt/UI layers without owning them.
"""
