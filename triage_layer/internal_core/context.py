from __future__ import annotations

"""
Per-turn context carrier for the triage pipeline.

Design intent:
- One typed record threaded through every stage, discarded after the turn.
- raw_input is fixed at creation; everything else is filled in by stages.
- Triage can only be escalated once set, via escalate_only.
"""

from typing import Any, Iterable, Optional

from pydantic import ValidationError

from .contracts import Context, Demographics, Triage, ValidationIssue
from .errors import ContextValidationError
from .escalation import escalate_only


def issues_from_pydantic(exc: ValidationError) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ())) or "$"
        issues.append(
            ValidationIssue(
                path=path,
                code=str(err.get("type", "VALIDATION_ERROR")).upper(),
                message=str(err.get("msg", "invalid value")),
            )
        )
    return issues


def create_context(raw_input: Any, demographics: Optional[Demographics | dict[str, Any]] = None) -> Context:
    if not isinstance(raw_input, str):
        raise ContextValidationError(
            [ValidationIssue(path="raw_input", code="INVALID_TYPE", message="raw_input must be a string")]
        )
    try:
        return Context(raw_input=raw_input, demographics=demographics or Demographics())
    except ValidationError as exc:
        raise ContextValidationError(issues_from_pydantic(exc)) from exc


def update_context(ctx: Context, **fields: Any) -> Context:
    if "raw_input" in fields:
        raise ContextValidationError(
            [ValidationIssue(path="raw_input", code="IMMUTABLE_FIELD", message="raw_input cannot change")]
        )
    try:
        for name, value in fields.items():
            setattr(ctx, name, value)
    except ValidationError as exc:
        raise ContextValidationError(issues_from_pydantic(exc)) from exc
    return ctx


def validate_context(ctx: Context, *, strict: bool = False) -> list[ValidationIssue]:
    """Check a context; return issues, or raise ContextValidationError in strict mode."""
    issues: list[ValidationIssue] = []
    if not isinstance(getattr(ctx, "raw_input", None), str):
        issues.append(ValidationIssue(path="raw_input", code="INVALID_TYPE", message="raw_input must be a string"))

    if strict:
        if ctx.intent is None or not ctx.intent.type:
            issues.append(ValidationIssue(path="intent.type", code="REQUIRED", message="intent.type is required"))
        if not isinstance(ctx.symptoms, list):
            issues.append(ValidationIssue(path="symptoms", code="REQUIRED", message="symptoms must be a list"))
        if ctx.triage is None or not ctx.triage.level:
            issues.append(ValidationIssue(path="triage.level", code="REQUIRED", message="triage.level is required"))
        if issues:
            raise ContextValidationError(issues)
    return issues


def apply_triage(ctx: Context, proposed: Triage) -> Triage:
    """Fold a proposed verdict into the context without ever lowering its level."""
    current = ctx.triage
    if current is None:
        merged = Triage(
            level=proposed.level,
            reasons=_dedupe(proposed.reasons),
            symptom_names=_dedupe(proposed.symptom_names),
        )
    else:
        merged = Triage(
            level=escalate_only(current.level, proposed.level),
            reasons=_dedupe([*current.reasons, *proposed.reasons]),
            symptom_names=_dedupe([*current.symptom_names, *proposed.symptom_names]),
        )
    ctx.triage = merged
    return merged


def _dedupe(values: Iterable[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        normalized = str(value or "").strip()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        out.append(normalized)
    return out
