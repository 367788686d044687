from __future__ import annotations

from typing import Sequence

from .contracts import ValidationIssue


class TriageLayerError(Exception):
    """Base error for the triage pipeline."""


class ContextValidationError(TriageLayerError):
    def __init__(self, issues: Sequence[ValidationIssue]):
        self.issues = list(issues)
        summary = "; ".join(f"{issue.path}: {issue.message}" for issue in self.issues[:3])
        super().__init__(f"context validation failed ({len(self.issues)} issue(s)): {summary}")

    @property
    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues]
