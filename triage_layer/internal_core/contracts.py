from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TriageLevel = Literal["EMERGENCY", "URGENT", "NON_URGENT"]

BodyLocation = Literal["CHEST", "HEAD", "ABDOMEN", "LIMB", "GENERAL", "UNSPECIFIED"]
BODY_LOCATIONS: tuple[str, ...] = ("CHEST", "HEAD", "ABDOMEN", "LIMB", "GENERAL", "UNSPECIFIED")

Severity = Literal["mild", "moderate", "severe", "sharp", "dull", "unspecified"]
SEVERITIES: tuple[str, ...] = ("mild", "moderate", "severe", "sharp", "dull", "unspecified")

Sex = Literal["male", "female", "other"]

IntentType = Literal[
    "general_inquiry",
    "symptom_check",
    "emergency",
    "information_request",
    "prevention_inquiry",
    "medication_inquiry",
]

ConditionType = Literal["ACUTE", "CHRONIC", "PREVENTIVE", "INFORMATIONAL", "MEDICATION", "GENERAL"]


def normalize_location(value: Any) -> str:
    normalized = str(value or "").strip().upper()
    return normalized if normalized in BODY_LOCATIONS else "UNSPECIFIED"


class Duration(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: Optional[int] = None
    unit: str
    raw: str


class Symptom(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    location: BodyLocation = "UNSPECIFIED"
    severity: Optional[Severity] = None
    duration: Optional[Duration] = None
    negated: bool = False

    @field_validator("location", mode="before")
    @classmethod
    def _coerce_location(cls, value: Any) -> str:
        return normalize_location(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        normalized = str(value).strip().lower()
        return normalized if normalized in SEVERITIES else "unspecified"


class Intent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: IntentType = "general_inquiry"
    confidence: float = Field(default=0.3, ge=0.0, le=1.0)


class Triage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: TriageLevel = "NON_URGENT"
    is_high_risk: bool = False
    reasons: List[str] = Field(default_factory=list)
    symptom_names: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _sync_high_risk(self) -> "Triage":
        # isHighRisk is derived from level, never set independently.
        self.is_high_risk = self.level != "NON_URGENT"
        return self


class Demographics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    age: Optional[float] = Field(default=None, ge=0.0, le=130.0)
    sex: Optional[Sex] = None
    socioeconomic_factors: Set[str] = Field(default_factory=set)
    cultural_markers: Set[str] = Field(default_factory=set)


class ContextMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    processing_time_ms: Optional[float] = None
    intent_confidence: Optional[float] = None
    body_system: Optional[str] = None
    condition_type: Optional[ConditionType] = None
    stage_timings_ms: Dict[str, float] = Field(default_factory=dict)
    cache_hit: bool = False
    risk_multiplier: Optional[float] = None
    errors: List[str] = Field(default_factory=list)


class StageAuditEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ts_iso: str
    stage: str
    code: str
    detail: str = ""
    duration_ms: Optional[float] = None


class ValidationIssue(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    code: str = "VALIDATION_ERROR"
    message: str


class FeedbackEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query_type: str
    urgency: TriageLevel
    rating: int = Field(ge=1, le=10)
    improvements: List[str] = Field(default_factory=list)
    accuracy: Optional[float] = Field(default=None, ge=0.0, le=10.0)
    response_time_ms: Optional[float] = Field(default=None, ge=0.0)


class Context(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    raw_input: str = Field(frozen=True)
    intent: Optional[Intent] = None
    symptoms: List[Symptom] = Field(default_factory=list)
    triage: Optional[Triage] = None
    demographics: Demographics = Field(default_factory=Demographics)
    metadata: ContextMetadata = Field(default_factory=ContextMetadata)
    follow_up_questions: List[str] = Field(default_factory=list)
    recommended_actions: List[str] = Field(default_factory=list)
    emergency_contacts: Dict[str, str] = Field(default_factory=dict)
    condition_matches: List[str] = Field(default_factory=list)
    audit: List[StageAuditEvent] = Field(default_factory=list)
