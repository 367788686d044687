from __future__ import annotations

"""
Per-turn orchestration of the interpretation and safety-triage stages.

Design intent:
- One Context per user turn, threaded through validate -> extract -> demographics ->
  domains -> triage -> calibrate -> follow-up -> analytics.
- Every stage is timed and audited; a failing stage degrades to its safe default.
- The verdict only moves up: no stage (or stage failure) can lower a level already set.
- Cache and analytics are injected so several pipelines can share or isolate them.
"""

import hashlib
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .analytics.usage import UsageAnalytics
from .domains.base import ConditionMatch
from .domains.registry import detect_all
from .extraction.demographics import extract_demographic_indicators, merge_demographics
from .extraction.extractor import ExtractionResult, extract
from .internal_core.adaptive_cache import AdaptiveCache
from .internal_core.audit import log_stage
from .internal_core.config import TriageConfig, load_config
from .internal_core.context import apply_triage, create_context, issues_from_pydantic, validate_context
from .internal_core.contracts import Context, Demographics, FeedbackEvent, Intent, Triage, ValidationIssue
from .internal_core.errors import ContextValidationError
from .internal_core.escalation import escalate_only
from .risk.calibration import calibrate, condition_category, follow_up_recommendations
from .risk.followup import select_follow_up
from .risk.triage import TriageAssessment, emergency_contacts, evaluate, recommended_actions

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

_LOCATION_SYSTEMS: dict[str, str] = {
    "CHEST": "cardiovascular",
    "HEAD": "neurological",
    "ABDOMEN": "gastrointestinal",
    "LIMB": "musculoskeletal",
}


def _cache_key(text: str) -> str:
    # Keys are digests so the cache never holds user text as an index.
    normalized = _WS_RE.sub(" ", text.strip().lower())
    return "extract:" + hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


@dataclass
class _TurnState:
    ctx: Context
    region: str
    started: float
    explicit: Optional[Demographics] = None
    extraction: Optional[ExtractionResult] = None
    assessment: Optional[TriageAssessment] = None
    matches: list[ConditionMatch] = field(default_factory=list)
    extra_follow_up: list[list[str]] = field(default_factory=list)


class TriagePipeline:
    def __init__(
        self,
        config: Optional[TriageConfig] = None,
        cache: Optional[AdaptiveCache] = None,
        analytics: Optional[UsageAnalytics] = None,
    ):
        self.config = config or load_config()
        # The sweep belongs to whoever built the cache; an injected cache is left alone.
        self._owns_cache = cache is None
        self.cache = cache if cache is not None else AdaptiveCache.from_config(self.config)
        self.analytics = analytics if analytics is not None else UsageAnalytics.from_config(self.config)
        if self._owns_cache:
            self.cache.start_cleanup()

    def close(self) -> None:
        if self._owns_cache:
            self.cache.stop_cleanup(timeout=1.0)

    def __enter__(self) -> "TriagePipeline":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def run(self, text: Any, demographics: Any = None, *, region: Optional[str] = None) -> Context:
        state = self._begin(text, demographics, region)
        self._stage(state, "extract", lambda: self._extract(state, self._cached_extract(state.ctx.raw_input)))
        return self._finish(state)

    async def run_async(self, text: Any, demographics: Any = None, *, region: Optional[str] = None) -> Context:
        state = self._begin(text, demographics, region)
        started = time.perf_counter()
        computed: list[bool] = []

        def compute() -> ExtractionResult:
            computed.append(True)
            return extract(state.ctx.raw_input, config=self.config)

        try:
            result = await self.cache.aget_or_compute(_cache_key(state.ctx.raw_input), compute)
        except Exception as exc:
            self._stage_failed(state, "extract", exc, _elapsed_ms(started))
        else:
            if not computed:
                result = _as_cache_hit(result)
            self._stage(state, "extract", lambda: self._extract(state, result))
        return self._finish(state)

    def record_feedback(self, event: FeedbackEvent | dict[str, Any]) -> None:
        if isinstance(event, dict):
            try:
                event = FeedbackEvent.model_validate(event)
            except ValidationError as exc:
                raise ContextValidationError(issues_from_pydantic(exc)) from exc
        self.analytics.record_feedback(event)

    def _begin(self, text: Any, demographics: Any, region: Optional[str]) -> _TurnState:
        started = time.perf_counter()
        strict = self.config.TRIAGE_STRICT_VALIDATION
        issues: list[ValidationIssue] = []

        raw = text
        if not isinstance(raw, str):
            issue = ValidationIssue(path="raw_input", code="INVALID_TYPE", message="raw_input must be a string")
            if strict:
                raise ContextValidationError([issue])
            issues.append(issue)
            raw = ""

        explicit: Optional[Demographics] = None
        if isinstance(demographics, Demographics):
            explicit = demographics
        elif demographics is not None:
            try:
                explicit = Demographics.model_validate(demographics)
            except ValidationError as exc:
                if strict:
                    raise ContextValidationError(issues_from_pydantic(exc)) from exc
                issues.extend(issues_from_pydantic(exc))

        ctx = create_context(raw, explicit)
        state = _TurnState(
            ctx=ctx,
            region=str(region or self.config.TRIAGE_DEFAULT_REGION).upper(),
            started=started,
            explicit=explicit,
        )
        for issue in issues:
            ctx.metadata.errors.append(f"{issue.path}:{issue.code}")
        code = "MALFORMED_INPUT" if issues else "OK"
        log_stage(ctx, "validate", code, f"issues={len(issues)}", _elapsed_ms(started))
        return state

    def _finish(self, state: _TurnState) -> Context:
        self._stage(state, "demographics", lambda: self._demographics(state))
        self._stage(state, "domains", lambda: self._domains(state))
        self._stage(state, "triage", lambda: self._triage(state))
        self._stage(state, "calibrate", lambda: self._calibrate(state))
        self._stage(state, "follow_up", lambda: self._follow_up(state))

        ctx = state.ctx
        if ctx.intent is None:
            ctx.intent = Intent()
        if ctx.triage is None:
            apply_triage(ctx, Triage(level="NON_URGENT"))
        ctx.emergency_contacts = emergency_contacts(state.region)
        ctx.metadata.processing_time_ms = round(_elapsed_ms(state.started), 3)

        self._stage(state, "analytics", lambda: self._record_usage(state))
        if self.config.TRIAGE_STRICT_VALIDATION:
            validate_context(ctx, strict=True)

        try:
            logger.info(
                "triage_turn level=%s symptoms=%s conditions=%s ms=%s cache_hit=%s",
                ctx.triage.level if ctx.triage else None,
                len(ctx.symptoms),
                len(ctx.condition_matches),
                ctx.metadata.processing_time_ms,
                ctx.metadata.cache_hit,
            )
        except Exception:
            # Logging must never break the turn.
            pass
        return ctx

    def _stage(self, state: _TurnState, name: str, fn: Callable[[], str]) -> None:
        started = time.perf_counter()
        try:
            detail = fn()
        except Exception as exc:
            self._stage_failed(state, name, exc, _elapsed_ms(started))
            return
        duration_ms = _elapsed_ms(started)
        log_stage(state.ctx, name, "OK", detail or "", duration_ms)
        if name == "extract":
            self.cache.record_timing("extract", duration_ms)

    def _stage_failed(self, state: _TurnState, name: str, exc: Exception, duration_ms: float) -> None:
        ctx = state.ctx
        error = type(exc).__name__
        ctx.metadata.errors.append(f"{name}:{error}")
        log_stage(ctx, name, "STAGE_ERROR", f"error={error}", duration_ms)
        try:
            logger.warning(
                "triage_stage_failed stage=%s error=%s level_so_far=%s",
                name,
                error,
                ctx.triage.level if ctx.triage else None,
            )
            self.analytics.record_error(error, name)
        except Exception:
            pass

    def _cached_extract(self, text: str) -> ExtractionResult:
        key = _cache_key(text)
        cached = self.cache.get(key)
        if cached is not None:
            return _as_cache_hit(cached)
        result = extract(text, config=self.config)
        self.cache.set(key, result)
        return result

    def _extract(self, state: _TurnState, result: ExtractionResult) -> str:
        ctx = state.ctx
        state.extraction = result
        # Cached results are shared across turns; each context gets its own copies.
        ctx.intent = result.intent.model_copy(deep=True)
        ctx.symptoms = [symptom.model_copy(deep=True) for symptom in result.symptoms]
        ctx.metadata.intent_confidence = result.intent.confidence
        ctx.metadata.condition_type = result.condition_type
        ctx.metadata.cache_hit = bool(result.debug.get("cache_hit"))
        return f"symptoms={len(result.symptoms)} intent={result.intent.type} cache_hit={ctx.metadata.cache_hit}"

    def _demographics(self, state: _TurnState) -> str:
        ctx = state.ctx
        inferred = extract_demographic_indicators(ctx.raw_input)
        ctx.demographics = merge_demographics(state.explicit, inferred)
        d = ctx.demographics
        return f"age_known={d.age is not None} sex_known={d.sex is not None} factors={len(d.socioeconomic_factors)}"

    def _domains(self, state: _TurnState) -> str:
        ctx = state.ctx
        state.matches = detect_all(ctx.raw_input, ctx.demographics)
        ctx.condition_matches = [f"{m.domain}:{m.condition}" for m in state.matches]
        for match in state.matches:
            if match.follow_up:
                state.extra_follow_up.append(list(match.follow_up))
        return f"matches={len(state.matches)}"

    def _triage(self, state: _TurnState) -> str:
        ctx = state.ctx
        assessment = evaluate(
            ctx,
            state.matches,
            negation_window_chars=self.config.TRIAGE_NEGATION_WINDOW_CHARS,
            negation_window_words=self.config.TRIAGE_NEGATION_WINDOW_WORDS,
        )
        state.assessment = assessment
        merged = apply_triage(ctx, assessment.triage)

        ctx.metadata.body_system = assessment.primary_category or self._body_system_from_symptoms(ctx)
        actions = recommended_actions(
            merged.level,
            mental_health_crisis=assessment.mental_health_crisis,
            categories=assessment.categories,
        )
        for match in state.matches:
            actions.extend(match.recommendations)
        ctx.recommended_actions = _dedupe(actions)
        return f"level={merged.level} reasons={len(merged.reasons)}"

    def _calibrate(self, state: _TurnState) -> str:
        ctx = state.ctx
        if ctx.triage is None:
            return "skipped=no_triage"
        categories = state.assessment.categories if state.assessment else []
        category, focus = condition_category(ctx.triage.symptom_names, categories)
        demographics = ctx.demographics
        factors = sorted(demographics.socioeconomic_factors)
        result = calibrate(
            category,
            demographics.age,
            demographics.sex,
            factors,
            ctx.triage.level,
            focus=focus,
        )
        ctx.metadata.risk_multiplier = result.risk_multiplier
        if result.adjusted_urgency != ctx.triage.level:
            apply_triage(
                ctx,
                Triage(
                    level=escalate_only(ctx.triage.level, result.adjusted_urgency),
                    reasons=[f"Demographic risk multiplier {result.risk_multiplier}"],
                ),
            )
        extra = [
            *result.recommendations,
            *follow_up_recommendations(demographics.age, demographics.sex, category, factors),
        ]
        ctx.recommended_actions = _dedupe([*ctx.recommended_actions, *extra])
        return f"multiplier={result.risk_multiplier} bracket={result.age_bracket} level={ctx.triage.level}"

    def _follow_up(self, state: _TurnState) -> str:
        ctx = state.ctx
        level = ctx.triage.level if ctx.triage else "NON_URGENT"
        category = ctx.metadata.body_system
        names = [s.name for s in ctx.symptoms if not s.negated]
        ctx.follow_up_questions = select_follow_up(
            category,
            level,
            names,
            ctx.demographics.age,
            extra=state.extra_follow_up,
            max_questions=self.config.TRIAGE_MAX_FOLLOW_UP,
        )
        return f"questions={len(ctx.follow_up_questions)}"

    def _record_usage(self, state: _TurnState) -> str:
        ctx = state.ctx
        self.analytics.record_query(
            ctx.intent.type if ctx.intent else "general_inquiry",
            ctx.triage.level if ctx.triage else "NON_URGENT",
            [s.name for s in ctx.symptoms if not s.negated],
            ctx.metadata.processing_time_ms or 0.0,
        )
        return "recorded=1"

    @staticmethod
    def _body_system_from_symptoms(ctx: Context) -> Optional[str]:
        for symptom in ctx.symptoms:
            if symptom.negated:
                continue
            system = _LOCATION_SYSTEMS.get(symptom.location)
            if system is not None:
                return system
        return None


def _as_cache_hit(cached: ExtractionResult) -> ExtractionResult:
    return ExtractionResult(
        intent=cached.intent,
        symptoms=cached.symptoms,
        condition_type=cached.condition_type,
        duration=cached.duration,
        debug={**cached.debug, "cache_hit": True},
    )


def _dedupe(values: list[str]) -> list[str]:
    out: list[str] = []
    for value in values:
        if value and value not in out:
            out.append(value)
    return out
