import pytest

from triage_layer.internal_core.audit import log_stage
from triage_layer.internal_core.config import TriageConfig, load_config
from triage_layer.internal_core.context import apply_triage, create_context, update_context, validate_context
from triage_layer.internal_core.contracts import Symptom, Triage
from triage_layer.internal_core.errors import ContextValidationError
from triage_layer.internal_core.escalation import escalate_only, level_rank, max_level, normalize_level, step_up


def test_create_context_rejects_non_string_input() -> None:
    with pytest.raises(ContextValidationError) as exc_info:
        create_context(123)
    assert exc_info.value.codes == ["INVALID_TYPE"]
    assert exc_info.value.issues[0].path == "raw_input"


def test_create_context_starts_empty() -> None:
    ctx = create_context("hello")
    assert ctx.raw_input == "hello"
    assert ctx.intent is None
    assert ctx.symptoms == []
    assert ctx.triage is None
    assert ctx.audit == []


def test_update_context_refuses_raw_input_change() -> None:
    ctx = create_context("original")
    with pytest.raises(ContextValidationError) as exc_info:
        update_context(ctx, raw_input="changed")
    assert exc_info.value.codes == ["IMMUTABLE_FIELD"]
    assert ctx.raw_input == "original"


def test_update_context_converts_schema_errors_to_issues() -> None:
    ctx = create_context("text")
    with pytest.raises(ContextValidationError) as exc_info:
        update_context(ctx, triage={"level": "SOMETIMES"})
    assert exc_info.value.issues
    assert all(issue.path.startswith("triage") for issue in exc_info.value.issues)


def test_symptom_coerces_unknown_location() -> None:
    symptom = Symptom(name="knee pain", location="kneecap")
    assert symptom.location == "UNSPECIFIED"
    assert symptom.negated is False


def test_validate_context_strict_lists_missing_fields() -> None:
    ctx = create_context("text")
    assert validate_context(ctx) == []
    with pytest.raises(ContextValidationError) as exc_info:
        validate_context(ctx, strict=True)
    paths = {issue.path for issue in exc_info.value.issues}
    assert {"intent.type", "triage.level"} <= paths
    assert set(exc_info.value.codes) == {"REQUIRED"}


def test_apply_triage_never_lowers_level() -> None:
    ctx = create_context("text")
    apply_triage(ctx, Triage(level="EMERGENCY", reasons=["Red flag: chest pain"], symptom_names=["chest pain"]))
    merged = apply_triage(ctx, Triage(level="NON_URGENT", reasons=["Red flag: chest pain", "later"]))
    assert merged.level == "EMERGENCY"
    assert merged.is_high_risk is True
    assert merged.reasons == ["Red flag: chest pain", "later"]
    assert ctx.triage.symptom_names == ["chest pain"]


def test_triage_high_risk_tracks_level() -> None:
    assert Triage(level="NON_URGENT", is_high_risk=True).is_high_risk is False
    assert Triage(level="URGENT").is_high_risk is True


def test_escalation_helpers() -> None:
    assert normalize_level("non-urgent") == "NON_URGENT"
    assert normalize_level("Emergency") == "EMERGENCY"
    assert normalize_level("unknown") == "NON_URGENT"
    assert escalate_only("EMERGENCY", "URGENT") == "EMERGENCY"
    assert escalate_only("NON_URGENT", "URGENT") == "URGENT"
    assert max_level("URGENT", "NON_URGENT", "EMERGENCY") == "EMERGENCY"
    assert level_rank("URGENT") == 1


def test_step_up_moves_one_level_and_caps_at_emergency() -> None:
    assert step_up("NON_URGENT") == "URGENT"
    assert step_up("urgent") == "EMERGENCY"
    assert step_up("EMERGENCY") == "EMERGENCY"
    assert step_up("garbage") == "URGENT"


def test_log_stage_records_sanitized_event_and_timing() -> None:
    ctx = create_context("text")
    event = log_stage(ctx, "extract", "OK", "line one\n" + "x" * 300, 1.23456)
    assert "\n" not in event.detail
    assert event.detail.endswith("...")
    assert len(event.detail) == 203
    assert ctx.audit == [event]
    assert ctx.metadata.stage_timings_ms["extract"] == 1.235


def test_load_config_reads_and_clamps_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRIAGE_CACHE_MAX_SIZE", "0")
    monkeypatch.setenv("TRIAGE_NEGATION_WINDOW_WORDS", "7")
    monkeypatch.setenv("TRIAGE_ANALYTICS_ALPHA", "not-a-number")
    monkeypatch.setenv("TRIAGE_STRICT_VALIDATION", "yes")
    monkeypatch.setenv("TRIAGE_DEFAULT_REGION", "uk")
    cfg = load_config()
    assert cfg.TRIAGE_CACHE_MAX_SIZE == 1
    assert cfg.TRIAGE_NEGATION_WINDOW_WORDS == 7
    assert cfg.TRIAGE_ANALYTICS_ALPHA == 0.1
    assert cfg.TRIAGE_STRICT_VALIDATION is True
    assert cfg.TRIAGE_DEFAULT_REGION == "UK"


def test_default_config_matches_documented_defaults() -> None:
    cfg = TriageConfig()
    assert cfg.TRIAGE_NEGATION_WINDOW_CHARS == 40
    assert cfg.TRIAGE_CACHE_TTL_MS == 600_000
    assert cfg.TRIAGE_MAX_FOLLOW_UP == 5
