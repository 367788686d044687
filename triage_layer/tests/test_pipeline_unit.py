import asyncio
import json

import pytest

from triage_layer.internal_core.adaptive_cache import AdaptiveCache
from triage_layer.internal_core.config import TriageConfig
from triage_layer.internal_core.errors import ContextValidationError
from triage_layer.pipeline import TriagePipeline
from triage_layer.scripts import triage_preview

STAGES = ["validate", "extract", "demographics", "domains", "triage", "calibrate", "follow_up", "analytics"]


def _pipeline(**overrides) -> TriagePipeline:
    return TriagePipeline(TriageConfig(**overrides))


def test_run_headache_turn_end_to_end() -> None:
    pipeline = _pipeline()
    ctx = pipeline.run("I've had a headache for 3 days")
    assert ctx.intent.type == "symptom_check"
    assert [(s.name, s.location) for s in ctx.symptoms] == [("headache", "HEAD")]
    assert ctx.symptoms[0].duration.value == 3
    assert ctx.triage.level == "NON_URGENT"
    assert ctx.triage.is_high_risk is False
    assert ctx.metadata.body_system == "neurological"
    assert ctx.metadata.risk_multiplier == 1.0
    assert 1 <= len(ctx.follow_up_questions) <= 5
    assert [event.stage for event in ctx.audit] == STAGES
    assert all(event.code == "OK" for event in ctx.audit)
    assert set(ctx.metadata.stage_timings_ms) == set(STAGES)
    assert ctx.emergency_contacts["emergency"] == "911"
    assert pipeline.analytics.analyze()["total_queries"] == 1


def test_run_chest_pain_is_emergency_with_actions() -> None:
    ctx = _pipeline().run("severe chest pain and shortness of breath", region="uk")
    assert ctx.triage.level == "EMERGENCY"
    assert "chest pain" in ctx.triage.symptom_names
    assert "Call emergency services immediately" in ctx.recommended_actions
    assert ctx.emergency_contacts["emergency"] == "999"
    assert ctx.metadata.body_system == "cardiovascular"


def test_run_suicidal_phrasing_asks_safety_question_first() -> None:
    ctx = _pipeline().run("my back hurts a little and I want to end my life")
    assert ctx.triage.level == "EMERGENCY"
    assert ctx.metadata.body_system == "mental_health"
    assert ctx.follow_up_questions[0] == "Are you having thoughts of hurting yourself or others?"


def test_run_keeps_negated_symptom_out_of_triage() -> None:
    ctx = _pipeline().run("I don't have a fever but I do have chills")
    negated = {s.name: s.negated for s in ctx.symptoms}
    assert negated == {"fever": True, "chills": False}
    assert ctx.triage.level == "NON_URGENT"


def test_second_run_hits_extraction_cache() -> None:
    pipeline = _pipeline()
    first = pipeline.run("I've had a headache for 3 days")
    second = pipeline.run("  I've had a HEADACHE for 3 days ")
    assert first.metadata.cache_hit is False
    assert second.metadata.cache_hit is True
    assert [s.name for s in second.symptoms] == ["headache"]
    assert pipeline.cache.stats()["hits"] == 1
    second.symptoms[0].negated = True
    assert pipeline.run("I've had a headache for 3 days").symptoms[0].negated is False


def test_run_async_uses_shared_cache() -> None:
    pipeline = _pipeline()
    first = asyncio.run(pipeline.run_async("I have a cough"))
    second = asyncio.run(pipeline.run_async("I have a cough"))
    assert first.metadata.cache_hit is False
    assert second.metadata.cache_hit is True
    assert second.triage.level == first.triage.level


def test_access_barriers_raise_non_urgent_turn() -> None:
    ctx = _pipeline().run("I have a mild cough. I have no insurance, no car and live in a rural area")
    assert ctx.metadata.risk_multiplier == pytest.approx(1.728)
    assert ctx.triage.level == "URGENT"
    assert any(reason.startswith("Demographic risk multiplier") for reason in ctx.triage.reasons)
    assert any("community health centers" in action for action in ctx.recommended_actions)


def test_explicit_demographics_take_part_in_triage() -> None:
    ctx = _pipeline().run("my knee hurts", {"age": 8})
    assert ctx.demographics.age == 8
    assert ctx.triage.level == "URGENT"
    assert "Pediatric patient with symptoms" in ctx.triage.reasons


def test_invalid_demographics_are_reported_not_raised() -> None:
    ctx = _pipeline().run("I have a cough", {"age": 500})
    assert ctx.demographics.age is None
    assert any(error.startswith("age:") for error in ctx.metadata.errors)
    assert ctx.audit[0].code == "MALFORMED_INPUT"


def test_non_string_input_yields_safe_default() -> None:
    ctx = _pipeline().run(None)
    assert ctx.raw_input == ""
    assert ctx.triage.level == "NON_URGENT"
    assert ctx.symptoms == []
    assert "raw_input:INVALID_TYPE" in ctx.metadata.errors
    assert ctx.audit[0].code == "MALFORMED_INPUT"


def test_strict_mode_raises_on_malformed_input() -> None:
    pipeline = _pipeline(TRIAGE_STRICT_VALIDATION=True)
    with pytest.raises(ContextValidationError) as exc_info:
        pipeline.run(None)
    assert exc_info.value.codes == ["INVALID_TYPE"]
    assert pipeline.run("I have a cough").triage is not None


def test_failing_stage_never_lowers_emergency(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*args, **kwargs):
        raise RuntimeError("calibration table missing")

    monkeypatch.setattr("triage_layer.pipeline.calibrate", boom)
    pipeline = _pipeline()
    ctx = pipeline.run("crushing chest pain")
    assert ctx.triage.level == "EMERGENCY"
    assert "calibrate:RuntimeError" in ctx.metadata.errors
    assert [e.code for e in ctx.audit if e.stage == "calibrate"] == ["STAGE_ERROR"]
    assert ctx.follow_up_questions
    assert pipeline.analytics.error_analysis()["errors_by_type"] == {"RuntimeError_calibrate": 1}


def test_record_feedback_accepts_dict_and_rejects_bad_rating() -> None:
    pipeline = _pipeline()
    pipeline.record_feedback({"query_type": "symptom_check", "urgency": "URGENT", "rating": 9})
    metric = pipeline.analytics.learning_metric("symptom_check", "URGENT")
    assert metric is not None and metric.sample_count == 1
    with pytest.raises(ContextValidationError):
        pipeline.record_feedback({"query_type": "symptom_check", "urgency": "URGENT", "rating": 0})


def test_cli_prints_summary(capsys: pytest.CaptureFixture[str]) -> None:
    assert triage_preview.main(["--text", "severe chest pain", "--region", "US"]) == 0
    out = capsys.readouterr().out
    assert "triage_level: EMERGENCY" in out
    assert "emergency_contacts: emergency=911" in out


def test_cli_json_output(capsys: pytest.CaptureFixture[str]) -> None:
    assert triage_preview.main(["--text", "I have a cough", "--age", "70", "--sex", "male", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["raw_input"] == "I have a cough"
    assert payload["demographics"]["age"] == 70.0
    assert payload["demographics"]["sex"] == "male"
    assert payload["triage"]["level"] in {"NON_URGENT", "URGENT", "EMERGENCY"}


def test_owned_cache_sweeps_until_closed() -> None:
    with _pipeline() as pipeline:
        assert pipeline.cache.cleanup_running is True
        pipeline.run("I have a cough")
    assert pipeline.cache.cleanup_running is False


def test_injected_cache_lifecycle_is_left_to_caller() -> None:
    cache = AdaptiveCache()
    pipeline = TriagePipeline(TriageConfig(), cache=cache)
    assert cache.cleanup_running is False
    cache.start_cleanup()
    pipeline.close()
    assert cache.cleanup_running is True
    cache.stop_cleanup(timeout=1.0)


def test_run_escalates_affirmed_and_ambiguous_cardiorespiratory_text() -> None:
    with _pipeline() as pipeline:
        assert pipeline.run("Tylenol did not help my chest pain").triage.level == "EMERGENCY"
        assert pipeline.run("I can't climb stairs without shortness of breath").triage.level == "EMERGENCY"
        chest = pipeline.run("my chest feels weird and heavy")
        assert chest.triage.level != "NON_URGENT"
        assert "Conservative bias: ambiguous chest symptoms" in chest.triage.reasons
