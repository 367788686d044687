from triage_layer.extraction.extractor import extract
from triage_layer.internal_core.context import create_context
from triage_layer.internal_core.contracts import Demographics
from triage_layer.internal_core.escalation import level_rank
from triage_layer.risk.calibration import (
    AGE_RISK_PROFILES,
    calibrate,
    condition_category,
    follow_up_recommendations,
)
from triage_layer.risk.followup import prioritize_questions, select_follow_up
from triage_layer.risk.triage import (
    emergency_contacts,
    evaluate,
    recommended_actions,
    triage,
    triage_summary,
    triage_text,
)


def _context(text: str, age: float | None = None):
    ctx = create_context(text, Demographics(age=age) if age is not None else None)
    ctx.symptoms = extract(text).symptoms
    return ctx


def test_chest_pain_and_breathlessness_is_emergency() -> None:
    assessment = evaluate(_context("severe chest pain and shortness of breath"))
    assert assessment.triage.level == "EMERGENCY"
    assert assessment.triage.is_high_risk is True
    assert "chest pain" in assessment.triage.symptom_names
    assert assessment.primary_category == "cardiovascular"


def test_suicidal_phrasing_wins_over_mild_symptoms() -> None:
    assessment = evaluate(_context("I have a mild headache and I want to kill myself"))
    assert assessment.triage.level == "EMERGENCY"
    assert assessment.mental_health_crisis is True
    assert assessment.primary_category == "mental_health"
    assert "Suicidal ideation" in assessment.triage.reasons


def test_negated_red_flag_does_not_escalate() -> None:
    ctx = _context("no chest pain, just a cough")
    assert [s.negated for s in ctx.symptoms if s.name == "chest pain"] == [True]
    assert triage(ctx).level == "NON_URGENT"


def test_three_present_symptoms_are_urgent() -> None:
    verdict = triage(_context("I have a fever, a cough and a sore throat"))
    assert verdict.level == "URGENT"
    assert "Multiple concurrent symptoms (3)" in verdict.reasons


def test_pediatric_patient_with_symptoms_is_urgent() -> None:
    verdict = triage(_context("I have a cough", age=8))
    assert verdict.level == "URGENT"
    assert "Pediatric patient with symptoms" in verdict.reasons


def test_very_high_fever_is_urgent() -> None:
    verdict = triage(_context("my temperature is 104 degrees"))
    assert verdict.level == "URGENT"
    assert "Very high fever reported" in verdict.reasons


def test_engine_failure_keeps_emergency_already_reached() -> None:
    assessment = evaluate(_context("chest pain"), [object()])
    assert assessment.debug["status"] == "error"
    assert assessment.triage.level == "EMERGENCY"


def test_empty_text_stays_non_urgent() -> None:
    assessment = evaluate(create_context(""))
    assert assessment.triage.level == "NON_URGENT"
    assert assessment.triage.reasons == []


def test_recommended_actions_and_contacts() -> None:
    crisis = recommended_actions("EMERGENCY", mental_health_crisis=True)
    assert "crisis line" in crisis[0]
    assert any("inhaler" in a for a in recommended_actions("URGENT", categories=["respiratory"]))
    assert emergency_contacts("uk")["emergency"] == "999"
    assert emergency_contacts("ZZ")["emergency"] == "911"


def test_triage_summary_shape() -> None:
    summary = triage_summary(evaluate(_context("severe chest pain")))
    assert summary["triage_level"] == "EMERGENCY"
    assert summary["recommended_actions"][0] == "Call emergency services immediately"
    assert "cardiovascular" in summary["categories"]


def test_calibration_escalates_older_cardiac_patient() -> None:
    result = calibrate("cardiovascular", 70, "female", [], "URGENT", focus="heart_attack")
    assert result.age_bracket == "66+"
    assert result.risk_multiplier == 3.0
    assert result.adjusted_urgency == "EMERGENCY"
    assert "High index of suspicion" in result.considerations
    assert any(r.startswith("Consider female-specific risk factors") for r in result.recommendations)


def test_calibration_never_lowers_level() -> None:
    result = calibrate("cardiovascular", 20, None, [], "EMERGENCY", focus="heart_attack")
    assert result.risk_multiplier == 0.1
    assert result.adjusted_urgency == "EMERGENCY"


def test_calibration_access_barriers_compound() -> None:
    two = calibrate(None, None, None, ["no insurance", "no car"], "NON_URGENT")
    assert two.risk_multiplier == 1.44
    assert two.adjusted_urgency == "NON_URGENT"
    three = calibrate(None, None, None, ["no insurance", "no car", "rural area"], "NON_URGENT")
    assert three.adjusted_urgency == "URGENT"
    assert "Provide telemedicine options" in three.considerations


def test_age_bracket_selection_per_category() -> None:
    profile = AGE_RISK_PROFILES["mental_health"]
    assert profile.bracket_for(25.5) == "12-25"
    assert profile.bracket_for(40) == "26-65"
    assert profile.bracket_for(5) is None


def test_condition_category_resolution() -> None:
    assert condition_category(["chest pain"]) == ("cardiovascular", "chest_pain")
    assert condition_category([], ["respiratory", "mental_health"]) == ("mental_health", None)
    assert condition_category(["cough"], []) == (None, None)


def test_follow_up_recommendations_cover_sex_and_access() -> None:
    recs = follow_up_recommendations(70, "female", "cardiovascular", ["no insurance"])
    assert any("pregnancy status" in r for r in recs)
    assert any("community health centers" in r for r in recs)
    assert any("atypical symptom presentations" in r for r in recs)


def test_follow_up_prioritizes_safety_questions() -> None:
    questions = select_follow_up("cardiovascular", "EMERGENCY", ["chest pain"])
    assert len(questions) == 5
    assert len(set(questions)) == 5
    assert "chest pain" in questions[0].lower()
    crisis = select_follow_up("mental_health", "EMERGENCY", [])
    assert crisis[0] == "Are you having thoughts of hurting yourself or others?"


def test_follow_up_uses_generic_and_age_sets() -> None:
    questions = select_follow_up("unknown", "EMERGENCY", [], age=5)
    assert "What is the child's age?" in questions
    assert len(select_follow_up(None, "NON_URGENT", [], max_questions=2)) == 2


def test_prioritize_questions_dedupes() -> None:
    assert prioritize_questions([["a", "b"], ["b", "c", ""]]) == ["a", "b", "c"]


def test_affirmed_red_flag_after_unrelated_negation_stays_emergency() -> None:
    stairs = triage_text("I can't climb stairs without shortness of breath")
    assert stairs.level == "EMERGENCY"
    assert "shortness of breath" in stairs.symptom_names
    tylenol = triage_text("Tylenol did not help my chest pain")
    assert tylenol.level == "EMERGENCY"
    assert "chest pain" in tylenol.symptom_names


def test_directly_denied_red_flag_does_not_reach_emergency() -> None:
    for text in ("I have no shortness of breath", "patient denies trouble breathing"):
        verdict = triage_text(text)
        assert verdict.level == "URGENT"
        assert "Conservative bias: breathing concerns" in verdict.reasons


def test_every_urgent_red_flag_leaves_a_reason() -> None:
    verdict = triage_text("high fever and severe pain")
    assert verdict.level == "URGENT"
    assert "Red flag: Fever requiring evaluation" in verdict.reasons
    assert "Red flag: Severe pain" in verdict.reasons
    assert {"fever", "severe pain"} <= set(verdict.symptom_names)


def test_ambiguous_chest_mention_escalates() -> None:
    assessment = evaluate(_context("my chest feels weird and heavy"))
    assert assessment.triage.level == "URGENT"
    assert "Conservative bias: ambiguous chest symptoms" in assessment.triage.reasons
    assert assessment.primary_category == "cardiovascular"


def test_breathing_mention_escalates() -> None:
    verdict = triage_text("I keep struggling to catch my breath")
    assert verdict.level == "URGENT"
    assert verdict.reasons == ["Conservative bias: breathing concerns"]


def test_conservative_bias_steps_urgent_to_emergency() -> None:
    verdict = triage_text("I have a high fever and my chest feels heavy")
    assert verdict.level == "EMERGENCY"
    assert "Red flag: Fever requiring evaluation" in verdict.reasons
    assert "Conservative bias: ambiguous chest symptoms" in verdict.reasons


def test_calibration_never_lowers_engine_verdict() -> None:
    cases = [
        ("I have a mild cough", 30),
        ("chest pain", 70),
        ("chest pain", 20),
        ("my chest feels heavy", 80),
        ("I have a headache", 8),
        ("I feel anxious and my heart is racing", 20),
        ("I want to end my life", 16),
    ]
    for text, age in cases:
        base = evaluate(_context(text, age))
        category, focus = condition_category(base.triage.symptom_names, base.categories)
        result = calibrate(category, age, None, [], base.triage.level, focus=focus)
        assert level_rank(result.adjusted_urgency) >= level_rank(base.triage.level) >= level_rank("NON_URGENT")
