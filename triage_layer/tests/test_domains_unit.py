from triage_layer.domains import autoimmune, geriatric, neurological, pediatric
from triage_layer.domains.base import ConditionMatch, run_detector
from triage_layer.domains.registry import detect_all
from triage_layer.internal_core.contracts import Demographics


def test_pediatric_infant_fever_is_urgent() -> None:
    match = pediatric.detect("my baby has a fever", None)
    assert match.condition == "fever"
    assert match.age_group == "infant"
    assert match.urgency == "URGENT"
    assert match.follow_up


def test_pediatric_red_flag_forces_emergency() -> None:
    match = pediatric.detect("my toddler has a fever and seems lethargic", None)
    assert match.condition == "fever"
    assert match.urgency == "EMERGENCY"
    assert "lethargic" in match.red_flags


def test_pediatric_detector_ignores_adults() -> None:
    match = pediatric.detect("I have a fever", Demographics(age=30))
    assert match.matched is False
    assert match.domain == "pediatric"


def test_pediatric_age_groups_and_vitals() -> None:
    assert pediatric.determine_age_group("", 0.05) == "neonate"
    assert pediatric.determine_age_group("", 5) == "preschool"
    assert pediatric.determine_age_group("", 20) is None
    assert pediatric.determine_age_group("my teenager is sick") == "adolescent"
    assert pediatric.vital_thresholds("infant")["heart_rate"]["normal"] == "80-140 bpm"


def test_geriatric_fall_detected_for_older_adult() -> None:
    match = geriatric.detect("I fell in the bathroom and have bruising", Demographics(age=80))
    assert match.condition == "falls"
    assert match.urgency == "NON_URGENT"
    assert "bruising" in match.symptoms
    assert any("Falls in older adults" in r for r in match.recommendations)


def test_geriatric_fall_with_head_injury_is_urgent() -> None:
    match = geriatric.detect("I fell and have a head injury", Demographics(age=72))
    assert match.condition == "falls"
    assert match.urgency == "URGENT"


def test_geriatric_detector_requires_older_adult() -> None:
    assert geriatric.detect("I fell off my bike", Demographics(age=40)).matched is False
    assert geriatric.detect("my elderly mother fell yesterday", None).condition == "falls"


def test_geriatric_frailty_assessment() -> None:
    assessment = geriatric.assess_frailty("always tired, weak, and lost weight this year")
    assert assessment.score == 3
    assert assessment.risk_level == "high"


def test_neurological_migraine_is_non_urgent() -> None:
    match = neurological.detect("I have a migraine with nausea", None)
    assert match.condition == "migraine"
    assert match.urgency == "NON_URGENT"


def test_neurological_red_flag_forces_emergency() -> None:
    match = neurological.detect("this is the worst headache of my life", None)
    assert match.condition == "migraine"
    assert match.urgency == "EMERGENCY"


def test_fast_screen_turns_match_into_stroke() -> None:
    text = "my face is drooping and my arm feels weak, it came on all of a sudden"
    fast = neurological.assess_fast_criteria(text)
    assert fast.positive is True
    assert len(fast.components) == 3
    match = neurological.detect(text, None)
    assert match.condition == "stroke"
    assert match.urgency == "EMERGENCY"


def test_fast_screen_needs_a_focal_sign() -> None:
    fast = neurological.assess_fast_criteria("sudden stomach ache")
    assert fast.positive is False
    assert fast.components == []


def test_autoimmune_named_condition_and_keyword_threshold() -> None:
    lupus = autoimmune.detect("I was diagnosed with lupus", None)
    assert lupus.condition == "lupus"
    assert lupus.urgency == "URGENT"
    assert autoimmune.detect("I have joint pain", None).matched is False


def test_run_detector_turns_exceptions_into_no_match() -> None:
    def broken(text: str, demographics: object) -> ConditionMatch:
        raise RuntimeError("boom")

    match = run_detector(broken, "anything", None, domain="broken")
    assert match.matched is False
    assert match.domain == "broken"


def test_detect_all_returns_only_matches() -> None:
    matches = detect_all("I was diagnosed with lupus", None)
    assert matches
    assert all(m.matched for m in matches)
    assert any(m.domain == "autoimmune" and m.condition == "lupus" for m in matches)


def test_detect_all_survives_failing_detector() -> None:
    def broken(text: str, demographics: object) -> ConditionMatch:
        raise ValueError("bad table")

    matches = detect_all(
        "I was diagnosed with lupus",
        None,
        detectors=[("broken", broken), (autoimmune.DOMAIN, autoimmune.detect)],
    )
    assert [m.condition for m in matches] == ["lupus"]


def test_autoimmune_abbreviations_need_diagnosis_context() -> None:
    assert autoimmune.detect("the scan took 300 ms and Ms Lee said the ra value was fine", None).matched is False
    ms = autoimmune.detect("I was diagnosed with MS last year", None)
    assert ms.condition == "multiple_sclerosis"
    assert ms.urgency == "URGENT"
    assert autoimmune.detect("my RA flares are worse in winter", None).condition == "rheumatoid_arthritis"
