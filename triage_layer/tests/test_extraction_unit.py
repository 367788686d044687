from triage_layer.extraction.demographics import extract_demographic_indicators, merge_demographics
from triage_layer.extraction.duration import parse_duration
from triage_layer.extraction.extractor import correct_symptoms, detect_condition_type, extract, symptom_mention
from triage_layer.extraction.negation import make_denial_predicate, make_negation_predicate
from triage_layer.internal_core.contracts import Demographics, Symptom


def _by_name(result, name):
    return [s for s in result.symptoms if s.name == name]


def test_extract_headache_with_duration() -> None:
    result = extract("I've had a headache for 3 days")
    assert [s.name for s in result.symptoms] == ["headache"]
    headache = result.symptoms[0]
    assert headache.location == "HEAD"
    assert headache.negated is False
    assert headache.duration is not None
    assert (headache.duration.value, headache.duration.unit) == (3, "day")
    assert result.intent.type == "symptom_check"
    assert result.intent.confidence == 0.8
    assert result.condition_type == "GENERAL"


def test_extract_marks_negated_symptom_and_keeps_clause_after_but() -> None:
    result = extract("I don't have a fever but I do have chills")
    fever = _by_name(result, "fever")
    chills = _by_name(result, "chills")
    assert fever and fever[0].negated is True
    assert chills and chills[0].negated is False
    assert result.debug["negated_count"] == 1


def test_extract_deduplicates_head_pain_variants() -> None:
    result = extract("I have head pain and a headache and head hurts")
    headaches = [s for s in result.symptoms if s.name == "headache" and s.location == "HEAD"]
    assert len(headaches) == 1


def test_extract_reads_severity_before_symptom() -> None:
    result = extract("I have a severe stomach ache")
    stomach = _by_name(result, "stomach pain")
    assert stomach and stomach[0].severity == "severe"
    assert stomach[0].location == "ABDOMEN"


def test_extract_falls_back_to_location_pain() -> None:
    result = extract("my knee hurts when I climb stairs")
    assert [(s.name, s.location) for s in result.symptoms] == [("knee pain", "LIMB")]
    assert result.debug["used_fallback"] is True


def test_extract_tolerates_empty_and_non_string_input() -> None:
    for value in ("", "   ", None, 42):
        result = extract(value)
        assert result.symptoms == []
        assert result.intent.type == "general_inquiry"
        assert result.debug["status"] == "empty_input"


def test_intent_overrides_apply_in_order() -> None:
    assert extract("What is a migraine?").intent.type == "information_request"
    assert extract("What dosage of medication should I take?").intent.type == "medication_inquiry"
    assert extract("How can I prevent the flu?").intent.type == "prevention_inquiry"
    emergency = extract("Please help, my headache is serious")
    assert emergency.intent.type == "emergency"
    assert emergency.intent.confidence == 0.9


def test_detect_condition_type_buckets() -> None:
    assert detect_condition_type("sudden sharp pain") == "ACUTE"
    assert detect_condition_type("this has been ongoing for years") == "CHRONIC"
    assert detect_condition_type("hello there") == "GENERAL"


def test_correct_symptoms_keeps_first_occurrence() -> None:
    first = Symptom(name="Headache", location="HEAD", severity="mild")
    second = Symptom(name="headache", location="head", severity="severe")
    other = Symptom(name="headache", location="GENERAL")
    out = correct_symptoms([first, second, other])
    assert [(s.name, s.location, s.severity) for s in out] == [
        ("headache", "HEAD", "mild"),
        ("headache", "GENERAL", None),
    ]


def test_negation_window_stops_at_clause_boundary() -> None:
    is_negated = make_negation_predicate("No chest pain, but my arm hurts")
    assert is_negated("chest pain") is True
    assert is_negated("arm") is False
    assert is_negated("leg") is False


def test_negation_window_words_is_configurable() -> None:
    text = "never had any of this weird bad cough"
    assert make_negation_predicate(text, window_words=10)("cough") is True
    assert make_negation_predicate(text, window_words=3)("cough") is False


def test_parse_duration_forms() -> None:
    numeric = parse_duration("for 2 weeks now")
    assert (numeric.value, numeric.unit) == (2, "week")
    couple = parse_duration("for a couple of days")
    assert (couple.value, couple.unit) == (2, "day")
    relative = parse_duration("started since yesterday")
    assert (relative.value, relative.unit) == (None, "yesterday")
    vague = parse_duration("it has been bad lately")
    assert (vague.value, vague.unit) == (None, "lately")
    assert parse_duration("no time given") is None
    assert parse_duration("") is None


def test_extract_demographic_indicators_from_text() -> None:
    demo = extract_demographic_indicators("I'm 70 years old, female, no insurance and I live alone")
    assert demo.age == 70.0
    assert demo.sex == "female"
    assert demo.socioeconomic_factors == {"no insurance", "live alone"}


def test_extract_demographic_indicators_infant_age() -> None:
    demo = extract_demographic_indicators("my 6 month old baby has a fever")
    assert demo.age == 0.5


def test_merge_demographics_prefers_explicit_values() -> None:
    explicit = Demographics(age=30, socioeconomic_factors={"medicaid"})
    inferred = Demographics(age=70, sex="male", socioeconomic_factors={"no car"})
    merged = merge_demographics(explicit, inferred)
    assert merged.age == 30
    assert merged.sex == "male"
    assert merged.socioeconomic_factors == {"medicaid", "no car"}


def test_denial_requires_cue_directly_before_phrase() -> None:
    is_denied = make_denial_predicate("No chest pain. Patient denies fever, negative for cough")
    assert is_denied("chest pain") is True
    assert is_denied("fever") is True
    assert is_denied("cough") is True
    loose = make_denial_predicate("Tylenol did not help my chest pain, can't walk without shortness of breath")
    assert loose("chest pain") is False
    assert loose("shortness of breath") is False
    assert make_denial_predicate("")("chest pain") is False


def test_symptom_mention_returns_matched_wording() -> None:
    assert symptom_mention("no trouble breathing today", "shortness of breath") == "trouble breathing"
    assert symptom_mention("I have a cough", "shortness of breath") is None
