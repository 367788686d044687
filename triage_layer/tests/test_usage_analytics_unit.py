import pytest
from pydantic import ValidationError

from triage_layer.analytics.usage import UsageAnalytics
from triage_layer.internal_core.config import TriageConfig
from triage_layer.internal_core.contracts import FeedbackEvent

DAY = 24 * 60 * 60


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _feedback(rating: int, query_type: str = "symptom_check", **kwargs) -> FeedbackEvent:
    return FeedbackEvent(query_type=query_type, urgency="NON_URGENT", rating=rating, **kwargs)


def test_feedback_updates_ema_metrics() -> None:
    analytics = UsageAnalytics(alpha=0.1, clock=FakeClock())
    first = analytics.record_feedback(_feedback(8, accuracy=9.0))
    assert first.user_satisfaction == pytest.approx(0.8)
    assert first.accuracy == pytest.approx(0.9)
    assert first.success_rate == pytest.approx(0.1)
    assert first.sample_count == 1

    second = analytics.record_feedback(_feedback(4))
    assert second.user_satisfaction == pytest.approx(0.1 * 4 + 0.9 * 0.8)
    assert second.accuracy == pytest.approx(0.9)
    assert second.success_rate == pytest.approx(0.09)
    assert analytics.learning_metric("symptom_check", "non-urgent") == second


def test_feedback_event_validates_rating() -> None:
    with pytest.raises(ValidationError):
        _feedback(11)


def test_history_is_bounded() -> None:
    analytics = UsageAnalytics(clock=FakeClock())
    for _ in range(60):
        analytics.record_query("symptom_check", "URGENT", ["headache"], 10.0)
    for _ in range(1005):
        analytics.record_feedback(_feedback(7))
    for _ in range(30):
        analytics.record_error("TimeoutError", "extract", "slow\nresponse")

    exported = analytics.export()
    pattern = exported["patterns"]["symptom_check_URGENT"]
    assert pattern["count"] == 60
    assert len(pattern["records"]) == 50
    assert len(exported["feedback"]) == 1000
    errors = exported["errors"]["TimeoutError_extract"]
    assert errors["count"] == 30
    assert len(errors["records"]) == 25
    assert errors["records"][0]["detail"] == "slow response"


def test_analyze_reports_distribution_trends_and_slow_types() -> None:
    clock = FakeClock()
    analytics = UsageAnalytics(clock=clock)
    for _ in range(8):
        analytics.record_query("emergency", "EMERGENCY", ["chest pain"], 1500.0)
    for _ in range(2):
        analytics.record_query("symptom_check", "NON_URGENT", ["cough"], 20.0)

    report = analytics.analyze(7)
    assert report["total_queries"] == 10
    assert report["urgency_distribution"] == {"EMERGENCY": 8, "URGENT": 0, "NON_URGENT": 2}
    assert "High emergency query volume - review triage sensitivity" in report["trends"]
    assert "Top query types: emergency(8), symptom_check(2)" in report["trends"]
    assert report["recommendations"] == ["Optimize emergency processing - average response time: 1500ms"]

    clock.now += 8 * DAY
    assert analytics.analyze(7)["total_queries"] == 0


def test_analyze_flags_majority_non_urgent() -> None:
    analytics = UsageAnalytics(clock=FakeClock())
    for _ in range(9):
        analytics.record_query("general_inquiry", "NON_URGENT")
    analytics.record_query("symptom_check", "URGENT")
    trends = analytics.analyze()["trends"]
    assert "Majority non-urgent queries - opportunity for self-service features" in trends


def test_feedback_insights_without_data() -> None:
    insights = UsageAnalytics(clock=FakeClock()).feedback_insights()
    assert insights["total_feedback"] == 0
    assert insights["recommendations"] == ["Insufficient feedback data for analysis"]


def test_feedback_insights_recommendations() -> None:
    analytics = UsageAnalytics(clock=FakeClock())
    analytics.record_feedback(_feedback(3, improvements=["faster answers"]))
    analytics.record_feedback(_feedback(3, improvements=["faster answers", "clearer wording"]))
    analytics.record_feedback(_feedback(9, query_type="emergency"))

    insights = analytics.feedback_insights()
    assert insights["avg_satisfaction"] == 5.0
    assert insights["satisfaction_by_type"] == {"symptom_check": 3.0, "emergency": 9.0}
    assert insights["common_improvements"] == {"faster answers": 2, "clearer wording": 1}
    recs = insights["recommendations"]
    assert "Overall user satisfaction below target (7/10) - review system responses" in recs
    assert "Low satisfaction for symptom_check queries (3.0/10) - needs improvement" in recs
    assert "Frequent suggestion (2 times): faster answers" in recs
    assert "symptom_check_NON_URGENT" in insights["learning_metrics"]


def test_error_analysis_summarizes_recent_errors() -> None:
    analytics = UsageAnalytics(clock=FakeClock())
    for _ in range(12):
        analytics.record_error("KeyError", "domains")
    analytics.record_error("ValueError", "calibrate")
    report = analytics.error_analysis()
    assert report["total_errors"] == 13
    assert report["errors_by_type"] == {"KeyError_domains": 12, "ValueError_calibrate": 1}
    assert len(report["recent_errors"]) == 10
    assert report["recommendations"][0] == "Address frequent error: KeyError_domains (12 occurrences)"


def test_learning_overview_splits_top_and_weak_performers() -> None:
    analytics = UsageAnalytics(alpha=1.0, clock=FakeClock())
    analytics.record_feedback(_feedback(9, query_type="emergency"))
    analytics.record_feedback(_feedback(3, query_type="medication_inquiry"))
    analytics.record_feedback(_feedback(7, query_type="symptom_check"))
    overview = analytics.learning_overview()
    assert overview["total_metrics"] == 3
    assert [m["key"] for m in overview["top_performers"]] == ["emergency_NON_URGENT"]
    assert [m["key"] for m in overview["needs_improvement"]] == ["medication_inquiry_NON_URGENT"]


def test_dashboard_and_reset() -> None:
    analytics = UsageAnalytics.from_config(TriageConfig(), clock=FakeClock())
    analytics.record_query("symptom_check", "URGENT", ["fever"], 12.0)
    analytics.record_feedback(_feedback(8))
    dashboard = analytics.get_dashboard()
    assert set(dashboard) >= {"summary", "usage", "feedback", "errors", "performance"}
    assert dashboard["summary"]["total_patterns"] == 1
    assert dashboard["summary"]["avg_satisfaction"] == 8.0

    analytics.reset()
    assert analytics.export() == {"patterns": {}, "feedback": [], "learning_metrics": {}, "errors": {}}


def test_alpha_must_be_in_range() -> None:
    with pytest.raises(ValueError):
        UsageAnalytics(alpha=0)
