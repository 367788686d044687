from __future__ import annotations

"""
Usage analytics and feedback-driven learning metrics.

Design intent:
- Per-(query_type, urgency) EMA metrics updated incrementally from feedback.
- Bounded in-memory history; nothing persisted, nothing fed back into triage.
- Never store raw user text; patterns keep symptom names and timings only.
"""

import logging
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field, replace
from threading import RLock
from typing import Any, Callable, Deque, Dict, Iterable, Optional

from ..internal_core.config import TriageConfig
from ..internal_core.contracts import FeedbackEvent, TriageLevel
from ..internal_core.escalation import normalize_level

logger = logging.getLogger(__name__)

MAX_PATTERNS_PER_KEY = 50
MAX_OUTCOMES_PER_KEY = 100
MAX_FEEDBACK = 1000
MAX_ERRORS_PER_TYPE = 25
SLOW_RESPONSE_MS = 1000.0
TARGET_SATISFACTION = 7.0
LOW_TYPE_SATISFACTION = 6.0
TOP_PERFORMER_SATISFACTION = 8.0
_DAY_SEC = 24 * 60 * 60


@dataclass(frozen=True)
class LearningMetric:
    user_satisfaction: float = 0.0
    accuracy: float = 0.0
    avg_response_time_ms: float = 0.0
    success_rate: float = 0.0
    sample_count: int = 0


@dataclass(frozen=True)
class QueryRecord:
    timestamp: float
    symptoms: tuple[str, ...]
    response_time_ms: float
    session_id: str = ""


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: float
    stage: str
    detail: str


@dataclass
class _PatternStats:
    count: int = 0
    last_used: float = 0.0
    records: Deque[QueryRecord] = field(default_factory=lambda: deque(maxlen=MAX_PATTERNS_PER_KEY))
    outcomes: Deque[str] = field(default_factory=lambda: deque(maxlen=MAX_OUTCOMES_PER_KEY))


@dataclass
class _ErrorStats:
    count: int = 0
    last_seen: float = 0.0
    records: Deque[ErrorRecord] = field(default_factory=lambda: deque(maxlen=MAX_ERRORS_PER_TYPE))


def _ema(alpha: float, value: float, current: float) -> float:
    return alpha * value + (1.0 - alpha) * current


def _sanitize(detail: str) -> str:
    detail = (detail or "").replace("\n", " ").strip()
    return detail[:200]


class UsageAnalytics:
    def __init__(
        self,
        alpha: float = 0.1,
        success_threshold: int = 7,
        clock: Callable[[], float] = time.time,
    ):
        if not 0.0 < alpha <= 1.0:
            raise ValueError("alpha must be in (0, 1]")
        self._alpha = float(alpha)
        self._success_threshold = int(success_threshold)
        self._clock = clock
        self._lock = RLock()
        self._patterns: Dict[tuple[str, str], _PatternStats] = {}
        self._feedback: Deque[FeedbackEvent] = deque(maxlen=MAX_FEEDBACK)
        self._metrics: Dict[tuple[str, str], LearningMetric] = {}
        self._errors: Dict[str, _ErrorStats] = {}

    @classmethod
    def from_config(cls, config: TriageConfig, clock: Callable[[], float] = time.time) -> "UsageAnalytics":
        return cls(
            alpha=config.TRIAGE_ANALYTICS_ALPHA,
            success_threshold=config.TRIAGE_ANALYTICS_SUCCESS_THRESHOLD,
            clock=clock,
        )

    def record_query(
        self,
        query_type: str,
        urgency: str,
        symptoms: Iterable[str] = (),
        response_time_ms: float = 0.0,
        *,
        session_id: str = "",
    ) -> None:
        level = normalize_level(urgency)
        key = (str(query_type or "unknown"), level)
        now = self._clock()
        record = QueryRecord(
            timestamp=now,
            symptoms=tuple(str(s) for s in symptoms),
            response_time_ms=max(float(response_time_ms or 0.0), 0.0),
            session_id=session_id,
        )
        with self._lock:
            stats = self._patterns.setdefault(key, _PatternStats())
            stats.count += 1
            stats.last_used = now
            stats.records.append(record)
            stats.outcomes.append(level)
        logger.debug("usage_query key=%s/%s", key[0], key[1])

    def record_feedback(self, event: FeedbackEvent) -> LearningMetric:
        key = (event.query_type, event.urgency)
        alpha = self._alpha
        with self._lock:
            self._feedback.append(event)
            current = self._metrics.get(key, LearningMetric())
            updated = replace(
                current,
                user_satisfaction=_ema(alpha, float(event.rating), current.user_satisfaction),
                accuracy=(
                    _ema(alpha, float(event.accuracy), current.accuracy)
                    if event.accuracy is not None
                    else current.accuracy
                ),
                avg_response_time_ms=(
                    _ema(alpha, float(event.response_time_ms), current.avg_response_time_ms)
                    if event.response_time_ms is not None
                    else current.avg_response_time_ms
                ),
                success_rate=_ema(
                    alpha, 1.0 if event.rating >= self._success_threshold else 0.0, current.success_rate
                ),
                sample_count=current.sample_count + 1,
            )
            self._metrics[key] = updated
        logger.info("usage_feedback key=%s/%s rating=%s", event.query_type, event.urgency, event.rating)
        return updated

    def record_error(self, error_type: str, stage: str, detail: str = "") -> None:
        key = f"{error_type}_{stage}"
        now = self._clock()
        with self._lock:
            stats = self._errors.setdefault(key, _ErrorStats())
            stats.count += 1
            stats.last_seen = now
            stats.records.append(ErrorRecord(timestamp=now, stage=stage, detail=_sanitize(detail)))
        logger.warning("usage_error key=%s", key)

    def learning_metric(self, query_type: str, urgency: str) -> Optional[LearningMetric]:
        with self._lock:
            return self._metrics.get((query_type, normalize_level(urgency)))

    def analyze(self, window_days: float = 7) -> dict[str, Any]:
        cutoff = self._clock() - float(window_days) * _DAY_SEC
        query_distribution: Counter[str] = Counter()
        urgency_distribution: Dict[TriageLevel, int] = {"EMERGENCY": 0, "URGENT": 0, "NON_URGENT": 0}
        recommendations: list[str] = []
        trends: list[str] = []
        total = 0

        with self._lock:
            snapshot = [(key, list(stats.records), stats.last_used) for key, stats in self._patterns.items()]

        for (query_type, urgency), records, last_used in snapshot:
            if last_used < cutoff:
                continue
            recent = [r for r in records if r.timestamp >= cutoff]
            total += len(recent)
            query_distribution[query_type] += len(recent)
            urgency_distribution[normalize_level(urgency)] += len(recent)
            if recent:
                avg_ms = sum(r.response_time_ms for r in recent) / len(recent)
                if avg_ms > SLOW_RESPONSE_MS:
                    recommendations.append(
                        f"Optimize {query_type} processing - average response time: {round(avg_ms)}ms"
                    )

        if total and urgency_distribution["EMERGENCY"] > total * 0.1:
            trends.append("High emergency query volume - review triage sensitivity")
        if total and urgency_distribution["NON_URGENT"] > total * 0.7:
            trends.append("Majority non-urgent queries - opportunity for self-service features")
        top = query_distribution.most_common(5)
        if top:
            trends.append("Top query types: " + ", ".join(f"{name}({count})" for name, count in top))

        return {
            "window_days": window_days,
            "total_queries": total,
            "query_distribution": dict(query_distribution),
            "urgency_distribution": dict(urgency_distribution),
            "trends": trends,
            "recommendations": recommendations,
        }

    def feedback_insights(self) -> dict[str, Any]:
        with self._lock:
            feedback = list(self._feedback)
            metrics = dict(self._metrics)

        insights: dict[str, Any] = {
            "total_feedback": len(feedback),
            "avg_satisfaction": 0.0,
            "satisfaction_by_type": {},
            "common_improvements": {},
            "learning_metrics": {f"{k[0]}_{k[1]}": _metric_view(m) for k, m in metrics.items()},
            "recommendations": [],
        }
        if not feedback:
            insights["recommendations"].append("Insufficient feedback data for analysis")
            return insights

        avg = sum(f.rating for f in feedback) / len(feedback)
        insights["avg_satisfaction"] = round(avg, 1)

        totals: Dict[str, list[int]] = {}
        for f in feedback:
            totals.setdefault(f.query_type, []).append(f.rating)
        by_type = {qt: round(sum(r) / len(r), 1) for qt, r in totals.items()}
        insights["satisfaction_by_type"] = by_type

        improvements: Counter[str] = Counter(i for f in feedback for i in f.improvements if i)
        insights["common_improvements"] = dict(improvements)

        if avg < TARGET_SATISFACTION:
            insights["recommendations"].append(
                "Overall user satisfaction below target (7/10) - review system responses"
            )
        for query_type, satisfaction in by_type.items():
            if satisfaction < LOW_TYPE_SATISFACTION:
                insights["recommendations"].append(
                    f"Low satisfaction for {query_type} queries ({satisfaction}/10) - needs improvement"
                )
        for improvement, count in improvements.most_common(3):
            insights["recommendations"].append(f"Frequent suggestion ({count} times): {improvement}")
        return insights

    def error_analysis(self, window_days: float = 7) -> dict[str, Any]:
        cutoff = self._clock() - float(window_days) * _DAY_SEC
        with self._lock:
            snapshot = [(key, stats.count, list(stats.records)) for key, stats in self._errors.items()]
        by_type = {key: count for key, count, _ in snapshot}
        recent = sorted(
            (
                {"type": key, "stage": r.stage, "detail": r.detail, "timestamp": r.timestamp}
                for key, _, records in snapshot
                for r in records
                if r.timestamp >= cutoff
            ),
            key=lambda item: item["timestamp"],
            reverse=True,
        )[:10]
        ranked = sorted(by_type.items(), key=lambda item: item[1], reverse=True)[:3]
        return {
            "total_errors": sum(by_type.values()),
            "errors_by_type": by_type,
            "recent_errors": recent,
            "recommendations": [f"Address frequent error: {key} ({count} occurrences)" for key, count in ranked],
        }

    def learning_overview(self) -> dict[str, Any]:
        with self._lock:
            metrics = dict(self._metrics)
        top: list[dict[str, Any]] = []
        weak: list[dict[str, Any]] = []
        for (query_type, urgency), metric in metrics.items():
            view = {"key": f"{query_type}_{urgency}", **_metric_view(metric)}
            if metric.user_satisfaction >= TOP_PERFORMER_SATISFACTION:
                top.append(view)
            elif metric.user_satisfaction < LOW_TYPE_SATISFACTION:
                weak.append(view)
        top.sort(key=lambda item: item["user_satisfaction"], reverse=True)
        weak.sort(key=lambda item: item["user_satisfaction"])
        return {
            "total_metrics": len(metrics),
            "top_performers": top[:5],
            "needs_improvement": weak[:5],
        }

    def get_dashboard(self) -> dict[str, Any]:
        with self._lock:
            pattern_count = len(self._patterns)
            ratings = [f.rating for f in self._feedback]
        return {
            "timestamp": self._clock(),
            "summary": {
                "total_patterns": pattern_count,
                "total_feedback": len(ratings),
                "avg_satisfaction": round(sum(ratings) / len(ratings), 1) if ratings else 0.0,
            },
            "usage": self.analyze(7),
            "feedback": self.feedback_insights(),
            "errors": self.error_analysis(),
            "performance": self.learning_overview(),
        }

    def export(self) -> dict[str, Any]:
        with self._lock:
            return {
                "patterns": {
                    f"{k[0]}_{k[1]}": {
                        "count": s.count,
                        "last_used": s.last_used,
                        "records": [asdict(r) for r in s.records],
                        "outcomes": list(s.outcomes),
                    }
                    for k, s in self._patterns.items()
                },
                "feedback": [f.model_dump() for f in self._feedback],
                "learning_metrics": {f"{k[0]}_{k[1]}": asdict(m) for k, m in self._metrics.items()},
                "errors": {
                    key: {"count": s.count, "records": [asdict(r) for r in s.records]}
                    for key, s in self._errors.items()
                },
            }

    def reset(self) -> None:
        """Operator action: drop every pattern, feedback entry, metric and error."""
        with self._lock:
            self._patterns.clear()
            self._feedback.clear()
            self._metrics.clear()
            self._errors.clear()
        logger.info("usage_reset")


def _metric_view(metric: LearningMetric) -> dict[str, Any]:
    return {
        "user_satisfaction": round(metric.user_satisfaction, 1),
        "accuracy": round(metric.accuracy, 1),
        "avg_response_time_ms": round(metric.avg_response_time_ms),
        "success_rate_pct": round(metric.success_rate * 100),
        "sample_count": metric.sample_count,
    }
