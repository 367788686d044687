from __future__ import annotations

"""
In-process cache with lazy TTL expiry and score-based batch eviction.

Design intent:
- Lazy expiry on read keeps results correct without a background thread.
- Batch eviction at capacity keeps memory bounded (amortized, not per insert).
- Optional periodic sweep purges expired entries regardless of pressure.
- Every entry update is a single dict assignment under the lock.
"""

import inspect
import logging
import threading
import time
from dataclasses import dataclass, replace
from threading import RLock
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .config import TriageConfig

logger = logging.getLogger(__name__)

_MAX_TRACKED_OPERATIONS = 100


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: Any
    created_at: float
    last_accessed_at: float
    access_count: int
    ttl_ms: int

    def is_expired(self, now: float) -> bool:
        return (now - self.created_at) * 1000.0 > self.ttl_ms


@dataclass(frozen=True)
class OperationMetrics:
    count: int
    total_ms: float
    avg_ms: float
    max_ms: float
    min_ms: float


def eviction_score(entry: CacheEntry, now: float) -> float:
    """Lower scores are evicted first."""
    age_sec = max(now - entry.created_at, 0.0)
    since_access_sec = max(now - entry.last_accessed_at, 0.0)
    # Avoid division by zero for entries created within the same tick.
    age_min = max(age_sec / 60.0, 1e-6)
    access_per_minute = entry.access_count / age_min
    return access_per_minute * 100.0 - since_access_sec - age_sec / 10.0


class AdaptiveCache:
    def __init__(
        self,
        max_size: int = 200,
        default_ttl_ms: int = 10 * 60 * 1000,
        eviction_ratio: float = 0.2,
        cleanup_interval_ms: int = 2 * 60 * 1000,
        clock: Callable[[], float] = time.time,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if not 0.0 < eviction_ratio <= 1.0:
            raise ValueError("eviction_ratio must be in (0, 1]")
        self._max_size = int(max_size)
        self._default_ttl_ms = int(default_ttl_ms)
        self._eviction_ratio = float(eviction_ratio)
        self._cleanup_interval_ms = int(cleanup_interval_ms)
        self._clock = clock
        self._lock = RLock()
        self._entries: Dict[str, CacheEntry] = {}
        self._metrics: Dict[str, OperationMetrics] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expired = 0
        self._stop_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config: TriageConfig, clock: Callable[[], float] = time.time) -> "AdaptiveCache":
        return cls(
            max_size=config.TRIAGE_CACHE_MAX_SIZE,
            default_ttl_ms=config.TRIAGE_CACHE_TTL_MS,
            eviction_ratio=config.TRIAGE_CACHE_EVICTION_RATIO,
            cleanup_interval_ms=config.TRIAGE_CACHE_CLEANUP_INTERVAL_MS,
            clock=clock,
        )

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def cleanup_running(self) -> bool:
        thread = self._cleanup_thread
        return thread is not None and thread.is_alive()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # Membership does not count as an access.
        with self._lock:
            entry = self._entries.get(key) if isinstance(key, str) else None
            return entry is not None and not entry.is_expired(self._clock())

    def set(self, key: str, data: Any, ttl_ms: Optional[int] = None) -> None:
        now = self._clock()
        ttl = self._default_ttl_ms if ttl_ms is None else int(ttl_ms)
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict_locked(now)
            self._entries[key] = CacheEntry(
                key=key,
                data=data,
                created_at=now,
                last_accessed_at=now,
                access_count=0,
                ttl_ms=ttl,
            )

    def get(self, key: str) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self._expired += 1
                self._misses += 1
                return None
            self._entries[key] = replace(
                entry,
                last_accessed_at=now,
                access_count=entry.access_count + 1,
            )
            self._hits += 1
            return entry.data

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_compute(self, key: str, compute: Callable[[], Any], ttl_ms: Optional[int] = None) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        started = time.perf_counter()
        value = compute()
        self.record_timing("compute", (time.perf_counter() - started) * 1000.0)
        if value is not None:
            self.set(key, value, ttl_ms)
        return value

    async def aget_or_compute(
        self,
        key: str,
        compute: Callable[[], Union[Any, Awaitable[Any]]],
        ttl_ms: Optional[int] = None,
    ) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        started = time.perf_counter()
        value = compute()
        if inspect.isawaitable(value):
            value = await value
        self.record_timing("compute_async", (time.perf_counter() - started) * 1000.0)
        if value is not None:
            self.set(key, value, ttl_ms)
        return value

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._entries[key]
            self._expired += len(expired_keys)
        if expired_keys:
            logger.debug("cache_cleanup removed=%s", len(expired_keys))
        return len(expired_keys)

    def _evict_locked(self, now: float) -> int:
        # Expired entries go first; scoring only runs if that freed nothing.
        expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired_keys:
            del self._entries[key]
        self._expired += len(expired_keys)
        if len(self._entries) < self._max_size:
            return len(expired_keys)

        scored = sorted(self._entries.values(), key=lambda entry: eviction_score(entry, now))
        eviction_count = max(1, int(self._max_size * self._eviction_ratio))
        for entry in scored[:eviction_count]:
            del self._entries[entry.key]
        self._evictions += min(eviction_count, len(scored))
        logger.debug("cache_evict count=%s size=%s", eviction_count, len(self._entries))
        return eviction_count

    def start_cleanup(self) -> None:
        with self._lock:
            if self._cleanup_thread is not None and self._cleanup_thread.is_alive():
                return
            self._stop_event.clear()
            self._cleanup_thread = threading.Thread(
                target=self._cleanup_loop,
                name="adaptive-cache-cleanup",
                daemon=True,
            )
            self._cleanup_thread.start()

    def stop_cleanup(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._cleanup_thread
        if thread is not None:
            thread.join(timeout)
        self._cleanup_thread = None

    def _cleanup_loop(self) -> None:
        interval_sec = self._cleanup_interval_ms / 1000.0
        while not self._stop_event.wait(interval_sec):
            try:
                self.cleanup_expired()
            except Exception:
                # The sweep must never kill the host process.
                logger.warning("cache_cleanup_failed", exc_info=True)

    def record_timing(self, operation: str, duration_ms: float) -> OperationMetrics:
        duration = max(float(duration_ms), 0.0)
        with self._lock:
            current = self._metrics.get(operation)
            if current is None:
                updated = OperationMetrics(
                    count=1, total_ms=duration, avg_ms=duration, max_ms=duration, min_ms=duration
                )
            else:
                count = current.count + 1
                total = current.total_ms + duration
                updated = OperationMetrics(
                    count=count,
                    total_ms=total,
                    avg_ms=total / count,
                    max_ms=max(current.max_ms, duration),
                    min_ms=min(current.min_ms, duration),
                )
            self._metrics[operation] = updated
            if len(self._metrics) > _MAX_TRACKED_OPERATIONS:
                # Dicts keep insertion order; drop the oldest operation names.
                for name in list(self._metrics)[: len(self._metrics) - _MAX_TRACKED_OPERATIONS]:
                    del self._metrics[name]
            return updated

    def stats(self) -> dict[str, Any]:
        with self._lock:
            size = len(self._entries)
            lookups = self._hits + self._misses
            return {
                "size": size,
                "max_size": self._max_size,
                "utilization_pct": round(size / self._max_size * 100),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
                "evictions": self._evictions,
                "expired": self._expired,
            }

    def performance_report(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            performance = {
                name: {
                    "avg_ms": round(metrics.avg_ms, 2),
                    "max_ms": round(metrics.max_ms, 2),
                    "min_ms": round(metrics.min_ms, 2),
                    "total_calls": metrics.count,
                    "total_ms": round(metrics.total_ms, 2),
                }
                for name, metrics in self._metrics.items()
            }
            entries = [
                {
                    "key": entry.key,
                    "age_minutes": round((now - entry.created_at) / 60.0),
                    "access_count": entry.access_count,
                    "minutes_since_access": round((now - entry.last_accessed_at) / 60.0),
                    "ttl_minutes": round(entry.ttl_ms / 60000.0),
                }
                for entry in self._entries.values()
            ]
        entries.sort(key=lambda item: item["access_count"], reverse=True)
        return {
            "performance": performance,
            "cache": {**self.stats(), "entries": entries},
        }

    def optimization_recommendations(self, operation: str) -> dict[str, Any]:
        with self._lock:
            metrics = self._metrics.get(operation)
        if metrics is None:
            return {"operation": operation, "recommendations": ["No performance data available for this operation"]}

        recommendations: list[str] = []
        if metrics.avg_ms > 1000:
            recommendations.append("Consider breaking this operation into smaller chunks")
            recommendations.append("Implement caching if this operation involves repeated calculations")
        if metrics.max_ms > metrics.avg_ms * 3:
            recommendations.append("High variance detected - investigate outlier cases")
            recommendations.append("Consider implementing timeout handling")
        if metrics.count > 1000 and metrics.avg_ms > 100:
            recommendations.append("High frequency operation with significant cost - prime candidate for optimization")
        return {
            "operation": operation,
            "current": {
                "avg_ms": round(metrics.avg_ms, 2),
                "max_ms": round(metrics.max_ms, 2),
                "min_ms": round(metrics.min_ms, 2),
                "count": metrics.count,
            },
            "recommendations": recommendations,
        }

    def reset_metrics(self, *, include_cache: bool = False) -> None:
        with self._lock:
            self._metrics.clear()
            self._hits = self._misses = self._evictions = self._expired = 0
            if include_cache:
                self._entries.clear()
