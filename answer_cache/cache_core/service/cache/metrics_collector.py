from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Dict

from answer_cache.cache_core.domain.cache_metrics import CacheMetrics

_SECONDS_PER_DAY = 24 * 60 * 60
_COUNTERS = (
    "hits",
    "misses",
    "exact_matches",
    "similarity_matches",
    "hot_cache_hits",
    "errors",
    "saves",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricsCollector:
    """캐시 히트/미스 및 오류 카운터."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        """
        @param clock 현재 시각 함수.
        @returns None
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._last_reset = clock()
        self.reset()

    def increment(self, name: str, amount: int = 1) -> None:
        """
        @param name 카운터 이름.
        @param amount 증가량.
        @returns None
        """
        if name not in self._counters:
            raise KeyError(f"알 수 없는 지표입니다: {name}")
        with self._lock:
            self._counters[name] += amount

    def record_hit(self, exact: bool, hot: bool = False) -> None:
        with self._lock:
            self._counters["hits"] += 1
            if exact:
                self._counters["exact_matches"] += 1
            else:
                self._counters["similarity_matches"] += 1
            if hot:
                self._counters["hot_cache_hits"] += 1

    def record_miss(self) -> None:
        self.increment("misses")

    def record_error(self) -> None:
        self.increment("errors")

    def reset(self) -> None:
        with self._lock:
            self._counters = {name: 0 for name in _COUNTERS}
            self._last_reset = self._clock()

    def snapshot(self) -> CacheMetrics:
        """
        @returns 현재 카운터의 불변 스냅샷.
        """
        with self._lock:
            return CacheMetrics(last_reset=self._last_reset, **self._counters)

    def hit_rate_stats(self) -> Dict[str, float]:
        """
        @returns 총 조회 수, 히트율, 정확 매칭 비율, 리셋 이후 경과 일수.
        """
        metrics = self.snapshot()
        uptime = (self._clock() - metrics.last_reset).total_seconds() / _SECONDS_PER_DAY
        return {
            "total_lookups": metrics.total_lookups,
            "hit_rate": metrics.hit_rate,
            "exact_match_rate": metrics.exact_match_rate,
            "uptime_days": uptime,
        }
