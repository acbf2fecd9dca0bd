from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CacheMetrics:
    """캐시 지표 스냅샷."""

    hits: int
    misses: int
    exact_matches: int
    similarity_matches: int
    hot_cache_hits: int
    errors: int
    saves: int
    last_reset: datetime

    @property
    def total_lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_lookups
        return self.hits / total if total else 0.0

    @property
    def exact_match_rate(self) -> float:
        return self.exact_matches / self.hits if self.hits else 0.0
