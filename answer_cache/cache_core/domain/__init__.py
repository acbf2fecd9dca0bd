from answer_cache.cache_core.domain.cache_entry import CacheEntry
from answer_cache.cache_core.domain.cache_metrics import CacheMetrics
from answer_cache.cache_core.domain.match_result import MatchResult, MatchType

__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "MatchResult",
    "MatchType",
]
