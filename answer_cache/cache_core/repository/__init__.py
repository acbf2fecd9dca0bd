from answer_cache.cache_core.repository.cache_store import CacheStore
from answer_cache.cache_core.repository.hot_cache import HotCache
from answer_cache.cache_core.repository.persistence import CacheDocument, CachePersistence
from answer_cache.cache_core.repository.term_index import TermIndex

__all__ = [
    "CacheDocument",
    "CachePersistence",
    "CacheStore",
    "HotCache",
    "TermIndex",
]
