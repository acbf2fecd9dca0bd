from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from answer_cache.cache_core.repository.cache_store import CacheStore
from answer_cache.cache_core.repository.hot_cache import HotCache
from answer_cache.cache_core.repository.term_index import TermIndex

logger = logging.getLogger(__name__)


class EvictionManager:
    """
    CacheStore 정리 정책.

    - LRU 축출: 마지막 접근 시각 오름차순으로 목표 크기까지 제거합니다.
      접근 시각이 같으면 저장 순서를 따르지만 이 순서는 보장하지 않습니다.
    - 나이/빈도 정리: 오래되었고 접근이 적은 엔트리만 제거합니다.
      오래되었어도 자주 조회된 엔트리는 유지됩니다.

    두 정책 모두 반환 전에 역색인과 핫 캐시의 참조를 함께 제거합니다.
    """

    def __init__(self, store: CacheStore, index: TermIndex, hot_cache: HotCache) -> None:
        self._store = store
        self._index = index
        self._hot_cache = hot_cache

    def prune_lru(self, target_size: int) -> int:
        """
        @param target_size 정리 후 목표 엔트리 수.
        @returns 제거된 엔트리 수.
        """
        target_size = max(int(target_size), 0)
        overflow = len(self._store) - target_size
        if overflow <= 0:
            return 0
        ordered = sorted(self._store.entries(), key=lambda entry: entry.last_accessed_at)
        removed = self._remove(entry.key for entry in ordered[:overflow])
        logger.info(
            "LRU 축출: %d개 엔트리 제거 (목표 %d)",
            removed,
            target_size,
            extra={"removed": removed, "target_size": target_size},
        )
        return removed

    def prune_aged(self, max_age: timedelta, min_access_count: int, now: datetime) -> int:
        """
        @param max_age 정리 대상이 되는 최소 나이.
        @param min_access_count 이 값 이상 조회된 엔트리는 유지.
        @param now 기준 시각.
        @returns 제거된 엔트리 수.
        """
        expired = [
            entry.key
            for entry in self._store.entries()
            if now - entry.created_at > max_age and entry.access_count < min_access_count
        ]
        removed = self._remove(expired)
        if removed:
            logger.info("오래되고 접근이 적은 엔트리 %d개 정리", removed, extra={"removed": removed})
        return removed

    def _remove(self, keys: Iterable[str]) -> int:
        removed = 0
        for key in keys:
            if self._store.remove(key) is None:
                continue
            self._index.remove(key)
            self._hot_cache.discard_key(key)
            removed += 1
        return removed
