from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from answer_cache.cache_core.domain.cache_entry import CacheEntry


class MatchType(str, Enum):
    """캐시 매칭 방식."""

    EXACT = "exact"
    SIMILAR = "similar"


@dataclass(frozen=True)
class MatchResult:
    """
    캐시 조회 결과.

    조회 시점의 엔트리 필드를 복사해 담으며, 유사도 매칭이면 `similarity`를 포함합니다.
    """

    key: str
    question: str
    answer: str
    created_at: datetime
    last_accessed_at: datetime
    access_count: int
    match_type: MatchType
    context: Optional[str] = None
    needs_refresh: bool = False
    similarity: Optional[float] = None
    from_hot_cache: bool = False

    @classmethod
    def from_entry(
        cls,
        entry: CacheEntry,
        match_type: MatchType,
        similarity: Optional[float] = None,
        from_hot_cache: bool = False,
    ) -> "MatchResult":
        """
        @param entry 매칭된 엔트리.
        @param match_type 매칭 방식.
        @param similarity 유사도 점수 (유사도 매칭일 때만).
        @param from_hot_cache 핫 캐시 경유 여부.
        @returns 엔트리 스냅샷을 담은 MatchResult.
        """
        return cls(
            key=entry.key,
            question=entry.question,
            answer=entry.answer,
            created_at=entry.created_at,
            last_accessed_at=entry.last_accessed_at,
            access_count=entry.access_count,
            match_type=match_type,
            context=entry.context,
            needs_refresh=entry.needs_refresh,
            similarity=similarity,
            from_hot_cache=from_hot_cache,
        )
