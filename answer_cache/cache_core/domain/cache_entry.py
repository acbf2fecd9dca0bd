from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class CacheEntry:
    """캐시된 질문/답변 한 쌍."""

    key: str
    question: str
    answer: str
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = 1
    context: Optional[str] = None
    needs_refresh: bool = False

    def touch(self, now: datetime) -> None:
        """
        @param now 조회 시각.
        @returns None
        """
        self.access_count += 1
        self.last_accessed_at = now

    def age_seconds(self, now: datetime) -> float:
        """
        @param now 기준 시각.
        @returns 생성 이후 경과 초.
        """
        return (now - self.created_at).total_seconds()
