# =============================================================================
# 질의응답 캐시 서비스
# =============================================================================
# 이전 질문/답변 쌍을 저장해 의미상 반복되는 질문에 답변 생성 호출 없이
# 응답합니다. 캐시는 항상 최적화 계층이며 실패해도 질문 처리를 막지 않습니다.
#
# 조회 흐름:
#   HotCache(원문 질의) -> CacheStore(정확 해시) -> TermIndex(후보 축소)
#   -> Jaccard 유사도 -> 갱신 필요 여부 표시 -> MatchResult
#
# 삽입 흐름:
#   정규화/해시 -> CacheStore 변경 -> TermIndex/HotCache 갱신 -> dirty 표시
#   -> (필요 시) LRU 축출 -> 백그라운드 저장
#
# 동시성:
#   - 삽입은 비차단 단일 작성자 가드로 보호됩니다. 이미 삽입 중이면 두 번째
#     호출은 대기하지 않고 즉시 False를 반환합니다 (경합 시 쓰기 유실 허용).
#   - 조회는 잠금 없이 동시에 진행되며 접근 카운터 경합은 허용합니다.
#
# 사용 예시:
#   service = AnswerCacheService(load_settings())
#   service.initialize()
#   service.insert("What is TypeScript?", "A typed superset of JavaScript")
#   result = service.lookup("what is typescript??")
# =============================================================================

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from answer_cache.cache_core.common.errors import (
    CacheInitializationError,
    CacheNotFoundError,
    CacheSaveError,
    CacheValueError,
)
from answer_cache.cache_core.common.hashing import question_key, validate_text
from answer_cache.cache_core.common.nlp.text_utils import extract_terms, normalize_text, similarity
from answer_cache.cache_core.domain.cache_entry import CacheEntry
from answer_cache.cache_core.domain.cache_metrics import CacheMetrics
from answer_cache.cache_core.domain.match_result import MatchResult, MatchType
from answer_cache.cache_core.repository.cache_store import CacheStore
from answer_cache.cache_core.repository.hot_cache import HotCache
from answer_cache.cache_core.repository.persistence import CachePersistence
from answer_cache.cache_core.repository.term_index import TermIndex
from answer_cache.cache_core.service.cache.background_flusher import BackgroundFlusher
from answer_cache.cache_core.service.cache.eviction import EvictionManager
from answer_cache.cache_core.service.cache.metrics_collector import MetricsCollector
from answer_cache.settings import CacheSettings, load_settings

# =============================================================================
# 로거 설정
# =============================================================================
logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _preview(text: str, limit: int = 30) -> str:
    cleaned = normalize_text(text)
    return cleaned if len(cleaned) <= limit else f"{cleaned[:limit]}..."


class AnswerCacheService:
    """
    유사도 기반 질의응답 캐시 서비스.

    프로세스 시작 시 한 번 생성해 필요한 곳에 주입합니다 (전역 싱글톤 없음).
    요청을 받기 전에 `initialize()`를 호출해야 합니다. 호출하지 않으면 첫 연산이
    경고와 함께 캐시 파일을 동기 로드합니다.
    `CACHE_ENABLED`가 False이면 모든 공개 연산은 빈 값(None/False)을 반환하며
    역색인이나 영속화 계층을 건드리지 않습니다.

    Example:
        >>> service = AnswerCacheService(CacheSettings(CACHE_PATH="data/cache.json"))
        >>> service.initialize()
        >>> service.insert("What is TypeScript?", "A typed superset of JavaScript")
        True
        >>> service.lookup("What is TypeScript?").access_count
        2
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        persistence: Optional[CachePersistence] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Args:
            settings: 캐시 설정. None이면 환경변수에서 로드.
            persistence: 영속화 관리자. None이면 새로 생성.
            metrics: 지표 수집기. None이면 새로 생성.
            clock: 현재 시각 함수 (테스트용 주입 지점).
        """
        self._settings = settings or load_settings()
        self._clock = clock or _utcnow
        self._persistence = persistence or CachePersistence(clock=self._clock)
        self._metrics = metrics or MetricsCollector(clock=self._clock)
        self._path = Path(self._settings.CACHE_PATH)

        self._index = TermIndex()
        self._hot_cache = HotCache(self._settings.CACHE_MEMORY_SIZE)
        self._store = CacheStore()
        self._eviction = EvictionManager(self._store, self._index, self._hot_cache)

        # 삽입 단일 작성자 가드 (비차단 획득)
        self._write_guard = threading.Lock()
        # 복합 변경 직렬화 (삽입/축출/초기화/갱신)
        self._mutation_lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._initialized = False

        self._flusher = BackgroundFlusher(self._flush_if_dirty, self._settings.CACHE_SAVE_INTERVAL_SECONDS)

        if not self._settings.CACHE_ENABLED:
            logger.info("캐시가 설정으로 비활성화되었습니다. 모든 캐시 연산은 no-op입니다.")

    # -------------------------------------------------------------------------
    # 속성
    # -------------------------------------------------------------------------
    @property
    def enabled(self) -> bool:
        return self._settings.CACHE_ENABLED

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    # -------------------------------------------------------------------------
    # 수명 주기
    # -------------------------------------------------------------------------
    def initialize(self) -> None:
        """
        캐시 파일을 동기적으로 로드합니다. 조회를 받기 전 시작 단계에서만 호출합니다.

        @returns {None}
        @raises CacheInitializationError 저장소를 부트스트랩할 수 없을 때.
            이 경우에도 캐시는 빈 메모리 상태로 사용 가능하다.
        """
        if not self._settings.CACHE_ENABLED:
            return None
        with self._mutation_lock:
            if self._initialized:
                return None
            self._initialized = True
            try:
                store = self._persistence.load(self._path)
            except CacheInitializationError:
                logger.error("캐시 초기화 실패: 빈 메모리 캐시로 계속합니다", exc_info=True)
                self._metrics.record_error()
                self._bind_store(CacheStore())
                raise
            self._bind_store(store)
        self._flusher.start()
        logger.info("캐시 초기화 완료: %d개 엔트리", len(self._store), extra={"path": str(self._path)})
        return None

    def shutdown(self) -> None:
        """
        백그라운드 저장을 멈추고 남은 변경을 기록합니다.

        @returns {None}
        @raises CacheSaveError 마지막 저장 실패.
        """
        if not self._settings.CACHE_ENABLED:
            return None
        self._flusher.stop(wait=True)
        if self._initialized:
            self._flush_if_dirty()
        logger.info("캐시 종료 완료")
        return None

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        logger.warning("initialize()가 호출되지 않아 요청 경로에서 캐시 파일을 동기 로드합니다")
        try:
            self.initialize()
        except CacheInitializationError:
            # initialize()에서 이미 기록했고, 빈 캐시로 계속 동작한다.
            pass

    def _bind_store(self, store: CacheStore) -> None:
        self._store = store
        self._index.rebuild(store.entries())
        self._hot_cache.clear()
        self._eviction = EvictionManager(self._store, self._index, self._hot_cache)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------
    def lookup(self, question: str, context: Optional[str] = None) -> Optional[MatchResult]:
        """
        캐시된 답변을 찾습니다.

        Args:
            question: 사용자 질문.
            context: 선택적 분류 태그. 지정하면 다른 태그가 붙은 엔트리는 유사도 매칭에서 제외.

        Returns:
            MatchResult 또는 None (미스). 유사도 매칭이면 `similarity`가 채워진다.

        Raises:
            CacheValueError: 질문이 비어 있거나 문자열이 아닐 때.
        """
        if not self._settings.CACHE_ENABLED:
            return None
        validate_text(question)
        self._ensure_initialized()
        try:
            return self._lookup(question, context)
        except CacheValueError:
            raise
        except Exception:
            logger.exception("캐시 조회 중 오류가 발생해 미스로 처리합니다")
            self._metrics.record_error()
            return None

    def _lookup(self, question: str, context: Optional[str]) -> Optional[MatchResult]:
        now = self._clock()

        hot_key = self._hot_cache.get(question)
        if hot_key is not None:
            entry = self._store.get(hot_key)
            if entry is not None:
                self._record_access(entry, now)
                self._metrics.record_hit(exact=True, hot=True)
                return MatchResult.from_entry(entry, MatchType.EXACT, from_hot_cache=True)
            self._hot_cache.discard(question)

        key = question_key(question)
        entry = self._store.get(key)
        if entry is not None:
            self._record_access(entry, now)
            self._hot_cache.put(question, key)
            self._metrics.record_hit(exact=True)
            return MatchResult.from_entry(entry, MatchType.EXACT)

        match = self._find_similar(question, context)
        if match is not None:
            entry, score = match
            self._record_access(entry, now)
            self._metrics.record_hit(exact=False)
            logger.debug("유사도 캐시 히트 (%.2f): %s", score, _preview(question))
            return MatchResult.from_entry(entry, MatchType.SIMILAR, similarity=score)

        self._metrics.record_miss()
        return None

    def _find_similar(self, question: str, context: Optional[str]) -> Optional[Tuple[CacheEntry, float]]:
        """
        임계값 이상인 후보 중 최선의 엔트리를 고릅니다.
        동점이면 접근 수가 많은 엔트리, 그다음 사전순으로 작은 키를 택합니다.
        """
        candidates = self._index.candidates(question)
        keys = candidates or self._store.keys()
        threshold = self._settings.CACHE_SIMILARITY_THRESHOLD

        best: Optional[Tuple[CacheEntry, float]] = None
        best_rank: Optional[Tuple[float, int, str]] = None
        for key in keys:
            entry = self._store.get(key)
            if entry is None:
                continue
            if context and entry.context and entry.context != context:
                continue
            score = similarity(question, entry.question)
            if score < threshold:
                continue
            rank = (-score, -entry.access_count, entry.key)
            if best_rank is None or rank < best_rank:
                best, best_rank = (entry, score), rank
        return best

    def _record_access(self, entry: CacheEntry, now: datetime) -> None:
        entry.touch(now)
        if entry.age_seconds(now) > self._settings.CACHE_MAX_AGE_DAYS * _SECONDS_PER_DAY:
            entry.needs_refresh = True
        self._store.mark_dirty()

    # -------------------------------------------------------------------------
    # 변경
    # -------------------------------------------------------------------------
    def insert(self, question: str, answer: str, context: Optional[str] = None) -> bool:
        """
        질문/답변 쌍을 캐시에 저장합니다.

        @param {str} question - 질문.
        @param {str} answer - 답변.
        @param {Optional[str]} context - 선택적 분류 태그.
        @returns {bool} 쓰기가 적용되었으면 True. 동시 삽입 중이거나 질문이 너무 길면 False.
        @raises CacheValueError 질문/답변이 비어 있거나 문자열이 아닐 때.
        """
        if not self._settings.CACHE_ENABLED:
            return False
        validate_text(question)
        validate_text(answer, "answer")
        if context is not None and not isinstance(context, str):
            raise CacheValueError("context는 문자열이어야 합니다.")
        if len(question) > self._settings.CACHE_MAX_QUESTION_LENGTH:
            logger.warning("질문이 너무 길어 캐시하지 않습니다: %d자", len(question))
            return False
        self._ensure_initialized()

        if not self._write_guard.acquire(blocking=False):
            logger.warning("동시 삽입이 감지되어 이번 쓰기는 적용하지 않습니다: %s", _preview(question))
            return False
        try:
            with self._mutation_lock:
                self._insert(question, answer, context)
        except Exception:
            logger.exception("캐시 삽입 중 오류가 발생했습니다")
            self._metrics.record_error()
            return False
        finally:
            self._write_guard.release()

        if self._settings.CACHE_FLUSH_ON_WRITE:
            self._flusher.submit()
        return True

    def _insert(self, question: str, answer: str, context: Optional[str]) -> None:
        now = self._clock()
        key = question_key(question)
        entry = CacheEntry(
            key=key,
            question=question,
            answer=answer,
            created_at=now,
            last_accessed_at=now,
            context=context,
        )
        previous = self._store.get(key)
        self._store.put(entry)
        try:
            self._index.add(key, question)
            self._hot_cache.put(question, key)
        except Exception:
            # 색인 갱신에 실패하면 저장소를 삽입 이전 상태로 되돌린다.
            self._hot_cache.discard_key(key)
            if previous is None:
                self._store.remove(key)
                self._index.remove(key)
            else:
                self._store.put(previous)
                self._index.add(key, previous.question)
            raise
        logger.debug("캐시에 새 엔트리 추가: %s", _preview(question))

        if len(self._store) > self._settings.high_water_mark:
            self._eviction.prune_lru(self._settings.low_water_mark)

    def refresh(self, key: str, new_answer: str) -> Optional[CacheEntry]:
        """
        갱신이 필요한 엔트리의 답변을 교체합니다.

        @param {str} key - 캐시 키.
        @param {str} new_answer - 새 답변.
        @returns {Optional[CacheEntry]} 갱신된 엔트리 사본 (비활성 시 None).
        @raises CacheNotFoundError 키가 없을 때.
        """
        if not self._settings.CACHE_ENABLED:
            return None
        validate_text(key, "key")
        validate_text(new_answer, "answer")
        self._ensure_initialized()
        with self._mutation_lock:
            entry = self._store.get(key)
            if entry is None:
                raise CacheNotFoundError(f"존재하지 않는 캐시 엔트리는 갱신할 수 없습니다: {key}")
            entry.answer = new_answer
            entry.created_at = self._clock()
            entry.needs_refresh = False
            self._store.mark_dirty()
            refreshed = replace(entry)
        if self._settings.CACHE_FLUSH_ON_WRITE:
            self._flusher.submit()
        return refreshed

    def clear_all(self) -> None:
        """저장소, 역색인, 핫 캐시를 비우고 빈 상태를 기록합니다."""
        if not self._settings.CACHE_ENABLED:
            return None
        self._ensure_initialized()
        with self._mutation_lock:
            removed = self._store.clear()
            self._index.clear()
            self._hot_cache.clear()
        logger.info("캐시 전체 삭제: %d개 엔트리", removed)
        self._flusher.submit()
        return None

    # -------------------------------------------------------------------------
    # 유지보수 및 영속화
    # -------------------------------------------------------------------------
    def run_maintenance(self) -> Optional[Dict[str, Any]]:
        """
        정합성 점검, 상한 초과 시 LRU 축출, 나이/빈도 정리, dirty 저장을 수행합니다.

        @returns {Optional[Dict[str, Any]]} 수행 결과 요약 (비활성 시 None).
        @raises CacheSaveError 저장 실패.
        """
        if not self._settings.CACHE_ENABLED:
            return None
        self._ensure_initialized()
        with self._mutation_lock:
            repaired = self._repair_consistency()
            lru_removed = 0
            if len(self._store) > self._settings.high_water_mark:
                lru_removed = self._eviction.prune_lru(self._settings.low_water_mark)
            aged_removed = self._eviction.prune_aged(
                max_age=timedelta(days=self._settings.CACHE_PRUNE_MAX_AGE_DAYS),
                min_access_count=self._settings.CACHE_PRUNE_MIN_ACCESSES,
                now=self._clock(),
            )
        saved = self._flush_if_dirty()
        return {
            "consistency_repaired": repaired,
            "lru_removed": lru_removed,
            "aged_removed": aged_removed,
            "saved": saved,
        }

    def _repair_consistency(self) -> bool:
        store_keys = set(self._store.keys())
        repaired = False

        expected = {entry.key for entry in self._store.entries() if extract_terms(entry.question)}
        if self._index.indexed_keys() != expected:
            logger.warning("역색인 불일치를 발견해 다시 구축합니다")
            self._index.rebuild(self._store.entries())
            repaired = True

        dangling: List[str] = sorted(self._hot_cache.referenced_keys() - store_keys)
        for key in dangling:
            self._hot_cache.discard_key(key)
        if dangling:
            logger.warning("핫 캐시의 끊긴 참조 %d개를 제거합니다", len(dangling))
            repaired = True
        return repaired

    def flush(self) -> bool:
        """
        변경 사항이 있으면 동기적으로 저장합니다.

        @returns {bool} 저장을 수행했으면 True.
        @raises CacheSaveError 저장 실패. 메모리 상태는 그대로 유지된다.
        """
        if not self._settings.CACHE_ENABLED:
            return False
        if not self._initialized:
            return False
        return self._flush_if_dirty()

    def _flush_if_dirty(self) -> bool:
        with self._save_lock:
            try:
                saved = self._persistence.save_if_dirty(self._store, self._path)
            except CacheSaveError:
                self._metrics.record_error()
                raise
        if saved:
            self._metrics.increment("saves")
        return saved

    # -------------------------------------------------------------------------
    # 통계
    # -------------------------------------------------------------------------
    def get_stats(self) -> Dict[str, Any]:
        """
        @returns {Dict[str, Any]} 엔트리 수, 총 접근 수, 최다 접근 수, 엔트리당 평균 접근 수.
        """
        if not self._settings.CACHE_ENABLED:
            return {"disabled": True}
        self._ensure_initialized()
        entries = self._store.entries()
        total_accesses = sum(entry.access_count for entry in entries)
        return {
            "entry_count": len(entries),
            "total_accesses": total_accesses,
            "most_accessed_count": max((entry.access_count for entry in entries), default=0),
            "average_accesses_per_entry": total_accesses / len(entries) if entries else 0.0,
        }

    def get_hit_rate_stats(self) -> Dict[str, Any]:
        """
        @returns {Dict[str, Any]} 총 조회 수, 히트율, 정확 매칭 비율, 가동 일수.
        """
        if not self._settings.CACHE_ENABLED:
            return {"disabled": True}
        self._ensure_initialized()
        return self._metrics.hit_rate_stats()

    def get_metrics(self) -> Optional[CacheMetrics]:
        if not self._settings.CACHE_ENABLED:
            return None
        return self._metrics.snapshot()

    def reset_metrics(self) -> None:
        if not self._settings.CACHE_ENABLED:
            return None
        self._metrics.reset()
        logger.info("캐시 지표를 초기화했습니다")
        return None
