"""
=============================================================================
캐시 영속화 모듈 (Cache Persistence)
=============================================================================
CacheStore를 사람이 읽을 수 있는 JSON 문서로 저장하고 복원합니다.

저장 형식 (버전 1):
    {
      "format": "answer-cache",
      "version": 1,
      "saved_at": "2026-01-01T00:00:00+00:00",
      "entries": { "<key>": { "key": ..., "question": ..., ... } }
    }

쓰기는 같은 디렉토리의 임시 파일에 기록한 뒤 `os.replace`로 교체하므로
읽는 쪽은 절대 부분적으로 쓰인 파일을 보지 않습니다.

로드 실패 처리:
    - 파일 없음: 빈 캐시 + 초기 파일 생성 (오류 아님)
    - 해석 불가/손상: 로그 후 빈 캐시 (복구 가능)
    - 디렉토리/초기 파일 생성 또는 읽기 중 OS 오류: CacheInitializationError
=============================================================================
"""
from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from answer_cache.cache_core.common.errors import (
    CacheInitializationError,
    CacheReadError,
    CacheSaveError,
    CacheValueError,
)
from answer_cache.cache_core.common.hashing import question_key
from answer_cache.cache_core.domain.cache_entry import CacheEntry
from answer_cache.cache_core.repository.cache_store import CacheStore

logger = logging.getLogger(__name__)

FORMAT_NAME = "answer-cache"
SCHEMA_VERSION = 1

PathLike = Union[str, "os.PathLike[str]"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# -----------------------------------------------------------------------------
# 직렬화 스키마
# -----------------------------------------------------------------------------
class CacheEntryRecord(BaseModel):
    """파일에 저장되는 엔트리 레코드."""

    key: str
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = Field(default=1, ge=0)
    context: Optional[str] = None
    needs_refresh: bool = False

    @field_validator("created_at", "last_accessed_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> "CacheEntryRecord":
        return cls(
            key=entry.key,
            question=entry.question,
            answer=entry.answer,
            created_at=entry.created_at,
            last_accessed_at=entry.last_accessed_at,
            access_count=entry.access_count,
            context=entry.context,
            needs_refresh=entry.needs_refresh,
        )

    def to_entry(self) -> CacheEntry:
        return CacheEntry(
            key=self.key,
            question=self.question,
            answer=self.answer,
            created_at=self.created_at,
            last_accessed_at=self.last_accessed_at,
            access_count=self.access_count,
            context=self.context,
            needs_refresh=self.needs_refresh,
        )


class CacheDocument(BaseModel):
    """버전 태그가 붙은 캐시 파일 문서."""

    format: Literal["answer-cache"] = FORMAT_NAME
    version: int = Field(default=SCHEMA_VERSION, ge=1)
    saved_at: datetime = Field(default_factory=_utcnow)
    entries: Dict[str, CacheEntryRecord] = Field(default_factory=dict)


class LegacyEntryRecord(BaseModel):
    """버전 태그 없는 이전 형식의 엔트리 (밀리초 타임스탬프, camelCase 필드)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    timestamp: Optional[float] = None
    last_accessed: Optional[float] = Field(default=None, alias="lastAccessed")
    access_count: int = Field(default=1, ge=0, alias="accessCount")
    game_context: Optional[str] = Field(default=None, alias="gameContext")
    needs_refresh: bool = Field(default=False, alias="needsRefresh")

    def to_entry(self, now: datetime) -> CacheEntry:
        created_at = _from_millis(self.timestamp) or now
        return CacheEntry(
            key="",
            question=self.question,
            answer=self.answer,
            created_at=created_at,
            last_accessed_at=_from_millis(self.last_accessed) or created_at,
            access_count=self.access_count,
            context=self.game_context,
            needs_refresh=self.needs_refresh,
        )


def _from_millis(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


# -----------------------------------------------------------------------------
# 원자적 교체 (일시적 잠금 오류는 재시도)
# -----------------------------------------------------------------------------
@retry(
    stop=stop_after_attempt(3),
    wait=wait_fixed(0.05),
    retry=retry_if_exception_type((PermissionError, InterruptedError, BlockingIOError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _replace(source: str, target: str) -> None:
    os.replace(source, target)


class CachePersistence:
    """CacheStore의 원자적 저장/복원을 담당합니다."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        """
        @param clock 현재 시각 함수 (UTC aware datetime 반환).
        @returns None
        """
        self._clock = clock

    # -------------------------------------------------------------------------
    # 로드
    # -------------------------------------------------------------------------
    def load(self, path: PathLike) -> CacheStore:
        """
        캐시 파일을 읽어 CacheStore를 복원합니다.

        @param path 캐시 파일 경로.
        @returns 복원된 CacheStore (파일 없음/손상 시 빈 저장소).
        @raises CacheInitializationError 디렉토리/초기 파일 생성 또는 읽기 중 OS 오류.
        """
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheInitializationError(f"캐시 디렉토리를 만들 수 없습니다: {exc}") from exc

        try:
            raw = target.read_bytes()
        except FileNotFoundError:
            logger.info("캐시 파일이 없어 새로 생성합니다", extra={"path": str(target)})
            return self._create_initial(target)
        except OSError as exc:
            raise CacheInitializationError(f"캐시 파일을 읽을 수 없습니다: {exc}") from exc

        try:
            entries = self.parse(raw)
        except CacheReadError as exc:
            logger.warning("캐시 파일을 해석할 수 없어 빈 캐시로 시작합니다: %s", exc, extra={"path": str(target)})
            return CacheStore()

        store = CacheStore(entries)
        store.mark_clean()
        logger.info("캐시 로드 완료: %d개 엔트리", len(store), extra={"path": str(target)})
        return store

    def _create_initial(self, target: Path) -> CacheStore:
        store = CacheStore()
        try:
            self._write_atomic(target, self.serialize([]))
        except OSError as exc:
            raise CacheInitializationError(f"초기 캐시 파일을 만들 수 없습니다: {exc}") from exc
        store.mark_clean()
        return store

    def parse(self, raw: bytes) -> List[CacheEntry]:
        """
        @param raw 캐시 파일 원본 바이트.
        @returns 키가 재계산된 엔트리 리스트.
        @raises CacheReadError 해석할 수 없는 내용.
        """
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CacheReadError(f"JSON 해석 실패: {exc}") from exc
        if not isinstance(payload, dict):
            raise CacheReadError("캐시 문서의 최상위는 객체여야 합니다.")

        try:
            if "version" in payload and "entries" in payload:
                document = CacheDocument.model_validate(payload)
                if document.version > SCHEMA_VERSION:
                    raise CacheReadError(f"지원하지 않는 캐시 버전입니다: {document.version}")
                entries = [record.to_entry() for record in document.entries.values()]
            else:
                now = self._clock()
                entries = [LegacyEntryRecord.model_validate(value).to_entry(now) for value in payload.values()]
                if entries:
                    logger.info("이전 형식 캐시 파일을 변환합니다: %d개 엔트리", len(entries))
        except ValidationError as exc:
            raise CacheReadError(f"캐시 스키마 검증 실패: {exc.error_count()}개 오류") from exc
        return self._rekey(entries)

    def _rekey(self, entries: List[CacheEntry]) -> List[CacheEntry]:
        # 키는 정규화된 질문의 순수 함수이므로 로드 시 다시 계산한다.
        merged: Dict[str, CacheEntry] = {}
        for entry in entries:
            try:
                entry.key = question_key(entry.question)
            except CacheValueError:
                logger.warning("질문이 비어 있는 엔트리를 건너뜁니다")
                continue
            existing = merged.get(entry.key)
            if existing is None or entry.last_accessed_at > existing.last_accessed_at:
                merged[entry.key] = entry
        return list(merged.values())

    # -------------------------------------------------------------------------
    # 저장
    # -------------------------------------------------------------------------
    def serialize(self, entries: List[CacheEntry]) -> str:
        """
        @param entries 저장할 엔트리 리스트.
        @returns 버전 태그가 포함된 JSON 문자열.
        """
        document = CacheDocument(
            saved_at=self._clock(),
            entries={entry.key: CacheEntryRecord.from_entry(entry) for entry in entries},
        )
        return json.dumps(document.model_dump(mode="json"), ensure_ascii=False, indent=2)

    def save(self, store: CacheStore, path: PathLike) -> None:
        """
        @param store 저장할 CacheStore.
        @param path 캐시 파일 경로.
        @returns None
        @raises CacheSaveError 쓰기/교체 중 I/O 오류. 메모리 상태는 변경되지 않는다.
        """
        version = store.version
        payload = self.serialize(store.entries())
        target = Path(path)
        try:
            self._write_atomic(target, payload)
        except OSError as exc:
            logger.error("캐시 저장 실패: %s", exc, extra={"path": str(target)})
            raise CacheSaveError(f"캐시를 저장할 수 없습니다: {exc}") from exc
        store.mark_clean(version)
        logger.debug("캐시 저장 완료: %d개 엔트리", len(store), extra={"path": str(target)})

    def save_if_dirty(self, store: CacheStore, path: PathLike) -> bool:
        """
        @param store 저장할 CacheStore.
        @param path 캐시 파일 경로.
        @returns 저장을 수행했으면 True.
        """
        if not store.is_dirty:
            return False
        self.save(store, path)
        return True

    def _write_atomic(self, target: Path, payload: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            _replace(tmp_name, str(target))
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
