"""
=============================================================================
Answer Cache - 설정 모듈 (Settings Module)
=============================================================================

이 모듈은 질의응답 캐시의 전체 설정을 관리합니다.
`pydantic-settings`를 활용하여 환경변수를 타입 안전(Type-Safe)하게 로드하고 검증합니다.

설계 원칙:
    1.  **환경 분리 (Environment Isolation)**: `.env` 파일 및 환경변수로 개발/운영 설정을 분리합니다.
    2.  **타입 검증 (Type Validation)**: 잘못된 임계값이나 워터마크는 즉시 `ValidationError`를 발생시킵니다.
    3.  **명시적 구성 (Explicit Configuration)**: 서비스는 설정 객체를 주입받으며 전역 상태를 두지 않습니다.

주요 환경변수:
    - `CACHE_ENABLED`: 캐시 전체 활성화 여부 (False면 모든 연산이 no-op)
    - `CACHE_PATH`: 캐시 파일 경로
    - `CACHE_SIMILARITY_THRESHOLD`: 유사도 매칭 임계값 (기본 0.85)
    - `CACHE_MAX_SIZE`: 최대 엔트리 수
    - `LOG_LEVEL`: 로깅 레벨
=============================================================================
"""

from __future__ import annotations

import logging
import logging.config
import sys
from typing import Any, Dict, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = "data/question_cache.json"


# -----------------------------------------------------------------------------
# 1. 환경변수 스키마 정의 (Pydantic Settings)
# -----------------------------------------------------------------------------
class CacheSettings(BaseSettings):
    """
    캐시 환경변수 로딩 및 검증을 위한 Pydantic 모델.
    생성자 인자로 전달한 값이 환경변수보다 우선합니다.
    """

    # 마스터 스위치
    CACHE_ENABLED: bool = Field(default=True, description="캐시 활성화 여부")
    CACHE_PATH: str = Field(default=DEFAULT_CACHE_PATH, description="캐시 파일 경로")

    # 매칭 설정
    CACHE_SIMILARITY_THRESHOLD: float = Field(default=0.85, ge=0.0, le=1.0, description="유사도 임계값")
    CACHE_MAX_QUESTION_LENGTH: int = Field(default=10000, ge=1, description="캐시 가능한 최대 질문 길이")

    # 용량 및 축출 설정
    CACHE_MAX_SIZE: int = Field(default=10000, ge=1, description="최대 엔트리 수")
    CACHE_MEMORY_SIZE: int = Field(default=100, ge=1, description="핫 캐시 용량")
    CACHE_LRU_PRUNE_THRESHOLD: Optional[int] = Field(default=None, ge=1, description="LRU 축출 상한 워터마크")
    CACHE_LRU_PRUNE_TARGET: Optional[int] = Field(default=None, ge=0, description="LRU 축출 목표 크기")

    # 수명 설정
    CACHE_MAX_AGE_DAYS: float = Field(default=30, gt=0, description="갱신 필요 판정 기준 일수")
    CACHE_PRUNE_MAX_AGE_DAYS: float = Field(default=90, gt=0, description="정리 대상 최소 일수")
    CACHE_PRUNE_MIN_ACCESSES: int = Field(default=5, ge=0, description="오래되어도 유지할 최소 접근 수")

    # 영속화 설정
    CACHE_SAVE_INTERVAL_SECONDS: float = Field(default=300, ge=0, description="주기적 저장 간격 (0이면 비활성)")
    CACHE_FLUSH_ON_WRITE: bool = Field(default=True, description="쓰기 후 백그라운드 저장 여부")

    # 로깅
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # 정의되지 않은 환경변수는 무시
        case_sensitive=True,
    )

    @model_validator(mode="after")
    def _derive_water_marks(self) -> "CacheSettings":
        """
        워터마크 기본값을 최대 크기 기준으로 계산하고 순서를 검증합니다.

        @returns {CacheSettings} 검증된 설정.
        """
        if self.CACHE_LRU_PRUNE_THRESHOLD is None:
            self.CACHE_LRU_PRUNE_THRESHOLD = max(int(self.CACHE_MAX_SIZE * 0.9), 1)
        if self.CACHE_LRU_PRUNE_TARGET is None:
            # 작은 최대 크기에서도 목표가 상한보다 작도록 맞춘다.
            self.CACHE_LRU_PRUNE_TARGET = max(
                min(int(self.CACHE_MAX_SIZE * 0.75), self.CACHE_LRU_PRUNE_THRESHOLD - 1), 0
            )
        if self.CACHE_LRU_PRUNE_THRESHOLD > self.CACHE_MAX_SIZE:
            raise ValueError("CACHE_LRU_PRUNE_THRESHOLD는 CACHE_MAX_SIZE 이하여야 합니다.")
        if self.CACHE_LRU_PRUNE_TARGET >= self.CACHE_LRU_PRUNE_THRESHOLD:
            raise ValueError("CACHE_LRU_PRUNE_TARGET은 CACHE_LRU_PRUNE_THRESHOLD보다 작아야 합니다.")
        return self

    @property
    def high_water_mark(self) -> int:
        return int(self.CACHE_LRU_PRUNE_THRESHOLD)

    @property
    def low_water_mark(self) -> int:
        return int(self.CACHE_LRU_PRUNE_TARGET)


def load_settings(**overrides: Any) -> CacheSettings:
    """
    환경변수와 명시적 오버라이드를 합쳐 설정을 로드합니다.

    @param {Any} overrides - 환경변수보다 우선하는 설정값.
    @returns {CacheSettings} 검증된 설정 객체.
    """
    try:
        return CacheSettings(**overrides)
    except Exception as exc:
        logger.critical("캐시 설정 로드 실패: .env 파일 또는 환경변수를 확인해주세요. (%s)", exc)
        raise


# -----------------------------------------------------------------------------
# 2. 로깅 (Logging)
# -----------------------------------------------------------------------------
def build_logging_config(settings: CacheSettings) -> Dict[str, Any]:
    """
    `logging.config.dictConfig`에 전달할 설정 딕셔너리를 생성합니다.

    @param {CacheSettings} settings - 캐시 설정.
    @returns {Dict[str, Any]} dictConfig 호환 딕셔너리.
    """
    level = settings.LOG_LEVEL.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
                "style": "{",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "simple": {
                "format": "[{asctime}] {levelname} {message}",
                "style": "{",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "level": "DEBUG",
                "class": "logging.StreamHandler",
                "formatter": "json" if settings.LOG_JSON else "verbose",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "answer_cache": {"handlers": ["console"], "level": level, "propagate": False},
        },
    }


def configure_logging(settings: Optional[CacheSettings] = None) -> None:
    """
    캐시 패키지 로거를 구성합니다. 프로세스 시작 시 한 번 호출합니다.

    @param {Optional[CacheSettings]} settings - 캐시 설정. None이면 환경변수에서 로드.
    @returns {None} 로깅 설정을 적용합니다.
    """
    settings = settings or load_settings()
    logging.config.dictConfig(build_logging_config(settings))
