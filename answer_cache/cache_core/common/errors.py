class CacheError(Exception):
    """캐시 계층 공통 예외."""

    pass


class CacheInitializationError(CacheError):
    """캐시 저장소를 부트스트랩할 수 없음."""

    pass


class CacheSaveError(CacheError):
    """캐시 파일 저장 실패."""

    pass


class CacheReadError(CacheError):
    """캐시 파일을 읽거나 해석할 수 없음. 로드 단계에서 복구된다."""

    pass


class CacheValueError(CacheError, ValueError):
    """잘못된 호출자 입력 (비문자열 또는 빈 질문/답변)."""

    pass


class CacheNotFoundError(CacheError, LookupError):
    """존재하지 않는 캐시 키."""

    pass
