import hashlib
from typing import Any

from answer_cache.cache_core.common.errors import CacheValueError

_TRAILING_PUNCTUATION = "?!.,;:"


def stable_hash_text(text: str) -> str:
    """
    @param text 해시 대상 문자열.
    @returns 128비트 MD5 hex 문자열.
    """
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def validate_text(value: Any, field_name: str = "question") -> str:
    """
    @param value 검증할 입력값.
    @param field_name 오류 메시지에 사용할 필드명.
    @returns 검증된 문자열.
    """
    if not isinstance(value, str) or not value.strip():
        raise CacheValueError(f"{field_name}은(는) 비어 있지 않은 문자열이어야 합니다.")
    return value


def normalize_question(question: str) -> str:
    """
    질문을 정규화합니다: 소문자화, 공백 정리, 끝 문장부호 제거.

    @param question 원문 질문.
    @returns 정규화된 질문.
    """
    validate_text(question)
    collapsed = " ".join(question.lower().split())
    stripped = collapsed.rstrip(_TRAILING_PUNCTUATION).rstrip()
    # 문장부호만으로 된 질문은 원형을 유지한다.
    return stripped or collapsed


def question_key(question: str) -> str:
    """
    @param question 원문 질문.
    @returns 정규화된 질문 기준 콘텐츠 주소 키.
    """
    return stable_hash_text(normalize_question(question))
