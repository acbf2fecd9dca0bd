import re
from typing import Any, Iterable, List

_NON_WORD_RE = re.compile(r"[^\w\s]", re.UNICODE)
_MIN_TERM_LENGTH = 3


def normalize_text(text: str) -> str:
    """
    @param text 정규화할 원문.
    @returns 공백을 정리한 문자열.
    """
    return " ".join(text.strip().split())


def whitespace_tokens(text: str) -> List[str]:
    """
    @param text 토큰화할 문자열.
    @returns 소문자화 후 공백 기준으로 나눈 토큰 리스트.
    """
    return text.lower().strip().split()


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """
    @param a 토큰 시퀀스 A.
    @param b 토큰 시퀀스 B.
    @returns Jaccard 유사도(0~1).
    """
    set_a = set(a)
    set_b = set(b)
    if not set_a and not set_b:
        return 0.0
    intersection = len(set_a & set_b)
    union = len(set_a | set_b)
    return intersection / union if union else 0.0


def similarity(a: Any, b: Any) -> float:
    """
    두 문자열의 토큰 집합 Jaccard 유사도를 계산합니다.

    @param a 문자열 A.
    @param b 문자열 B.
    @returns 0~1 유사도. 빈 문자열이나 비문자열이면 0.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        return 0.0
    if not a.strip() or not b.strip():
        return 0.0
    return jaccard_similarity(whitespace_tokens(a), whitespace_tokens(b))


def extract_terms(text: Any) -> List[str]:
    """
    역색인에 사용할 용어를 추출합니다. 3자 이상 영숫자 토큰만 남깁니다.

    @param text 용어 추출 대상 문자열.
    @returns 등장 순서를 유지한 중복 없는 용어 리스트.
    """
    if not isinstance(text, str):
        return []
    cleaned = _NON_WORD_RE.sub("", text.lower())
    terms: List[str] = []
    seen = set()
    for token in cleaned.split():
        if len(token) < _MIN_TERM_LENGTH or token in seen:
            continue
        seen.add(token)
        terms.append(token)
    return terms
