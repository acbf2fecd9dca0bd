from __future__ import annotations

from typing import Dict, Iterable, Set

from answer_cache.cache_core.common.nlp.text_utils import extract_terms
from answer_cache.cache_core.domain.cache_entry import CacheEntry


class TermIndex:
    """용어 -> 캐시 키 집합 역색인. 유사도 후보를 좁히는 용도."""

    def __init__(self) -> None:
        self._postings: Dict[str, Set[str]] = {}
        self._terms_by_key: Dict[str, Set[str]] = {}

    def rebuild(self, entries: Iterable[CacheEntry]) -> None:
        """
        @param entries 색인할 전체 엔트리.
        @returns None
        """
        self.clear()
        for entry in entries:
            self.add(entry.key, entry.question)

    def add(self, key: str, text: str) -> None:
        """
        @param key 캐시 키.
        @param text 색인할 질문.
        @returns None
        """
        self.remove(key)
        terms = set(extract_terms(text))
        if not terms:
            return
        self._terms_by_key[key] = terms
        for term in terms:
            self._postings.setdefault(term, set()).add(key)

    def remove(self, key: str) -> None:
        """
        @param key 색인에서 제거할 키.
        @returns None
        """
        terms = self._terms_by_key.pop(key, None)
        if not terms:
            return
        for term in terms:
            keys = self._postings.get(term)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._postings[term]

    def clear(self) -> None:
        self._postings = {}
        self._terms_by_key = {}

    def candidates(self, query: str) -> Set[str]:
        """
        질의 용어의 키 집합을 교집합(AND)으로 좁힙니다.
        교집합이 비면 직전의 비어 있지 않은 집합을 유지합니다.

        @param query 검색 질의.
        @returns 후보 키 집합. 비어 있으면 호출자가 전체를 스캔한다.
        """
        terms = extract_terms(query)
        if not terms:
            return set()
        candidates = set(self._postings.get(terms[0], ()))
        for term in terms[1:]:
            narrowed = candidates & self._postings.get(term, set())
            if narrowed:
                candidates = narrowed
        return candidates

    def indexed_keys(self) -> Set[str]:
        """
        @returns 색인이 참조하는 모든 키.
        """
        return set(self._terms_by_key)

    def __len__(self) -> int:
        return len(self._postings)
