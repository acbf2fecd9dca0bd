from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from answer_cache.cache_core.domain.cache_entry import CacheEntry


class CacheStore:
    """키 -> 엔트리 원본 저장소. 엔트리의 유일한 소유자."""

    def __init__(self, entries: Optional[Iterable[CacheEntry]] = None) -> None:
        """
        @param entries 초기 엔트리.
        @returns None
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._version = 0
        self._saved_version = 0
        for entry in entries or ():
            self._entries[entry.key] = entry

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        @param key 캐시 키.
        @returns 엔트리 또는 None.
        """
        return self._entries.get(key)

    def put(self, entry: CacheEntry) -> CacheEntry:
        """
        @param entry 저장할 엔트리. 같은 키가 있으면 교체한다.
        @returns 저장된 엔트리.
        """
        self._entries[entry.key] = entry
        self.mark_dirty()
        return entry

    def remove(self, key: str) -> Optional[CacheEntry]:
        """
        @param key 제거할 키.
        @returns 제거된 엔트리 또는 None.
        """
        entry = self._entries.pop(key, None)
        if entry is not None:
            self.mark_dirty()
        return entry

    def clear(self) -> int:
        """
        @returns 제거된 엔트리 수.
        """
        removed = len(self._entries)
        self._entries = {}
        self.mark_dirty()
        return removed

    def keys(self) -> List[str]:
        """
        @returns 삽입 순서의 키 스냅샷.
        """
        return list(self._entries)

    def entries(self) -> List[CacheEntry]:
        """
        @returns 삽입 순서의 엔트리 스냅샷.
        """
        return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # 변경 추적
    def mark_dirty(self) -> None:
        self._version += 1

    @property
    def version(self) -> int:
        return self._version

    @property
    def is_dirty(self) -> bool:
        return self._version != self._saved_version

    def mark_clean(self, version: Optional[int] = None) -> None:
        """
        저장이 끝난 시점의 버전을 기록합니다. 저장 중 변경이 있었다면 dirty가 유지됩니다.

        @param version 저장한 스냅샷의 버전. None이면 현재 버전.
        @returns None
        """
        self._saved_version = self._version if version is None else version
