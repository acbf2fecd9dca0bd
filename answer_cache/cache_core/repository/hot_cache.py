"""
원문 질의 -> 캐시 키를 보관하는 소용량 LRU.

동일한 질의가 반복될 때 해시 계산과 정규화를 건너뛰기 위한 계층입니다.
키만 보관하므로 엔트리의 소유권은 CacheStore에 있습니다.
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional, Set

_DEFAULT_CAPACITY = 100


class HotCache:
    def __init__(self, capacity: int = _DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity는 1 이상이어야 합니다.")
        self._store: "OrderedDict[str, str]" = OrderedDict()
        self._capacity = capacity
        self._lock = threading.Lock()

    def get(self, query: str) -> Optional[str]:
        with self._lock:
            key = self._store.get(query)
            if key is None:
                return None
            self._store.move_to_end(query)
            return key

    def put(self, query: str, key: str) -> None:
        with self._lock:
            if query in self._store:
                self._store.move_to_end(query)
            self._store[query] = key
            while len(self._store) > self._capacity:
                self._store.popitem(last=False)

    def discard(self, query: str) -> None:
        with self._lock:
            self._store.pop(query, None)

    def discard_key(self, key: str) -> int:
        """같은 캐시 키를 가리키는 모든 질의를 제거하고 제거 수를 반환한다."""
        with self._lock:
            stale = [query for query, cached in self._store.items() if cached == key]
            for query in stale:
                del self._store[query]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def referenced_keys(self) -> Set[str]:
        with self._lock:
            return set(self._store.values())

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
