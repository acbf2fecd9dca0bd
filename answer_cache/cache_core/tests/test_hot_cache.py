import unittest

from answer_cache.cache_core.repository.hot_cache import HotCache


class HotCacheTests(unittest.TestCase):
    def test_lru_eviction(self) -> None:
        """
        용량 초과 시 가장 오래 사용하지 않은 질의가 제거되는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        cache = HotCache(capacity=2)
        cache.put("q1", "k1")
        cache.put("q2", "k2")
        self.assertEqual(cache.get("q1"), "k1")
        cache.put("q3", "k3")

        self.assertIsNone(cache.get("q2"))
        self.assertEqual(cache.get("q1"), "k1")
        self.assertEqual(cache.get("q3"), "k3")
        self.assertEqual(len(cache), 2)

    def test_discard_key(self) -> None:
        """
        같은 키를 가리키는 모든 질의가 제거되는지 확인합니다.

        @returns {None} 테스트만 수행합니다.
        """
        cache = HotCache(capacity=5)
        cache.put("What is X?", "k1")
        cache.put("what is x", "k1")
        cache.put("other", "k2")

        self.assertEqual(cache.discard_key("k1"), 2)
        self.assertEqual(cache.referenced_keys(), {"k2"})

    def test_invalid_capacity(self) -> None:
        with self.assertRaises(ValueError):
            HotCache(capacity=0)


if __name__ == "__main__":
    unittest.main()
