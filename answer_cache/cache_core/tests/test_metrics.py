import unittest
from datetime import datetime, timedelta, timezone

from answer_cache.cache_core.service.cache.metrics_collector import MetricsCollector


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class MetricsCollectorTests(unittest.TestCase):
    def test_hit_rate_stats(self) -> None:
        """
        히트율, 정확 매칭 비율, 가동 일수 계산을 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        clock = _Clock()
        metrics = MetricsCollector(clock=clock)
        metrics.record_hit(exact=True, hot=True)
        metrics.record_hit(exact=True)
        metrics.record_hit(exact=False)
        metrics.record_miss()
        clock.now += timedelta(days=2)

        stats = metrics.hit_rate_stats()
        self.assertEqual(stats["total_lookups"], 4)
        self.assertAlmostEqual(stats["hit_rate"], 0.75)
        self.assertAlmostEqual(stats["exact_match_rate"], 2 / 3)
        self.assertAlmostEqual(stats["uptime_days"], 2.0)

        snapshot = metrics.snapshot()
        self.assertEqual(snapshot.hot_cache_hits, 1)
        self.assertEqual(snapshot.similarity_matches, 1)

    def test_empty_rates_are_zero(self) -> None:
        stats = MetricsCollector().hit_rate_stats()
        self.assertEqual(stats["hit_rate"], 0.0)
        self.assertEqual(stats["exact_match_rate"], 0.0)

    def test_reset(self) -> None:
        """
        리셋 시 카운터와 기준 시각이 초기화되는지 확인합니다.

        @returns {None} 테스트만 수행합니다.
        """
        clock = _Clock()
        metrics = MetricsCollector(clock=clock)
        metrics.record_error()
        metrics.increment("saves")
        clock.now += timedelta(hours=1)
        metrics.reset()

        snapshot = metrics.snapshot()
        self.assertEqual(snapshot.errors, 0)
        self.assertEqual(snapshot.saves, 0)
        self.assertEqual(snapshot.last_reset, clock.now)

    def test_unknown_counter(self) -> None:
        with self.assertRaises(KeyError):
            MetricsCollector().increment("unknown")


if __name__ == "__main__":
    unittest.main()
