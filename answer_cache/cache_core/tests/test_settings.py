import unittest

from pydantic import ValidationError

from answer_cache.settings import CacheSettings, build_logging_config, load_settings


class SettingsTests(unittest.TestCase):
    def test_defaults_and_water_marks(self) -> None:
        """
        기본 설정값과 워터마크 계산을 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        settings = CacheSettings(CACHE_MAX_SIZE=200)
        self.assertTrue(settings.CACHE_ENABLED)
        self.assertEqual(settings.CACHE_SIMILARITY_THRESHOLD, 0.85)
        self.assertEqual(settings.high_water_mark, 180)
        self.assertEqual(settings.low_water_mark, 150)

    def test_small_max_sizes(self) -> None:
        """
        작은 최대 크기에서도 기본 워터마크가 유효하게 계산되는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        expected = {1: (1, 0), 2: (1, 0), 3: (2, 1), 4: (3, 2), 5: (4, 3)}
        for size, (high, low) in expected.items():
            with self.subTest(size=size):
                settings = CacheSettings(CACHE_MAX_SIZE=size)
                self.assertEqual(settings.high_water_mark, high)
                self.assertEqual(settings.low_water_mark, low)
                self.assertLess(settings.low_water_mark, settings.high_water_mark)

    def test_invalid_values(self) -> None:
        """
        잘못된 임계값과 워터마크 순서가 거부되는지 확인합니다.

        @returns {None} 테스트만 수행합니다.
        """
        with self.assertRaises(ValidationError):
            CacheSettings(CACHE_SIMILARITY_THRESHOLD=1.5)
        with self.assertRaises(ValidationError):
            CacheSettings(CACHE_MAX_SIZE=100, CACHE_LRU_PRUNE_THRESHOLD=80, CACHE_LRU_PRUNE_TARGET=90)
        with self.assertRaises(ValidationError):
            load_settings(CACHE_MAX_SIZE=100, CACHE_LRU_PRUNE_THRESHOLD=150)

    def test_logging_config(self) -> None:
        """
        JSON 로깅 선택 시 JSON 포매터가 연결되는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        config = build_logging_config(CacheSettings(LOG_JSON=True, LOG_LEVEL="debug"))
        self.assertEqual(config["handlers"]["console"]["formatter"], "json")
        self.assertEqual(config["formatters"]["json"]["()"], "pythonjsonlogger.json.JsonFormatter")
        self.assertEqual(config["loggers"]["answer_cache"]["level"], "DEBUG")


if __name__ == "__main__":
    unittest.main()
