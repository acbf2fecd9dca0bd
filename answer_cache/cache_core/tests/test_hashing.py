import unittest

from answer_cache.cache_core.common.errors import CacheValueError
from answer_cache.cache_core.common.hashing import normalize_question, question_key, stable_hash_text


class HashingTests(unittest.TestCase):
    def test_md5_hex_digest(self) -> None:
        """
        해시가 128비트 hex 문자열인지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        digest = stable_hash_text("hello")
        self.assertEqual(digest, "5d41402abc4b2a76b9719d911017c592")
        self.assertEqual(len(digest), 32)

    def test_normalize_question(self) -> None:
        """
        대소문자, 공백, 끝 문장부호가 정규화되는지 확인합니다.

        @returns {None} 테스트만 수행합니다.
        """
        self.assertEqual(normalize_question("  What   is TypeScript?? "), "what is typescript")
        self.assertEqual(normalize_question("Hello, world!"), "hello, world")
        self.assertEqual(normalize_question("???"), "???")

    def test_variants_share_key(self) -> None:
        """
        표기만 다른 질문이 같은 키를 갖는지 검증합니다.

        @returns {None} 테스트만 수행합니다.
        """
        self.assertEqual(question_key("What is TypeScript?"), question_key("what is typescript??"))
        self.assertNotEqual(question_key("What is TypeScript?"), question_key("What is JavaScript?"))

    def test_invalid_input(self) -> None:
        for value in ("", "   ", None, 42):
            with self.subTest(value=value):
                with self.assertRaises(CacheValueError):
                    question_key(value)

    def test_value_error_compatibility(self) -> None:
        with self.assertRaises(ValueError):
            normalize_question("")


if __name__ == "__main__":
    unittest.main()
