import tempfile
import unittest
from pathlib import Path

from question_crawler.cache import (
    CacheError,
    JSONDirectoryBackend,
    ResourceCache,
    SQLiteCacheBackend,
    articles_key,
    fifteenth_day_key,
    issue_key,
    monthly_key,
    question_key,
    research_key,
    title_slug,
    url_segment,
    year_key,
    years_key,
)
from question_crawler.config import CrawlConfig


class CountingFetch:
    def __init__(self, value) -> None:
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


class CacheKeyTestCase(unittest.TestCase):
    def test_url_segment(self) -> None:
        self.assertEqual(url_segment("https://wol.jw.org/ko/wol/lv/r8/lp-ko/0/20383"), "20383")
        self.assertEqual(url_segment("https://wol.jw.org/ko/wol/d/r8/lp-ko/2009041/"), "2009041")
        self.assertEqual(url_segment("https://wol.jw.org/ko/page?lang=ko"), "page")

    def test_title_slug_collapses_whitespace(self) -> None:
        self.assertEqual(title_slug("  2009년  1월\t15일 "), "2009년-1월-15일")

    def test_key_families(self) -> None:
        url = "https://wol.jw.org/ko/wol/lv/r8/lp-ko/0/123"

        self.assertEqual(years_key(), "years")
        self.assertEqual(research_key(url), "research-123")
        self.assertEqual(monthly_key(url), "monthly-123")
        self.assertEqual(fifteenth_day_key(url), "15thday-123")
        self.assertEqual(articles_key(url), "articles-123")
        self.assertEqual(question_key(url), "question-123")
        self.assertEqual(issue_key("2009", "2009년 1월 15일"), "issue-2009-2009년-1월-15일")
        self.assertEqual(year_key("2009"), "year-2009")


class ResourceCacheTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.cache_dir = Path(self._tmp.name) / "cache"
        self.cache = ResourceCache(JSONDirectoryBackend(self.cache_dir))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_miss_then_hit(self) -> None:
        fetch = CountingFetch([{"title": "A", "url": "https://wol.jw.org/a"}])

        first = await self.cache.get_or_fetch("articles-1", fetch)
        second = await self.cache.get_or_fetch("articles-1", fetch)

        self.assertEqual(first, second)
        self.assertEqual(fetch.calls, 1)
        self.assertEqual((self.cache.hits, self.cache.misses), (1, 1))
        self.assertTrue((self.cache_dir / "articles-1.json").exists())

    async def test_dump_and_load_applied(self) -> None:
        fetch = CountingFetch({"a", "b"})

        await self.cache.get_or_fetch("letters", fetch, dump=sorted, load=set)
        value = await self.cache.get_or_fetch("letters", fetch, dump=sorted, load=set)

        self.assertEqual(value, {"a", "b"})
        self.assertEqual(self.cache.get("letters"), ["a", "b"])

    async def test_should_store_false_skips_persisting(self) -> None:
        fetch = CountingFetch([])

        await self.cache.get_or_fetch("years", fetch, should_store=bool)
        await self.cache.get_or_fetch("years", fetch, should_store=bool)

        self.assertEqual(fetch.calls, 2)
        self.assertFalse(self.cache.contains("years"))

    async def test_failed_fetch_stores_nothing(self) -> None:
        async def boom():
            raise RuntimeError("network down")

        with self.assertRaises(RuntimeError):
            await self.cache.get_or_fetch("year-2001", boom)

        self.assertFalse(self.cache.contains("year-2001"))

    async def test_empty_list_is_a_valid_entry(self) -> None:
        fetch = CountingFetch([])

        await self.cache.get_or_fetch("articles-9", fetch)
        await self.cache.get_or_fetch("articles-9", fetch)

        self.assertEqual(fetch.calls, 1)

    def test_keys_and_delete(self) -> None:
        self.cache.set("year-2001", [])
        self.cache.set("year-2002", [])
        self.cache.set("issue-2001-x", [])

        self.assertEqual(self.cache.keys("year-"), ["year-2001", "year-2002"])
        self.assertTrue(self.cache.delete("year-2001"))
        self.assertFalse(self.cache.delete("year-2001"))
        self.assertEqual(self.cache.keys("year-"), ["year-2002"])

    def test_corrupt_entry_raises(self) -> None:
        (self.cache_dir / "broken.json").write_text("{not json", encoding="utf-8")

        with self.assertRaises(CacheError):
            self.cache.get("broken")

    def test_unsafe_key_characters_are_replaced(self) -> None:
        backend = JSONDirectoryBackend(self.cache_dir)

        self.assertEqual(backend.path_for("issue-a/b:c").name, "issue-a_b_c.json")

    def test_prefix_with_unsafe_characters_matches_stored_entry(self) -> None:
        self.cache.set("issue-2001-무엇/어떻게?", [])
        self.cache.set("issue-2001-다른", [])

        keys = self.cache.keys("issue-2001-무엇/어떻게?")

        self.assertEqual(keys, ["issue-2001-무엇_어떻게_"])
        self.assertTrue(self.cache.delete(keys[0]))
        self.assertFalse(self.cache.contains("issue-2001-무엇/어떻게?"))
        self.assertEqual(self.cache.keys("issue-2001-"), ["issue-2001-다른"])


class SQLiteCacheBackendTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "cache.sqlite3"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_round_trip_and_upsert(self) -> None:
        cache = ResourceCache(SQLiteCacheBackend(self.path))
        fetch = CountingFetch({"title": "독자의 질문", "question": "Q?", "answer": "A"})

        await cache.get_or_fetch("question-1", fetch)
        reopened = ResourceCache(SQLiteCacheBackend(self.path))
        value = await reopened.get_or_fetch("question-1", fetch)

        self.assertEqual(value["title"], "독자의 질문")
        self.assertEqual(fetch.calls, 1)

        reopened.set("question-1", {"title": "updated"})
        self.assertEqual(reopened.get("question-1"), {"title": "updated"})
        self.assertEqual(reopened.keys("question-"), ["question-1"])
        self.assertTrue(reopened.delete("question-1"))
        self.assertIsNone(reopened.get("question-1"))

    def test_from_config_selects_backend(self) -> None:
        config = CrawlConfig(data_dir=Path(self._tmp.name), cache_backend="sqlite")

        cache = ResourceCache.from_config(config)
        cache.set("years", [])

        self.assertTrue((config.cache_dir / "cache.sqlite3").exists())

        config.cache_backend = "redis"
        with self.assertRaises(ValueError):
            ResourceCache.from_config(config)


if __name__ == "__main__":
    unittest.main()
