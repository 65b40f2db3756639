import os
import tempfile
import threading
import unittest

import requests

from fakes import FakeResponse, FakeSession
from hnshowcase.ingestion.url_utils import url_hash
from hnshowcase.storage.fetch_cache import LOCK_STRIPES, FetchCache


class FetchCacheTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.cache_dir = os.path.join(self._tmp.name, "html_cache")

    def tearDown(self):
        self._tmp.cleanup()

    def make_cache(self, session):
        return FetchCache(self.cache_dir, session, user_agent="test-agent", timeout=5)


class TestFetchCacheIdempotence(FetchCacheTestCase):
    def test_second_call_is_served_from_cache(self):
        url = "https://widgetly.dev/"
        session = FakeSession({url: FakeResponse(text="<html><title>Widgetly</title></html>", url="https://www.widgetly.dev/")})
        cache = self.make_cache(session)

        first = cache.fetch_cached(url)
        second = cache.fetch_cached(url)

        self.assertEqual(session.count(url), 1)
        self.assertEqual(first, second)
        self.assertEqual(first.final_url, "https://www.widgetly.dev/")
        self.assertIn("Widgetly", first.html)
        self.assertIsNone(first.error)

    def test_entries_survive_a_new_cache_instance(self):
        url = "https://widgetly.dev/"
        session = FakeSession({url: FakeResponse(text="<html>ok</html>")})
        self.make_cache(session).fetch_cached(url)

        again = self.make_cache(session).fetch_cached(url)
        self.assertEqual(session.count(url), 1)
        self.assertEqual(again.html, "<html>ok</html>")

    def test_entry_file_is_named_by_url_hash(self):
        url = "https://widgetly.dev/"
        cache = self.make_cache(FakeSession({url: FakeResponse(text="x")}))
        self.assertFalse(cache.contains(url))
        cache.fetch_cached(url)
        self.assertTrue(cache.contains(url))
        self.assertTrue(os.path.exists(os.path.join(self.cache_dir, f"{url_hash(url)}.json")))


class TestFetchCacheFailures(FetchCacheTestCase):
    def test_network_failure_is_cached_and_not_retried(self):
        url = "https://dead.example.org/"
        session = FakeSession({url: requests.ConnectTimeout("timed out")})
        cache = self.make_cache(session)

        entry = cache.fetch_cached(url)
        again = cache.fetch_cached(url)

        self.assertEqual(session.count(url), 1)
        self.assertTrue(entry.error)
        self.assertEqual(entry.html, "")
        self.assertEqual(entry, again)
        self.assertFalse(entry.ok)

    def test_http_error_is_cached_as_error_entry(self):
        url = "https://gone.example.org/"
        cache = self.make_cache(FakeSession({url: FakeResponse(status_code=404, text="nope")}))
        entry = cache.fetch_cached(url)
        self.assertEqual(entry.error, "http_404")
        self.assertEqual(entry.html, "")

    def test_private_address_is_refused_without_request(self):
        url = "http://127.0.0.1:8080/admin"
        session = FakeSession()
        entry = self.make_cache(session).fetch_cached(url)
        self.assertEqual(entry.error, "blocked_private_ip")
        self.assertEqual(session.calls, [])

    def test_invalidate_allows_refetch(self):
        url = "https://flaky.example.org/"
        session = FakeSession({url: requests.ConnectionError("reset")})
        cache = self.make_cache(session)
        cache.fetch_cached(url)

        session.routes[url] = FakeResponse(text="<html>back</html>")
        self.assertTrue(cache.invalidate(url))
        entry = cache.fetch_cached(url)

        self.assertEqual(session.count(url), 2)
        self.assertEqual(entry.html, "<html>back</html>")
        self.assertFalse(cache.invalidate("https://never-cached.example.org/"))

    def test_get_never_fetches(self):
        session = FakeSession()
        cache = self.make_cache(session)
        self.assertIsNone(cache.get("https://widgetly.dev/"))
        self.assertEqual(session.calls, [])


class TestFetchCacheSingleFlight(FetchCacheTestCase):
    def test_concurrent_requests_for_one_url_fetch_once(self):
        url = "https://slow.example.org/"
        session = FakeSession({url: FakeResponse(text="<html>slow</html>")}, delay=0.05)
        cache = self.make_cache(session)
        results = []

        def worker():
            results.append(cache.fetch_cached(url))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(session.count(url), 1)
        self.assertEqual(len(results), 8)
        self.assertTrue(all(r == results[0] for r in results))
        self.assertEqual(len(list(cache.entries())), 1)

    def test_lock_pool_does_not_grow_with_urls(self):
        urls = [f"https://site{i}.example.org/" for i in range(200)]
        session = FakeSession({u: FakeResponse(text="<html>x</html>") for u in urls})
        cache = self.make_cache(session)
        for u in urls:
            cache.fetch_cached(u)
        self.assertEqual(len(cache._locks), LOCK_STRIPES)
        self.assertIs(cache._key_lock(url_hash(urls[0])), cache._key_lock(url_hash(urls[0])))
        self.assertEqual(len(list(cache.entries())), 200)


if __name__ == "__main__":
    unittest.main()
