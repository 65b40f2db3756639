import os
import tempfile
import unittest
from unittest import mock

import classify_worker
from fakes import FakeResponse, FakeSession, FakeValidator, listing_page, listing_row
from hnshowcase.catalog.directory import Directory
from hnshowcase.config import PipelineConfig
from hnshowcase.errors import ConfigurationError
from hnshowcase.extraction.metadata import MetadataExtractor
from hnshowcase.ingestion.record_types import ListingRecord, Metadata, ShowcaseRecord
from hnshowcase.pipeline.stages import (
    build_classifier,
    build_fetch_cache,
    run_classify_stage,
    run_crawl_stage,
    run_extract_stage,
    run_fetch_stage,
    run_revalidate_images,
)
from hnshowcase.storage.json_store import read_json, save_collection

LISTING = "https://news.ycombinator.com/show"
SHARED = "https://shared.example.com/"
OTHER = "https://dashboards.example.com/"

SHARED_PAGE = """<html><head>
<meta property="og:title" content="Shared Thing">
<meta property="og:description" content="A multiplayer puzzle game">
<meta property="og:image" content="https://shared.example.com/card.png">
</head><body></body></html>"""

OTHER_PAGE = """<html><head>
<meta property="og:title" content="Dashy">
<meta property="og:description" content="Realtime dashboard for your servers">
</head><body></body></html>"""


class TestPipelineEndToEnd(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config = PipelineConfig(
            data_dir=self._tmp.name,
            listing_urls=[LISTING],
            max_pages_per_url=3,
            listing_delay=0,
            fetch_delay=0,
            fetch_workers=4,
            extract_workers=2,
        )
        self.session = FakeSession({
            LISTING: FakeResponse(text=listing_page([
                listing_row("1", "Show HN: Shared A", SHARED, comments="4&nbsp;comments"),
                listing_row("2", "Show HN: Shared B", SHARED, comments="10&nbsp;comments"),
                listing_row("3", "Show HN: Dashy", OTHER),
                listing_row("4", "Show HN: Ask me anything", "item?id=4"),
            ])),
            SHARED: FakeResponse(text=SHARED_PAGE),
            OTHER: FakeResponse(text=OTHER_PAGE),
        })

    def tearDown(self):
        self._tmp.cleanup()

    def test_full_run(self):
        crawl = run_crawl_stage(self.config, self.session)
        self.assertEqual(len(crawl.records), 4)
        self.assertTrue(os.path.exists(self.config.posts_raw_path))

        cache = build_fetch_cache(self.config, self.session)
        summary = run_fetch_stage(self.config, cache)
        self.assertEqual((summary.requested, summary.distinct, summary.errors), (3, 2, 0))
        self.assertEqual(self.session.count(SHARED), 1)
        self.assertEqual(self.session.count("https://news.ycombinator.com/item?id=4"), 0)
        self.assertEqual(len(list(cache.entries())), 2)

        validator = FakeValidator(good={"https://shared.example.com/card.png"})
        enriched = run_extract_stage(self.config, cache, MetadataExtractor(validator))
        by_id = {r.id: r for r in enriched}
        self.assertEqual(by_id["1"].metadata, by_id["2"].metadata)
        self.assertEqual(by_id["1"].image, "https://shared.example.com/card.png")
        self.assertIsNone(by_id["4"].metadata)
        self.assertEqual(len(read_json(self.config.posts_with_metadata_path)), 4)

        classified = run_classify_stage(self.config, build_classifier(self.config))
        by_id = {r.id: r.category for r in classified}
        self.assertEqual(by_id["1"], "Games & Entertainment")
        self.assertEqual(by_id["3"], "Data Visualization & Dashboards")
        self.assertEqual(read_json(self.config.posts_path), read_json(self.config.classified_posts_path))

        directory = Directory.load(self.config.posts_path)
        games = directory.category("games-entertainment")
        self.assertEqual([r.id for r in games], ["2", "1"])

    def test_rerun_fetch_makes_no_requests(self):
        run_crawl_stage(self.config, self.session)
        cache = build_fetch_cache(self.config, self.session)
        run_fetch_stage(self.config, cache)
        before = len(self.session.calls)
        run_fetch_stage(self.config, build_fetch_cache(self.config, self.session))
        self.assertEqual(len(self.session.calls), before)

    def test_retry_errors_refetches_failed_entries_only(self):
        self.session.routes[OTHER] = FakeResponse(status_code=500, text="oops")
        run_crawl_stage(self.config, self.session)
        cache = build_fetch_cache(self.config, self.session)
        first = run_fetch_stage(self.config, cache)
        self.assertEqual(first.failed_urls, [OTHER])

        self.session.routes[OTHER] = FakeResponse(text=OTHER_PAGE)
        second = run_fetch_stage(self.config, cache, retry_errors=True)
        self.assertEqual(second.invalidated, 1)
        self.assertEqual(second.errors, 0)
        self.assertEqual(self.session.count(SHARED), 1)
        self.assertEqual(self.session.count(OTHER), 2)

    def test_empty_crawl_keeps_previous_snapshot(self):
        run_crawl_stage(self.config, self.session)
        before = read_json(self.config.posts_raw_path)
        self.session.routes[LISTING] = FakeResponse(status_code=503)
        result = run_crawl_stage(self.config, self.session)
        self.assertEqual(result.records, [])
        self.assertEqual(read_json(self.config.posts_raw_path), before)

    def test_revalidate_drops_dead_images(self):
        run_crawl_stage(self.config, self.session)
        cache = build_fetch_cache(self.config, self.session)
        run_fetch_stage(self.config, cache)
        run_extract_stage(self.config, cache, MetadataExtractor(FakeValidator(good={"https://shared.example.com/card.png"})))
        run_classify_stage(self.config, build_classifier(self.config))

        removed = run_revalidate_images(self.config, FakeValidator())
        self.assertEqual(removed, 2)
        records = Directory.load(self.config.posts_path).records
        self.assertFalse(any(r.image for r in records))
        self.assertEqual({r.id: r.category for r in records}["1"], "Games & Entertainment")


class TestClassifyStageWithoutCredentials(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config = PipelineConfig(data_dir=self._tmp.name, classifier="llm")
        record = ShowcaseRecord(
            listing=ListingRecord(id="1", title="Show HN: Dashy", url=OTHER, discussion_url="d"),
            metadata=Metadata(description="Realtime dashboard for your servers"),
        )
        save_collection(self.config.posts_with_metadata_path, [record])
        self.before = read_json(self.config.posts_with_metadata_path)

    def tearDown(self):
        self._tmp.cleanup()

    def assertNothingWritten(self):
        self.assertFalse(os.path.exists(self.config.classified_posts_path))
        self.assertFalse(os.path.exists(self.config.posts_path))
        self.assertEqual(read_json(self.config.posts_with_metadata_path), self.before)

    def test_stage_fails_before_any_write(self):
        with self.assertRaises(ConfigurationError):
            run_classify_stage(self.config)
        self.assertNothingWritten()

    def test_worker_exits_with_configuration_status(self):
        env = {"DATA_DIR": self._tmp.name}
        with mock.patch.dict(os.environ, env, clear=True), \
                mock.patch("hnshowcase.config.load_dotenv"), \
                mock.patch.object(classify_worker, "configure_logging"):
            status = classify_worker.main(["--classifier", "llm"])
        self.assertEqual(status, 2)
        self.assertNothingWritten()


if __name__ == "__main__":
    unittest.main()
