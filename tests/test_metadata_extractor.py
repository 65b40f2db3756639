import unittest
from unittest import mock

from fakes import FakeValidator
from hnshowcase.extraction import metadata as metadata_mod
from hnshowcase.extraction.metadata import MetadataExtractor, is_placeholder_image
from hnshowcase.extraction.readme_images import fallback_candidates, rank_candidates, resolve_candidate, to_raw_url
from hnshowcase.ingestion.record_types import ListingRecord
from hnshowcase.storage.fetch_cache import CacheEntry

RECORD = ListingRecord(id="101", title="Show HN: Widgetly", url="https://widgetly.dev/", discussion_url="d")

PRODUCT_PAGE = """
<html><head>
  <title>Widgetly</title>
  <meta property="og:title" content="Widgetly makes widgets">
  <meta property="og:description" content="Composable widgets for dashboards.">
  <meta property="og:image" content="https://widgetly.dev/og.png">
  <meta property="og:site_name" content="Widgetly">
  <link rel="apple-touch-icon" href="/touch.png">
</head><body><p>Hello</p></body></html>
"""

GITHUB_PAGE = """
<html><head>
  <title>GitHub - acme/widget: Widgets for everyone</title>
  <meta property="og:title" content="acme/widget">
  <meta property="og:description" content="Widgets for everyone">
  <meta property="og:image" content="https://opengraph.githubassets.com/abc/acme/widget">
</head><body>
  <article class="markdown-body entry-content">
    <img src="https://img.shields.io/badge/ci-passing-green">
    <img src="docs/logo.png">
    <img src="docs/architecture.png">
    <img src="docs/screenshot.png">
    <img src="/acme/widget/raw/main/demo.gif">
  </article>
</body></html>
"""


def _entry(html, final_url="https://widgetly.dev/"):
    return CacheEntry(request_url=final_url, html=html, final_url=final_url)


class TestGenericExtraction(unittest.TestCase):
    def test_extracts_meta_fields_and_keeps_valid_image(self):
        validator = FakeValidator(good={"https://widgetly.dev/og.png"})
        md = MetadataExtractor(validator).extract(RECORD, _entry(PRODUCT_PAGE))

        self.assertIsNotNone(md)
        self.assertEqual(md.title, "Widgetly makes widgets")
        self.assertEqual(md.description, "Composable widgets for dashboards.")
        self.assertEqual(md.image, "https://widgetly.dev/og.png")
        self.assertEqual(md.publisher, "Widgetly")
        self.assertEqual(md.logo, "https://widgetly.dev/touch.png")

    def test_image_failing_validation_is_cleared(self):
        md = MetadataExtractor(FakeValidator()).extract(RECORD, _entry(PRODUCT_PAGE))
        self.assertIsNone(md.image)
        self.assertEqual(md.title, "Widgetly makes widgets")

    def test_empty_cache_entry_yields_nothing(self):
        extractor = MetadataExtractor(FakeValidator())
        self.assertIsNone(extractor.extract(RECORD, None))
        error_entry = CacheEntry(request_url="https://x.io", html="", final_url="https://x.io", error="http_500")
        self.assertIsNone(extractor.extract(RECORD, error_entry))

    def test_extraction_error_keeps_partial_metadata(self):
        validator = FakeValidator(good={"https://widgetly.dev/og.png"})
        with mock.patch.object(metadata_mod, "is_placeholder_image", side_effect=RuntimeError("boom")):
            md = MetadataExtractor(validator).extract(RECORD, _entry(PRODUCT_PAGE))
        self.assertIsNotNone(md)
        self.assertEqual(md.title, "Widgetly makes widgets")
        self.assertIsNone(md.image)
        self.assertEqual(validator.checked, [])

    def test_unchecked_image_dropped_when_tag_pass_fails(self):
        validator = FakeValidator(good={"https://widgetly.dev/og.png"})
        with mock.patch.object(metadata_mod, "tag_fields", side_effect=RuntimeError("broken markup")):
            md = MetadataExtractor(validator).extract(RECORD, _entry(PRODUCT_PAGE))
        self.assertIsNotNone(md)
        self.assertEqual(md.description, "Composable widgets for dashboards.")
        self.assertIsNone(md.image)
        self.assertEqual(validator.checked, [])


class TestSourceHostFallback(unittest.TestCase):
    def test_placeholder_replaced_by_best_readme_image(self):
        demo = "https://raw.githubusercontent.com/acme/widget/main/demo.gif"
        validator = FakeValidator(good={demo})
        entry = _entry(GITHUB_PAGE, final_url="https://github.com/acme/widget")

        md = MetadataExtractor(validator).extract(RECORD, entry)

        self.assertEqual(md.image, demo)
        self.assertNotIn("https://opengraph.githubassets.com/abc/acme/widget", validator.checked)
        self.assertEqual(validator.checked[0], "https://raw.githubusercontent.com/acme/widget/main/docs/screenshot.png")

    def test_no_acceptable_candidate_leaves_image_unset(self):
        entry = _entry(GITHUB_PAGE, final_url="https://github.com/acme/widget")
        md = MetadataExtractor(FakeValidator()).extract(RECORD, entry)
        self.assertIsNone(md.image)
        self.assertEqual(md.description, "Widgets for everyone")

    def test_fallback_not_used_off_source_hosts(self):
        entry = _entry(GITHUB_PAGE, final_url="https://widgets.example.com/")
        validator = FakeValidator(good={"https://raw.githubusercontent.com/acme/widget/main/demo.gif"})
        md = MetadataExtractor(validator).extract(RECORD, entry)
        self.assertIsNone(md.image)

    def test_candidate_order_and_filtering(self):
        out = fallback_candidates(GITHUB_PAGE, "https://github.com/acme/widget")
        self.assertEqual(out, [
            "https://raw.githubusercontent.com/acme/widget/main/docs/screenshot.png",
            "https://raw.githubusercontent.com/acme/widget/main/demo.gif",
            "https://raw.githubusercontent.com/acme/widget/main/docs/architecture.png",
        ])

    def test_rank_keeps_document_order_within_score(self):
        ranked = rank_candidates(["a.png", "demo1.png", "b.png", "demo2.png"])
        self.assertEqual(ranked, ["demo1.png", "demo2.png", "a.png", "b.png"])


class TestUrlResolution(unittest.TestCase):
    PAGE = "https://github.com/acme/widget"

    def test_absolute_url_kept(self):
        self.assertEqual(resolve_candidate("https://cdn.example.com/x.png", self.PAGE), "https://cdn.example.com/x.png")

    def test_root_relative_resolves_against_origin(self):
        self.assertEqual(
            resolve_candidate("/assets/x.png", self.PAGE),
            "https://github.com/assets/x.png",
        )

    def test_path_relative_uses_raw_content_convention(self):
        self.assertEqual(
            resolve_candidate("./img/x.png", self.PAGE),
            "https://raw.githubusercontent.com/acme/widget/main/img/x.png",
        )

    def test_view_link_rewritten_to_raw(self):
        self.assertEqual(
            to_raw_url("https://github.com/acme/widget/blob/dev/img/x.png"),
            "https://raw.githubusercontent.com/acme/widget/dev/img/x.png",
        )

    def test_attachment_links_untouched(self):
        url = "https://github.com/user-attachments/assets/0f1e2d"
        self.assertEqual(to_raw_url(url), url)

    def test_data_uri_skipped(self):
        self.assertIsNone(resolve_candidate("data:image/png;base64,AAAA", self.PAGE))

    def test_placeholder_patterns(self):
        self.assertTrue(is_placeholder_image("https://github.com/identicons/acme.png"))
        self.assertFalse(is_placeholder_image("https://widgetly.dev/og.png"))


if __name__ == "__main__":
    unittest.main()
