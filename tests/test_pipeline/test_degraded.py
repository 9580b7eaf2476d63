"""Tests for the URL-derived degraded record."""

import pytest

from folio.config.sites import classify_url
from folio.pipeline.degraded import DEGRADED_DESCRIPTION, build_degraded_record, title_from_url
from folio.pipeline.fixer import PLACEHOLDER_COVER_URL


class TestTitleFromUrl:
    @pytest.mark.parametrize(
        "url, expected",
        [
            (
                "https://www.thalia.de/artikeldetails/die-mitternachtsbibliothek",
                "Die Mitternachtsbibliothek",
            ),
            ("https://www.thalia.de/artikeldetails/der_grosse+gatsby", "Der Grosse Gatsby"),
            ("https://www.thalia.de/artikeldetails/caf%C3%A9-am-rande", "Café Am Rande"),
            (
                "https://www.thalia.de/artikeldetails/DIE-MITTERNACHTSBIBLIOTHEK",
                "Die Mitternachtsbibliothek",
            ),
            (
                "https://www.amazon.de/Die-Mitternachtsbibliothek-Matt-Haig/dp/3426282569",
                "Die Mitternachtsbibliothek Matt Haig",
            ),
            ("https://www.amazon.de/gp/product/B08KWN77SZ", ""),
        ],
    )
    def test_titles(self, url, expected):
        assert title_from_url(classify_url(url)) == expected

    def test_query_is_ignored(self):
        url = "https://www.thalia.de/artikeldetails/mein-buch?sid=123"
        assert title_from_url(classify_url(url)) == "Mein Buch"


class TestBuildDegradedRecord:
    def test_thalia(self):
        record = build_degraded_record(
            classify_url("https://www.thalia.de/artikeldetails/die-mitternachtsbibliothek")
        )
        assert record.title == "Die Mitternachtsbibliothek"
        assert record.description == DEGRADED_DESCRIPTION
        assert record.cover_url == PLACEHOLDER_COVER_URL
        assert record.language == "Deutsch"
        assert record.author == ""
        assert record.asin == ""

    def test_amazon_keeps_asin(self):
        record = build_degraded_record(
            classify_url("https://www.amazon.de/Die-Mitternachtsbibliothek/dp/3426282569")
        )
        assert record.title == "Die Mitternachtsbibliothek"
        assert record.asin == "3426282569"
