"""Unit tests for the video listing scraper."""

import pytest

from services.keyword_extractor import KeywordExtractor
from services.youtube_scraper import (
    LISTING_READY_SELECTOR,
    TRENDING_URL,
    YouTubeTrendScraper,
    build_listing_url,
)


class TestBuildListingUrl:
    """Tests for build_listing_url."""

    def test_general_niche_uses_trending_feed(self):
        """Test the empty niche maps to the trending feed."""
        assert build_listing_url("", "week") == TRENDING_URL

    def test_niche_search_with_upload_filter(self):
        """Test niche searches carry the period's upload date filter."""
        assert build_listing_url("home cooking", "day") == (
            "https://www.youtube.com/results?search_query=home%20cooking&sp=EgIIAg%3D%3D"
        )
        assert build_listing_url("gaming", "month").endswith("&sp=EgIIBA%3D%3D")

    def test_all_period_has_no_filter(self):
        """Test the 'all' window searches without a date filter."""
        assert build_listing_url("gaming", "all") == "https://www.youtube.com/results?search_query=gaming"


class TestParse:
    """Tests for YouTubeTrendScraper.parse."""

    def test_records_from_listing(self, listing_html):
        """Test view counts, keywords and inferred niches."""
        scraper = YouTubeTrendScraper(fetcher=object())
        records = scraper.parse(listing_html)

        assert [r.video_id for r in records] == ["abcdefghijk", "ZYXWVUTSRQP"]
        first, second = records
        assert first.views == 1_200_000
        assert first.channel == "DevTips"
        assert first.upload_date == "3 days ago"
        assert "javascript tricks" in first.keywords
        assert first.niche == "other"
        assert first.time_period is None
        assert second.views == 15_000
        assert second.niche == "gaming"

    def test_explicit_niche_and_period(self, listing_html):
        """Test the scraped niche and window are stamped on every record."""
        scraper = YouTubeTrendScraper(fetcher=object())
        records = scraper.parse(listing_html, niche="programming", time_period="week")
        assert {r.niche for r in records} == {"programming"}
        assert {r.time_period for r in records} == {"week"}

    def test_max_videos(self, listing_html):
        """Test the per-page cap."""
        scraper = YouTubeTrendScraper(fetcher=object(), max_videos=1)
        assert len(scraper.parse(listing_html)) == 1

    def test_repeated_ids_collapsed(self, listing_html):
        """Test a video listed twice yields one record."""
        scraper = YouTubeTrendScraper(fetcher=object())
        assert len(scraper.parse(listing_html + listing_html)) == 2

    def test_custom_keyword_extractor(self, listing_html):
        """Test niche inference uses the configured candidates."""
        scraper = YouTubeTrendScraper(
            fetcher=object(),
            keyword_extractor=KeywordExtractor(niche_candidates=["javascript"]),
        )
        assert scraper.parse(listing_html)[0].niche == "javascript"


class TestScrape:
    """Tests for YouTubeTrendScraper.scrape."""

    def test_fetches_listing_page(self, page_factory, fetcher_factory, listing_html):
        """Test the listing URL is fetched and waited on before extraction."""
        page = page_factory(listing_html)
        fetcher, _, _ = fetcher_factory(page)
        scraper = YouTubeTrendScraper(fetcher=fetcher)

        records = scraper.scrape("gaming", "week")

        assert page.goto_calls[0]["url"] == build_listing_url("gaming", "week")
        assert page.selector_waits == [LISTING_READY_SELECTOR]
        assert len(records) == 2
        assert {r.niche for r in records} == {"gaming"}

    def test_invalid_period(self, page_factory, fetcher_factory):
        """Test an unknown period is rejected before fetching."""
        page = page_factory()
        fetcher, launcher, _ = fetcher_factory(page)

        with pytest.raises(ValueError):
            YouTubeTrendScraper(fetcher=fetcher).scrape("gaming", "year")
        assert launcher.sessions == []

    def test_empty_page(self, page_factory, fetcher_factory):
        """Test a page with no listings yields no records."""
        fetcher, _, _ = fetcher_factory(page_factory("<html><body></body></html>"))
        assert YouTubeTrendScraper(fetcher=fetcher).scrape("", "all") == []

    def test_fetch_returns_html_only(self, page_factory, fetcher_factory, listing_html):
        """Test fetch loads the page without parsing it."""
        page = page_factory(listing_html)
        fetcher, launcher, _ = fetcher_factory(page)

        html = YouTubeTrendScraper(fetcher=fetcher).fetch("", "day")

        assert html == listing_html
        assert page.goto_calls[0]["url"] == build_listing_url("", "day")
        assert launcher.sessions[0].closed is True
