"""Ordered-strategy extraction over rendered HTML.

Listing pages change their markup often. Each page type gets an ordered list
of (selector, field rule) strategies; the extractor walks them in priority
order and stops at the first strategy that yields anything. Elements whose
required fields are missing are skipped one by one, and keyword extraction
falls back to a curated list when every strategy comes back empty.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Tag

from services.errors import ExtractionError

logger = logging.getLogger(__name__)

FieldRule = Callable[[Tag], Any]

VIDEO_ID_PATTERNS = (
    re.compile(r"[?&]v=([a-zA-Z0-9_-]{11})"),
    re.compile(r"/shorts/([a-zA-Z0-9_-]{11})"),
)

_RANK_PREFIX = re.compile(r"^\d+\.\s*")
_WHITESPACE = re.compile(r"\s+")

FALLBACK_TREND_KEYWORDS = (
    "trending music",
    "viral videos",
    "gaming highlights",
    "react videos",
    "tutorials",
    "latest news",
    "product reviews",
    "comedy sketches",
    "challenges",
    "documentaries",
)


@dataclass
class SelectorStrategy:
    """One way of locating items on a page."""

    name: str
    selector: str
    field_rule: FieldRule


@dataclass
class ListingItem:
    """Raw fields of one video as it appears in a listing."""

    video_id: str
    title: str
    channel: str = ""
    views_text: str = ""
    upload_date: str = ""


def _clean_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def _first_text(element: Tag, selector: str) -> str:
    found = element.select_one(selector)
    return _clean_text(found.get_text()) if found else ""


def extract_video_id(href: Optional[str]) -> Optional[str]:
    """Pull the 11-character video id out of a watch or shorts link."""
    if not href:
        return None
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(href)
        if match:
            return match.group(1)
    return None


# =========================================================================
# Field rules
# =========================================================================


def video_renderer_rule(element: Tag) -> ListingItem:
    """Field rule for ytd-video-renderer style elements."""
    anchor = element.select_one("a#thumbnail") or element.select_one("a#video-title")
    video_id = extract_video_id(anchor.get("href") if anchor else None)
    if not video_id:
        raise ExtractionError("renderer has no video link")

    title_el = element.select_one("#video-title")
    title = ""
    if title_el is not None:
        title = _clean_text(title_el.get_text()) or _clean_text(title_el.get("title"))
    if not title:
        raise ExtractionError(f"renderer {video_id} has no title")

    channel = _first_text(element, ".ytd-channel-name a") or _first_text(
        element, "#channel-name, #text.ytd-channel-name"
    )

    spans = element.select("#metadata-line span")
    views_text = _clean_text(spans[0].get_text()) if spans else ""
    upload_date = _clean_text(spans[1].get_text()) if len(spans) > 1 else ""

    return ListingItem(
        video_id=video_id,
        title=title,
        channel=channel,
        views_text=views_text,
        upload_date=upload_date,
    )


def watch_link_rule(element: Tag) -> ListingItem:
    """Field rule for bare watch links; title only, no metadata."""
    video_id = extract_video_id(element.get("href"))
    if not video_id:
        raise ExtractionError("link is not a watch link")
    title = _clean_text(element.get("title")) or _clean_text(element.get_text())
    if not title:
        raise ExtractionError(f"link {video_id} has no title")
    return ListingItem(video_id=video_id, title=title)


def text_rule(element: Tag) -> str:
    """Field rule returning the element text without any leading "N. " rank."""
    text = _RANK_PREFIX.sub("", _clean_text(element.get_text())).strip()
    if not text:
        raise ExtractionError("element has no text")
    return text


def query_link_rule(element: Tag) -> str:
    """Field rule returning the decoded q= parameter of a search link."""
    href = element.get("href") or ""
    values = parse_qs(urlparse(href).query).get("q")
    if not values or not values[0].strip():
        raise ExtractionError(f"no query parameter in {href!r}")
    return values[0].strip()


VIDEO_LISTING_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        "video-renderer",
        "#contents ytd-video-renderer, #contents ytd-grid-video-renderer",
        video_renderer_rule,
    ),
    SelectorStrategy("rich-item", "ytd-rich-item-renderer", video_renderer_rule),
    SelectorStrategy("watch-links", 'a[href*="watch?v="]', watch_link_rule),
)

TREND_KEYWORD_STRATEGIES: Tuple[SelectorStrategy, ...] = (
    SelectorStrategy(
        "related-queries",
        ".related-queries-content .feed-item-wrapper .comparison-item",
        text_rule,
    ),
    SelectorStrategy("feed-items", ".feed-item-wrapper .feed-item", text_rule),
    SelectorStrategy("md-list", ".md-list-block .md-list-item", text_rule),
    SelectorStrategy("bar-chart", ".trends-bar-chart-content .item", text_rule),
    SelectorStrategy("widget-items", ".widget-content-wrapper .widget-item", text_rule),
    SelectorStrategy("feed-container", ".feed-item-container", text_rule),
    SelectorStrategy("widget-list", ".widget-list-content li", text_rule),
    SelectorStrategy("trends-wrapper", ".trends-wrapper .trends", text_rule),
    SelectorStrategy("query-links", 'a[href*="q="]', query_link_rule),
)


# =========================================================================
# Extractor
# =========================================================================


class SelectorFallbackExtractor:
    """Applies strategies in priority order until one yields results."""

    def __init__(
        self,
        strategies: Sequence[SelectorStrategy],
        fallback: Optional[Sequence[Any]] = None,
        max_results: Optional[int] = None,
    ):
        if not strategies:
            raise ValueError("At least one strategy is required")
        self.strategies = list(strategies)
        self.fallback = list(fallback) if fallback else []
        self.max_results = max_results
        self.last_strategy: Optional[str] = None

    @staticmethod
    def _soup(html: Union[str, BeautifulSoup, Tag]) -> Union[BeautifulSoup, Tag]:
        if isinstance(html, (BeautifulSoup, Tag)):
            return html
        return BeautifulSoup(html or "", "html.parser")

    def _apply(self, strategy: SelectorStrategy, soup) -> List[Any]:
        elements = soup.select(strategy.selector)
        if not elements:
            logger.debug(f"Strategy '{strategy.name}' matched no elements")
            return []

        results = []
        skipped = 0
        for element in elements:
            try:
                results.append(strategy.field_rule(element))
            except ExtractionError as e:
                skipped += 1
                logger.debug(f"Strategy '{strategy.name}' skipped element: {e}")
        if skipped:
            logger.info(
                f"Strategy '{strategy.name}': {len(results)} extracted, {skipped} skipped"
            )
        return results

    def extract(self, html: Union[str, BeautifulSoup, Tag]) -> List[Any]:
        """Extract items with the first strategy that yields any.

        Returns the curated fallback (possibly empty) when nothing matches.
        """
        soup = self._soup(html)
        for strategy in self.strategies:
            results = self._apply(strategy, soup)
            if results:
                self.last_strategy = strategy.name
                logger.info(f"Extracted {len(results)} items with strategy '{strategy.name}'")
                if self.max_results is not None:
                    results = results[: self.max_results]
                return results

        self.last_strategy = None
        if self.fallback:
            logger.warning(
                f"All {len(self.strategies)} strategies came back empty, "
                f"using {len(self.fallback)} fallback items"
            )
        return list(self.fallback)

    def extract_keywords(self, html: Union[str, BeautifulSoup, Tag]) -> List[Tuple[str, int]]:
        """Extract ranked keywords: de-duplicated by normalized text, 1-indexed.

        Rank is first-appearance order after de-duplication.
        """
        ranked: List[Tuple[str, int]] = []
        seen = set()
        for item in self.extract(html):
            keyword = _clean_text(str(item))
            normalized = keyword.lower()
            if not keyword or normalized in seen:
                continue
            seen.add(normalized)
            ranked.append((keyword, len(ranked) + 1))
        return ranked


def video_listing_extractor(max_results: Optional[int] = None) -> SelectorFallbackExtractor:
    """Extractor for video listing pages (trending feed, search results)."""
    return SelectorFallbackExtractor(VIDEO_LISTING_STRATEGIES, max_results=max_results)


def trend_keyword_extractor() -> SelectorFallbackExtractor:
    """Extractor for the trends explorer page, never empty."""
    return SelectorFallbackExtractor(TREND_KEYWORD_STRATEGIES, fallback=FALLBACK_TREND_KEYWORDS)
